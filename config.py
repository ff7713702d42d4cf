"""
Process-wide settings for the Game Catalog API.

Values come from the environment (a local .env file is honoured) and are
read exactly once; the resulting Settings object is immutable.
"""
import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    secret_key: str = Field(..., min_length=1, description="HMAC key used to sign bearer tokens")
    token_exp_min: int = Field(1440, gt=0, description="Token lifetime in minutes")
    pwd_iterations: int = Field(200_000, gt=0, description="PBKDF2 iterations for new hashes")
    database_url: str = Field("", description="MongoDB connection string")
    database_name: str = Field("", description="MongoDB database name")
    upload_dir: str = Field("uploads", description="Where uploaded images are written")
    max_upload_mb: float = Field(5, gt=0, description="Image size ceiling in megabytes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field("INFO")

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    secret = os.getenv("SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY is not set; refusing to start without a token signing key")

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    try:
        return Settings(
            secret_key=secret,
            token_exp_min=os.getenv("TOKEN_EXP_MIN", "1440"),
            pwd_iterations=os.getenv("PWD_ITERATIONS", "200000"),
            database_url=os.getenv("DATABASE_URL", ""),
            database_name=os.getenv("DATABASE_NAME", ""),
            upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
            max_upload_mb=os.getenv("MAX_UPLOAD_MB", "5"),
            cors_origins=origins or ["*"],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
    except ValidationError as exc:
        bad = ", ".join(str(err["loc"][0]).upper() for err in exc.errors() if err.get("loc"))
        raise RuntimeError(f"Invalid settings: {bad}") from exc
