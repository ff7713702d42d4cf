import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import catalog
import database
import library
from config import get_settings
from database import ensure_indexes, get_db
from errors import CatalogError
from schemas import LoginRequest, LoginResponse, MessageResponse, RegisterRequest, ReviewRequest
from uploads import UPLOAD_URL_PREFIX, read_upload

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        try:
            ensure_indexes(database.db)
        except PyMongoError as exc:
            logger.error("Could not create indexes: %s", exc)
    yield


app = FastAPI(title="Game Catalog API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(settings.upload_dir, exist_ok=True)
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=settings.upload_dir), name="uploads")


# -----------------
# Error handling
# -----------------
@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)},
                        headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    message = "Invalid request"
    if fields:
        message = f"Invalid or missing fields: {', '.join(fields)}"
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# -----------------
# Base routes
# -----------------
@app.get("/")
def read_root():
    return {"message": "Game Catalog Backend Running"}


@app.get("/api/health")
def health():
    response = {"status": "ok", "database": "not configured"}
    if database.client is not None:
        try:
            database.client.admin.command("ping")
            response["database"] = "connected"
        except PyMongoError as exc:
            logger.warning("Health check ping failed: %s", exc)
            response["database"] = "unavailable"
    return response


# -----------------
# Auth routes
# -----------------
@app.post("/api/register", status_code=201, response_model=MessageResponse)
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    auth.register(db, payload.username, str(payload.email), payload.password)
    return {"message": "User registered successfully"}


@app.post("/api/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    return auth.login(db, str(payload.email), payload.password)


# -----------------
# Games
# -----------------
@app.get("/api/games")
def list_games(category: Optional[str] = None, featured: Optional[str] = None,
               trending: Optional[str] = None, search: Optional[str] = None,
               db: Database = Depends(get_db)):
    return catalog.list_games(db, category=category, featured=featured,
                              trending=trending, search=search)


@app.get("/api/games/{game_id}")
def get_game(game_id: str, db: Database = Depends(get_db)):
    return catalog.get_game(db, game_id)


@app.post("/api/games", status_code=201)
def create_game(
    user_id: str = Depends(auth.get_current_user_id),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    publisher: Optional[str] = Form(None),
    featured: Optional[str] = Form(None),
    trending: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
):
    fields = {
        "title": title,
        "description": description,
        "category": category,
        "price": price,
        "publisher": publisher,
        "featured": featured,
        "trending": trending,
    }
    if image is not None and image.filename:
        return catalog.create_game(db, fields, image_data=read_upload(image),
                                   image_filename=image.filename,
                                   image_content_type=image.content_type)
    return catalog.create_game(db, fields)


@app.post("/api/games/{game_id}/reviews", status_code=201)
def add_review(game_id: str, payload: ReviewRequest,
               user_id: str = Depends(auth.get_current_user_id),
               db: Database = Depends(get_db)):
    return catalog.add_review(db, game_id, user_id, payload.rating, payload.comment)


@app.get("/api/categories")
def list_categories(db: Database = Depends(get_db)):
    return catalog.list_categories(db)


# -----------------
# Library
# -----------------
@app.get("/api/library")
def get_library(user_id: str = Depends(auth.get_current_user_id),
                db: Database = Depends(get_db)):
    return library.get_library(db, user_id)


@app.post("/api/library/{game_id}", response_model=MessageResponse)
def add_to_library(game_id: str, user_id: str = Depends(auth.get_current_user_id),
                   db: Database = Depends(get_db)):
    library.add_to_library(db, user_id, game_id)
    return {"message": "Game added to library"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
