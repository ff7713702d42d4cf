"""
Database Schemas for the Game Catalog

Each Pydantic model represents a collection in MongoDB.
Collection name is the lowercase of the class name:
- User -> "user" collection
- Game -> "game" collection

Fields are serialised under camelCase aliases (imageUrl, releaseDate, ...),
which is also how they are stored and returned by the API.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class User(Document):
    username: str = Field(..., min_length=1, description="Unique login name")
    email: EmailStr = Field(..., description="Unique email address")
    password: str = Field(..., description="Salted password hash, never plaintext")
    library: List[ObjectId] = Field(default_factory=list, description="Owned game ids, in insertion order")
    created_at: datetime = Field(default_factory=utcnow)


class Review(Document):
    user_id: ObjectId = Field(..., description="Author of the review")
    rating: float = Field(..., ge=0)
    comment: str = ""
    date: datetime = Field(default_factory=utcnow)


class Game(Document):
    title: str = Field(..., description="Game title")
    description: str = Field(..., description="Store page description")
    category: str = Field(..., description="Genre / category label")
    publisher: str = Field(..., description="Publisher name")
    image_url: str = Field("", description="Public URL of the uploaded cover image")
    price: float = Field(..., ge=0, description="Price, non-negative")
    featured: bool = False
    trending: bool = False
    release_date: datetime = Field(default_factory=utcnow)
    rating: float = Field(0, ge=0, description="Mean of review ratings, 0 without reviews")
    reviews: List[Review] = Field(default_factory=list)


# -----------------
# Request / response bodies
# -----------------

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    token: str
    user: Dict[str, Any]


class ReviewRequest(BaseModel):
    rating: float = Field(..., ge=0)
    comment: Optional[str] = ""


class MessageResponse(BaseModel):
    message: str
