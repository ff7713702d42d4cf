"""Game listings, reviews and categories."""
import logging
import math
import re
from typing import Any, Dict, List, Mapping, Optional

from pymongo.database import Database

from database import create_document, get_documents, parse_object_id, to_public
from errors import Conflict, InvalidArgument, NotFound
from schemas import Game, Review
from uploads import check_image, save_image

logger = logging.getLogger(__name__)

REQUIRED_GAME_FIELDS = ("title", "description", "category", "price", "publisher")

# How many times add_review re-reads a game after losing a write race.
REVIEW_WRITE_ATTEMPTS = 5


def _flag(value: Optional[str]) -> Optional[bool]:
    """Query-string boolean: absent/empty means no constraint, only "true" is true."""
    if value is None or value == "":
        return None
    return str(value).strip().lower() == "true"


def parse_price(value: Any) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument("Price must be a number")
    if not math.isfinite(price) or price < 0:
        raise InvalidArgument("Price must be a non-negative number")
    return price


def list_games(db: Database, category: Optional[str] = None,
               featured: Optional[str] = None, trending: Optional[str] = None,
               search: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if category:
        query["category"] = category
    featured_flag = _flag(featured)
    if featured_flag is not None:
        query["featured"] = featured_flag
    trending_flag = _flag(trending)
    if trending_flag is not None:
        query["trending"] = trending_flag
    if search:
        query["title"] = {"$regex": re.escape(search), "$options": "i"}
    return [to_public(g) for g in get_documents(db, "game", query)]


def get_game(db: Database, game_id: str) -> Dict[str, Any]:
    game = db["game"].find_one({"_id": parse_object_id(game_id, "game")})
    if not game:
        raise NotFound("Game not found")
    return to_public(game)


def create_game(db: Database, fields: Mapping[str, Any],
                image_data: Optional[bytes] = None,
                image_filename: Optional[str] = None,
                image_content_type: Optional[str] = None) -> Dict[str, Any]:
    """Validate and insert a new game.

    The cover image, when given, is checked for type and size before
    anything is written; it is saved only once the record fields are valid.
    """
    missing = [name for name in REQUIRED_GAME_FIELDS
               if fields.get(name) is None or str(fields.get(name)).strip() == ""]
    if missing:
        raise InvalidArgument(f"Missing required fields: {', '.join(missing)}")
    price = parse_price(fields["price"])

    ext = None
    if image_data is not None:
        ext = check_image(image_filename or "", image_content_type, len(image_data))

    game = Game(
        title=str(fields["title"]).strip(),
        description=str(fields["description"]),
        category=str(fields["category"]).strip(),
        publisher=str(fields["publisher"]).strip(),
        price=price,
        featured=bool(_flag(fields.get("featured"))),
        trending=bool(_flag(fields.get("trending"))),
    )
    if ext is not None:
        game.image_url = save_image(image_data, ext)

    doc = game.model_dump(by_alias=True)
    doc["_id"] = create_document(db, "game", doc)
    logger.info("Created game %s (%s)", doc["_id"], game.title)
    return to_public(doc)


def add_review(db: Database, game_id: str, user_id: str,
               rating: Any, comment: Optional[str] = "") -> Dict[str, Any]:
    """Append a review and recompute the game's mean rating.

    The write only applies if the game still has the number of reviews seen
    when the mean was computed; otherwise the game is re-read and the mean
    recomputed, so concurrent reviews are never dropped from the average.
    """
    oid = parse_object_id(game_id, "game")
    author = parse_object_id(user_id, "user")
    try:
        value = float(rating)
    except (TypeError, ValueError):
        raise InvalidArgument("Rating must be a number")
    if not math.isfinite(value) or value < 0:
        raise InvalidArgument("Rating must be a non-negative number")

    review = Review(user_id=author, rating=value, comment=comment or "").model_dump(by_alias=True)

    for _ in range(REVIEW_WRITE_ATTEMPTS):
        game = db["game"].find_one({"_id": oid})
        if not game:
            raise NotFound("Game not found")

        if "reviews" in game:
            reviews = list(game["reviews"])
            guard = {"reviews": {"$size": len(reviews)}}
        else:
            reviews = []
            guard = {"reviews": {"$exists": False}}

        reviews.append(review)
        mean = sum(r["rating"] for r in reviews) / len(reviews)

        result = db["game"].update_one(
            {"_id": oid, **guard},
            {"$push": {"reviews": review}, "$set": {"rating": mean}},
        )
        if result.modified_count:
            game["reviews"] = reviews
            game["rating"] = mean
            logger.info("Review added to game %s, rating now %.2f", oid, mean)
            return to_public(game)
        logger.warning("Concurrent review on game %s, retrying", oid)

    raise Conflict("Game is being reviewed concurrently, please retry")


def list_categories(db: Database) -> List[str]:
    return sorted(c for c in db["game"].distinct("category") if c)
