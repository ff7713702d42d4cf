"""Per-user library of owned games."""
import logging
from typing import Any, Dict, List

from pymongo.database import Database

from database import parse_object_id, to_public
from errors import Conflict, NotFound

logger = logging.getLogger(__name__)


def get_library(db: Database, user_id: str) -> List[Dict[str, Any]]:
    """Return the games in a user's library, oldest addition first.

    References to games that no longer exist are skipped.
    """
    user = db["user"].find_one({"_id": parse_object_id(user_id, "user")}, {"library": 1})
    if not user:
        raise NotFound("User not found")

    ids = user.get("library", [])
    if not ids:
        return []
    by_id = {g["_id"]: g for g in db["game"].find({"_id": {"$in": ids}})}
    return [to_public(by_id[i]) for i in ids if i in by_id]


def add_to_library(db: Database, user_id: str, game_id: str) -> None:
    uid = parse_object_id(user_id, "user")
    gid = parse_object_id(game_id, "game")

    if not db["game"].find_one({"_id": gid}, {"_id": 1}):
        raise NotFound("Game not found")
    user = db["user"].find_one({"_id": uid}, {"library": 1})
    if not user:
        raise NotFound("User not found")
    if gid in user.get("library", []):
        raise Conflict("Game already in library")

    # $addToSet keeps the entry unique even if two requests race past the check above
    result = db["user"].update_one({"_id": uid}, {"$addToSet": {"library": gid}})
    if not result.modified_count:
        raise Conflict("Game already in library")
    logger.info("Added game %s to library of user %s", gid, uid)
