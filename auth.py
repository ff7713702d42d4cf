"""
Accounts and bearer tokens.

Passwords are stored as salted PBKDF2-SHA256 hashes. Tokens have the form
``<user_id>:<exp>:<signature>`` where the signature is an HMAC-SHA256 of
``<user_id>:<exp>`` under SECRET_KEY.
"""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Header
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import get_settings
from database import create_document
from errors import Conflict, InvalidArgument, Unauthenticated
from schemas import User

logger = logging.getLogger(__name__)

HASH_SCHEME = "pbkdf2_sha256"


def hash_password(password: str, iterations: Optional[int] = None) -> str:
    iterations = iterations or get_settings().pwd_iterations
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"{HASH_SCHEME}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations_s, salt, expected = stored.split("$")
        iterations = int(iterations_s)
    except (AttributeError, ValueError):
        return False
    if scheme != HASH_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return hmac.compare_digest(digest.hex(), expected)


def _sign(payload: str) -> str:
    key = get_settings().secret_key.encode()
    return hmac.new(key, payload.encode(), hashlib.sha256).hexdigest()


def create_token(user_id: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    exp = int((now + timedelta(minutes=get_settings().token_exp_min)).timestamp())
    payload = f"{user_id}:{exp}"
    return f"{payload}:{_sign(payload)}"


def verify_token(token: Optional[str]) -> Optional[str]:
    """Return the user id bound to *token*, or None if it does not check out."""
    if not token:
        return None
    try:
        user_id, exp_s, sig = token.split(":")
        exp = int(exp_s)
    except ValueError:
        return None
    # compare bytes: compare_digest refuses non-ASCII str operands
    expected = _sign(f"{user_id}:{exp_s}").encode()
    if not user_id or not hmac.compare_digest(expected, sig.encode("utf-8", "surrogateescape")):
        return None
    if exp < int(datetime.now(timezone.utc).timestamp()):
        return None
    return user_id


def register(db: Database, username: str, email: str, password: str) -> str:
    email = email.lower()
    existing = db["user"].find_one({"$or": [{"email": email}, {"username": username}]})
    if existing:
        logger.info("Registration rejected, username or email already taken")
        raise Conflict("User already exists")

    user = User(username=username, email=email, password=hash_password(password))
    try:
        inserted_id = create_document(db, "user", user)
    except DuplicateKeyError:
        # lost a race with a concurrent registration
        raise Conflict("User already exists")
    logger.info("Registered user %s (%s)", username, inserted_id)
    return str(inserted_id)


def login(db: Database, email: str, password: str) -> Dict[str, Any]:
    user = db["user"].find_one({"email": email.lower()})
    if not user:
        logger.info("Login failed: no account for the given email")
        raise InvalidArgument("Invalid credentials")
    if not verify_password(password, user.get("password", "")):
        logger.info("Login failed: wrong password for user %s", user["_id"])
        raise InvalidArgument("Invalid credentials")

    user_id = str(user["_id"])
    return {
        "token": create_token(user_id),
        "user": {"id": user_id, "username": user["username"], "email": user["email"]},
    }


# Dependency for protected routes
def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthenticated("Access denied")
    token = authorization.split(" ", 1)[1].strip()
    uid = verify_token(token)
    if not uid:
        raise Unauthenticated("Invalid or expired token")
    return uid
