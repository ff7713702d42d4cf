from datetime import datetime, timedelta, timezone

import pydantic
import pytest
from bson import ObjectId

import auth
from config import get_settings
from errors import Conflict, InvalidArgument, Unauthenticated


# -----------------
# Password hashing
# -----------------

def test_hash_password_is_salted_and_verifies():
    first = auth.hash_password("hunter2")
    second = auth.hash_password("hunter2")
    assert first != second
    assert "hunter2" not in first
    assert first.startswith("pbkdf2_sha256$")
    assert auth.verify_password("hunter2", first)
    assert auth.verify_password("hunter2", second)


def test_verify_password_rejects_wrong_and_malformed():
    stored = auth.hash_password("right")
    assert not auth.verify_password("wrong", stored)
    assert not auth.verify_password("right", "")
    assert not auth.verify_password("right", "plaintext")
    assert not auth.verify_password("right", "md5$1$salt$abc")


# -----------------
# Tokens
# -----------------

def test_token_round_trip():
    uid = str(ObjectId())
    assert auth.verify_token(auth.create_token(uid)) == uid


def test_token_expires_after_configured_lifetime():
    uid = str(ObjectId())
    now = datetime.now(timezone.utc)
    token = auth.create_token(uid, now=now)
    exp = int(token.split(":")[1])
    assert exp == int((now + timedelta(minutes=24 * 60)).timestamp())

    stale = auth.create_token(uid, now=now - timedelta(hours=25))
    assert auth.verify_token(stale) is None


@pytest.mark.parametrize("token", [None, "", "garbage", "a:b", "a:b:c:d", "abc:notanint:sig", "a:1:\u00e9"])
def test_malformed_tokens_are_rejected(token):
    assert auth.verify_token(token) is None


def test_tampered_token_is_rejected():
    token = auth.create_token(str(ObjectId()))
    user_id, exp, sig = token.split(":")
    forged = f"{ObjectId()}:{exp}:{sig}"
    assert auth.verify_token(forged) is None
    extended = f"{user_id}:{int(exp) + 3600}:{sig}"
    assert auth.verify_token(extended) is None


def test_get_current_user_id_requires_bearer():
    uid = str(ObjectId())
    assert auth.get_current_user_id(f"Bearer {auth.create_token(uid)}") == uid
    with pytest.raises(Unauthenticated):
        auth.get_current_user_id(None)
    with pytest.raises(Unauthenticated):
        auth.get_current_user_id(auth.create_token(uid))
    with pytest.raises(Unauthenticated):
        auth.get_current_user_id("Bearer nope")


# -----------------
# Accounts
# -----------------

def test_register_stores_only_a_hash(db):
    user_id = auth.register(db, "alice", "A@X.com", "pw123")
    doc = db["user"].find_one({"_id": ObjectId(user_id)})
    assert doc["email"] == "a@x.com"
    assert doc["password"] != "pw123"
    assert auth.verify_password("pw123", doc["password"])
    assert doc["library"] == []
    assert isinstance(doc["createdAt"], datetime)


def test_register_duplicate_email_or_username(db):
    auth.register(db, "alice", "a@x.com", "pw123")
    with pytest.raises(Conflict):
        auth.register(db, "alice2", "a@x.com", "pw123")
    with pytest.raises(Conflict):
        auth.register(db, "alice", "other@x.com", "pw123")
    assert db["user"].count_documents({}) == 1


def test_login_success_and_failures(db):
    user_id = auth.register(db, "alice", "a@x.com", "pw123")
    result = auth.login(db, "a@x.com", "pw123")
    assert result["user"] == {"id": user_id, "username": "alice", "email": "a@x.com"}
    assert auth.verify_token(result["token"]) == user_id

    with pytest.raises(InvalidArgument) as wrong_pw:
        auth.login(db, "a@x.com", "nope")
    with pytest.raises(InvalidArgument) as unknown:
        auth.login(db, "b@x.com", "pw123")
    # the caller cannot tell the two cases apart
    assert wrong_pw.value.message == unknown.value.message == "Invalid credentials"


# -----------------
# Settings
# -----------------

def test_settings_are_immutable():
    settings = get_settings()
    with pytest.raises(pydantic.ValidationError):
        settings.secret_key = "other"


def test_missing_secret_key_refuses_to_load(monkeypatch):
    monkeypatch.delenv("SECRET_KEY")
    get_settings.cache_clear()
    try:
        with pytest.raises(RuntimeError):
            get_settings()
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()


def test_non_ascii_signature_is_rejected():
    token = auth.create_token(str(ObjectId()))
    user_id, exp, sig = token.split(":")
    assert auth.verify_token(f"{user_id}:{exp}:é{sig[1:]}") is None
    with pytest.raises(Unauthenticated):
        auth.get_current_user_id(f"Bearer {user_id}:{exp}:éabc")


@pytest.mark.parametrize("name, value", [("TOKEN_EXP_MIN", "a day"), ("MAX_UPLOAD_MB", "lots"), ("TOKEN_EXP_MIN", "0")])
def test_malformed_setting_names_the_variable(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    get_settings.cache_clear()
    try:
        with pytest.raises(RuntimeError) as err:
            get_settings()
        assert name in str(err.value)
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()
