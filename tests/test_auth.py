from datetime import timedelta

import jwt
import pytest
from bson import ObjectId

from auth import ALGORITHM, TokenService, hash_password, verify_password
from database import create_document
from errors import TokenError, Unauthorized


@pytest.fixture
def user_id(db):
    return ObjectId(
        create_document(
            db,
            "user",
            {
                "username": "carol",
                "email": "carol@example.com",
                "full_name": "Carol",
                "password_hash": hash_password("hunter22"),
                "avatar_url": "/static/images/carol.png",
                "refresh_token": None,
            },
        )
    )


@pytest.fixture
def tokens(db, settings):
    return TokenService(db, settings)


def test_password_hash_round_trip():
    hashed = hash_password("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)
    assert not verify_password("hunter22", "")


def test_access_token_carries_id_and_email(tokens, user_id, settings):
    user = {"_id": user_id, "email": "carol@example.com", "username": "carol"}
    payload = jwt.decode(tokens.issue_access_token(user), settings.access_token_secret, algorithms=[ALGORITHM])
    assert payload["sub"] == str(user_id)
    assert payload["email"] == "carol@example.com"
    assert "exp" in payload


def test_refresh_token_is_signed_with_its_own_secret(tokens, user_id, settings):
    token = tokens.issue_refresh_token({"_id": user_id})
    with pytest.raises(jwt.InvalidSignatureError):
        jwt.decode(token, settings.access_token_secret, algorithms=[ALGORITHM])


def test_rotate_persists_single_refresh_token(tokens, user_id, db):
    first = tokens.rotate_tokens(user_id)
    second = tokens.rotate_tokens(user_id)
    assert first.refresh_token != second.refresh_token
    assert db["user"].find_one({"_id": user_id})["refresh_token"] == second.refresh_token

    assert tokens.verify_refresh_token(second.refresh_token) == user_id
    with pytest.raises(TokenError) as excinfo:
        tokens.verify_refresh_token(first.refresh_token)
    assert excinfo.value.reason == "stale"


def test_refresh_rejects_previous_token(tokens, user_id):
    original = tokens.rotate_tokens(user_id)
    refreshed_id, pair = tokens.refresh(original.refresh_token)
    assert refreshed_id == user_id

    with pytest.raises(TokenError) as excinfo:
        tokens.refresh(original.refresh_token)
    assert excinfo.value.reason == "stale"
    assert excinfo.value.status_code == 401

    _, again = tokens.refresh(pair.refresh_token)
    assert again.refresh_token != pair.refresh_token


def test_revoke_clears_refresh_token(tokens, user_id, db):
    pair = tokens.rotate_tokens(user_id)
    tokens.revoke(user_id)
    assert db["user"].find_one({"_id": user_id})["refresh_token"] is None
    with pytest.raises(TokenError):
        tokens.verify_refresh_token(pair.refresh_token)


def test_tampered_and_missing_refresh_tokens(tokens, user_id):
    pair = tokens.rotate_tokens(user_id)
    with pytest.raises(TokenError) as excinfo:
        tokens.verify_refresh_token(pair.refresh_token + "x")
    assert excinfo.value.reason == "invalid"

    with pytest.raises(TokenError) as excinfo:
        tokens.verify_refresh_token("")
    assert excinfo.value.reason == "missing"


def test_expired_refresh_token_is_invalid(db, settings, user_id):
    expired = TokenService(db, settings.model_copy(update={"refresh_token_expires_in": timedelta(seconds=-5)}))
    pair = expired.rotate_tokens(user_id)
    with pytest.raises(TokenError) as excinfo:
        expired.verify_refresh_token(pair.refresh_token)
    assert excinfo.value.reason == "invalid"


def test_authenticate_hides_secret_fields(tokens, user_id):
    pair = tokens.rotate_tokens(user_id)
    user = tokens.authenticate(pair.access_token)
    assert user["_id"] == user_id
    assert "password_hash" not in user
    assert "refresh_token" not in user


def test_authenticate_rejects_missing_and_foreign_tokens(tokens, user_id):
    with pytest.raises(Unauthorized):
        tokens.authenticate(None)
    forged = jwt.encode({"sub": str(user_id)}, "not-the-secret", algorithm=ALGORITHM)
    with pytest.raises(Unauthorized):
        tokens.authenticate(forged)
