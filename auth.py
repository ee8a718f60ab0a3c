"""
Credentials and tokens.

Passwords are hashed with bcrypt through passlib. Access and refresh tokens
are HS256 JWTs signed with separate secrets. A user holds a single active
refresh token: issuing a new pair overwrites it, so a token that has been
rotated away is rejected even before it expires.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

import jwt
from bson import ObjectId
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo.database import Database

from config import Settings
from errors import Internal, NotFound, TokenError, Unauthorized

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

# Fields never sent back to clients
PRIVATE_USER_FIELDS = {"password_hash": 0, "refresh_token": 0}

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
bearer_scheme = OAuth2PasswordBearer(tokenUrl="users/login", auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str


class TokenService:
    def __init__(self, db: Database, settings: Settings):
        self.users = db["user"]
        self.settings = settings

    def _encode(self, claims: dict, secret: str, lifetime) -> str:
        issued = datetime.now(timezone.utc)
        payload = dict(claims, jti=uuid.uuid4().hex, iat=issued, exp=issued + lifetime)
        return jwt.encode(payload, secret, algorithm=ALGORITHM)

    def issue_access_token(self, user: dict) -> str:
        claims = {"sub": str(user["_id"]), "email": user.get("email"), "username": user.get("username")}
        return self._encode(claims, self.settings.access_token_secret, self.settings.access_token_expires_in)

    def issue_refresh_token(self, user: dict) -> str:
        claims = {"sub": str(user["_id"])}
        return self._encode(claims, self.settings.refresh_token_secret, self.settings.refresh_token_expires_in)

    def _issue_pair(self, user_id: ObjectId) -> Tuple[dict, TokenPair]:
        user = self.users.find_one({"_id": user_id}, {"email": 1, "username": 1})
        if user is None:
            raise NotFound("User not found")
        return user, TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=self.issue_refresh_token(user),
        )

    def rotate_tokens(self, user_id: ObjectId) -> TokenPair:
        """Issue a new pair and make its refresh token the only valid one."""
        _, pair = self._issue_pair(user_id)
        result = self.users.update_one({"_id": user_id}, {"$set": {"refresh_token": pair.refresh_token}})
        if result.matched_count == 0:
            raise Internal("Something went wrong while generating refresh and access token")
        return pair

    def _decode(self, token: str, secret: str) -> ObjectId:
        try:
            payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        except jwt.PyJWTError:
            raise TokenError("invalid")
        sub = payload.get("sub")
        if not sub or not ObjectId.is_valid(sub):
            raise TokenError("invalid")
        return ObjectId(sub)

    def verify_refresh_token(self, token: str) -> ObjectId:
        if not token:
            raise TokenError("missing", "Refresh token is required")
        user_id = self._decode(token, self.settings.refresh_token_secret)
        user = self.users.find_one({"_id": user_id}, {"refresh_token": 1})
        if user is None:
            raise TokenError("invalid")
        if user.get("refresh_token") != token:
            logger.warning("Rejected stale refresh token for user %s", user_id)
            raise TokenError("stale")
        return user_id

    def refresh(self, token: str) -> Tuple[ObjectId, TokenPair]:
        """Exchange a refresh token for a new pair.

        The stored token is swapped only if it still equals ``token``, so of
        two concurrent refreshes with the same token exactly one wins.
        """
        user_id = self.verify_refresh_token(token)
        _, pair = self._issue_pair(user_id)
        result = self.users.update_one(
            {"_id": user_id, "refresh_token": token},
            {"$set": {"refresh_token": pair.refresh_token}},
        )
        if result.matched_count == 0:
            logger.warning("Refresh token for user %s rotated concurrently", user_id)
            raise TokenError("stale")
        logger.info("Rotated tokens for user %s", user_id)
        return user_id, pair

    def revoke(self, user_id: ObjectId) -> None:
        self.users.update_one({"_id": user_id}, {"$set": {"refresh_token": None}})
        logger.info("Revoked refresh token for user %s", user_id)

    def authenticate(self, token: Optional[str]) -> dict:
        if not token:
            raise Unauthorized("Unauthorized request")
        user_id = self._decode(token, self.settings.access_token_secret)
        user = self.users.find_one({"_id": user_id}, PRIVATE_USER_FIELDS)
        if user is None:
            raise Unauthorized("Invalid access token")
        return user


# -------------------- Dependencies --------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_token_service(db: Database = Depends(get_db), settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(db, settings)


def _access_token(request: Request, bearer: Optional[str]) -> Optional[str]:
    return request.cookies.get(ACCESS_COOKIE) or bearer


def get_current_user(
    request: Request,
    bearer: Optional[str] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> dict:
    return tokens.authenticate(_access_token(request, bearer))


def get_optional_user(
    request: Request,
    bearer: Optional[str] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[dict]:
    token = _access_token(request, bearer)
    if not token:
        return None
    return tokens.authenticate(token)
