import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import (
    ACCESS_COOKIE,
    PRIVATE_USER_FIELDS,
    REFRESH_COOKIE,
    TokenPair,
    TokenService,
    get_current_user,
    get_db,
    get_settings,
    get_token_service,
    hash_password,
    verify_password,
)
from blob_store import IMAGE_FOLDER, BlobStore, check_media_type, discard_blob, get_blob_store, store_upload
from config import Settings
from database import create_document, now
from errors import BadRequest, Conflict, Internal, NotFound, Unauthorized
from helpers import api_response
from payloads import AccountUpdateRequest, ChangePasswordRequest, LoginRequest, RefreshRequest, RegisterRequest
from schemas import User
from views import ViewBuilder, get_view_builder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _public_user(db: Database, user_id) -> dict:
    user = db["user"].find_one({"_id": user_id}, PRIVATE_USER_FIELDS)
    if user is None:
        raise NotFound("User not found")
    return user


def _set_auth_cookies(response, pair: TokenPair, settings: Settings):
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.set_cookie(ACCESS_COOKIE, pair.access_token, **options)
    response.set_cookie(REFRESH_COOKIE, pair.refresh_token, **options)
    return response


def _clear_auth_cookies(response, settings: Settings):
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.cookie_secure, samesite="lax")
    return response


def _ensure_available(db: Database, username: Optional[str], email: Optional[str], exclude_id=None):
    clauses = []
    if username:
        clauses.append({"username": username})
    if email:
        clauses.append({"email": email})
    if not clauses:
        return
    query = {"$or": clauses}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if db["user"].find_one(query, {"_id": 1}):
        raise Conflict("User with email or username already exists")


@router.post("/register")
def register(
    username: str = Form(...),
    email: str = Form(...),
    full_name: str = Form(...),
    password: str = Form(...),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    payload = RegisterRequest(username=username, email=email, full_name=full_name, password=password)
    _ensure_available(db, payload.username, payload.email)

    check_media_type(avatar, "image", "Avatar image")
    if cover_image is not None and cover_image.filename:
        check_media_type(cover_image, "image", "Cover image")
    else:
        cover_image = None

    avatar_blob = store_upload(blob_store, avatar, IMAGE_FOLDER, "Avatar image")
    cover_url = ""
    if cover_image is not None:
        try:
            cover_url = store_upload(blob_store, cover_image, IMAGE_FOLDER, "Cover image").url
        except Internal:
            discard_blob(blob_store, avatar_blob.url)
            raise

    user_doc = User(
        username=payload.username,
        email=payload.email,
        full_name=payload.full_name,
        password_hash=hash_password(payload.password),
        avatar_url=avatar_blob.url,
        cover_image_url=cover_url,
    )
    try:
        user_id = create_document(db, "user", user_doc)
    except DuplicateKeyError:
        discard_blob(blob_store, avatar_blob.url)
        discard_blob(blob_store, cover_url)
        raise Conflict("User with email or username already exists")

    created = db["user"].find_one({"username": payload.username}, PRIVATE_USER_FIELDS)
    if created is None:
        raise Internal("Something went wrong while registering the user")
    logger.info("Registered user %s", user_id)
    return api_response(created, "User registered successfully", 201)


@router.post("/login")
def login(
    payload: LoginRequest,
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    clauses = []
    if payload.email:
        clauses.append({"email": payload.email.lower()})
    if payload.username:
        clauses.append({"username": payload.username.strip().lower()})
    user = db["user"].find_one({"$or": clauses})
    if user is None:
        raise NotFound("User does not exist")
    if not verify_password(payload.password, user.get("password_hash", "")):
        raise Unauthorized("Invalid user credentials")

    pair = tokens.rotate_tokens(user["_id"])
    logger.info("User %s logged in", user["_id"])
    response = api_response(
        {"user": _public_user(db, user["_id"]), **pair.model_dump()},
        "User logged in successfully",
    )
    return _set_auth_cookies(response, pair, settings)


@router.post("/logout")
def logout(
    current_user: dict = Depends(get_current_user),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    tokens.revoke(current_user["_id"])
    return _clear_auth_cookies(api_response({}, "User logged out"), settings)


@router.post("/refresh-token")
def refresh_token(
    request: Request,
    payload: Optional[RefreshRequest] = Body(None),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    incoming = request.cookies.get(REFRESH_COOKIE) or (payload.refresh_token if payload else None)
    _, pair = tokens.refresh(incoming)
    response = api_response(pair.model_dump(), "Access token refreshed")
    return _set_auth_cookies(response, pair, settings)


@router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    user = db["user"].find_one({"_id": current_user["_id"]}, {"password_hash": 1})
    if user is None:
        raise NotFound("User not found")
    if not verify_password(payload.old_password, user.get("password_hash", "")):
        raise Unauthorized("Invalid old password")
    db["user"].update_one(
        {"_id": current_user["_id"]},
        {"$set": {"password_hash": hash_password(payload.new_password), "updated_at": now()}},
    )
    return api_response({}, "Password changed successfully")


@router.get("/current-user")
def current_user_details(current_user: dict = Depends(get_current_user)):
    return api_response(current_user, "User fetched successfully")


@router.patch("/update-account-details")
def update_account_details(
    payload: AccountUpdateRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    changes = payload.changes()
    _ensure_available(db, changes.get("username"), changes.get("email"), exclude_id=current_user["_id"])
    changes["updated_at"] = now()
    try:
        user = db["user"].find_one_and_update(
            {"_id": current_user["_id"]},
            {"$set": changes},
            projection=PRIVATE_USER_FIELDS,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise Conflict("User with email or username already exists")
    if user is None:
        raise Internal("Failed to update account details")
    return api_response(user, "Account details updated successfully")


def _replace_image(db, blob_store, user_id, upload, field, label):
    check_media_type(upload, "image", label)
    stored = store_upload(blob_store, upload, IMAGE_FOLDER, label)
    previous = db["user"].find_one({"_id": user_id}, {field: 1})
    user = db["user"].find_one_and_update(
        {"_id": user_id},
        {"$set": {field: stored.url, "updated_at": now()}},
        projection=PRIVATE_USER_FIELDS,
        return_document=ReturnDocument.AFTER,
    )
    if user is None:
        discard_blob(blob_store, stored.url)
        raise Internal(f"Failed to update {label.lower()}")
    if previous:
        discard_blob(blob_store, previous.get(field))
    return user


@router.patch("/update-avatar")
def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    user = _replace_image(db, blob_store, current_user["_id"], avatar, "avatar_url", "Avatar image")
    return api_response(user, "Avatar updated successfully")


@router.patch("/update-cover-image")
def update_cover_image(
    cover_image: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    user = _replace_image(db, blob_store, current_user["_id"], cover_image, "cover_image_url", "Cover image")
    return api_response(user, "Cover image updated successfully")


@router.get("/channel-profile")
def channel_profile(
    username: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    views: ViewBuilder = Depends(get_view_builder),
):
    if not username or not username.strip():
        raise BadRequest("Username is required")
    channel = views.channel_profile(username, current_user["_id"])
    return api_response(channel, "Channel profile fetched successfully")


@router.get("/watch-history")
def watch_history(
    current_user: dict = Depends(get_current_user),
    views: ViewBuilder = Depends(get_view_builder),
):
    return api_response(views.watch_history(current_user["_id"]), "Watch history fetched successfully")
