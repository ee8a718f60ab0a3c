import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import get_current_user, get_db, get_optional_user
from blob_store import IMAGE_FOLDER, VIDEO_FOLDER, BlobStore, check_media_type, discard_blob, get_blob_store, store_upload
from database import create_document, now
from errors import BadRequest, Forbidden, Internal, NotFound
from helpers import api_response, find_owned, is_owner, objid
from payloads import VideoPublishRequest, VideoUpdateRequest
from pipelines import Pagination, pagination_params, sort_params
from schemas import Video
from views import ViewBuilder, get_view_builder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["videos"])

SORTABLE_FIELDS = ("created_at", "views", "title", "duration")


def _record_view(db: Database, video_id, viewer: Optional[dict]):
    video = db["video"].find_one_and_update(
        {"_id": video_id},
        {"$inc": {"views": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if video is None:
        raise NotFound("Video not found")
    if viewer is not None:
        # most recent first, no duplicates
        db["user"].update_one({"_id": viewer["_id"]}, {"$pull": {"watch_history": video_id}})
        db["user"].update_one(
            {"_id": viewer["_id"]},
            {"$push": {"watch_history": {"$each": [video_id], "$position": 0}}},
        )


@router.get("")
def list_videos(
    query: Optional[str] = None,
    user_id: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None,
    pagination: Pagination = Depends(pagination_params),
    views: ViewBuilder = Depends(get_view_builder),
):
    filter_dict = {"is_published": True}
    if query:
        pattern = {"$regex": re.escape(query), "$options": "i"}
        filter_dict["$or"] = [{"title": pattern}, {"description": pattern}]
    if user_id:
        filter_dict["owner"] = objid(user_id, "user id")
    sort = sort_params(sort_by, sort_type, SORTABLE_FIELDS)
    page = views.owner_joined_page("video", filter_dict, pagination, sort)
    return api_response(page, "Videos fetched successfully")


@router.post("")
def publish_video(
    title: str = Form(...),
    description: str = Form(...),
    duration: float = Form(0),
    video_file: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    views: ViewBuilder = Depends(get_view_builder),
):
    payload = VideoPublishRequest(title=title, description=description, duration=duration)
    check_media_type(video_file, "video", "Video file")
    check_media_type(thumbnail, "image", "Thumbnail")

    try:
        stored_video = store_upload(blob_store, video_file, VIDEO_FOLDER, "Video file")
        try:
            stored_thumbnail = store_upload(blob_store, thumbnail, IMAGE_FOLDER, "Thumbnail")
        except Internal:
            discard_blob(blob_store, stored_video.url)
            raise
    finally:
        thumbnail.file.close()

    video_doc = Video(
        owner=current_user["_id"],
        title=payload.title.strip(),
        description=payload.description.strip(),
        video_url=stored_video.url,
        thumbnail_url=stored_thumbnail.url,
        duration=stored_video.duration or payload.duration,
    )
    video_id = create_document(db, "video", video_doc)
    logger.info("User %s published video %s", current_user["_id"], video_id)
    return api_response(views.video_detail(objid(video_id)), "Video published successfully", 201)


@router.get("/{video_id}")
def get_video(
    video_id: str,
    current_user: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
    views: ViewBuilder = Depends(get_view_builder),
):
    vid = objid(video_id, "video id")
    video = db["video"].find_one({"_id": vid}, {"owner": 1, "is_published": 1})
    if video is None:
        raise NotFound("Video not found")
    if not video.get("is_published") and not (current_user and is_owner(video, current_user["_id"])):
        raise Forbidden("You don't have permission to view this video")
    _record_view(db, vid, current_user)
    return api_response(views.video_detail(vid), "Video fetched successfully")


@router.patch("/{video_id}")
def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    views: ViewBuilder = Depends(get_view_builder),
):
    vid = objid(video_id, "video id")
    payload = VideoUpdateRequest(title=title or None, description=description or None)
    has_thumbnail = thumbnail is not None and bool(thumbnail.filename)
    if payload.title is None and payload.description is None and not has_thumbnail:
        raise BadRequest("At least one field is required to update")

    video = find_owned(db["video"], vid, current_user["_id"], "Video", "update")

    changes = {"updated_at": now()}
    if payload.title is not None:
        changes["title"] = payload.title
    if payload.description is not None:
        changes["description"] = payload.description
    stored = None
    if has_thumbnail:
        check_media_type(thumbnail, "image", "Thumbnail")
        stored = store_upload(blob_store, thumbnail, IMAGE_FOLDER, "Thumbnail")
        changes["thumbnail_url"] = stored.url

    updated = db["video"].find_one_and_update({"_id": vid}, {"$set": changes}, return_document=ReturnDocument.AFTER)
    if updated is None:
        if stored is not None:
            discard_blob(blob_store, stored.url)
        raise Internal("Failed to update video")
    if stored is not None:
        discard_blob(blob_store, video.get("thumbnail_url"))
    return api_response(views.video_detail(vid), "Video updated successfully")


@router.delete("/{video_id}")
def delete_video(
    video_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    vid = objid(video_id, "video id")
    video = find_owned(db["video"], vid, current_user["_id"], "Video", "delete")
    result = db["video"].delete_one({"_id": vid})
    if result.deleted_count == 0:
        raise Internal("Failed to delete video")
    discard_blob(blob_store, video.get("video_url"))
    discard_blob(blob_store, video.get("thumbnail_url"))
    logger.info("User %s deleted video %s", current_user["_id"], vid)
    return api_response({}, "Video deleted successfully")


@router.patch("/{video_id}/toggle-publish")
def toggle_publish(
    video_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    views: ViewBuilder = Depends(get_view_builder),
):
    vid = objid(video_id, "video id")
    video = find_owned(db["video"], vid, current_user["_id"], "Video", "update")
    updated = db["video"].find_one_and_update(
        {"_id": vid},
        {"$set": {"is_published": not video.get("is_published", False), "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise Internal("Failed to update video")
    state = "published" if updated["is_published"] else "unpublished"
    return api_response(views.video_detail(vid), f"Video {state} successfully")
