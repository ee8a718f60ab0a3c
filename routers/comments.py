from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import get_current_user, get_db
from database import create_document, now
from errors import Internal, NotFound
from helpers import api_response, find_owned, objid
from payloads import CommentRequest
from pipelines import Pagination, pagination_params
from schemas import Comment
from views import ViewBuilder, get_view_builder

router = APIRouter(prefix="/comments", tags=["comments"])


def _existing_video(db: Database, video_id: str):
    vid = objid(video_id, "video id")
    if not db["video"].find_one({"_id": vid}, {"_id": 1}):
        raise NotFound("Video not found")
    return vid


@router.get("/{video_id}")
def video_comments(
    video_id: str,
    pagination: Pagination = Depends(pagination_params),
    db: Database = Depends(get_db),
    views: ViewBuilder = Depends(get_view_builder),
):
    vid = _existing_video(db, video_id)
    page = views.owner_joined_page("comment", {"video": vid}, pagination)
    return api_response(page, "Video comments fetched successfully")


@router.post("/{video_id}")
def add_comment(
    video_id: str,
    payload: CommentRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    views: ViewBuilder = Depends(get_view_builder),
):
    vid = _existing_video(db, video_id)
    comment_id = create_document(db, "comment", Comment(video=vid, owner=current_user["_id"], content=payload.content))
    comment = views.owner_joined("comment", {"_id": objid(comment_id)})
    if not comment:
        raise Internal("Failed to add comment")
    return api_response(comment[0], "Comment added successfully", 201)


@router.patch("/c/{comment_id}")
def update_comment(
    comment_id: str,
    payload: CommentRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    cid = objid(comment_id, "comment id")
    find_owned(db["comment"], cid, current_user["_id"], "Comment", "update")
    updated = db["comment"].find_one_and_update(
        {"_id": cid},
        {"$set": {"content": payload.content, "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise Internal("Failed to update comment")
    return api_response(updated, "Comment updated successfully")


@router.delete("/c/{comment_id}")
def delete_comment(
    comment_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    cid = objid(comment_id, "comment id")
    find_owned(db["comment"], cid, current_user["_id"], "Comment", "delete")
    if db["comment"].delete_one({"_id": cid}).deleted_count == 0:
        raise Internal("Failed to delete comment")
    return api_response({"deleted": True}, "Comment deleted successfully")
