from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import get_current_user, get_db
from database import create_document, now
from errors import Internal, NotFound
from helpers import api_response, find_owned, objid
from payloads import TweetRequest
from pipelines import Pagination, pagination_params
from schemas import Tweet
from views import ViewBuilder, get_view_builder

router = APIRouter(prefix="/tweets", tags=["tweets"])


@router.post("")
def create_tweet(
    payload: TweetRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    tweet_id = create_document(db, "tweet", Tweet(owner=current_user["_id"], content=payload.content))
    tweet = db["tweet"].find_one({"_id": objid(tweet_id)})
    if tweet is None:
        raise Internal("Failed to create tweet")
    return api_response(tweet, "Tweet created successfully", 201)


@router.get("/user/{user_id}")
def user_tweets(
    user_id: str,
    pagination: Pagination = Depends(pagination_params),
    db: Database = Depends(get_db),
    views: ViewBuilder = Depends(get_view_builder),
):
    uid = objid(user_id, "user id")
    if not db["user"].find_one({"_id": uid}, {"_id": 1}):
        raise NotFound("User not found")
    page = views.owner_joined_page("tweet", {"owner": uid}, pagination)
    return api_response(page, "User tweets fetched successfully")


@router.patch("/{tweet_id}")
def update_tweet(
    tweet_id: str,
    payload: TweetRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    tid = objid(tweet_id, "tweet id")
    find_owned(db["tweet"], tid, current_user["_id"], "Tweet", "update")
    updated = db["tweet"].find_one_and_update(
        {"_id": tid},
        {"$set": {"content": payload.content, "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise Internal("Failed to update tweet")
    return api_response(updated, "Tweet updated successfully")


@router.delete("/{tweet_id}")
def delete_tweet(
    tweet_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    tid = objid(tweet_id, "tweet id")
    find_owned(db["tweet"], tid, current_user["_id"], "Tweet", "delete")
    if db["tweet"].delete_one({"_id": tid}).deleted_count == 0:
        raise Internal("Failed to delete tweet")
    return api_response({"deleted": True}, "Tweet deleted successfully")
