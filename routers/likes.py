from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import get_current_user, get_db
from errors import NotFound
from helpers import api_response, objid, toggle_document
from views import ViewBuilder, get_view_builder

router = APIRouter(prefix="/likes", tags=["likes"])

TARGETS = ("video", "comment", "tweet")


def _toggle_like(db: Database, user_id, target: str, target_id: str):
    tid = objid(target_id, f"{target} id")
    if not db[target].find_one({"_id": tid}, {"_id": 1}):
        raise NotFound(f"{target.capitalize()} not found")
    key = {name: None for name in TARGETS}
    key[target] = tid
    key["liked_by"] = user_id
    liked = toggle_document(db["like"], key)
    message = f"{target.capitalize()} {'liked' if liked else 'unliked'} successfully"
    return api_response({"liked": liked}, message)


@router.post("/toggle/v/{video_id}")
def toggle_video_like(video_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return _toggle_like(db, current_user["_id"], "video", video_id)


@router.post("/toggle/c/{comment_id}")
def toggle_comment_like(comment_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return _toggle_like(db, current_user["_id"], "comment", comment_id)


@router.post("/toggle/t/{tweet_id}")
def toggle_tweet_like(tweet_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return _toggle_like(db, current_user["_id"], "tweet", tweet_id)


@router.get("/videos")
def liked_videos(current_user: dict = Depends(get_current_user), views: ViewBuilder = Depends(get_view_builder)):
    return api_response(views.liked_videos(current_user["_id"]), "Liked videos fetched successfully")
