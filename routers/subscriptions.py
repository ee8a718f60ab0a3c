from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import get_current_user, get_db
from errors import BadRequest, NotFound
from helpers import api_response, objid, toggle_document
from views import ViewBuilder, get_view_builder

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/c/{channel_id}")
def toggle_subscription(
    channel_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    channel = objid(channel_id, "channel id")
    if channel == current_user["_id"]:
        raise BadRequest("Cannot subscribe to yourself")
    if not db["user"].find_one({"_id": channel}, {"_id": 1}):
        raise NotFound("Channel not found")

    subscribed = toggle_document(db["subscription"], {"subscriber": current_user["_id"], "channel": channel})
    message = "Channel subscribed successfully" if subscribed else "Channel unsubscribed successfully"
    return api_response({"subscribed": subscribed}, message)


@router.get("/c/{channel_id}")
def channel_subscribers(
    channel_id: str,
    current_user: dict = Depends(get_current_user),
    views: ViewBuilder = Depends(get_view_builder),
):
    subscribers = views.channel_subscribers(objid(channel_id, "channel id"), current_user["_id"])
    return api_response(subscribers, "Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
def subscribed_channels(
    subscriber_id: str,
    current_user: dict = Depends(get_current_user),
    views: ViewBuilder = Depends(get_view_builder),
):
    channels = views.subscribed_channels(objid(subscriber_id, "subscriber id"), current_user["_id"])
    return api_response(channels, "Subscribed channels fetched successfully")
