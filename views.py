"""
Derived read models.

``ViewBuilder`` runs the multi-document reads: owner-joined paginated listings,
channel profiles, subscriber graphs, watch history and dashboard statistics.
"""

from datetime import timedelta
from typing import List, Optional, Tuple

from bson import ObjectId
from fastapi import Depends
from pymongo.database import Database

from auth import get_db
from database import now
from errors import NotFound
from pipelines import (
    DEFAULT_SORT,
    Pagination,
    contains,
    count_of,
    group_into_list,
    join_owner,
    lookup,
    match,
    page_meta,
    paginate,
    public_profile,
    sort_stage,
    unwind,
)

RECENT_SUBSCRIBER_WINDOW = timedelta(days=30)
LATEST_VIDEOS = 10


def _in_order(docs: List[dict], ids: List[ObjectId]) -> List[dict]:
    by_id = {doc["_id"]: doc for doc in docs}
    return [by_id[i] for i in ids if i in by_id]


class ViewBuilder:
    def __init__(self, db: Database):
        self.db = db

    def owner_joined_page(
        self,
        collection: str,
        filter_dict: dict,
        pagination: Pagination,
        sort: Tuple[str, int] = DEFAULT_SORT,
    ) -> dict:
        pipeline = [
            match(filter_dict),
            *join_owner(),
            sort_stage(*sort),
            *paginate(pagination.page, pagination.limit),
        ]
        items = list(self.db[collection].aggregate(pipeline))
        total = self.db[collection].count_documents(filter_dict)
        return {"items": items, **page_meta(total, pagination)}

    def owner_joined(self, collection: str, filter_dict: dict) -> List[dict]:
        pipeline = [match(filter_dict), *join_owner(keep_orphans=True)]
        return list(self.db[collection].aggregate(pipeline))

    def video_detail(self, video_id: ObjectId) -> dict:
        docs = self.owner_joined("video", {"_id": video_id})
        if not docs:
            raise NotFound("Video not found")
        return docs[0]

    def channel_profile(self, username: str, viewer_id: Optional[ObjectId]) -> dict:
        pipeline = [
            match({"username": username.strip().lower()}),
            lookup("subscription", "_id", "channel", "subscribers"),
            lookup("subscription", "_id", "subscriber", "subscribed_to"),
            {
                "$addFields": {
                    "subscriber_count": count_of("subscribers"),
                    "channels_subscribed_to_count": count_of("subscribed_to"),
                    "is_subscribed": contains(viewer_id, "$subscribers.subscriber"),
                }
            },
            {
                "$project": {
                    "full_name": 1,
                    "username": 1,
                    "email": 1,
                    "avatar_url": 1,
                    "cover_image_url": 1,
                    "subscriber_count": 1,
                    "channels_subscribed_to_count": 1,
                    "is_subscribed": 1,
                }
            },
        ]
        channels = list(self.db["user"].aggregate(pipeline))
        if not channels:
            raise NotFound("Channel does not exist")
        return channels[0]

    def _subscribed_channel_ids(self, viewer_id: Optional[ObjectId]) -> List[ObjectId]:
        if viewer_id is None:
            return []
        return self.db["subscription"].distinct("channel", {"subscriber": viewer_id})

    def channel_subscribers(self, channel_id: ObjectId, viewer_id: Optional[ObjectId]) -> List[dict]:
        """Subscribers of a channel; ``is_subscribed`` tells whether the viewer follows each of them."""
        viewer_channels = self._subscribed_channel_ids(viewer_id)
        subscriber = public_profile("subscriber_details")
        subscriber["subscriber_count"] = count_of("subscriber_subscriptions")
        subscriber["is_subscribed"] = contains("$subscriber_details._id", viewer_channels)
        pipeline = [
            match({"channel": channel_id}),
            sort_stage(),
            lookup("user", "subscriber", "_id", "subscriber_details"),
            unwind("subscriber_details"),
            lookup("subscription", "subscriber", "channel", "subscriber_subscriptions"),
            {"$addFields": {"subscriber": subscriber}},
            group_into_list("subscriber", "subscribers"),
        ]
        grouped = list(self.db["subscription"].aggregate(pipeline))
        return grouped[0]["subscribers"] if grouped else []

    def subscribed_channels(self, subscriber_id: ObjectId, viewer_id: Optional[ObjectId]) -> List[dict]:
        channel = public_profile("channel_details")
        channel["subscriber_count"] = count_of("channel_subscriptions")
        channel["is_subscribed"] = contains(viewer_id, "$channel_subscriptions.subscriber")
        pipeline = [
            match({"subscriber": subscriber_id}),
            sort_stage(),
            lookup("user", "channel", "_id", "channel_details"),
            unwind("channel_details"),
            lookup("subscription", "channel", "channel", "channel_subscriptions"),
            {"$addFields": {"channel": channel}},
            group_into_list("channel", "channels"),
        ]
        grouped = list(self.db["subscription"].aggregate(pipeline))
        return grouped[0]["channels"] if grouped else []

    def watch_history(self, user_id: ObjectId) -> List[dict]:
        user = self.db["user"].find_one({"_id": user_id}, {"watch_history": 1})
        if user is None:
            raise NotFound("User not found")
        ids = user.get("watch_history") or []
        if not ids:
            return []
        videos = self.owner_joined("video", {"_id": {"$in": ids}})
        return _in_order(videos, ids)

    def liked_videos(self, user_id: ObjectId) -> List[dict]:
        likes = self.db["like"].find({"liked_by": user_id, "video": {"$ne": None}}, {"video": 1}).sort(
            [("created_at", -1), ("_id", -1)]
        )
        ids = [like["video"] for like in likes]
        if not ids:
            return []
        videos = self.owner_joined("video", {"_id": {"$in": ids}})
        return _in_order(videos, ids)

    def channel_stats(self, owner_id: ObjectId) -> dict:
        videos = self.db["video"]
        total_videos = videos.count_documents({"owner": owner_id})
        views = list(
            videos.aggregate(
                [match({"owner": owner_id}), {"$group": {"_id": None, "total_views": {"$sum": "$views"}}}]
            )
        )
        total_views = views[0]["total_views"] if views else 0
        total_subscribers = self.db["subscription"].count_documents({"channel": owner_id})
        video_ids = videos.distinct("_id", {"owner": owner_id})
        total_video_likes = self.db["like"].count_documents({"video": {"$in": video_ids}}) if video_ids else 0
        latest_videos = list(
            videos.find({"owner": owner_id}, {"title": 1, "views": 1, "created_at": 1})
            .sort([("created_at", -1), ("_id", -1)])
            .limit(LATEST_VIDEOS)
        )
        recent_subscribers = self.db["subscription"].count_documents(
            {"channel": owner_id, "created_at": {"$gte": now() - RECENT_SUBSCRIBER_WINDOW}}
        )
        return {
            "total_videos": total_videos,
            "total_views": total_views,
            "total_subscribers": total_subscribers,
            "total_video_likes": total_video_likes,
            "average_views": total_views / total_videos if total_videos else 0,
            "recent_subscribers": recent_subscribers,
            "latest_videos": latest_videos,
        }


def get_view_builder(db: Database = Depends(get_db)) -> ViewBuilder:
    return ViewBuilder(db)
