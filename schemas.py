"""
Database Schemas for the video sharing platform

Each Pydantic model maps to a MongoDB collection. The collection name is the lowercase of the class name.

Collections:
- User -> user
- Video -> video
- Comment -> comment
- Tweet -> tweet
- Like -> like
- Playlist -> playlist
- Subscription -> subscription

References to other documents are stored as ObjectIds.
"""

from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class User(Document):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    password_hash: str = Field(..., description="Bcrypt hash")
    avatar_url: str
    cover_image_url: str = ""
    watch_history: List[ObjectId] = Field(default_factory=list, description="Most recent first")
    refresh_token: Optional[str] = None


class Video(Document):
    owner: ObjectId
    title: str = Field(..., min_length=1, max_length=120)
    description: str
    video_url: str
    thumbnail_url: str
    duration: float = 0
    views: int = 0
    is_published: bool = True


class Comment(Document):
    video: ObjectId
    owner: ObjectId
    content: str = Field(..., min_length=1, max_length=500)


class Tweet(Document):
    owner: ObjectId
    content: str = Field(..., min_length=1, max_length=280)


class Like(Document):
    liked_by: ObjectId
    video: Optional[ObjectId] = None
    comment: Optional[ObjectId] = None
    tweet: Optional[ObjectId] = None

    @model_validator(mode="after")
    def _one_target(self):
        targets = [t for t in (self.video, self.comment, self.tweet) if t is not None]
        if len(targets) != 1:
            raise ValueError("A like targets exactly one of video, comment or tweet")
        return self


class Playlist(Document):
    owner: ObjectId
    name: str = Field(..., min_length=1)
    description: str = ""
    videos: List[ObjectId] = Field(default_factory=list)


class Subscription(Document):
    subscriber: ObjectId = Field(..., description="The user id of the subscriber")
    channel: ObjectId = Field(..., description="The user id of the channel being subscribed to")
