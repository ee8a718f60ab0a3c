"""Request bodies accepted by the API."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


def _not_blank(value: str, label: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"{label} is required")
    return value


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)

    @field_validator("username", "full_name", "password", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("username")
    @classmethod
    def _lower_username(cls, value: str) -> str:
        return value.lower()

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(BaseModel):
    email: Optional[EmailStr] = None
    username: Optional[str] = None
    password: str

    @model_validator(mode="after")
    def _identifier(self):
        if not self.email and not self.username:
            raise ValueError("Email or username is required")
        return self


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class AccountUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(None, min_length=3, max_length=30)

    @field_validator("full_name", "username", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("username", "email")
    @classmethod
    def _lower(cls, value):
        return value.lower() if value is not None else value

    @model_validator(mode="after")
    def _at_least_one(self):
        if self.full_name is None and self.email is None and self.username is None:
            raise ValueError("At least one field is required")
        return self

    def changes(self) -> dict:
        fields = {"full_name": self.full_name, "email": self.email, "username": self.username}
        return {name: value for name, value in fields.items() if value is not None}


class VideoPublishRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: str = Field(..., min_length=1)
    duration: float = Field(0, ge=0)

    @field_validator("title", "description")
    @classmethod
    def _required(cls, value, info):
        return _not_blank(value, info.field_name.capitalize())


class VideoUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("title", "description")
    @classmethod
    def _required(cls, value, info):
        if value is None:
            return value
        return _not_blank(value, info.field_name.capitalize())


class CommentRequest(BaseModel):
    content: str = Field(..., max_length=500)

    @field_validator("content")
    @classmethod
    def _required(cls, value):
        return _not_blank(value, "Comment content")


class TweetRequest(BaseModel):
    content: str = Field(..., max_length=280)

    @field_validator("content")
    @classmethod
    def _required(cls, value):
        return _not_blank(value, "Tweet content")


class PlaylistRequest(BaseModel):
    name: str
    description: str = ""

    @field_validator("name")
    @classmethod
    def _required(cls, value):
        return _not_blank(value, "Playlist name").strip()
