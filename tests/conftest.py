from types import SimpleNamespace

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from blob_store import LocalBlobStore
from config import Settings
from database import create_document
from main import create_app
from schemas import Video

API = "/api/v1"
PASSWORD = "secret123"
PNG = ("avatar.png", b"\x89PNG\r\n\x1a\nfake-image", "image/png")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        app_env="test",
        access_token_secret="test-access-secret",
        refresh_token_secret="test-refresh-secret",
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["videotube_test"]


@pytest.fixture
def blob_store(settings):
    return LocalBlobStore(settings.upload_dir)


@pytest.fixture
def app(settings, db, blob_store):
    return create_app(settings=settings, db=db, blob_store=blob_store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register(client, username, password=PASSWORD, email=None, avatar=PNG, **extra_files):
    files = {"avatar": avatar} if avatar else {}
    files.update(extra_files)
    return client.post(
        f"{API}/users/register",
        data={
            "username": username,
            "email": email or f"{username.lower()}@example.com",
            "full_name": f"{username} Example",
            "password": password,
        },
        files=files,
    )


def login(client, username, password=PASSWORD):
    return client.post(f"{API}/users/login", json={"username": username, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(client):
    def _make(username):
        registered = register(client, username)
        assert registered.status_code == 201, registered.text
        tokens = login(client, username).json()["data"]
        return SimpleNamespace(
            id=registered.json()["data"]["id"],
            oid=ObjectId(registered.json()["data"]["id"]),
            username=username.lower(),
            headers=bearer(tokens["access_token"]),
            refresh_token=tokens["refresh_token"],
        )

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def add_video(db):
    def _add(owner, title="A video", views=0, is_published=True, **fields):
        video = Video(
            owner=owner.oid,
            title=title,
            description=f"About {title}",
            video_url=f"/static/videos/{ObjectId()}.mp4",
            thumbnail_url=f"/static/images/{ObjectId()}.png",
            views=views,
            is_published=is_published,
        )
        data = video.model_dump()
        data.update(fields)
        return ObjectId(create_document(db, "video", data))

    return _add
