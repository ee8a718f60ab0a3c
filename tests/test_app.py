from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from blob_store import LocalBlobStore
from config import Settings, parse_duration
from conftest import API
from errors import BadRequest
from helpers import objid, to_str_id


def test_health(client):
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "OK"
    assert body["data"]["environment"] == "test"


def test_unknown_route_uses_error_envelope(client):
    response = client.get(f"{API}/nowhere")
    assert response.status_code == 404
    assert response.json() == {
        "statusCode": 404,
        "message": "Not Found",
        "errors": [],
        "success": False,
        "data": None,
    }


def test_to_str_id_is_recursive():
    oid = ObjectId()
    when = datetime(2024, 1, 2, 3, 4, 5)
    doc = {"_id": oid, "owner": {"_id": oid}, "videos": [oid], "created_at": when}
    assert to_str_id(doc) == {
        "id": str(oid),
        "owner": {"id": str(oid)},
        "videos": [str(oid)],
        "created_at": when.isoformat(),
    }


def test_objid():
    oid = ObjectId()
    assert objid(str(oid)) == oid
    with pytest.raises(BadRequest):
        objid("12345")


@pytest.mark.parametrize(
    "raw,expected",
    [("15m", timedelta(minutes=15)), ("1d", timedelta(days=1)), ("3600", timedelta(hours=1)), ("2h", timedelta(hours=2))],
)
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


def test_settings_from_env():
    settings = Settings.from_env(
        {"ACCESS_TOKEN_EXPIRES_IN": "15m", "PORT": "9000", "COOKIE_SECURE": "false", "DATABASE_NAME": "tube"}
    )
    assert settings.access_token_expires_in == timedelta(minutes=15)
    assert settings.port == 9000
    assert settings.cookie_secure is False
    assert settings.database_name == "tube"
    with pytest.raises(ValueError):
        Settings.from_env({"REFRESH_TOKEN_EXPIRES_IN": "soon"})


def test_local_blob_store(tmp_path):
    store = LocalBlobStore(str(tmp_path), base_url="http://cdn.local/")
    with open(tmp_path / "src.bin", "wb") as f:
        f.write(b"payload")
    with open(tmp_path / "src.bin", "rb") as f:
        stored = store.upload(f, "clip.mp4", "videos")
    assert stored.url.startswith("http://cdn.local/static/videos/")
    assert stored.url.endswith(".mp4")
    assert store.delete(stored.url) is True
    assert store.delete(stored.url) is False
    assert store.delete("http://cdn.local/static/../../etc/passwd") is False
