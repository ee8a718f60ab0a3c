from datetime import timedelta

from conftest import API
from database import create_document, now


def test_stats_for_empty_channel(client, alice):
    response = client.get(f"{API}/dashboard/stats", headers=alice.headers)
    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["total_videos"] == 0
    assert stats["total_views"] == 0
    assert stats["average_views"] == 0
    assert stats["total_video_likes"] == 0
    assert stats["latest_videos"] == []


def test_stats_for_active_channel(client, alice, bob, make_user, add_video, db):
    carol = make_user("carol")
    first = add_video(alice, "One", views=10)
    add_video(alice, "Two", views=20)
    add_video(bob, "Not mine", views=1000)

    client.post(f"{API}/likes/toggle/v/{first}", headers=bob.headers)
    client.post(f"{API}/likes/toggle/v/{first}", headers=carol.headers)
    client.post(f"{API}/subscriptions/c/{alice.id}", headers=bob.headers)
    create_document(
        db, "subscription", {"subscriber": carol.oid, "channel": alice.oid, "created_at": now() - timedelta(days=40)}
    )

    stats = client.get(f"{API}/dashboard/stats", headers=alice.headers).json()["data"]
    assert stats["total_videos"] == 2
    assert stats["total_views"] == 30
    assert stats["average_views"] == 15
    assert stats["total_video_likes"] == 2
    assert stats["total_subscribers"] == 2
    assert stats["recent_subscribers"] == 1
    assert {v["title"] for v in stats["latest_videos"]} == {"One", "Two"}
    assert set(stats["latest_videos"][0]) == {"id", "title", "views", "created_at"}


def test_dashboard_videos_include_unpublished(client, alice, bob, add_video):
    add_video(alice, "Public")
    add_video(alice, "Draft", is_published=False)
    add_video(bob, "Elsewhere")

    page = client.get(f"{API}/dashboard/videos", headers=alice.headers).json()["data"]
    assert {v["title"] for v in page["items"]} == {"Public", "Draft"}
    assert page["total"] == 2


def test_dashboard_requires_auth(client):
    assert client.get(f"{API}/dashboard/stats").status_code == 401
