import pytest

from conftest import API


@pytest.fixture
def video_id(alice, add_video):
    return add_video(alice, "Likeable")


def test_video_like_toggles(client, bob, video_id, db):
    first = client.post(f"{API}/likes/toggle/v/{video_id}", headers=bob.headers)
    assert first.json()["data"] == {"liked": True}
    assert first.json()["message"] == "Video liked successfully"
    assert db["like"].count_documents({"video": video_id, "liked_by": bob.oid}) == 1

    second = client.post(f"{API}/likes/toggle/v/{video_id}", headers=bob.headers)
    assert second.json()["data"] == {"liked": False}
    assert db["like"].count_documents({}) == 0


def test_at_most_one_like_per_target(client, bob, video_id, db):
    for _ in range(5):
        client.post(f"{API}/likes/toggle/v/{video_id}", headers=bob.headers)
        assert db["like"].count_documents({"video": video_id, "liked_by": bob.oid}) <= 1


def test_comment_and_tweet_likes_are_separate_targets(client, alice, bob, video_id, db):
    comment_id = client.post(
        f"{API}/comments/{video_id}", json={"content": "great"}, headers=alice.headers
    ).json()["data"]["id"]
    tweet_id = client.post(f"{API}/tweets", json={"content": "hi"}, headers=alice.headers).json()["data"]["id"]

    assert client.post(f"{API}/likes/toggle/c/{comment_id}", headers=bob.headers).json()["data"]["liked"] is True
    assert client.post(f"{API}/likes/toggle/t/{tweet_id}", headers=bob.headers).json()["data"]["liked"] is True
    assert client.post(f"{API}/likes/toggle/v/{video_id}", headers=bob.headers).json()["data"]["liked"] is True
    assert db["like"].count_documents({"liked_by": bob.oid}) == 3


def test_like_missing_target(client, bob):
    assert client.post(f"{API}/likes/toggle/t/{'e' * 24}", headers=bob.headers).status_code == 404
    assert client.post(f"{API}/likes/toggle/c/nope", headers=bob.headers).status_code == 400


def test_liked_videos(client, alice, bob, add_video):
    first = add_video(alice, "First liked")
    second = add_video(alice, "Second liked")
    client.post(f"{API}/likes/toggle/v/{first}", headers=bob.headers)
    client.post(f"{API}/likes/toggle/v/{second}", headers=bob.headers)

    response = client.get(f"{API}/likes/videos", headers=bob.headers)
    assert response.status_code == 200
    titles = {v["title"] for v in response.json()["data"]}
    assert titles == {"First liked", "Second liked"}
    assert response.json()["data"][0]["owner"]["username"] == "alice"

    assert client.get(f"{API}/likes/videos", headers=alice.headers).json()["data"] == []
