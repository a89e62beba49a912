"""Topics, threads and messages."""

from __future__ import annotations

from conftest import API, register, unique_name


def _create(client, resource: str, body: dict) -> dict:
    response = client.post(f"{API}/{resource}", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def _thread(client, user: dict) -> tuple[dict, dict]:
    topic = _create(client, "topics", {"name": unique_name("topic")})
    thread = _create(
        client,
        "threads",
        {"title": "Level design", "userID": user["id"], "topicID": topic["id"], "tags": ["design"]},
    )
    return topic, thread


def test_topic_patch_twice_with_same_version(user_client):
    client, _ = user_client
    topic = _create(client, "topics", {"name": unique_name("topic")})
    assert topic["version"] == 1

    first = client.patch(f"{API}/topics/{topic['id']}", json={"name": "X", "version": 1})
    assert first.status_code == 200
    assert first.json()["version"] == 2

    second = client.patch(f"{API}/topics/{topic['id']}", json={"name": "Y", "version": 1})
    assert second.status_code == 409
    assert second.json()["title"] == "Record conflict"
    assert client.get(f"{API}/topics/{topic['id']}").json()["name"] == "X"


def test_versions_increase_by_one(user_client):
    client, user = user_client
    _, thread = _thread(client, user)
    url = f"{API}/threads/{thread['id']}"

    versions = [thread["version"]]
    for title in ("One", "Two", "Three"):
        response = client.patch(url, json={"title": title})
        assert response.status_code == 200
        versions.append(response.json()["version"])
    assert versions == [1, 2, 3, 4]


def test_partial_update_keeps_omitted_fields(user_client):
    client, user = user_client
    _, thread = _thread(client, user)

    response = client.patch(f"{API}/threads/{thread['id']}", json={"upvotes": 5, "version": 1})
    assert response.status_code == 200
    patched = response.json()
    assert patched["upvotes"] == 5
    assert patched["title"] == thread["title"]
    assert patched["tags"] == thread["tags"]
    assert patched["topicID"] == thread["topicID"]
    assert patched["createdAt"] == thread["createdAt"]


def test_thread_in_missing_topic_is_not_found(user_client):
    client, user = user_client
    response = client.post(
        f"{API}/threads", json={"title": "Lost", "userID": user["id"], "topicID": 999999999}
    )
    assert response.status_code == 404


def test_topic_owner_only(user_client, make_client):
    client, _ = user_client
    topic = _create(client, "topics", {"name": unique_name("topic")})

    stranger = make_client()
    register(stranger)
    url = f"{API}/topics/{topic['id']}"
    assert stranger.patch(url, json={"name": "Hijacked", "version": 1}).status_code == 403
    assert stranger.delete(url).status_code == 403
    assert client.delete(url).status_code == 200


def test_messages_of_thread(user_client):
    client, user = user_client
    _, thread = _thread(client, user)
    first = _create(
        client,
        "messages",
        {"threadID": thread["id"], "userID": user["id"], "title": "Hello", "body": "First post"},
    )
    second = _create(
        client,
        "messages",
        {"threadID": thread["id"], "userID": user["id"], "title": "Again", "body": "Second post"},
    )

    response = client.get(f"{API}/messages/thread/{thread['id']}")
    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == [first["id"], second["id"]]

    response = client.get(f"{API}/messages/thread/{thread['id']}", params={"l": 1})
    assert [m["id"] for m in response.json()] == [first["id"]]

    assert client.get(f"{API}/messages/thread/999999999").status_code == 404


def test_message_in_missing_thread_is_not_found(user_client):
    client, user = user_client
    response = client.post(
        f"{API}/messages",
        json={"threadID": 999999999, "userID": user["id"], "title": "Nowhere"},
    )
    assert response.status_code == 404


def test_message_search_and_views(user_client):
    client, user = user_client
    _, thread = _thread(client, user)
    word = unique_name("zzq")
    message = _create(
        client,
        "messages",
        {"threadID": thread["id"], "userID": user["id"], "title": "Question", "body": f"about {word}"},
    )

    found = client.get(f"{API}/messages", params={"q": word}).json()
    assert [m["id"] for m in found] == [message["id"]]

    first = client.get(f"{API}/messages/{message['id']}").json()
    second = client.get(f"{API}/messages/{message['id']}").json()
    assert second["views"] == first["views"] + 1


def test_delete_topic_cascades(user_client):
    client, user = user_client
    topic, thread = _thread(client, user)
    message = _create(
        client,
        "messages",
        {"threadID": thread["id"], "userID": user["id"], "title": "Bye"},
    )

    assert client.delete(f"{API}/topics/{topic['id']}").status_code == 200
    assert client.get(f"{API}/threads/{thread['id']}").status_code == 404
    assert client.get(f"{API}/messages/{message['id']}").status_code == 404


def test_delete_thread_and_message(user_client):
    client, user = user_client
    _, thread = _thread(client, user)
    message = _create(
        client,
        "messages",
        {"threadID": thread["id"], "userID": user["id"], "title": "Short lived"},
    )

    assert client.delete(f"{API}/messages/{message['id']}").status_code == 200
    assert client.delete(f"{API}/threads/{thread['id']}").status_code == 200
    assert client.get(f"{API}/threads/{thread['id']}").status_code == 404


def test_highest_rated_order(user_client):
    client, user = user_client
    _, thread = _thread(client, user)
    client.patch(f"{API}/threads/{thread['id']}", json={"upvotes": 1000000})

    threads = client.get(f"{API}/threads", params={"o": "highest-rated", "l": 1}).json()
    assert threads[0]["id"] == thread["id"]
