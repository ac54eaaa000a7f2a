"""Tests for /api/chat."""

import pytest

pytestmark = pytest.mark.integration


async def test_anonymous_chat_returns_reply_only(client, fake_ai):
    response = await client.post("/api/chat/send", json={"message": "Hi!"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "response": "Hello from the model"}
    assert fake_ai.calls[0][1]["messages"] == [{"role": "user", "content": "Hi!"}]


async def test_empty_body_is_400(client):
    response = await client.post("/api/chat/send", json={})

    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_authenticated_chat_creates_conversation(client, auth_headers):
    response = await client.post(
        "/api/chat/send",
        json={"message": "Tell me about the history of tea in China"},
        headers=auth_headers,
    )

    body = response.json()
    assert body["conversationId"]
    assert body["id"]

    history = (await client.get("/api/chat/history", headers=auth_headers)).json()["conversations"]
    assert len(history) == 1
    assert history[0]["title"] == "Tell me about the history of t"


async def test_follow_up_appends_to_conversation(client, auth_headers):
    first = await client.post("/api/chat/send", json={"message": "First"}, headers=auth_headers)
    conversation_id = first.json()["conversationId"]

    second = await client.post(
        "/api/chat/send",
        json={"message": "Second", "conversationId": conversation_id},
        headers=auth_headers,
    )
    assert second.json()["conversationId"] == conversation_id

    conversation = (await client.get(f"/api/chat/conversation/{conversation_id}", headers=auth_headers)).json()
    messages = conversation["conversation"]["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
    assert [m["content"] for m in messages][::2] == ["First", "Second"]


async def test_foreign_conversation_id_starts_new_one(client, register):
    owner = await register("owner", "owner@example.com")
    other = await register("other", "other@example.com")
    first = await client.post("/api/chat/send", json={"message": "Mine"}, headers=owner)

    response = await client.post(
        "/api/chat/send",
        json={"message": "Sneaky", "conversationId": first.json()["conversationId"]},
        headers=other,
    )

    assert response.json()["conversationId"] != first.json()["conversationId"]


async def test_get_foreign_conversation_is_403(client, register):
    owner = await register("owner", "owner@example.com")
    other = await register("other", "other@example.com")
    first = await client.post("/api/chat/send", json={"message": "Mine"}, headers=owner)

    response = await client.get(f"/api/chat/conversation/{first.json()['conversationId']}", headers=other)

    assert response.status_code == 403


async def test_rename_and_delete_conversation(client, auth_headers):
    first = await client.post("/api/chat/send", json={"message": "Draft"}, headers=auth_headers)
    conversation_id = first.json()["conversationId"]

    renamed = await client.patch(
        f"/api/chat/conversation/{conversation_id}",
        json={"title": "Final title"},
        headers=auth_headers,
    )
    assert renamed.json()["conversation"]["title"] == "Final title"

    deleted = await client.delete(f"/api/chat/conversation/{conversation_id}", headers=auth_headers)
    assert deleted.status_code == 200

    missing = await client.get(f"/api/chat/conversation/{conversation_id}", headers=auth_headers)
    assert missing.status_code == 404


async def test_history_requires_login(client):
    assert (await client.get("/api/chat/history")).status_code == 401
