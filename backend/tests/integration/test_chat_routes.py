"""
Integration tests for direct chats and messages.
"""
from uuid import uuid4

import pytest

from conftest import auth_headers


@pytest.fixture
def salon_owner(repos):
    salon_id, owner_id = uuid4(), uuid4()
    repos.providers.owners[("salon", salon_id)] = owner_id
    return salon_id, owner_id


def open_chat(client, client_id, salon_id):
    return client.post(
        "/chat/direct",
        json={"clientId": str(client_id), "providerId": str(salon_id), "providerType": "salon"},
        headers=auth_headers(client_id),
    )


@pytest.mark.integration
def test_direct_chat_is_created_once(client, repos, salon_owner):
    salon_id, owner_id = salon_owner
    client_id = uuid4()

    first = open_chat(client, client_id, salon_id)
    second = open_chat(client, client_id, salon_id)

    assert first.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert first.json()["provider_id"] == str(owner_id)
    assert first.json()["booking_id"] is None
    assert len(repos.chats.chats) == 1


@pytest.mark.integration
def test_cannot_open_chat_for_someone_else(client, salon_owner):
    salon_id, _ = salon_owner
    response = client.post(
        "/chat/direct",
        json={"clientId": str(uuid4()), "providerId": str(salon_id), "providerType": "salon"},
        headers=auth_headers(uuid4()),
    )
    assert response.status_code == 403


@pytest.mark.integration
def test_unknown_provider_is_404(client):
    client_id = uuid4()
    response = open_chat(client, client_id, uuid4())
    assert response.status_code == 404


@pytest.mark.integration
def test_send_and_list_messages(client, repos, salon_owner):
    salon_id, owner_id = salon_owner
    client_id = uuid4()
    chat_id = open_chat(client, client_id, salon_id).json()["id"]

    client.post(f"/chat/{chat_id}/messages", json={"content": "Bonjour"}, headers=auth_headers(client_id))
    client.post(f"/chat/{chat_id}/messages", json={"content": "Bonsoir"}, headers=auth_headers(owner_id))

    response = client.get(f"/chat/{chat_id}/messages", headers=auth_headers(client_id))

    assert response.status_code == 200
    assert [m["content"] for m in response.json()] == ["Bonjour", "Bonsoir"]
    assert response.json()[0]["type"] == "TEXT"
    chat = next(iter(repos.chats.chats.values()))
    assert chat.last_message == "Bonsoir"


@pytest.mark.integration
def test_outsiders_cannot_read_or_write(client, salon_owner):
    salon_id, _ = salon_owner
    client_id = uuid4()
    chat_id = open_chat(client, client_id, salon_id).json()["id"]
    outsider = uuid4()

    assert client.get(f"/chat/{chat_id}/messages", headers=auth_headers(outsider)).status_code == 403
    response = client.post(f"/chat/{chat_id}/messages", json={"content": "Salut"}, headers=auth_headers(outsider))
    assert response.status_code == 403


@pytest.mark.integration
def test_empty_message_is_422(client, salon_owner):
    salon_id, _ = salon_owner
    client_id = uuid4()
    chat_id = open_chat(client, client_id, salon_id).json()["id"]
    response = client.post(f"/chat/{chat_id}/messages", json={"content": ""}, headers=auth_headers(client_id))
    assert response.status_code == 422
