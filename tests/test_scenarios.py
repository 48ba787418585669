# tests/test_scenarios.py
"""End-to-end conversations driven through DMClient and the HTTP API."""

from __future__ import annotations

import pytest

from parley.api.v1.endpoints.auth import create_access_token
from parley.client import DMClient, DMClientError
from parley.models import DirectMessage
from parley.services.crypto import KeyExchange
from parley.services.e2ee import UNDECRYPTABLE_PLACEHOLDER
from parley.services.thread_key import derive_thread_id


def _register(client, display_name: str, *, with_key: bool) -> DMClient:
    response = client.post("/api/v1/auth/register", json={"display_name": display_name})
    assert response.status_code == 201
    data = response.json()
    private_key = KeyExchange.generate_key_pair() if with_key else None
    dm = DMClient(client, data["access_token"], data["user"]["id"], private_key)
    if with_key:
        dm.upload_public_key()
    return dm


def test_plaintext_conversation_and_read_state(client) -> None:
    u1 = _register(client, "One", with_key=False)
    u2 = _register(client, "Two", with_key=False)

    sent = u1.send(u2.user_id, "hello")
    thread_id = derive_thread_id(u1.user_id, u2.user_id)
    assert sent["thread_id"] == thread_id

    messages = u2.thread(thread_id)
    assert [m["body"] for m in messages] == ["hello"]
    assert messages[0]["text"] == "hello"

    assert u2.conversations()[0]["unread_count"] == 1
    u2.mark_read(thread_id)
    assert u2.conversations()[0]["unread_count"] == 0


def test_encrypted_conversation(client, db_session) -> None:
    u1 = _register(client, "One", with_key=True)
    u2 = _register(client, "Two", with_key=True)

    sent = u1.send(u2.user_id, "secret")

    stored = db_session.get(DirectMessage, sent["id"])
    assert stored.body_kind == "encrypted"
    assert stored.content is None
    assert "secret" not in stored.cipher_text

    raw = client.get(
        f"/api/v1/dms/{sent['thread_id']}/messages",
        headers={"Authorization": f"Bearer {create_access_token(u2.user_id)}"},
    ).json()["messages"][0]["body"]
    assert raw["encrypted"] is True
    assert set(raw) == {"encrypted", "cipherText", "iv"}

    assert [m["text"] for m in u2.thread(sent["thread_id"])] == ["secret"]
    assert [m["text"] for m in u1.thread(sent["thread_id"])] == ["secret"]


def test_recipient_without_key_gets_plaintext(client, caplog) -> None:
    u1 = _register(client, "One", with_key=True)
    u2 = _register(client, "Two", with_key=False)

    sent = u1.send(u2.user_id, "not secret")

    assert u2.thread(sent["thread_id"])[0]["body"] == "not secret"
    assert "Sending plaintext message" in caplog.text


def test_rotated_key_shows_placeholder(client) -> None:
    u1 = _register(client, "One", with_key=True)
    u2 = _register(client, "Two", with_key=True)
    sent = u1.send(u2.user_id, "before rotation")

    u2.private_key = KeyExchange.generate_key_pair()
    u2.upload_public_key()

    assert u2.thread(sent["thread_id"])[0]["text"] == UNDECRYPTABLE_PLACEHOLDER


def test_edit_and_ownership(client) -> None:
    u1 = _register(client, "One", with_key=True)
    u2 = _register(client, "Two", with_key=True)
    sent = u1.send(u2.user_id, "draft")

    edited = u1.edit(sent["id"], u2.user_id, "corrected")
    assert edited["edited_at"] is not None

    messages = u2.thread(sent["thread_id"])
    assert len(messages) == 1
    assert messages[0]["text"] == "corrected"
    assert messages[0]["edited_at"] is not None

    with pytest.raises(DMClientError) as excinfo:
        u2.edit(sent["id"], u1.user_id, "corrected")
    assert excinfo.value.status_code == 403


def test_reaction_toggle_round_trip(client) -> None:
    u1 = _register(client, "One", with_key=False)
    u2 = _register(client, "Two", with_key=False)
    sent = u1.send(u2.user_id, "react to me")

    assert u2.react(sent["id"], "👍")["added"] is True
    result = u2.react(sent["id"], "👍")

    assert result == {"added": False, "reactions": {}}
    assert u1.thread(sent["thread_id"])[0]["reactions"] == {}


def test_same_millisecond_sends_stay_in_order(client, mocker) -> None:
    u1 = _register(client, "One", with_key=False)
    u2 = _register(client, "Two", with_key=False)
    mocker.patch("parley.services.ledger.now_ms", return_value=1_700_000_000_000)

    m1 = u1.send(u2.user_id, "first")
    m2 = u1.send(u2.user_id, "second")

    assert m1["created_at"] < m2["created_at"]
    assert [m["id"] for m in u2.thread(m1["thread_id"])] == [m1["id"], m2["id"]]


def test_delete_and_errors(client) -> None:
    u1 = _register(client, "One", with_key=False)
    u2 = _register(client, "Two", with_key=False)
    sent = u1.send(u2.user_id, "oops")

    u1.delete(sent["id"])
    assert u2.thread(sent["thread_id"]) == []

    with pytest.raises(DMClientError) as excinfo:
        u1.delete(sent["id"])
    assert excinfo.value.status_code == 404

    with pytest.raises(DMClientError) as excinfo:
        u1.send("usr_nobody", "hello?")
    assert excinfo.value.status_code == 404
