# mypy: ignore-errors
# tests/v1/test_messages.py
"""Tests for direct message endpoints."""

import base64

from fastapi import status

from parley.models import DirectMessage, DMThread

ENVELOPE = {
    "encrypted": True,
    "cipherText": base64.b64encode(b"\x01" * 40).decode(),
    "iv": base64.b64encode(b"\x02" * 12).decode(),
}


def _send(client, headers, recipient_id, body="hello", **extra):
    return client.post(
        f"/api/v1/dms/{recipient_id}/messages",
        json={"body": body, **extra},
        headers=headers,
    )


def test_send_message(client, test_user, other_user, auth_token) -> None:
    """Sending opens the thread and returns the assigned position."""
    response = _send(client, auth_token, other_user.id)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["id"].startswith("dm_")
    assert data["thread_id"] == "usr_alice|usr_bob"
    assert data["seq"] == 1
    assert data["created_at"] > 0


def test_send_message_to_nonexistent_user(client, test_user, auth_token) -> None:
    response = _send(client, auth_token, "usr_nobody")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert "Recipient not found" in response.json()["detail"]


def test_send_message_to_self(client, test_user, auth_token) -> None:
    response = _send(client, auth_token, test_user.id)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_send_blank_message(client, test_user, other_user, auth_token) -> None:
    response = _send(client, auth_token, other_user.id, body="   ")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "empty" in response.json()["detail"]


def test_send_requires_auth(client, other_user) -> None:
    response = client.post(f"/api/v1/dms/{other_user.id}/messages", json={"body": "hi"})
    assert response.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}


def test_send_with_invalid_token(client, other_user) -> None:
    response = _send(client, {"Authorization": "Bearer not-a-jwt"}, other_user.id)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_send_encrypted_envelope(client, test_user, other_user, auth_token, db_session) -> None:
    response = _send(client, auth_token, other_user.id, body=ENVELOPE)
    assert response.status_code == status.HTTP_201_CREATED

    stored = db_session.get(DirectMessage, response.json()["id"])
    assert stored.body_kind == "encrypted"
    assert stored.cipher_text == ENVELOPE["cipherText"]


def test_send_malformed_envelope(client, test_user, other_user, auth_token) -> None:
    response = _send(client, auth_token, other_user.id, body={**ENVELOPE, "iv": "AAAA"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = _send(client, auth_token, other_user.id, body={**ENVELOPE, "encrypted": False})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_send_oversized_envelope(client, test_user, other_user, auth_token, db_session) -> None:
    envelope = {**ENVELOPE, "cipherText": "A" * 4_000_000}
    response = _send(client, auth_token, other_user.id, body=envelope)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "too long" in response.json()["detail"]
    assert db_session.query(DMThread).count() == 0


def test_send_lone_surrogate_body(client, test_user, other_user, auth_token, db_session, rate_limiter) -> None:
    rate_limiter.limit = 1
    response = client.post(
        f"/api/v1/dms/{other_user.id}/messages",
        content=b'{"body": "hi \\ud800"}',
        headers={**auth_token, "Content-Type": "application/json"},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert db_session.query(DMThread).count() == 0
    # The rejected send did not use up the allowance.
    assert _send(client, auth_token, other_user.id).status_code == status.HTTP_201_CREATED


def test_edit_to_lone_surrogate_body(client, test_user, other_user, auth_token) -> None:
    sent = _send(client, auth_token, other_user.id, body="draft").json()
    response = client.put(
        f"/api/v1/dms/messages/{sent['id']}",
        content=b'{"body": "oops \\udfff"}',
        headers={**auth_token, "Content-Type": "application/json"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_send_with_attachment_and_no_text(client, test_user, other_user, auth_token) -> None:
    attachment = {"name": "a.pdf", "mime_type": "application/pdf", "size": 10, "url": "https://x.test/a.pdf"}
    response = _send(client, auth_token, other_user.id, body="", attachments=[attachment])
    assert response.status_code == status.HTTP_201_CREATED


def test_send_is_rate_limited(client, test_user, other_user, auth_token, rate_limiter) -> None:
    rate_limiter.limit = 2
    assert _send(client, auth_token, other_user.id, body="one").status_code == status.HTTP_201_CREATED
    assert _send(client, auth_token, other_user.id, body="two").status_code == status.HTTP_201_CREATED

    response = _send(client, auth_token, other_user.id, body="three")
    assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS


def test_list_thread_messages(client, test_user, other_user, auth_token, other_auth_token) -> None:
    first = _send(client, auth_token, other_user.id, body="one").json()
    _send(client, other_auth_token, test_user.id, body="two", reply_to_id=first["id"])

    response = client.get(f"/api/v1/dms/{first['thread_id']}/messages", headers=other_auth_token)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [m["body"] for m in data["messages"]] == ["one", "two"]
    assert [m["seq"] for m in data["messages"]] == [1, 2]
    assert data["messages"][1]["reply_to_id"] == first["id"]
    assert data["messages"][1]["reply_to_deleted"] is False
    assert data["next_after_seq"] is None


def test_list_thread_messages_pagination(client, test_user, other_user, auth_token) -> None:
    thread_id = None
    for index in range(3):
        thread_id = _send(client, auth_token, other_user.id, body=f"m{index}").json()["thread_id"]

    page = client.get(f"/api/v1/dms/{thread_id}/messages", params={"limit": 2}, headers=auth_token).json()
    assert [m["body"] for m in page["messages"]] == ["m0", "m1"]
    assert page["next_after_seq"] == 2

    rest = client.get(
        f"/api/v1/dms/{thread_id}/messages",
        params={"limit": 2, "after_seq": page["next_after_seq"]},
        headers=auth_token,
    ).json()
    assert [m["body"] for m in rest["messages"]] == ["m2"]
    assert rest["next_after_seq"] is None


def test_list_thread_messages_access(client, test_user, other_user, third_user, auth_token, third_auth_token) -> None:
    thread_id = _send(client, auth_token, other_user.id).json()["thread_id"]

    response = client.get(f"/api/v1/dms/{thread_id}/messages", headers=third_auth_token)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.get("/api/v1/dms/usr_alice|usr_carol/messages", headers=auth_token)
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = client.get("/api/v1/dms/usr_bob|usr_alice/messages", headers=auth_token)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_edit_message(client, test_user, other_user, auth_token, other_auth_token) -> None:
    sent = _send(client, auth_token, other_user.id, body="typo").json()

    response = client.put(
        f"/api/v1/dms/messages/{sent['id']}",
        json={"body": "corrected"},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["body"] == "corrected"
    assert data["edited_at"] is not None

    response = client.put(
        f"/api/v1/dms/messages/{sent['id']}",
        json={"body": "hijack"},
        headers=other_auth_token,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_edit_missing_message(client, test_user, auth_token) -> None:
    response = client.put("/api/v1/dms/messages/dm_missing", json={"body": "x"}, headers=auth_token)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_delete_message_marks_replies(client, test_user, other_user, auth_token, other_auth_token) -> None:
    parent = _send(client, auth_token, other_user.id, body="parent").json()
    _send(client, other_auth_token, test_user.id, body="reply", reply_to_id=parent["id"])

    response = client.delete(f"/api/v1/dms/messages/{parent['id']}", headers=other_auth_token)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"/api/v1/dms/messages/{parent['id']}", headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "deleted"}

    messages = client.get(f"/api/v1/dms/{parent['thread_id']}/messages", headers=auth_token).json()["messages"]
    assert len(messages) == 1
    assert messages[0]["reply_to_id"] == parent["id"]
    assert messages[0]["reply_to_deleted"] is True

    response = client.delete(f"/api/v1/dms/messages/{parent['id']}", headers=auth_token)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_toggle_reaction(client, test_user, other_user, auth_token, other_auth_token, third_auth_token) -> None:
    sent = _send(client, auth_token, other_user.id).json()
    url = f"/api/v1/dms/messages/{sent['id']}/reactions"

    response = client.post(url, json={"emoji": "👍"}, headers=other_auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"added": True, "reactions": {"👍": [other_user.id]}}

    listed = client.get(f"/api/v1/dms/{sent['thread_id']}/messages", headers=auth_token).json()
    assert listed["messages"][0]["reactions"] == {"👍": [other_user.id]}

    response = client.post(url, json={"emoji": "👍"}, headers=other_auth_token)
    assert response.json() == {"added": False, "reactions": {}}

    response = client.post(url, json={"emoji": "👍"}, headers=third_auth_token)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unread_and_mark_read(client, test_user, other_user, auth_token, other_auth_token) -> None:
    thread_id = _send(client, auth_token, other_user.id, body="one").json()["thread_id"]
    _send(client, auth_token, other_user.id, body="two")

    unread = client.get(f"/api/v1/dms/{thread_id}/unread", headers=other_auth_token).json()
    assert unread == {"thread_id": thread_id, "unread_count": 2, "last_read_at": 0}

    response = client.put(f"/api/v1/dms/{thread_id}/read", headers=other_auth_token)
    assert response.status_code == status.HTTP_200_OK
    marker = response.json()["last_read_at"]
    assert marker > 0

    unread = client.get(f"/api/v1/dms/{thread_id}/unread", headers=other_auth_token).json()
    assert unread["unread_count"] == 0
    assert unread["last_read_at"] == marker

    # Markers never move backwards.
    response = client.put(f"/api/v1/dms/{thread_id}/read", json={"at": 1}, headers=other_auth_token)
    assert response.json()["last_read_at"] == marker


def test_mark_read_by_outsider(client, test_user, other_user, auth_token, third_auth_token) -> None:
    thread_id = _send(client, auth_token, other_user.id).json()["thread_id"]
    response = client.put(f"/api/v1/dms/{thread_id}/read", headers=third_auth_token)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_list_conversations(client, test_user, other_user, third_user, auth_token, other_auth_token) -> None:
    _send(client, auth_token, other_user.id, body="to bob")
    _send(client, auth_token, third_user.id, body="to carol")
    _send(client, other_auth_token, test_user.id, body="from bob")

    response = client.get("/api/v1/dms", headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    inbox = response.json()

    assert [c["other_user_id"] for c in inbox] == [other_user.id, third_user.id]
    assert inbox[0]["last_message"]["body"] == "from bob"
    assert inbox[0]["unread_count"] == 1
    assert inbox[1]["unread_count"] == 0
