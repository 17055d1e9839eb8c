from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

from app import models
from app.services import NotificationService


def _invite_bob(client, users, auth):
    r = client.post(
        "/api/transactions",
        json={
            "type": "EXPENSE",
            "amount": "20",
            "date": "2025-02-01",
            "description": "Pizza",
            "category_name": "Food",
            "participants": [{"user_id": users["bob"].id}],
        },
        headers=auth(users["alice"]),
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_list_mark_and_delete(client, users, auth):
    bob = users["bob"]
    txn = _invite_bob(client, users, auth)

    rows = client.get("/api/notifications", headers=auth(bob)).json()
    assert len(rows) == 1
    note = rows[0]
    assert note["type"] == "transaction_invitation"
    assert note["title"] == "Shared Transaction Invitation"
    assert note["data"] == {"transaction_id": txn["id"]}
    assert note["is_read"] is False

    r = client.patch(f"/api/notifications/{note['id']}/read", headers=auth(users["alice"]))
    assert r.status_code == 404
    r = client.patch(f"/api/notifications/{note['id']}/read", headers=auth(bob))
    assert r.status_code == 200
    assert r.json()["is_read"] is True

    r = client.delete(f"/api/notifications/{note['id']}", headers=auth(users["alice"]))
    assert r.status_code == 404
    r = client.delete(f"/api/notifications/{note['id']}", headers=auth(bob))
    assert r.status_code == 204
    assert client.get("/api/notifications", headers=auth(bob)).json() == []


def test_expired_notifications_are_pruned(client, db_session, users, auth):
    bob = users["bob"]
    old = models.Notification(
        user_id=bob.id,
        type="transaction_update",
        title="Old",
        message="old news",
        data={},
        created_at=models.now_local_naive() - timedelta(days=400),
    )
    db_session.add(old)
    db_session.commit()
    _invite_bob(client, users, auth)

    rows = client.get("/api/notifications", headers=auth(bob)).json()
    assert [n["title"] for n in rows] == ["Shared Transaction Invitation"]
    assert db_session.query(models.Notification).filter_by(title="Old").count() == 0


def test_publisher_receives_stored_row(db_session, users):
    publisher = MagicMock()
    svc = NotificationService(db_session, publisher=publisher)

    row = svc.notify(users["bob"].id, "transaction_update", "Hello", "world", {"transaction_id": 1})

    publisher.assert_called_once_with(users["bob"].id, row)
    assert row.id is not None
