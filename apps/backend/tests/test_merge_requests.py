"""
External friends and merge request tests
"""

from datetime import date
from decimal import Decimal

import pytest

from app import models, schemas
from app.core.database import unit_of_work
from app.core.errors import AuthorizationError, BusinessRuleError, NotFoundError
from app.services import ExternalFriendService, MergeRequestService, TransactionLifecycleService


def _create(db_session, creator, amount, participants):
    payload = schemas.TransactionCreate(
        type="EXPENSE",
        amount=amount,
        date=date(2025, 5, 1),
        description="Groceries",
        category_name="Food",
        participants=participants,
    )
    with unit_of_work(db_session):
        txn = TransactionLifecycleService(db_session).create(creator.id, payload)
    return txn


def _rows(db_session, txn_id):
    return (
        db_session.query(models.TransactionParticipant)
        .filter_by(transaction_id=txn_id)
        .order_by(models.TransactionParticipant.id)
        .all()
    )


class TestExternalFriends:
    def test_list_merges_stored_and_used_names(self, db_session, users):
        alice = users["alice"]
        svc = ExternalFriendService(db_session)
        with unit_of_work(db_session):
            stored = svc.add(alice.id, "Bobby")
        _create(db_session, alice, "50", [{"name": "Bobby"}, {"name": "Zoe"}])

        friends = svc.list(alice.id)

        assert {"id": stored.id, "name": "Bobby"} in friends
        assert {"id": None, "name": "Zoe"} in friends
        assert len(friends) == 2

    def test_duplicate_is_rejected(self, db_session, users):
        svc = ExternalFriendService(db_session)
        svc.add(users["alice"].id, "Bobby")
        with pytest.raises(BusinessRuleError):
            svc.add(users["alice"].id, "Bobby")

    def test_cannot_delete_someone_elses(self, db_session, users):
        svc = ExternalFriendService(db_session)
        friend = svc.add(users["alice"].id, "Bobby")
        with pytest.raises(AuthorizationError):
            svc.delete(users["bob"].id, friend.id)


class TestMergeRequests:
    def test_create_notifies_target(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        request = MergeRequestService(db_session).create(alice.id, "Bobby", "bob")

        assert request.status == models.MergeRequestStatus.PENDING
        note = db_session.query(models.Notification).filter_by(user_id=bob.id).one()
        assert note.type == "merge_request"
        assert note.message == 'Alice wants to link "External Friend: Bobby" to your account'

    def test_unknown_target(self, db_session, users):
        with pytest.raises(NotFoundError):
            MergeRequestService(db_session).create(users["alice"].id, "Bobby", "ghost")

    def test_duplicate_pending_request(self, db_session, users):
        svc = MergeRequestService(db_session)
        svc.create(users["alice"].id, "Bobby", "bob")
        with pytest.raises(BusinessRuleError):
            svc.create(users["alice"].id, "Bobby", "bob")

    def test_only_target_responds(self, db_session, users):
        svc = MergeRequestService(db_session)
        request = svc.create(users["alice"].id, "Bobby", "bob")
        with pytest.raises(AuthorizationError):
            svc.respond(users["carol"].id, request.id, "ACCEPTED")

    def test_accept_repoints_placeholder(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        with unit_of_work(db_session):
            ExternalFriendService(db_session).add(alice.id, "Bobby")
        txn = _create(db_session, alice, "100", [{"name": "Bobby"}])
        svc = MergeRequestService(db_session)
        with unit_of_work(db_session):
            request = svc.create(alice.id, "Bobby", "bob")

        assert [t.id for t in svc.details(bob.id, request.id)] == [txn.id]

        with unit_of_work(db_session):
            svc.respond(bob.id, request.id, "ACCEPTED")

        linked, creator = _rows(db_session, txn.id)
        assert linked.user_id == bob.id
        assert linked.placeholder_name is None
        assert linked.status == models.ParticipantStatus.ACCEPTED
        assert linked.share_amount == Decimal("50")
        assert creator.share_amount == Decimal("50")
        assert db_session.get(models.MergeRequest, request.id).status == models.MergeRequestStatus.ACCEPTED
        assert db_session.query(models.ExternalFriend).filter_by(user_id=alice.id).count() == 0
        friendship = db_session.query(models.Friendship).one()
        assert friendship.status == models.FriendshipStatus.ACCEPTED
        note = db_session.query(models.Notification).filter_by(user_id=alice.id).all()[-1]
        assert note.type == "merge_request_accepted"

    def test_accept_merges_into_existing_participant(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        txn = _create(db_session, alice, "90", [{"user_id": bob.id}, {"name": "Bobby"}])
        svc = MergeRequestService(db_session)
        with unit_of_work(db_session):
            request = svc.create(alice.id, "Bobby", "bob")
            svc.respond(bob.id, request.id, "ACCEPTED")

        bob_row, creator = _rows(db_session, txn.id)
        assert bob_row.user_id == bob.id
        assert bob_row.status == models.ParticipantStatus.ACCEPTED
        assert bob_row.base_share_amount == Decimal("60")
        assert bob_row.share_amount == Decimal("60")
        assert creator.share_amount == Decimal("30")

    def test_reject_leaves_placeholders_alone(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        txn = _create(db_session, alice, "100", [{"name": "Bobby"}])
        svc = MergeRequestService(db_session)
        with unit_of_work(db_session):
            request = svc.create(alice.id, "Bobby", "bob")
            svc.respond(bob.id, request.id, "REJECTED")

        assert _rows(db_session, txn.id)[0].placeholder_name == "Bobby"
        assert db_session.get(models.MergeRequest, request.id).status == models.MergeRequestStatus.REJECTED
        note = db_session.query(models.Notification).filter_by(user_id=alice.id).all()[-1]
        assert note.type == "merge_request_rejected"

        with pytest.raises(BusinessRuleError):
            svc.respond(bob.id, request.id, "ACCEPTED")


def test_merge_request_api(client, users, auth):
    alice, bob = users["alice"], users["bob"]
    client.post(
        "/api/transactions",
        json={
            "type": "EXPENSE",
            "amount": "40",
            "date": "2025-05-02",
            "category_name": "Food",
            "participants": [{"name": "Bobby"}],
        },
        headers=auth(alice),
    )

    r = client.post(
        "/api/friends/merge-requests",
        json={"placeholder_name": "Bobby", "target_username": "bob"},
        headers=auth(alice),
    )
    assert r.status_code == 201, r.text
    request_id = r.json()["id"]
    assert r.json()["requester"]["username"] == "alice"

    received = client.get("/api/friends/merge-requests", headers=auth(bob)).json()
    assert [m["id"] for m in received] == [request_id]

    r = client.post(
        f"/api/friends/merge-requests/{request_id}/respond",
        json={"status": "ACCEPTED"},
        headers=auth(alice),
    )
    assert r.status_code == 403

    r = client.post(
        f"/api/friends/merge-requests/{request_id}/respond",
        json={"status": "ACCEPTED"},
        headers=auth(bob),
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "ACCEPTED"

    pending = client.get("/api/transactions", headers=auth(bob)).json()
    assert len(pending) == 1
    assert {p["display_name"] for p in pending[0]["participants"]} == {"Alice", "Bob"}


def test_external_friends_api(client, users, auth):
    alice = users["alice"]
    r = client.post("/api/friends/external", json={"name": "Zoe"}, headers=auth(alice))
    assert r.status_code == 201
    friend_id = r.json()["id"]

    r = client.post("/api/friends/external", json={"name": "Zoe"}, headers=auth(alice))
    assert r.status_code == 400

    assert client.get("/api/friends/external", headers=auth(alice)).json() == [{"id": friend_id, "name": "Zoe"}]
    r = client.delete(f"/api/friends/external/{friend_id}", headers=auth(users["bob"]))
    assert r.status_code == 403
    r = client.delete(f"/api/friends/external/{friend_id}", headers=auth(alice))
    assert r.status_code == 204
    assert client.get("/api/friends/external", headers=auth(alice)).json() == []
