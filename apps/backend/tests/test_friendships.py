"""
Friend request and friendship tests
"""

from datetime import timedelta

import pytest

from app import models
from app.core.config import settings
from app.core.database import unit_of_work
from app.core.errors import AuthorizationError, BusinessRuleError, NotFoundError
from app.services import FriendshipService

PENDING = models.FriendshipStatus.PENDING
ACCEPTED = models.FriendshipStatus.ACCEPTED
CANCELLED = models.FriendshipStatus.CANCELLED


def _last_note(db_session, user):
    return (
        db_session.query(models.Notification)
        .filter_by(user_id=user.id)
        .order_by(models.Notification.id.desc())
        .first()
    )


class TestSendRequest:
    def test_creates_pending_request_and_notifies(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        with unit_of_work(db_session):
            request = FriendshipService(db_session).send_request(alice.id, "bob")

        assert request.status == PENDING
        assert (request.requester_id, request.addressee_id) == (alice.id, bob.id)
        note = _last_note(db_session, bob)
        assert note.type == "friend_request"
        assert note.message == "Alice sent you a friend request"
        assert note.data == {"friendship_id": request.id}
        assert db_session.query(models.FriendRequestLog).count() == 1

    def test_unknown_user(self, db_session, users):
        with pytest.raises(NotFoundError):
            FriendshipService(db_session).send_request(users["alice"].id, "ghost")

    def test_cannot_add_yourself(self, db_session, users):
        with pytest.raises(BusinessRuleError):
            FriendshipService(db_session).send_request(users["alice"].id, "alice")

    def test_pending_in_either_direction_blocks_a_new_request(self, db_session, users):
        svc = FriendshipService(db_session)
        svc.send_request(users["alice"].id, "bob")
        with pytest.raises(BusinessRuleError):
            svc.send_request(users["alice"].id, "bob")
        with pytest.raises(BusinessRuleError):
            svc.send_request(users["bob"].id, "alice")

    def test_already_friends(self, db_session, users):
        svc = FriendshipService(db_session)
        request = svc.send_request(users["alice"].id, "bob")
        svc.respond(users["bob"].id, request.id, "ACCEPTED")
        with pytest.raises(BusinessRuleError) as exc:
            svc.send_request(users["bob"].id, "alice")
        assert exc.value.detail == "You are already friends"

    def test_declined_request_is_reopened_by_the_other_side(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        svc = FriendshipService(db_session)
        request = svc.send_request(alice.id, "bob")
        svc.respond(bob.id, request.id, "DECLINED")

        again = svc.send_request(bob.id, "alice")

        assert again.id == request.id
        assert again.status == PENDING
        assert (again.requester_id, again.addressee_id) == (bob.id, alice.id)

    def test_hourly_limit_per_pair(self, db_session, users, monkeypatch):
        monkeypatch.setattr(settings, "FRIEND_REQUEST_HOURLY_LIMIT", 2)
        alice = users["alice"]
        svc = FriendshipService(db_session)
        first = svc.send_request(alice.id, "bob")
        svc.cancel(alice.id, first.id)
        second = svc.send_request(alice.id, "bob")
        svc.cancel(alice.id, second.id)

        with pytest.raises(BusinessRuleError):
            svc.send_request(alice.id, "bob")
        # Other pairs are not affected
        assert svc.send_request(alice.id, "carol").status == PENDING


class TestRespondAndCancel:
    def test_accept_makes_friends_on_both_sides(self, db_session, users):
        alice, bob, carol = users["alice"], users["bob"], users["carol"]
        svc = FriendshipService(db_session)
        request = svc.send_request(alice.id, "bob")
        from_carol = svc.send_request(carol.id, "alice")
        svc.respond(alice.id, from_carol.id, "ACCEPTED")

        svc.respond(bob.id, request.id, "ACCEPTED")

        assert [u.username for u in svc.list_friends(alice.id)] == ["bob", "carol"]
        assert [u.username for u in svc.list_friends(bob.id)] == ["alice"]
        note = _last_note(db_session, alice)
        assert note.type == "friend_request_accepted"
        assert note.message == "Bob accepted your friend request"

    def test_decline_is_listed_for_the_requester(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        svc = FriendshipService(db_session)
        request = svc.send_request(alice.id, "bob")

        svc.respond(bob.id, request.id, "DECLINED")

        assert [r.id for r in svc.list_declined(alice.id)] == [request.id]
        assert svc.list_pending(bob.id) == []
        note = _last_note(db_session, alice)
        assert note.type == "friend_request_declined"
        assert note.message == "Your friend request to bob was declined"

        svc.delete_declined(alice.id, request.id)
        assert db_session.query(models.Friendship).count() == 0

    def test_only_the_addressee_responds(self, db_session, users):
        svc = FriendshipService(db_session)
        request = svc.send_request(users["alice"].id, "bob")
        with pytest.raises(AuthorizationError):
            svc.respond(users["alice"].id, request.id, "ACCEPTED")

    def test_invalid_status(self, db_session, users):
        svc = FriendshipService(db_session)
        request = svc.send_request(users["alice"].id, "bob")
        with pytest.raises(BusinessRuleError):
            svc.respond(users["bob"].id, request.id, "MAYBE")

    def test_answered_request_cannot_be_answered_again(self, db_session, users):
        svc = FriendshipService(db_session)
        request = svc.send_request(users["alice"].id, "bob")
        svc.respond(users["bob"].id, request.id, "DECLINED")
        with pytest.raises(BusinessRuleError):
            svc.respond(users["bob"].id, request.id, "ACCEPTED")

    def test_cancel(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        svc = FriendshipService(db_session)
        request = svc.send_request(alice.id, "bob")

        with pytest.raises(AuthorizationError):
            svc.cancel(bob.id, request.id)
        assert svc.cancel(alice.id, request.id).status == CANCELLED
        assert svc.list_sent(alice.id) == []
        with pytest.raises(BusinessRuleError):
            svc.cancel(alice.id, request.id)

    def test_only_declined_requests_can_be_deleted(self, db_session, users):
        svc = FriendshipService(db_session)
        request = svc.send_request(users["alice"].id, "bob")
        with pytest.raises(BusinessRuleError):
            svc.delete_declined(users["alice"].id, request.id)

    def test_missing_request(self, db_session, users):
        with pytest.raises(NotFoundError):
            FriendshipService(db_session).respond(users["bob"].id, 999_999, "ACCEPTED")


class TestFriends:
    def test_remove_friend(self, db_session, users):
        alice, bob = users["alice"], users["bob"]
        svc = FriendshipService(db_session)
        request = svc.send_request(alice.id, "bob")
        svc.respond(bob.id, request.id, "ACCEPTED")

        svc.remove_friend(bob.id, "alice")

        assert svc.list_friends(alice.id) == []
        with pytest.raises(NotFoundError):
            svc.remove_friend(bob.id, "alice")

    def test_pending_request_is_not_a_friendship(self, db_session, users):
        svc = FriendshipService(db_session)
        svc.send_request(users["alice"].id, "bob")
        assert svc.list_friends(users["alice"].id) == []
        with pytest.raises(NotFoundError):
            svc.remove_friend(users["alice"].id, "bob")

    def test_cleanup_drops_stale_rows(self, db_session, users):
        alice = users["alice"]
        svc = FriendshipService(db_session)
        svc.send_request(alice.id, "bob")
        cancelled = svc.send_request(alice.id, "carol")
        svc.cancel(alice.id, cancelled.id)
        accepted = svc.send_request(alice.id, "dave")
        svc.respond(users["dave"].id, accepted.id, "ACCEPTED")
        db_session.commit()

        counts = svc.cleanup_stale(models.now_local_naive() + timedelta(days=8))

        assert counts == {"pending": 1, "cancelled": 1, "logs": 0}
        remaining = db_session.query(models.Friendship).all()
        assert [f.status for f in remaining] == [ACCEPTED]


def test_friend_request_api(client, users, auth):
    alice, bob = users["alice"], users["bob"]

    r = client.post("/api/friends/requests", json={"username": "bob"}, headers=auth(alice))
    assert r.status_code == 201, r.text
    request_id = r.json()["id"]
    assert r.json()["addressee"]["username"] == "bob"

    sent = client.get("/api/friends/requests/sent", headers=auth(alice)).json()
    assert [s["id"] for s in sent] == [request_id]
    pending = client.get("/api/friends/requests/pending", headers=auth(bob)).json()
    assert [p["requester"]["username"] for p in pending] == ["alice"]

    r = client.post(f"/api/friends/requests/{request_id}/respond", json={"status": "accepted"}, headers=auth(alice))
    assert r.status_code == 403
    r = client.post(f"/api/friends/requests/{request_id}/respond", json={"status": "accepted"}, headers=auth(bob))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "ACCEPTED"

    friends = client.get("/api/friends", headers=auth(alice)).json()
    assert friends == [{"id": bob.id, "username": "bob", "name": "Bob"}]

    r = client.delete("/api/friends/bob", headers=auth(alice))
    assert r.status_code == 204
    assert client.get("/api/friends", headers=auth(bob)).json() == []


def test_cancel_and_declined_api(client, users, auth):
    alice, bob = users["alice"], users["bob"]
    first = client.post("/api/friends/requests", json={"username": "bob"}, headers=auth(alice)).json()

    r = client.post(f"/api/friends/requests/{first['id']}/cancel", headers=auth(alice))
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"

    again = client.post("/api/friends/requests", json={"username": "bob"}, headers=auth(alice)).json()
    client.post(f"/api/friends/requests/{again['id']}/respond", json={"status": "DECLINED"}, headers=auth(bob))
    declined = client.get("/api/friends/requests/declined", headers=auth(alice)).json()
    assert [d["id"] for d in declined] == [again["id"]]

    r = client.delete(f"/api/friends/requests/{again['id']}", headers=auth(alice))
    assert r.status_code == 204
    assert client.get("/api/friends/requests/declined", headers=auth(alice)).json() == []
