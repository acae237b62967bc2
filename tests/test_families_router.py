"""Tests for families, members and invitations."""

from datetime import datetime, timedelta

from conftest import ALICE, BOB, CAROL, MALLORY, add_profile

from homebase.models import Chore, FamilyMember, Invitation, Todo, UserProfile
from homebase.utils.timezone import ensure_utc, now_utc

NEWCOMER = {"X-User-Id": "dave", "X-User-Email": "dave@example.com", "X-User-Name": "Dave"}


def test_first_request_creates_profile(client, db):
    response = client.get("/api/me", headers=ALICE)

    assert response.status_code == 200
    assert response.json()["profile"]["full_name"] == "Alice"
    assert response.json()["families"] == []
    assert db.query(UserProfile).filter(UserProfile.user_id == "alice").count() == 1


def test_missing_identity_is_unauthorized(client):
    response = client.get("/api/me")
    assert response.status_code == 401


def test_unknown_user_without_email_is_unauthorized(client):
    response = client.get("/api/me", headers={"X-User-Id": "ghost"})
    assert response.status_code == 401


class TestFamilies:
    def test_creator_joins_as_parent(self, client, db):
        family = client.post("/api/families", json={"name": "The Smiths"}, headers=ALICE).json()

        member = db.query(FamilyMember).filter(FamilyMember.family_id == family["id"]).one()
        assert member.user_id == "alice"
        assert member.role == "parent"
        assert member.color == "#4285F4"

    def test_blank_name_rejected(self, client):
        response = client.post("/api/families", json={"name": " "}, headers=ALICE)
        assert response.status_code == 422

    def test_list_only_my_families(self, client, family):
        assert [f["name"] for f in client.get("/api/families", headers=BOB).json()] == ["The Smiths"]
        assert client.get("/api/families", headers=MALLORY).json() == []

    def test_outsider_cannot_read_family(self, client, family):
        assert client.get(f"/api/families/{family.id}", headers=MALLORY).status_code == 403

    def test_missing_family(self, client, family):
        assert client.get("/api/families/999", headers=ALICE).status_code == 404

    def test_only_creator_updates(self, client, family):
        url = f"/api/families/{family.id}"
        assert client.put(url, json={"name": "Nope"}, headers=BOB).status_code == 403

        body = client.put(url, json={"primary_calendar_id": "fam@group.calendar.google.com"}, headers=ALICE).json()

        assert body["name"] == "The Smiths"
        assert body["primary_calendar_id"] == "fam@group.calendar.google.com"


class TestMembers:
    def test_roster_has_display_names(self, client, family):
        roster = client.get(f"/api/families/{family.id}/members", headers=BOB).json()
        assert {m["user_id"]: m["display_name"] for m in roster} == {
            "alice": "Alice",
            "bob": "Bob",
            "carol": "Carol",
        }

    def test_known_email_joins_directly(self, client, family):
        response = client.post(
            f"/api/families/{family.id}/members",
            json={"email": "Mallory@Example.com", "role": "other"},
            headers=ALICE,
        )

        assert response.status_code == 201
        member = response.json()["member"]
        assert member["user_id"] == "mallory"
        assert member["color"] == "#FBBC05"
        assert response.json()["invitation"] is None

    def test_unknown_email_gets_invitation(self, client, family):
        before = now_utc()
        response = client.post(
            f"/api/families/{family.id}/members",
            json={"email": "dave@example.com", "role": "child"},
            headers=ALICE,
        )

        invitation = response.json()["invitation"]
        assert invitation["email"] == "dave@example.com"
        assert invitation["accepted"] is False
        assert response.json()["member"] is None

        stored = client.get(f"/api/families/{family.id}/invitations", headers=ALICE).json()
        assert len(stored) == 1
        row_expiry = ensure_utc(datetime.fromisoformat(stored[0]["expires_at"]))
        assert row_expiry >= before + timedelta(days=7) - timedelta(seconds=1)

    def test_duplicate_member_rejected(self, client, family):
        response = client.post(
            f"/api/families/{family.id}/members", json={"email": "bob@example.com"}, headers=ALICE
        )
        assert response.status_code == 422

    def test_children_cannot_add_members(self, client, family):
        response = client.post(
            f"/api/families/{family.id}/members", json={"email": "x@example.com"}, headers=BOB
        )
        assert response.status_code == 403

    def test_remove_member(self, client, family, db):
        carol = (
            db.query(FamilyMember)
            .filter(FamilyMember.family_id == family.id, FamilyMember.user_id == "carol")
            .one()
        )

        assert client.delete(f"/api/families/{family.id}/members/{carol.id}", headers=BOB).status_code == 403
        assert client.delete(f"/api/families/{family.id}/members/{carol.id}", headers=ALICE).status_code == 204
        assert client.get(f"/api/families/{family.id}", headers=CAROL).status_code == 403


class TestRemovedMemberAssignments:
    def _remove(self, client, db, family, user_id):
        member = (
            db.query(FamilyMember)
            .filter(FamilyMember.family_id == family.id, FamilyMember.user_id == user_id)
            .one()
        )
        response = client.delete(f"/api/families/{family.id}/members/{member.id}", headers=ALICE)
        assert response.status_code == 204

    def _chore(self, client, family, **fields):
        response = client.post(
            f"/api/families/{family.id}/chores", json={"title": "Dishes", **fields}, headers=ALICE
        )
        assert response.status_code == 201, response.text
        return response.json()

    def test_two_person_rotation_falls_back_to_remaining_member(self, client, db, family):
        chore = self._chore(client, family, rotation=True, rotation_members=["alice", "bob"])

        self._remove(client, db, family, "bob")
        body = client.post(f"/api/families/{family.id}/chores/{chore['id']}/complete", headers=ALICE).json()

        assert body["assigned_to"] == "alice"
        assert body["rotation"] is False
        assert body["rotation_members"] is None

    def test_departing_assignee_hands_turn_to_next(self, client, db, family):
        chore = self._chore(client, family, rotation=True, rotation_members=["bob", "carol", "alice"])

        self._remove(client, db, family, "bob")

        stored = db.get(Chore, chore["id"])
        assert stored.rotation_members == ["carol", "alice"]
        assert (stored.current_assignee_index, stored.assigned_to) == (0, "carol")

    def test_direct_assignments_are_cleared(self, client, db, family):
        chore = self._chore(client, family, assigned_to="bob")
        db.add(Todo(family_id=family.id, title="Homework", assigned_to="bob", created_by="alice"))
        db.add(Todo(family_id=family.id, title="Laundry", assigned_to="carol", created_by="alice"))
        db.commit()

        self._remove(client, db, family, "bob")

        assert db.get(Chore, chore["id"]).assigned_to is None
        assert {t.title: t.assigned_to for t in db.query(Todo).all()} == {
            "Homework": None,
            "Laundry": "carol",
        }


class TestInvitations:
    def _invite(self, client, family, role="child"):
        return client.post(
            f"/api/families/{family.id}/members",
            json={"email": "dave@example.com", "role": role},
            headers=ALICE,
        ).json()["invitation"]

    def test_accept(self, client, family):
        invitation = self._invite(client, family)

        assert [i["id"] for i in client.get("/api/invitations", headers=NEWCOMER).json()] == [
            invitation["id"]
        ]
        response = client.post(f"/api/invitations/{invitation['id']}/accept", headers=NEWCOMER)

        assert response.status_code == 200
        assert response.json()["role"] == "child"
        assert response.json()["display_name"] == "Dave"
        assert client.get(f"/api/families/{family.id}", headers=NEWCOMER).status_code == 200
        assert client.get("/api/invitations", headers=NEWCOMER).json() == []

    def test_cannot_accept_someone_elses_invitation(self, client, family):
        invitation = self._invite(client, family)
        response = client.post(f"/api/invitations/{invitation['id']}/accept", headers=MALLORY)
        assert response.status_code == 404

    def test_cannot_accept_twice(self, client, family):
        invitation = self._invite(client, family)
        client.post(f"/api/invitations/{invitation['id']}/accept", headers=NEWCOMER)
        response = client.post(f"/api/invitations/{invitation['id']}/accept", headers=NEWCOMER)
        assert response.status_code == 422

    def test_expired_invitation(self, client, family, db):
        add_profile(db, "dave", "dave@example.com", "Dave")
        invitation = Invitation(
            family_id=family.id,
            email="dave@example.com",
            role="other",
            expires_at=now_utc() - timedelta(days=1),
        )
        db.add(invitation)
        db.commit()

        assert client.get("/api/invitations", headers=NEWCOMER).json() == []
        response = client.post(f"/api/invitations/{invitation.id}/accept", headers=NEWCOMER)
        assert response.status_code == 422
