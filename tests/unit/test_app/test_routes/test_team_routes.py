"""
test_team_routes.py - 팀 라우트 테스트
"""

import pytest

from src.app.routes import teams

TEAM_PATH = "teams/owner1"
MEMBERSHIP_PATH = "users/u2/teamMembership/owner1"


@pytest.fixture
def client(make_client):
    return make_client(teams.api_router, "/api/teams")


@pytest.fixture
def users(db):
    db.docs["users/owner1"] = {"email": "owner@fit.com", "displayName": "대표"}
    db.docs["users/u2"] = {"email": "coach@fit.com", "displayName": "코치"}


def add(client, email: str = "coach@fit.com"):
    return client.post("/api/teams/members/add", json={"userId": "owner1", "email": email})


class TestOwnerRoutes:
    """소유자: get / members/add / members/save / members/remove."""

    def test_add_member_by_email(self, client, db, users):
        response = add(client)

        assert response.status_code == 200
        assert response.json()["member"]["uid"] == "u2"
        assert db.docs[TEAM_PATH]["ownerName"] == "대표"
        assert db.docs[MEMBERSHIP_PATH]["ownerEmail"] == "owner@fit.com"

        team = client.post("/api/teams/get", json={"userId": "owner1"}).json()["team"]
        assert [m["email"] for m in team["members"]] == ["coach@fit.com"]

    def test_unknown_email(self, client, users):
        response = add(client, "nobody@fit.com")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "USER_NOT_FOUND"

    def test_duplicate_member(self, client, users):
        add(client)

        response = add(client)

        assert response.status_code == 409
        assert response.json()["detail"] == {
            "error": "이미 팀에 추가된 멤버입니다",
            "code": "TEAM_MEMBER_EXISTS",
        }

    def test_owner_profile_from_body(self, client, db):
        db.docs["users/u2"] = {"email": "coach@fit.com"}

        client.post(
            "/api/teams/members/add",
            json={"userId": "owner1", "email": "coach@fit.com", "ownerEmail": "o@fit.com"},
        )

        assert db.docs[TEAM_PATH]["ownerEmail"] == "o@fit.com"
        assert db.docs[TEAM_PATH]["ownerName"] is None

    def test_save_members(self, client, db, users):
        response = client.post(
            "/api/teams/members/save",
            json={"userId": "owner1", "members": [{"uid": "u2", "email": "coach@fit.com"}]},
        )

        assert response.status_code == 200
        assert response.json()["team"]["members"][0]["status"] == "active"
        assert MEMBERSHIP_PATH in db.docs

    def test_save_members_requires_list(self, client):
        response = client.post("/api/teams/members/save", json={"userId": "owner1", "members": "u2"})

        assert response.status_code == 400

    def test_save_members_bad_entry(self, client):
        response = client.post(
            "/api/teams/members/save", json={"userId": "owner1", "members": [{"email": "x"}]}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "멤버 형식이 올바르지 않습니다"

    def test_remove_member(self, client, db, users):
        add(client)

        response = client.post("/api/teams/members/remove", json={"userId": "owner1", "memberId": "u2"})

        assert response.json() == {"success": True}
        assert db.docs[TEAM_PATH]["members"] == []
        assert MEMBERSHIP_PATH not in db.docs

    def test_get_without_team(self, client):
        assert client.post("/api/teams/get", json={"userId": "owner1"}).json() == {"team": None}


class TestMemberRoutes:
    """멤버: membership / leave."""

    def test_membership_with_owner_settings(self, client, db, users):
        add(client)
        db.docs["users/owner1/settings/api"] = {"apiProvider": "gemini", "apiKey": "AIzaSyOwner"}

        data = client.post("/api/teams/membership", json={"userId": "u2"}).json()

        assert data["membership"]["ownerId"] == "owner1"
        assert data["ownerApiSettings"] == {
            "apiProvider": "gemini",
            "hasApiKey": True,
            "keyPrefix": "AIzaSy...",
        }

    def test_no_membership(self, client):
        data = client.post("/api/teams/membership", json={"userId": "u2"}).json()

        assert data == {"membership": None, "ownerApiSettings": None}

    def test_leave(self, client, db, users):
        add(client)

        response = client.post("/api/teams/leave", json={"userId": "u2", "ownerId": "owner1"})

        assert response.json() == {"success": True}
        assert MEMBERSHIP_PATH not in db.docs

    def test_leave_requires_owner_id(self, client):
        response = client.post("/api/teams/leave", json={"userId": "u2"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "ownerId가 필요합니다"

    def test_leave_not_member(self, client):
        response = client.post("/api/teams/leave", json={"userId": "u2", "ownerId": "owner1"})

        assert response.status_code == 404
