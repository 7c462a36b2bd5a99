"""
test_auth.py - 요청 인증 테스트

순서: Bearer 토큰 → body userId → 401
"""

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from src.app.auth import authenticate_request, verify_token


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()

    @app.post("/whoami")
    async def whoami(request: Request) -> dict[str, Any]:
        body = await request.json()
        return {"userId": await authenticate_request(request, body)}

    return TestClient(app)


class TestVerifyToken:
    """Firebase ID 토큰 검증."""

    def test_valid_token(self):
        with patch("src.app.auth.get_firebase_app", return_value=MagicMock()), patch(
            "src.app.auth.auth.verify_id_token", return_value={"uid": "firebase-uid"}
        ) as verify:
            assert verify_token("token") == "firebase-uid"

        assert verify.call_args.args[0] == "token"

    def test_invalid_token_returns_none(self):
        with patch("src.app.auth.get_firebase_app", return_value=MagicMock()), patch(
            "src.app.auth.auth.verify_id_token", side_effect=ValueError("malformed")
        ):
            assert verify_token("bad") is None

    def test_missing_credentials_returns_none(self):
        with patch(
            "src.app.auth.get_firebase_app", side_effect=FileNotFoundError("creds.json")
        ):
            assert verify_token("token") is None


class TestAuthenticateRequest:
    """authenticate_request."""

    def test_bearer_token_wins(self, client):
        with patch("src.app.auth.verify_token", return_value="token-uid"):
            response = client.post(
                "/whoami",
                json={"userId": "body-uid"},
                headers={"Authorization": "Bearer abc"},
            )

        assert response.json() == {"userId": "token-uid"}

    def test_invalid_token_falls_back_to_body(self, client):
        with patch("src.app.auth.verify_token", return_value=None):
            response = client.post(
                "/whoami",
                json={"userId": "body-uid"},
                headers={"Authorization": "Bearer abc"},
            )

        assert response.json() == {"userId": "body-uid"}

    def test_body_user_id_without_header(self, client):
        with patch("src.app.auth.verify_token") as verify:
            response = client.post("/whoami", json={"userId": "body-uid"})

        assert response.json() == {"userId": "body-uid"}
        verify.assert_not_called()

    def test_unauthorized(self, client):
        response = client.post("/whoami", json={})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"
