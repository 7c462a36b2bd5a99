"""
test_main.py - 앱 진입점 테스트 (설정 로드, 공유 상태, 루트 엔드포인트)
"""

from pathlib import Path
from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.app.main import app, init_state, load_config
from src.app.services.naver import NaverAdsClient, NaverSearchClient
from src.app.services.rag import RagService
from src.core.guards import IdempotencyGuard, RateLimiter


class TestLoadConfig:
    """load_config."""

    def test_default_yaml(self, project_root):
        config = load_config(project_root / "default.yaml")

        assert config["payments"]["confirm_rate_limit"] == 10
        assert config["ai"]["gemini"]["keyword_model"] == "gemini-2.5-flash"

    def test_default_path_is_project_root(self, default_config):
        assert load_config() == default_config

    def test_missing_file(self, tmp_path: Path):
        assert load_config(tmp_path / "nope.yaml") == {}

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(path) == {}


class TestInitState:
    """init_state."""

    def test_registers_shared_resources(self, default_config):
        target = FastAPI()
        http_client = MagicMock()

        init_state(target, default_config, http_client)

        state = target.state
        assert state.config is default_config
        assert isinstance(state.confirm_limiter, RateLimiter)
        assert state.confirm_limiter.max_requests == 10
        assert state.cancel_limiter.max_requests == 5
        assert state.cancel_limiter.window_seconds == 60
        assert isinstance(state.idempotency_guard, IdempotencyGuard)
        assert state.idempotency_guard.release_after == 5.0
        assert state.http_client is http_client
        assert isinstance(state.naver, NaverSearchClient)
        assert isinstance(state.naver_ads, NaverAdsClient)
        assert state.learner.search is state.naver
        assert state.learner.request_delay == 0.5
        assert isinstance(state.rag, RagService)

    def test_empty_config_uses_defaults(self):
        target = FastAPI()

        init_state(target, {}, MagicMock())

        assert target.state.confirm_limiter.max_requests == 10
        assert target.state.confirm_limiter.window_seconds == 60
        assert target.state.learner.request_delay == 0.5


class TestRootEndpoints:
    """/, /health (lifespan 없이)."""

    def test_health(self):
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_root_lists_endpoints(self):
        data = TestClient(app).get("/").json()

        assert data["message"] == "Fitness Blog Booster"
        assert data["endpoints"]["payment"] == "/api/payment"

    def test_routers_mounted(self):
        paths = app.openapi()["paths"]

        assert "/api/generate/{provider}" in paths
        assert "/api/generate/test/{provider}" in paths
        assert "/api/keywords/analyze" in paths
        assert "/api/payment/confirm" in paths
        assert "/api/posts/alerts" in paths
        assert "/api/usage/activity/log" in paths
        assert "/api/learn-top-blogs" in paths
        assert "/api/settings/presets/save" in paths
        assert "/api/teams/members/add" in paths

    def test_mounted_routes_use_post(self):
        paths = app.openapi()["paths"]

        assert set(paths["/api/teams/membership"]) == {"post"}
        assert set(paths["/api/settings/api/load"]) == {"post"}
