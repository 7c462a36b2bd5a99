"""
라우트 테스트 공통: 라우터 하나만 올린 FastAPI 앱 + 예외 핸들러 + app.state 주입.
"""

from collections.abc import Callable
from typing import Any

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from src.app.routes.common import register_error_handlers


@pytest.fixture
def make_client(db, default_config) -> Callable[..., TestClient]:
    """
    Usage:
        client = make_client(payments.api_router, "/api/payment", naver=mock)
    """

    def _make(router: APIRouter, prefix: str, **state: Any) -> TestClient:
        app = FastAPI()
        register_error_handlers(app)
        app.include_router(router, prefix=prefix)
        app.state.db = db
        app.state.config = default_config
        for name, value in state.items():
            setattr(app.state, name, value)
        return TestClient(app)

    return _make
