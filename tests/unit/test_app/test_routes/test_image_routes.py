"""
test_image_routes.py - 사진 분석 / 이미지 생성 라우트 테스트
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.api_core.exceptions import ServiceUnavailable

from src.app.providers.base import (
    GenerationResult,
    ImageGenerationError,
    ImageGenerationResult,
)
from src.app.routes import images

SUB_PATH = "users/u1/subscription/current"
IMAGE = {"mimeType": "image/jpeg", "data": "BASE64"}


@pytest.fixture
def llm() -> MagicMock:
    llm = MagicMock()
    llm.analyze_image = AsyncMock(
        return_value=GenerationResult(text="러닝머신 5대가 보입니다", provider="gemini")
    )
    llm.generate_image = AsyncMock(
        return_value=ImageGenerationResult(
            image_url="data:image/png;base64,IMG", model="gpt-image-1", revised_prompt="p"
        )
    )
    llm.aclose = AsyncMock()
    return llm


@pytest.fixture
def factory(llm):
    with patch("src.app.routes.images.create_provider", return_value=llm) as create:
        yield create


@pytest.fixture
def client(make_client):
    return make_client(images.api_router, "/api/images")


class TestAnalyzeImage:
    """POST /api/images/analyze/{provider}."""

    def test_gemini_free_text(self, client, factory, llm):
        response = client.post(
            "/api/images/analyze/gemini",
            json={"image": IMAGE, "category": "헬스장", "apiKey": "k"},
        )

        assert response.json() == {"analysis": "러닝머신 5대가 보입니다"}
        prompt, image = llm.analyze_image.await_args.args
        assert image.mime_type == "image/jpeg"
        assert image.data == "BASE64"

    def test_openai_json(self, client, factory, llm):
        llm.analyze_image.return_value = GenerationResult(
            text='{"equipment": [{"name": "러닝머신", "count": 5}]}', provider="openai"
        )

        response = client.post("/api/images/analyze/openai", json={"image": IMAGE, "apiKey": "k"})

        data = response.json()
        assert data["analysisJson"] == {"equipment": [{"name": "러닝머신", "count": 5}]}

    def test_openai_non_json_keeps_text(self, client, factory, llm):
        llm.analyze_image.return_value = GenerationResult(text="분석 불가", provider="openai")

        response = client.post("/api/images/analyze/openai", json={"image": IMAGE, "apiKey": "k"})

        assert response.json() == {"analysis": "분석 불가"}

    def test_missing_image(self, client, factory):
        response = client.post("/api/images/analyze/gemini", json={"apiKey": "k"})

        assert response.status_code == 400
        factory.assert_not_called()

    def test_site_key_counts_analysis(self, client, factory, db, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "site-key")

        client.post("/api/images/analyze/gemini", json={"image": IMAGE, "userId": "u1"})

        assert db.docs[SUB_PATH]["imageAnalysisCount"] == 1

    def test_site_key_analysis_limit(self, client, factory, db, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "site-key")
        db.docs[SUB_PATH] = {"userId": "u1", "currentPlan": "FREE", "imageAnalysisCount": 5}

        response = client.post("/api/images/analyze/gemini", json={"image": IMAGE, "userId": "u1"})

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "월간 이미지 분석 한도(5회)를 초과했습니다"

    def test_firestore_failure_is_json(self, make_client, factory, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "site-key")
        db = MagicMock()
        db.document.return_value.get.side_effect = ServiceUnavailable("firestore down")
        client = make_client(images.api_router, "/api/images", db=db)

        response = client.post("/api/images/analyze/gemini", json={"image": IMAGE, "userId": "u1"})

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "DATABASE_ERROR"
        factory.assert_not_called()


class TestGenerateImage:
    """POST /api/images/generate/{provider}."""

    def test_client_key(self, client, factory, llm):
        response = client.post(
            "/api/images/generate/openai",
            json={"prompt": "헬스장 외관", "model": "dall-e-3", "quality": "hd", "apiKey": "k"},
        )

        assert response.json() == {
            "imageUrl": "data:image/png;base64,IMG",
            "revisedPrompt": "p",
            "model": "gpt-image-1",
        }
        llm.generate_image.assert_awaited_once_with(
            "헬스장 외관", "dall-e-3", size="1024x1024", quality="hd"
        )

    def test_gemini_default_model(self, client, factory, llm):
        client.post("/api/images/generate/gemini", json={"prompt": "헬스장", "apiKey": "k"})

        llm.generate_image.assert_awaited_once_with("헬스장", "gemini-2.5-flash-image")

    def test_key_required_without_site_api(self, client, factory):
        response = client.post("/api/images/generate/openai", json={"prompt": "p"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "API 키가 필요합니다"

    def test_site_api_free_model_no_usage(self, client, factory, db, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "site-key")

        response = client.post(
            "/api/images/generate/gemini",
            json={"prompt": "p", "useSiteApi": True, "userId": "u1"},
        )

        assert response.status_code == 200
        assert factory.call_args.kwargs["api_key"] == "site-key"
        assert SUB_PATH not in db.docs
        assert db.docs["users/u1/activity/log"]["records"][0]["type"] == "image_generate"

    def test_site_api_paid_model_rejected_on_free_plan(self, client, factory, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "site-key")

        response = client.post(
            "/api/images/generate/openai",
            json={"prompt": "p", "model": "gpt-image-1", "useSiteApi": True, "userId": "u1"},
        )

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "현재 플랜에서는 유료 모델 사용이 지원되지 않습니다"
        factory.assert_not_called()

    def test_site_key_missing_is_500(self, client, factory, db, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        db.docs[SUB_PATH] = {"userId": "u1", "currentPlan": "PRO"}

        response = client.post(
            "/api/images/generate/openai",
            json={"prompt": "p", "useSiteApi": True, "userId": "u1"},
        )

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "SERVER_CONFIG_ERROR"

    def test_provider_error(self, client, factory, llm):
        llm.generate_image.side_effect = ImageGenerationError(
            "SAFETY_BLOCKED", "콘텐츠 정책으로 인해 이미지를 생성할 수 없습니다.", status_code=400
        )

        response = client.post("/api/images/generate/gemini", json={"prompt": "p", "apiKey": "k"})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "SAFETY_BLOCKED"
        llm.aclose.assert_awaited_once()
