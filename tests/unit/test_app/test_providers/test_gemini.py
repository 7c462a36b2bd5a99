"""
test_gemini.py - Gemini Provider 테스트

Fallback 예외 정책 검증:
- FALLBACK_ERRORS: NotFound, TooManyRequests, 5xx, 타임아웃 → 다음 모델
- REJECT_IMMEDIATELY: BadRequest, Unauthorized, Forbidden → 즉시 실패
- complete_json: 429만 선형 백오프 재시도
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest
from google.api_core.exceptions import BadRequest, NotFound, ServiceUnavailable, TooManyRequests

from src.app.providers.base import (
    EmbeddingError,
    GenerationError,
    ImageGenerationError,
    ImageInput,
)
from src.app.providers.gemini import (
    FALLBACK_ERRORS,
    REJECT_IMMEDIATELY,
    GeminiProvider,
    map_image_error,
)

MODELS = ("model-a", "model-b", "model-c")

# =============================================================================
# Fixtures
# =============================================================================


def text_response(text: str, usage: bool = False) -> httpx.Response:
    body: dict = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    if usage:
        body["usageMetadata"] = {
            "promptTokenCount": 12,
            "candidatesTokenCount": 34,
            "totalTokenCount": 46,
        }
    return httpx.Response(200, json=body)


def error_response(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": status, "message": message}})


class Recorder:
    """모델별 응답을 정해두고 요청을 기록하는 MockTransport 핸들러."""

    def __init__(self, responses: dict[str, list[httpx.Response] | httpx.Response]):
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for key, response in self.responses.items():
            if key in request.url.path:
                if isinstance(response, list):
                    return response.pop(0)
                return response
        return error_response(404, "not found")

    def payload(self, index: int = 0) -> dict:
        return json.loads(self.requests[index].content)

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def make_provider(recorder: Recorder, **kwargs) -> GeminiProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return GeminiProvider(api_key="test-key", models=MODELS, http_client=client, **kwargs)


# =============================================================================
# 초기화 테스트
# =============================================================================


class TestGeminiProviderInit:
    """GeminiProvider 초기화."""

    def test_missing_key_fails_fast(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

        with pytest.raises(GenerationError) as exc_info:
            GeminiProvider()

        assert exc_info.value.code == "GEMINI_KEY_MISSING"

    def test_env_key_priority(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-env")
        monkeypatch.setenv("GOOGLE_API_KEY", "google-env")

        assert GeminiProvider().api_key == "gemini-env"
        assert GeminiProvider(api_key="user-key").api_key == "user-key"

    def test_empty_models_rejected(self):
        with pytest.raises(ValueError):
            GeminiProvider(api_key="k", models=())


class TestExceptionPolicy:
    """예외 분류."""

    def test_fallback_errors(self):
        assert NotFound in FALLBACK_ERRORS
        assert TooManyRequests in FALLBACK_ERRORS
        assert issubclass(ServiceUnavailable, FALLBACK_ERRORS)

    def test_reject_immediately(self):
        assert BadRequest in REJECT_IMMEDIATELY
        assert not issubclass(NotFound, REJECT_IMMEDIATELY)


# =============================================================================
# 글 생성 (fallback 체인)
# =============================================================================


class TestGenerate:
    """generate 모델 체인."""

    @pytest.mark.asyncio
    async def test_first_model_success(self):
        recorder = Recorder({"model-a": text_response("본문", usage=True)})
        provider = make_provider(recorder)

        result = await provider.generate("프롬프트")

        assert result.text == "본문"
        assert result.model_requested == "model-a"
        assert result.model_used == "model-a"
        assert result.fallback_triggered is False
        assert result.usage.total_tokens == 46
        assert result.prompt_hash.startswith("sha256:")
        assert recorder.requests[0].url.params["key"] == "test-key"
        assert recorder.payload()["generationConfig"] == {
            "temperature": 0.8,
            "maxOutputTokens": 8192,
        }

    @pytest.mark.asyncio
    async def test_images_sent_as_inline_data(self):
        recorder = Recorder({"model-a": text_response("본문")})
        provider = make_provider(recorder)

        await provider.generate("프롬프트", [ImageInput(mime_type="image/png", data="AAAA")])

        parts = recorder.payload()["contents"][0]["parts"]
        assert parts[0] == {"text": "프롬프트"}
        assert parts[1] == {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}

    @pytest.mark.asyncio
    async def test_not_found_falls_back(self):
        recorder = Recorder({
            "model-a": error_response(404, "model not found"),
            "model-b": text_response("두번째"),
        })
        provider = make_provider(recorder)

        result = await provider.generate("프롬프트")

        assert result.text == "두번째"
        assert result.model_requested == "model-a"
        assert result.model_used == "model-b"
        assert result.fallback_triggered is True

    @pytest.mark.asyncio
    async def test_quota_and_server_errors_fall_back(self):
        recorder = Recorder({
            "model-a": error_response(429, "quota exceeded"),
            "model-b": error_response(503, "overloaded"),
            "model-c": text_response("세번째"),
        })
        provider = make_provider(recorder)

        result = await provider.generate("프롬프트")

        assert result.model_used == "model-c"
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_empty_text_falls_back(self):
        recorder = Recorder({
            "model-a": httpx.Response(200, json={"candidates": []}),
            "model-b": text_response("본문"),
        })
        provider = make_provider(recorder)

        result = await provider.generate("프롬프트")

        assert result.model_used == "model-b"

    @pytest.mark.asyncio
    async def test_error_in_ok_body_falls_back(self):
        recorder = Recorder({
            "model-a": httpx.Response(200, json={"error": {"code": 503, "message": "busy"}}),
            "model-b": text_response("본문"),
        })
        provider = make_provider(recorder)

        result = await provider.generate("프롬프트")

        assert result.model_used == "model-b"

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if "model-a" in request.url.path:
                raise httpx.ReadTimeout("timed out", request=request)
            return text_response("본문")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = GeminiProvider(api_key="k", models=MODELS, http_client=client)

        result = await provider.generate("프롬프트")

        assert result.model_used == "model-b"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_invalid_key_rejects_immediately(self):
        recorder = Recorder({
            "model-a": error_response(400, "API key not valid. Please pass a valid API key."),
        })
        provider = make_provider(recorder)

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("프롬프트")

        assert exc_info.value.code == "AUTH_OR_INPUT_ERROR"
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "유효하지 않은 API 키입니다. API 키를 확인해주세요."
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_bad_request_is_400(self):
        recorder = Recorder({"model-a": error_response(400, "Invalid content")})
        provider = make_provider(recorder)

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("프롬프트")

        assert exc_info.value.status_code == 400
        assert "요청 형식이 올바르지 않습니다" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_all_models_failed(self):
        recorder = Recorder({"models/": error_response(503, "overloaded")})
        provider = make_provider(recorder)

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("프롬프트")

        assert exc_info.value.code == "ALL_MODELS_FAILED"
        assert exc_info.value.message == "생성 실패: overloaded"
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_analyze_image_uses_default_config(self):
        recorder = Recorder({"model-a": text_response('{"equipment": []}')})
        provider = make_provider(recorder)

        result = await provider.analyze_image("분석", ImageInput(mime_type="image/jpeg", data="B"))

        assert result.text == '{"equipment": []}'
        assert "generationConfig" not in recorder.payload()


# =============================================================================
# JSON (429 재시도)
# =============================================================================


class TestCompleteJson:
    """complete_json 재시도."""

    @pytest.mark.asyncio
    async def test_parses_fenced_json(self):
        recorder = Recorder({"kw-model": text_response('```json\n{"keywords": ["PT"]}\n```')})
        provider = make_provider(recorder, keyword_model="kw-model")

        result = await provider.complete_json("키워드", system="시스템")

        assert result == {"keywords": ["PT"]}
        assert recorder.payload()["contents"][0]["parts"][0]["text"] == "시스템\n\n키워드"
        assert recorder.payload()["generationConfig"]["temperature"] == 0.9

    @pytest.mark.asyncio
    async def test_retries_on_429_with_linear_backoff(self):
        recorder = Recorder({
            "kw-model": [
                error_response(429, "Resource exhausted"),
                error_response(429, "Resource exhausted"),
                text_response('{"ok": true}'),
            ],
        })
        sleep = AsyncMock()
        provider = make_provider(
            recorder, keyword_model="kw-model", retry_step_delay=2.0, sleep=sleep
        )

        result = await provider.complete_json("키워드")

        assert result == {"ok": True}
        assert [call.args[0] for call in sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_rate_limited_after_all_attempts(self):
        recorder = Recorder({"kw-model": error_response(429, "Resource exhausted")})
        provider = make_provider(recorder, keyword_model="kw-model", sleep=AsyncMock())

        with pytest.raises(GenerationError) as exc_info:
            await provider.complete_json("키워드")

        assert exc_info.value.code == "RATE_LIMITED"
        assert exc_info.value.status_code == 429
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_other_error_not_retried(self):
        recorder = Recorder({"kw-model": error_response(500, "internal")})
        sleep = AsyncMock()
        provider = make_provider(recorder, keyword_model="kw-model", sleep=sleep)

        with pytest.raises(GenerationError) as exc_info:
            await provider.complete_json("키워드")

        assert exc_info.value.code == "JSON_GENERATION_FAILED"
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        recorder = Recorder({"kw-model": text_response("키워드는 PT입니다")})
        provider = make_provider(recorder, keyword_model="kw-model")

        with pytest.raises(GenerationError) as exc_info:
            await provider.complete_json("키워드")

        assert exc_info.value.code == "JSON_PARSE_FAILED"


# =============================================================================
# Embedding / Image
# =============================================================================


class TestEmbed:
    """embed."""

    @pytest.mark.asyncio
    async def test_returns_vector(self):
        recorder = Recorder({
            "embedContent": httpx.Response(200, json={"embedding": {"values": [0.1, 0.2]}}),
        })
        provider = make_provider(recorder)

        vector = await provider.embed("텍스트")

        assert vector == [0.1, 0.2]
        assert recorder.paths[0].endswith("models/text-embedding-004:embedContent")

    @pytest.mark.asyncio
    async def test_empty_vector_raises(self):
        recorder = Recorder({"embedContent": httpx.Response(200, json={"embedding": {}})})
        provider = make_provider(recorder)

        with pytest.raises(EmbeddingError):
            await provider.embed("텍스트")


class TestGenerateImage:
    """generate_image."""

    @pytest.mark.asyncio
    async def test_imagen_predict(self):
        recorder = Recorder({
            ":predict": httpx.Response(200, json={"predictions": [{"bytesBase64Encoded": "IMG"}]}),
        })
        provider = make_provider(recorder)

        result = await provider.generate_image("헬스장", model="imagen-3.0-generate-002")

        assert result.image_url == "data:image/png;base64,IMG"
        assert result.model == "imagen-3.0-generate-002"
        assert recorder.payload()["parameters"]["aspectRatio"] == "1:1"

    @pytest.mark.asyncio
    async def test_gemini_inline_image(self):
        body = {
            "candidates": [{
                "content": {"parts": [
                    {"text": "설명"},
                    {"inlineData": {"mimeType": "image/jpeg", "data": "JPG"}},
                ]},
            }],
        }
        recorder = Recorder({"gemini-2.5-flash-image": httpx.Response(200, json=body)})
        provider = make_provider(recorder)

        result = await provider.generate_image("헬스장")

        assert result.image_url == "data:image/jpeg;base64,JPG"
        assert recorder.payload()["generationConfig"]["responseModalities"] == ["IMAGE", "TEXT"]

    @pytest.mark.asyncio
    async def test_no_image_part(self):
        recorder = Recorder({"gemini-2.5-flash-image": text_response("텍스트만")})
        provider = make_provider(recorder)

        with pytest.raises(ImageGenerationError) as exc_info:
            await provider.generate_image("헬스장")

        assert exc_info.value.code == "IMAGE_EMPTY"

    @pytest.mark.asyncio
    async def test_quota_error_mapped(self):
        recorder = Recorder({"gemini-2.5-flash-image": error_response(429, "quota exceeded")})
        provider = make_provider(recorder)

        with pytest.raises(ImageGenerationError) as exc_info:
            await provider.generate_image("헬스장")

        assert exc_info.value.code == "RATE_LIMITED"
        assert exc_info.value.status_code == 429


class TestMapImageError:
    """이미지 에러 메시지 분류."""

    @pytest.mark.parametrize(
        ("message", "code", "status"),
        [
            ("API key not valid", "INVALID_API_KEY", 401),
            ("RESOURCE_EXHAUSTED", "RATE_LIMITED", 429),
            ("blocked by safety filter", "SAFETY_BLOCKED", 400),
            ("model not found", "MODEL_NOT_SUPPORTED", 400),
            ("something else", "IMAGE_FAILED", 500),
        ],
    )
    def test_mapping(self, message, code, status):
        error = map_image_error(message)

        assert error.code == code
        assert error.status_code == status
