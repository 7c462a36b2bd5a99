"""
test_base.py - Provider 공통 타입/헬퍼 테스트

검증 포인트:
1. ImageInput: {mimeType, data} / data URL 모두 수용
2. GenerationResult: model_requested + model_used 기록, None 필드 제외
3. ProviderError: 응답용 dict
4. JSON 추출: 코드블록 > 중괄호 범위 > 원문
"""

import pytest

from src.app.providers.base import (
    GenerationError,
    GenerationResult,
    ImageGenerationError,
    ImageGenerationResult,
    ImageInput,
    LLMCallParams,
    ProviderError,
    TokenUsage,
    compute_hash,
    extract_json_text,
    parse_json_object,
)

# =============================================================================
# Inputs
# =============================================================================


class TestImageInput:
    """ImageInput 변환."""

    def test_from_client_dict(self):
        image = ImageInput.from_dict({"mimeType": "image/png", "data": "AAAA"})

        assert image.mime_type == "image/png"
        assert image.data == "AAAA"

    def test_from_data_url(self):
        image = ImageInput.from_dict({"data": "data:image/webp;base64,QUJD"})

        assert image.mime_type == "image/webp"
        assert image.data == "QUJD"

    def test_default_mime_type(self):
        assert ImageInput.from_dict({"data": "AAAA"}).mime_type == "image/jpeg"

    def test_snake_case_key(self):
        assert ImageInput.from_dict({"mime_type": "image/gif", "data": "x"}).mime_type == "image/gif"

    def test_to_data_url(self):
        image = ImageInput(mime_type="image/png", data="AAAA")

        assert image.to_data_url() == "data:image/png;base64,AAAA"


class TestCallParams:
    """LLMCallParams / compute_hash."""

    def test_to_dict(self):
        params = LLMCallParams(temperature=0.2, max_tokens=2000, json_mode=True)

        assert params.to_dict() == {"temperature": 0.2, "max_tokens": 2000, "json_mode": True}

    def test_hash_is_stable(self):
        assert compute_hash("prompt") == compute_hash("prompt")
        assert compute_hash("prompt") != compute_hash("prompt2")
        assert compute_hash("prompt").startswith("sha256:")
        assert len(compute_hash("prompt")) == len("sha256:") + 16


# =============================================================================
# Results
# =============================================================================


class TestGenerationResult:
    """GenerationResult."""

    def test_fallback_not_triggered_by_default(self):
        result = GenerationResult(text="본문", provider="gemini")

        assert result.fallback_triggered is False

    def test_to_dict_drops_none(self):
        result = GenerationResult(
            text="본문",
            provider="gemini",
            model_requested="gemini-1.5-flash",
            model_used="gemini-2.0-flash-lite",
            fallback_triggered=True,
        )

        data = result.to_dict()

        assert data["model_requested"] == "gemini-1.5-flash"
        assert data["model_used"] == "gemini-2.0-flash-lite"
        assert data["fallback_triggered"] is True
        assert "usage" not in data
        assert "prompt_hash" not in data
        assert "generated_at" in data

    def test_usage_serialized(self):
        result = GenerationResult(
            text="본문",
            provider="openai",
            usage=TokenUsage(prompt_tokens=10, output_tokens=20, total_tokens=30),
        )

        assert result.to_dict()["usage"] == {
            "promptTokens": 10,
            "outputTokens": 20,
            "totalTokens": 30,
        }

    def test_image_result_to_dict(self):
        result = ImageGenerationResult(image_url="data:image/png;base64,AA", model="dall-e-3")

        assert result.to_dict() == {
            "imageUrl": "data:image/png;base64,AA",
            "revisedPrompt": None,
            "model": "dall-e-3",
        }


# =============================================================================
# Exceptions
# =============================================================================


class TestProviderError:
    """ProviderError 계층."""

    def test_fields(self):
        error = GenerationError("RATE_LIMITED", "한도 초과", status_code=429, model="m")

        assert error.code == "RATE_LIMITED"
        assert error.message == "한도 초과"
        assert error.status_code == 429
        assert error.context == {"model": "m"}
        assert str(error) == "[RATE_LIMITED] 한도 초과"

    def test_to_dict(self):
        error = ImageGenerationError("SAFETY_BLOCKED", "정책 위반")

        assert error.to_dict() == {"error": "정책 위반", "code": "SAFETY_BLOCKED"}
        assert error.status_code == 400

    def test_subclass_of_provider_error(self):
        assert issubclass(GenerationError, ProviderError)
        assert issubclass(ImageGenerationError, ProviderError)


# =============================================================================
# JSON Helpers
# =============================================================================


class TestJsonHelpers:
    """모델 응답 JSON 추출."""

    def test_fenced_block(self):
        text = '설명입니다\n```json\n{"keywords": ["PT"]}\n```\n끝'

        assert extract_json_text(text) == '{"keywords": ["PT"]}'

    def test_brace_range(self):
        assert extract_json_text('결과: {"a": 1} 입니다') == '{"a": 1}'

    def test_plain_text_returned(self):
        assert extract_json_text("no json") == "no json"

    def test_parse_object(self):
        assert parse_json_object('```\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_parse_invalid_raises(self):
        with pytest.raises(GenerationError) as exc_info:
            parse_json_object("{not json}")

        assert exc_info.value.code == "JSON_PARSE_FAILED"
        assert exc_info.value.status_code == 500

    def test_parse_array_rejected(self):
        with pytest.raises(GenerationError):
            parse_json_object("[1, 2]")
