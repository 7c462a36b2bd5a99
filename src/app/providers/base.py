"""
AI Provider 추상 인터페이스.

- Provider 추상화로 Gemini/OpenAI 교체 가능
- model_requested + model_used 필수 기록 (fallback 추적)
- 키 결정: 요청 키(사용자 키) > 환경변수(사이트 키)
"""

import hashlib
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# =============================================================================
# Inputs
# =============================================================================


@dataclass
class ImageInput:
    """
    프롬프트에 첨부할 이미지.

    data는 base64 문자열 (data URL 접두어 없음).
    """
    mime_type: str
    data: str

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ImageInput":
        """웹 클라이언트 형식 {mimeType, data} → ImageInput."""
        data = str(raw.get("data") or "")
        mime_type = str(raw.get("mimeType") or raw.get("mime_type") or "image/jpeg")

        # data URL로 들어온 경우 접두어 분리
        match = re.match(r"^data:([\w/+.-]+);base64,(.*)$", data, re.DOTALL)
        if match:
            mime_type, data = match.group(1), match.group(2)

        return cls(mime_type=mime_type, data=data)

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass
class LLMCallParams:
    """
    LLM 호출 파라미터 기록.

    응답 품질에 영향을 주는 파라미터만.
    """
    temperature: float | None = None
    max_tokens: int | None = None
    json_mode: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "json_mode": self.json_mode,
        }


def compute_hash(content: str) -> str:
    """SHA-256 해시 (프롬프트 중복 추적용)."""
    return f"sha256:{hashlib.sha256(content.encode()).hexdigest()[:16]}"


# =============================================================================
# Result Data Classes
# =============================================================================


@dataclass
class TokenUsage:
    """토큰 사용량 (응답 메타데이터에 있을 때만)."""
    prompt_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "promptTokens": self.prompt_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
        }


@dataclass
class GenerationResult:
    """
    텍스트 생성 결과.

    필수 키:
    - model_requested: 체인의 첫 모델
    - model_used: 실제 응답한 모델 (fallback 시 다름)
    - fallback_triggered: fallback 발생 여부
    """
    text: str
    provider: str
    model_requested: str | None = None
    model_used: str | None = None
    fallback_triggered: bool = False
    usage: TokenUsage | None = None
    model_params: dict[str, Any] | None = None
    prompt_hash: str | None = None
    generated_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        result = {
            "text": self.text,
            "provider": self.provider,
            "model_requested": self.model_requested,
            "model_used": self.model_used,
            "fallback_triggered": self.fallback_triggered,
            "usage": self.usage.to_dict() if self.usage else None,
            "model_params": self.model_params,
            "prompt_hash": self.prompt_hash,
            "generated_at": self.generated_at,
        }
        return {k: v for k, v in result.items() if v is not None}


@dataclass
class ImageGenerationResult:
    """이미지 생성 결과 (image_url은 data URL 또는 원격 URL)."""
    image_url: str
    model: str
    revised_prompt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "imageUrl": self.image_url,
            "revisedPrompt": self.revised_prompt,
            "model": self.model,
        }


# =============================================================================
# Provider Exceptions
# =============================================================================


class ProviderError(Exception):
    """
    Provider 관련 에러.

    message는 사용자에게 그대로 보여줄 한국어 문장.
    status_code는 라우트에서 HTTP 응답 코드로 사용.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        **context: Any,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.context = context
        super().__init__(f"[{code}] {message}")

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class GenerationError(ProviderError):
    """텍스트/JSON 생성 에러."""
    pass


class ImageGenerationError(ProviderError):
    """이미지 생성 에러."""
    pass


class EmbeddingError(ProviderError):
    """임베딩 에러."""
    pass


# =============================================================================
# JSON Helpers
# =============================================================================


def extract_json_text(text: str) -> str:
    """
    모델 응답에서 JSON 부분만 추출.

    - ```json 코드블록 우선
    - 없으면 첫 '{' ~ 마지막 '}'
    - 둘 다 없으면 원문
    """
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if fenced:
        return fenced.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text


def parse_json_object(text: str) -> dict[str, Any]:
    """
    모델 응답 → dict.

    Raises:
        GenerationError: JSON 객체가 아닐 때 (JSON_PARSE_FAILED)
    """
    try:
        parsed = json.loads(extract_json_text(text))
    except json.JSONDecodeError as e:
        raise GenerationError(
            "JSON_PARSE_FAILED",
            "JSON 파싱 실패",
            status_code=500,
        ) from e

    if not isinstance(parsed, dict):
        raise GenerationError("JSON_PARSE_FAILED", "JSON 파싱 실패", status_code=500)
    return parsed


# =============================================================================
# Abstract Provider
# =============================================================================


class LLMProvider(ABC):
    """
    LLM Provider 추상 인터페이스.

    역할: 글 생성, 키워드 JSON 생성, 이미지 분석, 임베딩, 이미지 생성
    """

    name: str = "base"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        images: list[ImageInput] | None = None,
        **kwargs: Any,
    ) -> GenerationResult:
        """
        블로그 본문 등 자유 텍스트 생성.

        Args:
            prompt: 프롬프트
            images: 첨부 이미지
            **kwargs: provider별 옵션 (messages, rag_context 등)

        Returns:
            GenerationResult (정리 전 원문)
        """
        ...

    @abstractmethod
    async def complete_json(
        self,
        prompt: str,
        system: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        JSON 객체 응답 요청.

        Raises:
            GenerationError: 호출 실패 또는 JSON 파싱 실패
        """
        ...

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """텍스트 임베딩 벡터."""
        ...

    @abstractmethod
    async def generate_image(self, prompt: str, model: str, **kwargs: Any) -> ImageGenerationResult:
        """이미지 생성."""
        ...

    @abstractmethod
    async def analyze_image(self, prompt: str, image: ImageInput) -> GenerationResult:
        """이미지 1장 분석 (원문 텍스트)."""
        ...

    async def aclose(self) -> None:
        """HTTP 클라이언트 정리. 요청 단위로 만든 provider는 사용 후 호출."""
        return None
