"""
OpenAI Provider.

- 글 생성: gpt-4o (RAG 컨텍스트는 system 메시지로 주입)
- 키워드/이미지 분석: gpt-4o-mini JSON 모드
- 임베딩: text-embedding-3-small (입력 8000자 제한)
- 이미지: gpt-image-1 / dall-e-3 / dall-e-2

일시적 오류(RateLimit, 연결, 타임아웃, 5xx)는 지수 백오프 재시도.
"""

import logging
import os
from typing import Any

import openai
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    InternalServerError,
    RateLimitError,
)

from src.utils.retry import retry_with_exponential_backoff

from .base import (
    EmbeddingError,
    GenerationError,
    GenerationResult,
    ImageGenerationError,
    ImageGenerationResult,
    ImageInput,
    LLMCallParams,
    LLMProvider,
    TokenUsage,
    compute_hash,
    parse_json_object,
)

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    RateLimitError,
    APIConnectionError,
    APITimeoutError,
    InternalServerError,
)

IMAGE_MODELS = ("gpt-image-1", "dall-e-3", "dall-e-2")
DALLE2_SIZES = ("256x256", "512x512", "1024x1024")

EMBEDDING_MAX_CHARS = 8000

RAG_SYSTEM_TEMPLATE = """당신은 SEO 최적화된 피트니스/헬스 블로그 글을 작성하는 전문가입니다.

{rag_context}

위 참고 자료를 바탕으로 유사한 스타일과 구조로 글을 작성하되, 표절이 아닌 새롭고 독창적인 콘텐츠를 만들어주세요."""

THINKING_BLOCK_TYPES = ("thinking", "redacted_thinking")


class OpenAIProvider(LLMProvider):
    """
    OpenAI API Provider.

    Usage:
        provider = OpenAIProvider(api_key=user_key)
        result = await provider.generate(prompt, images, rag_context=context)
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        text_model: str = "gpt-4o",
        keyword_model: str = "gpt-4o-mini",
        analyze_model: str = "gpt-4o-mini",
        embedding_model: str = "text-embedding-3-small",
        temperature: float = 0.8,
        max_tokens: int = 8000,
        max_retries: int = 3,
        client: Any = None,
    ):
        """
        Args:
            api_key: 요청 키 (없으면 OPENAI_API_KEY)
            text_model: 글 생성 모델
            keyword_model: 키워드 JSON 모델
            analyze_model: 이미지 분석 모델
            embedding_model: 임베딩 모델
            temperature: 글 생성 온도
            max_tokens: 글 생성 최대 토큰
            max_retries: 일시적 오류 재시도 횟수
            client: 주입용 AsyncOpenAI (테스트)

        Raises:
            GenerationError: API 키가 없을 때 (fail-fast)
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise GenerationError(
                "OPENAI_KEY_MISSING",
                "OPENAI_API_KEY 환경변수가 설정되지 않았습니다",
                status_code=400,
            )

        self.text_model = text_model
        self.keyword_model = keyword_model
        self.analyze_model = analyze_model
        self.embedding_model = embedding_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self._client = client

    def _get_client(self) -> Any:
        """AsyncOpenAI 클라이언트 (lazy init)."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _call_with_retry(self, func: Any, **kwargs: Any) -> Any:
        return await retry_with_exponential_backoff(
            func,
            max_retries=self.max_retries,
            initial_delay=1.0,
            max_delay=30.0,
            exceptions=RETRYABLE_ERRORS,
            **kwargs,
        )

    # =========================================================================
    # Text Generation
    # =========================================================================

    async def generate(
        self,
        prompt: str,
        images: list[ImageInput] | None = None,
        **kwargs: Any,
    ) -> GenerationResult:
        """
        블로그 글 생성.

        kwargs:
            messages: 이전 대화 (수정 요청 시). thinking 블록은 제거 후 전송
            rag_context: 참고 블로그 컨텍스트 (system 메시지)
        """
        messages = build_chat_messages(
            prompt,
            images=images,
            previous_messages=kwargs.get("messages"),
            rag_context=kwargs.get("rag_context"),
        )
        params = LLMCallParams(temperature=self.temperature, max_tokens=self.max_tokens)

        try:
            response = await self._call_with_retry(
                self._get_client().chat.completions.create,
                model=self.text_model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except APIStatusError as e:
            message = _status_error_message(e)
            if "thinking" in message or "redacted_thinking" in message:
                raise GenerationError(
                    "THINKING_BLOCK",
                    "이전 메시지에 thinking 블록이 포함되어 있어 수정할 수 없습니다. "
                    "새로운 대화를 시작해주세요.",
                    status_code=400,
                ) from e
            raise self._to_generation_error(e) from e
        except (APIConnectionError, APITimeoutError) as e:
            logger.error(f"OpenAI connection failed: {e}", exc_info=True)
            raise GenerationError(
                "CONNECTION_ERROR",
                "네트워크 연결 오류가 발생했습니다. 잠시 후 다시 시도해주세요.",
                status_code=500,
            ) from e

        text = _first_message_content(response)
        return GenerationResult(
            text=text,
            provider=self.name,
            model_requested=self.text_model,
            model_used=getattr(response, "model", None) or self.text_model,
            usage=_extract_usage(response),
            model_params=params.to_dict(),
            prompt_hash=compute_hash(prompt),
        )

    async def complete_json(
        self,
        prompt: str,
        system: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """gpt-4o-mini JSON 모드 요청."""
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._call_with_retry(
                self._get_client().chat.completions.create,
                model=kwargs.get("model", self.keyword_model),
                messages=messages,
                temperature=kwargs.get("temperature", 0.9),
                max_tokens=kwargs.get("max_tokens", 1024),
                response_format={"type": "json_object"},
            )
        except APIStatusError as e:
            raise self._to_generation_error(e, default_status=500) from e
        except (APIConnectionError, APITimeoutError) as e:
            raise GenerationError(
                "CONNECTION_ERROR", "네트워크 연결 오류가 발생했습니다.", status_code=500
            ) from e

        text = _first_message_content(response)
        if not text:
            raise GenerationError("EMPTY_RESPONSE", "응답이 비어있습니다", status_code=500)
        return parse_json_object(text)

    async def analyze_image(self, prompt: str, image: ImageInput) -> GenerationResult:
        """이미지 분석 (JSON 모드, temperature 0.2). 원문 텍스트 반환."""
        content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": image.to_data_url()}},
        ]
        try:
            response = await self._call_with_retry(
                self._get_client().chat.completions.create,
                model=self.analyze_model,
                messages=[{"role": "user", "content": content}],
                max_tokens=2000,
                temperature=0.2,
                response_format={"type": "json_object"},
            )
        except APIStatusError as e:
            raise self._to_generation_error(e) from e
        except (APIConnectionError, APITimeoutError) as e:
            raise GenerationError(
                "CONNECTION_ERROR", "네트워크 연결 오류가 발생했습니다.", status_code=500
            ) from e

        return GenerationResult(
            text=_first_message_content(response),
            provider=self.name,
            model_requested=self.analyze_model,
            model_used=getattr(response, "model", None) or self.analyze_model,
            usage=_extract_usage(response),
            model_params=LLMCallParams(temperature=0.2, max_tokens=2000, json_mode=True).to_dict(),
        )

    # =========================================================================
    # Embedding
    # =========================================================================

    async def embed(self, text: str) -> list[float]:
        """text-embedding-3-small. 입력은 8000자로 자름."""
        try:
            response = await self._call_with_retry(
                self._get_client().embeddings.create,
                model=self.embedding_model,
                input=text[:EMBEDDING_MAX_CHARS],
            )
        except (APIStatusError, APIConnectionError, APITimeoutError) as e:
            logger.error(f"Embedding failed: {e}")
            raise EmbeddingError("EMBEDDING_FAILED", "임베딩 생성에 실패했습니다", status_code=500) from e

        if not response.data:
            raise EmbeddingError("EMBEDDING_FAILED", "임베딩 결과가 비어있습니다", status_code=500)
        return list(response.data[0].embedding)

    # =========================================================================
    # Image Generation
    # =========================================================================

    async def generate_image(
        self,
        prompt: str,
        model: str = "gpt-image-1",
        **kwargs: Any,
    ) -> ImageGenerationResult:
        """
        이미지 생성.

        모델별 파라미터:
        - dall-e-3: size, quality
        - dall-e-2: size (256/512/1024 정사각형만, 그 외 1024x1024)
        - gpt-image-1: 기본 파라미터만
        """
        params = build_image_params(
            prompt,
            model,
            size=kwargs.get("size", "1024x1024"),
            quality=kwargs.get("quality", "standard"),
        )

        try:
            response = await self._get_client().images.generate(**params)
        except APIStatusError as e:
            raise _map_image_status_error(e) from e
        except (APIConnectionError, APITimeoutError) as e:
            raise ImageGenerationError(
                "IMAGE_FAILED", "이미지 생성 중 오류가 발생했습니다", status_code=500
            ) from e

        image = response.data[0] if response.data else None
        b64_json = getattr(image, "b64_json", None) if image else None
        url = getattr(image, "url", None) if image else None

        image_url = f"data:image/png;base64,{b64_json}" if b64_json else url
        if not image_url:
            raise ImageGenerationError("IMAGE_EMPTY", "이미지 생성에 실패했습니다", status_code=500)

        return ImageGenerationResult(
            image_url=image_url,
            model=params["model"],
            revised_prompt=getattr(image, "revised_prompt", None),
        )

    def _to_generation_error(
        self,
        error: APIStatusError,
        default_status: int = 400,
    ) -> GenerationError:
        message = _status_error_message(error)
        if isinstance(error, AuthenticationError):
            return GenerationError(
                "INVALID_API_KEY", "유효하지 않은 API 키입니다", status_code=401
            )
        if isinstance(error, RateLimitError):
            return GenerationError(
                "RATE_LIMITED",
                "API 요청 한도를 초과했습니다. 잠시 후 다시 시도해주세요.",
                status_code=429,
            )
        logger.error(f"OpenAI API error ({error.status_code}): {message}")
        return GenerationError("OPENAI_API_ERROR", message, status_code=default_status)


# =============================================================================
# Helpers
# =============================================================================


def remove_thinking_blocks(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    이전 대화에서 thinking/redacted_thinking 블록 제거.

    - content가 리스트면 해당 타입 파트만 제거
    - 제거 후 content가 비면 메시지 자체를 버림
    """
    cleaned: list[dict[str, Any]] = []
    for message in messages:
        content = message.get("content")
        if isinstance(content, list):
            parts = [
                part for part in content
                if not (isinstance(part, dict) and part.get("type") in THINKING_BLOCK_TYPES)
            ]
            if not parts:
                continue
            cleaned.append({**message, "content": parts})
        else:
            cleaned.append(dict(message))
    return cleaned


def build_chat_messages(
    prompt: str,
    images: list[ImageInput] | None = None,
    previous_messages: list[dict[str, Any]] | None = None,
    rag_context: str | None = None,
) -> list[dict[str, Any]]:
    """chat.completions용 메시지 배열 구성."""
    content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
    for image in images or []:
        content.append({"type": "image_url", "image_url": {"url": image.to_data_url()}})

    system_message = (
        {"role": "system", "content": RAG_SYSTEM_TEMPLATE.format(rag_context=rag_context)}
        if rag_context
        else None
    )

    messages = remove_thinking_blocks(previous_messages or [])
    if system_message and not any(m.get("role") == "system" for m in messages):
        messages.insert(0, system_message)
    messages.append({"role": "user", "content": content})
    return messages


def build_image_params(
    prompt: str,
    model: str,
    size: str = "1024x1024",
    quality: str = "standard",
) -> dict[str, Any]:
    """모델별 images.generate 파라미터. 알 수 없는 모델은 gpt-image-1."""
    selected = model if model in IMAGE_MODELS else "gpt-image-1"
    params: dict[str, Any] = {"model": selected, "prompt": prompt, "n": 1}

    if selected == "dall-e-3":
        params["size"] = size
        params["quality"] = quality
    elif selected == "dall-e-2":
        params["size"] = size if size in DALLE2_SIZES else "1024x1024"

    return params


def _map_image_status_error(error: APIStatusError) -> ImageGenerationError:
    if error.status_code == 401:
        return ImageGenerationError("INVALID_API_KEY", "유효하지 않은 API 키입니다", status_code=401)
    if error.status_code == 429:
        return ImageGenerationError(
            "RATE_LIMITED",
            "API 요청 한도를 초과했습니다. 잠시 후 다시 시도해주세요.",
            status_code=429,
        )
    if error.status_code == 400:
        return ImageGenerationError(
            "CONTENT_POLICY",
            "프롬프트가 콘텐츠 정책을 위반했습니다. 다른 프롬프트를 시도해주세요.",
            status_code=400,
        )
    return ImageGenerationError(
        "IMAGE_FAILED", _status_error_message(error), status_code=error.status_code or 500
    )


def _status_error_message(error: APIStatusError) -> str:
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error") if isinstance(body.get("error"), dict) else body
        if inner.get("message"):
            return str(inner["message"])
    return str(getattr(error, "message", None) or error)


def _first_message_content(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    return choices[0].message.content or ""


def _extract_usage(response: Any) -> TokenUsage | None:
    usage = getattr(response, "usage", None)
    if usage is None:
        return None
    return TokenUsage(
        prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
        output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
        total_tokens=int(getattr(usage, "total_tokens", 0) or 0),
    )
