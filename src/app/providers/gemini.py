"""
Google Gemini Provider (REST, 요청별 API 키).

Fallback 예외 정책 (google.api_core 예외 계층 사용):
- FALLBACK_ERRORS: NotFound, TooManyRequests(ResourceExhausted), 5xx, 타임아웃 → 다음 모델
- REJECT_IMMEDIATELY: BadRequest(InvalidArgument), Unauthorized, Forbidden → 즉시 실패

HTTP 응답 코드는 google.api_core.exceptions.from_http_status로 예외 변환.
"""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from google.api_core.exceptions import (
    BadRequest,
    DeadlineExceeded,
    Forbidden,
    GatewayTimeout,
    GoogleAPICallError,
    NotFound,
    ServerError,
    ServiceUnavailable,
    TooManyRequests,
    Unauthorized,
    from_http_status,
)

from src.utils.retry import RetryableError, retry_with_linear_backoff

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

# =============================================================================
# Exception Mapping
# =============================================================================

# 다음 모델로 넘어가는 예외
FALLBACK_ERRORS: tuple[type[Exception], ...] = (
    NotFound,          # 모델명 오류/미지원
    TooManyRequests,   # 429 쿼터/레이트리밋 (ResourceExhausted 포함)
    ServerError,       # 5xx
    GatewayTimeout,    # 504, DeadlineExceeded 포함
)

# 즉시 실패하는 예외
REJECT_IMMEDIATELY: tuple[type[Exception], ...] = (
    BadRequest,        # 입력 오류, 잘못된 API 키
    Unauthorized,      # 인증 오류
    Forbidden,         # 권한 오류
)

# =============================================================================
# Models
# =============================================================================

DEFAULT_TEXT_MODELS = (
    "gemini-1.5-flash",
    "gemini-1.5-flash-latest",
    "gemini-2.0-flash-lite",
)
DEFAULT_KEYWORD_MODEL = "gemini-2.5-flash"
DEFAULT_EMBEDDING_MODEL = "models/text-embedding-004"

IMAGEN_MODELS = (
    "imagen-3.0-generate-002",
    "imagen-3.0-generate-001",
    "imagen-3.0-fast-generate-001",
)
GEMINI_IMAGE_MODELS = ("gemini-2.5-flash-image",)

IMAGE_PROMPT_PREFIX = (
    "Generate a high-quality, professional photograph based on this description. "
    "Create a realistic image suitable for a blog post.\n\nDescription: "
)

BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(LLMProvider):
    """
    Gemini Provider.

    Usage:
        provider = GeminiProvider(api_key=user_key)
        result = await provider.generate(prompt, images)
        print(result.model_used, result.fallback_triggered)
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        models: tuple[str, ...] | list[str] = DEFAULT_TEXT_MODELS,
        keyword_model: str = DEFAULT_KEYWORD_MODEL,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        temperature: float = 0.8,
        max_output_tokens: int = 8192,
        retry_attempts: int = 3,
        retry_step_delay: float = 3.0,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            api_key: 요청 키 (없으면 GEMINI_API_KEY > GOOGLE_API_KEY)
            models: 글 생성 fallback 체인 (config에서 주입)
            keyword_model: 키워드 JSON 생성 모델
            embedding_model: 임베딩 모델
            temperature: 글 생성 온도
            max_output_tokens: 글 생성 최대 토큰
            retry_attempts: 429 재시도 총 시도 횟수
            retry_step_delay: 재시도 대기 단위(초)
            timeout: HTTP 타임아웃(초)
            http_client: 주입용 httpx 클라이언트 (테스트)
            sleep: 대기 함수 (테스트)

        Raises:
            GenerationError: API 키가 없을 때 (fail-fast)
        """
        self.api_key = (
            api_key
            or os.environ.get("GEMINI_API_KEY")
            or os.environ.get("GOOGLE_API_KEY")
        )
        if not self.api_key:
            raise GenerationError(
                "GEMINI_KEY_MISSING",
                "GEMINI_API_KEY 환경변수가 설정되지 않았습니다",
                status_code=400,
            )

        if not models:
            raise ValueError("models must not be empty")

        self.models = tuple(models)
        self.keyword_model = keyword_model
        self.embedding_model = embedding_model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.retry_attempts = retry_attempts
        self.retry_step_delay = retry_step_delay
        self.timeout = timeout
        self._client = http_client
        self._sleep = sleep

    def _get_client(self) -> httpx.AsyncClient:
        """httpx 클라이언트 (lazy init)."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Text Generation (모델 fallback 체인)
    # =========================================================================

    async def generate(
        self,
        prompt: str,
        images: list[ImageInput] | None = None,
        **kwargs: Any,
    ) -> GenerationResult:
        """
        모델 체인을 순서대로 시도.

        - FALLBACK_ERRORS / 빈 응답 → 다음 모델
        - REJECT_IMMEDIATELY → 즉시 GenerationError
        - 체인 소진 → GenerationError("ALL_MODELS_FAILED", "생성 실패: {마지막 에러}")
        """
        temperature = kwargs.get("temperature", self.temperature)
        max_output_tokens = kwargs.get("max_output_tokens", self.max_output_tokens)
        params = LLMCallParams(temperature=temperature, max_tokens=max_output_tokens)

        payload: dict[str, Any] = {"contents": [self._build_content(prompt, images)]}
        if temperature is not None:
            payload["generationConfig"] = {
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens,
            }

        model_requested = self.models[0]
        last_error = ""

        for model in self.models:
            try:
                data = await self._post(f"models/{model}:generateContent", payload)
            except REJECT_IMMEDIATELY as e:
                logger.error(f"Gemini {model} rejected request: {e}")
                raise GenerationError(
                    "AUTH_OR_INPUT_ERROR",
                    self._get_user_friendly_error_message(e),
                    status_code=self._status_for(e),
                    model=model,
                ) from e
            except FALLBACK_ERRORS as e:
                last_error = _error_text(e)
                # 쿼터 에러는 모델마다 반복되므로 warning 한 줄만
                if "quota" in last_error.lower():
                    logger.warning(f"Gemini {model} quota exceeded, trying next model")
                else:
                    logger.warning(f"Gemini {model} failed: {last_error}. Trying next model")
                continue
            except GoogleAPICallError as e:
                last_error = _error_text(e)
                logger.warning(f"Gemini {model} unexpected API error: {last_error}")
                continue

            text = _extract_text(data)
            if not text:
                last_error = "응답이 비어있습니다"
                logger.warning(f"Gemini {model} returned empty text")
                continue

            if model != model_requested:
                logger.info(f"Fallback model succeeded: {model}")

            return GenerationResult(
                text=text,
                provider=self.name,
                model_requested=model_requested,
                model_used=model,
                fallback_triggered=model != model_requested,
                usage=_extract_usage(data),
                model_params=params.to_dict(),
                prompt_hash=compute_hash(prompt),
            )

        raise GenerationError(
            "ALL_MODELS_FAILED",
            f"생성 실패: {last_error}",
            status_code=400,
            models=list(self.models),
        )

    async def analyze_image(self, prompt: str, image: ImageInput) -> GenerationResult:
        """이미지 분석 (자유 텍스트). 기본 generationConfig 사용."""
        return await self.generate(prompt, [image], temperature=None)

    # =========================================================================
    # JSON (429 선형 백오프 재시도)
    # =========================================================================

    async def complete_json(
        self,
        prompt: str,
        system: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        키워드 모델로 JSON 객체 요청.

        재시도 정책:
        - 429 / quota / rate → attempt * retry_step_delay 대기 후 재시도
        - 그 외 에러, 빈 응답, JSON 파싱 실패 → 즉시 실패
        """
        full_prompt = f"{system}\n\n{prompt}" if system else prompt
        payload = {
            "contents": [{"parts": [{"text": full_prompt}]}],
            "generationConfig": {
                "temperature": kwargs.get("temperature", 0.9),
                "maxOutputTokens": kwargs.get("max_output_tokens", 1024),
            },
        }
        model = kwargs.get("model", self.keyword_model)

        async def attempt() -> dict[str, Any]:
            try:
                data = await self._post(f"models/{model}:generateContent", payload)
            except TooManyRequests as e:
                raise RetryableError("API 요청 한도 초과") from e
            except GoogleAPICallError as e:
                message = _error_text(e)
                if "quota" in message or "rate" in message:
                    raise RetryableError(message) from e
                raise GenerationError(
                    "JSON_GENERATION_FAILED",
                    message,
                    status_code=500,
                    model=model,
                ) from e

            text = _extract_text(data)
            if not text:
                raise GenerationError(
                    "EMPTY_RESPONSE", "응답이 비어있습니다", status_code=500
                )
            return parse_json_object(text)

        try:
            return await retry_with_linear_backoff(
                attempt,
                max_attempts=self.retry_attempts,
                step_delay=self.retry_step_delay,
                sleep=self._sleep,
            )
        except RetryableError as e:
            raise GenerationError(
                "RATE_LIMITED", str(e), status_code=429, model=model
            ) from e

    # =========================================================================
    # Embedding
    # =========================================================================

    async def embed(self, text: str) -> list[float]:
        """text-embedding-004 임베딩."""
        payload = {
            "model": self.embedding_model,
            "content": {"parts": [{"text": text}]},
        }
        try:
            data = await self._post(f"{self.embedding_model}:embedContent", payload)
        except GoogleAPICallError as e:
            raise EmbeddingError(
                "EMBEDDING_FAILED",
                self._get_user_friendly_error_message(e),
                status_code=500,
            ) from e

        values = (data.get("embedding") or {}).get("values")
        if not values:
            raise EmbeddingError("EMBEDDING_FAILED", "임베딩 결과가 비어있습니다", status_code=500)
        return [float(v) for v in values]

    # =========================================================================
    # Image Generation
    # =========================================================================

    async def generate_image(
        self,
        prompt: str,
        model: str = GEMINI_IMAGE_MODELS[0],
        **kwargs: Any,
    ) -> ImageGenerationResult:
        """
        Imagen(:predict) 또는 Gemini 이미지 모델(:generateContent).

        Raises:
            ImageGenerationError: 키(401), 한도(429), 안전 정책(400),
                미지원 모델(400), 그 외(500)
        """
        try:
            if model in IMAGEN_MODELS:
                image_url = await self._generate_with_imagen(prompt, model)
            else:
                image_url = await self._generate_with_gemini(prompt, model)
        except GoogleAPICallError as e:
            raise map_image_error(_error_text(e)) from e

        return ImageGenerationResult(image_url=image_url, model=model, revised_prompt=prompt)

    async def _generate_with_imagen(self, prompt: str, model: str) -> str:
        payload = {
            "instances": [{"prompt": IMAGE_PROMPT_PREFIX + prompt}],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": "1:1",
                "personGeneration": "allow_adult",
            },
        }
        data = await self._post(f"models/{model}:predict", payload)

        predictions = data.get("predictions") or []
        if not predictions:
            raise ImageGenerationError(
                "IMAGE_EMPTY", "Imagen 이미지 생성에 실패했습니다", status_code=500
            )

        image_base64 = predictions[0].get("bytesBase64Encoded")
        if not image_base64:
            raise ImageGenerationError(
                "IMAGE_EMPTY", "이미지 데이터를 찾을 수 없습니다", status_code=500
            )
        return f"data:image/png;base64,{image_base64}"

    async def _generate_with_gemini(self, prompt: str, model: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": IMAGE_PROMPT_PREFIX + prompt}]}],
            "generationConfig": {"responseModalities": ["IMAGE", "TEXT"]},
        }
        data = await self._post(f"models/{model}:generateContent", payload)

        for part in _first_candidate_parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return f"data:{mime_type};base64,{inline['data']}"

        raise ImageGenerationError(
            "IMAGE_EMPTY",
            "이미지를 생성할 수 없습니다. Gemini 모델이 이미지 생성을 지원하지 않을 수 있습니다.",
            status_code=500,
        )

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Gemini REST 호출.

        Raises:
            GoogleAPICallError: HTTP 에러 (상태코드별 하위 클래스)
        """
        url = f"{BASE_URL}/{path}"
        try:
            response = await self._get_client().post(
                url,
                params={"key": self.api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise DeadlineExceeded(f"요청 시간 초과: {e}") from e
        except httpx.TransportError as e:
            raise ServiceUnavailable(f"connection error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            raise from_http_status(
                response.status_code,
                _body_error_message(data) or f"Gemini API 오류 ({response.status_code})",
            )

        # 200 응답 본문에 error가 실려 오는 경우
        if isinstance(data, dict) and data.get("error"):
            code = int(data["error"].get("code") or 500)
            raise from_http_status(code, _body_error_message(data))

        return data if isinstance(data, dict) else {}

    def _build_content(self, prompt: str, images: list[ImageInput] | None) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": prompt}]
        for image in images or []:
            parts.append({"inline_data": {"mime_type": image.mime_type, "data": image.data}})
        return {"parts": parts}

    def _status_for(self, error: Exception) -> int:
        if isinstance(error, Unauthorized | Forbidden):
            return 401
        message = _error_text(error).lower()
        if "api key" in message or "api_key" in message:
            return 401
        return 400

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """사용자 친화적인 에러 메시지 생성."""
        message = _error_text(error)
        lowered = message.lower()

        if isinstance(error, Unauthorized) or "api key" in lowered or "api_key" in lowered:
            return "유효하지 않은 API 키입니다. API 키를 확인해주세요."
        if isinstance(error, Forbidden):
            return "이 작업을 수행할 권한이 없습니다. API 키의 권한을 확인해주세요."
        if isinstance(error, TooManyRequests) or "quota" in lowered:
            return "API 사용량 한도를 초과했습니다. 잠시 후 다시 시도해주세요."
        if isinstance(error, ServiceUnavailable):
            return "Gemini 서비스를 일시적으로 사용할 수 없습니다. 잠시 후 다시 시도해주세요."
        if isinstance(error, GatewayTimeout):
            return "요청 시간이 초과되었습니다. 다시 시도해주세요."
        if isinstance(error, BadRequest):
            return f"요청 형식이 올바르지 않습니다: {message}"

        return f"Gemini 처리 중 오류가 발생했습니다: {message}"


# =============================================================================
# Helpers
# =============================================================================


def map_image_error(message: str) -> ImageGenerationError:
    """이미지 생성 에러 메시지 → 사용자용 ImageGenerationError."""
    if "API key" in message or "API_KEY" in message:
        return ImageGenerationError("INVALID_API_KEY", "유효하지 않은 API 키입니다", status_code=401)
    if "quota" in message or "rate" in message or "RESOURCE_EXHAUSTED" in message:
        return ImageGenerationError(
            "RATE_LIMITED",
            "API 요청 한도를 초과했습니다. 잠시 후 다시 시도해주세요.",
            status_code=429,
        )
    if "safety" in message or "blocked" in message or "SAFETY" in message:
        return ImageGenerationError(
            "SAFETY_BLOCKED",
            "콘텐츠 정책으로 인해 이미지를 생성할 수 없습니다. 다른 프롬프트를 시도해주세요.",
            status_code=400,
        )
    if "not supported" in message or "not found" in message or "NOT_FOUND" in message:
        return ImageGenerationError(
            "MODEL_NOT_SUPPORTED",
            "선택한 모델이 현재 지원되지 않습니다. 다른 모델을 선택해주세요.",
            status_code=400,
        )
    return ImageGenerationError("IMAGE_FAILED", message or "이미지 생성 중 오류가 발생했습니다", status_code=500)


def _error_text(error: Exception) -> str:
    message = getattr(error, "message", None)
    return str(message) if message else str(error)


def _body_error_message(data: Any) -> str:
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return str(data["error"].get("message") or data["error"])
    return ""


def _first_candidate_parts(data: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = data.get("candidates") or []
    if not candidates:
        return []
    return list((candidates[0].get("content") or {}).get("parts") or [])


def _extract_text(data: dict[str, Any]) -> str:
    for part in _first_candidate_parts(data):
        text = part.get("text")
        if text:
            return str(text)
    return ""


def _extract_usage(data: dict[str, Any]) -> TokenUsage | None:
    meta = data.get("usageMetadata")
    if not meta:
        return None
    return TokenUsage(
        prompt_tokens=int(meta.get("promptTokenCount") or 0),
        output_tokens=int(meta.get("candidatesTokenCount") or 0),
        total_tokens=int(meta.get("totalTokenCount") or 0),
    )
