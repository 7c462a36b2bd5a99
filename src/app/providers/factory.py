"""
Provider 생성.

모델명/온도/재시도 설정은 default.yaml ai 섹션에서 주입.
"""

from typing import Any

from .base import GenerationError, LLMProvider
from .gemini import GeminiProvider
from .openai import OpenAIProvider

PROVIDER_NAMES = ("gemini", "openai")


def create_provider(
    name: str,
    api_key: str | None = None,
    config: dict[str, Any] | None = None,
) -> LLMProvider:
    """
    이름 → Provider 인스턴스.

    Args:
        name: "gemini" | "openai"
        api_key: 요청 키 (None이면 환경변수 사이트 키)
        config: 앱 설정 전체 (app.state.config)

    Raises:
        GenerationError: 지원하지 않는 provider, API 키 없음
    """
    ai_config = (config or {}).get("ai", {})

    if name == "gemini":
        gemini = ai_config.get("gemini", {})
        retry = ai_config.get("retry", {})
        kwargs: dict[str, Any] = {}
        if gemini.get("text_models"):
            kwargs["models"] = tuple(gemini["text_models"])
        for key in ("keyword_model", "embedding_model", "temperature", "max_output_tokens"):
            if key in gemini:
                kwargs[key] = gemini[key]
        if "max_attempts" in retry:
            kwargs["retry_attempts"] = retry["max_attempts"]
        if "step_delay" in retry:
            kwargs["retry_step_delay"] = retry["step_delay"]
        return GeminiProvider(api_key=api_key, **kwargs)

    if name == "openai":
        openai_config = ai_config.get("openai", {})
        kwargs = {
            key: openai_config[key]
            for key in (
                "text_model",
                "keyword_model",
                "analyze_model",
                "embedding_model",
                "temperature",
                "max_tokens",
            )
            if key in openai_config
        }
        return OpenAIProvider(api_key=api_key, **kwargs)

    raise GenerationError(
        "UNKNOWN_PROVIDER",
        f"지원하지 않는 AI 제공자입니다: {name}",
        status_code=400,
    )
