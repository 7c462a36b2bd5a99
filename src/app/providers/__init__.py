"""
AI Provider Abstraction.

Gemini/OpenAI 교체 가능하게 설계.
모델명은 default.yaml의 ai 섹션만 SSOT.
"""

from .base import (
    EmbeddingError,
    GenerationError,
    GenerationResult,
    ImageGenerationError,
    ImageGenerationResult,
    ImageInput,
    LLMProvider,
    ProviderError,
)
from .cleanup import clean_generated_text
from .factory import PROVIDER_NAMES, create_provider
from .gemini import GeminiProvider
from .openai import OpenAIProvider

__all__ = [
    "LLMProvider",
    "ProviderError",
    "GenerationError",
    "ImageGenerationError",
    "EmbeddingError",
    "GenerationResult",
    "ImageGenerationResult",
    "ImageInput",
    "GeminiProvider",
    "OpenAIProvider",
    "PROVIDER_NAMES",
    "create_provider",
    "clean_generated_text",
]
