"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uv run uvicorn src.app.main:app --reload
- 프로덕션: uv run uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
import yaml
from dotenv import load_dotenv
from fastapi import FastAPI

# Routes
from src.app.routes import (
    generate,
    images,
    keywords,
    learning,
    naver,
    payments,
    posts,
    rag,
    settings,
    teams,
    usage,
)
from src.app.routes.common import register_error_handlers
from src.app.services.learning import TopBlogLearner
from src.app.services.naver import NaverAdsClient, NaverSearchClient
from src.app.services.rag import RagService
from src.app.services.trending import TrendingService
from src.core.guards import IdempotencyGuard, RateLimiter

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드."""
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = Path(__file__).parent.parent.parent / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


def init_state(app: FastAPI, config: dict[str, Any], http_client: httpx.AsyncClient) -> None:
    """
    요청 간 공유 리소스를 app.state에 등록.

    - 결제 가드 (IP 빈도 제한, 멱등성)
    - 네이버/트렌드/학습 클라이언트 (http_client 공유)
    - Supabase 벡터 저장소
    Firestore(app.state.db)는 첫 요청 시 초기화.
    """
    payments_config = config.get("payments", {})
    window = payments_config.get("rate_limit_window", 60)
    app.state.config = config
    app.state.confirm_limiter = RateLimiter(payments_config.get("confirm_rate_limit", 10), window)
    app.state.cancel_limiter = RateLimiter(payments_config.get("cancel_rate_limit", 5), window)
    app.state.idempotency_guard = IdempotencyGuard(
        payments_config.get("idempotency_release_after", 5.0)
    )

    learning_config = config.get("learning", {})
    app.state.http_client = http_client
    app.state.naver = NaverSearchClient(http_client=http_client)
    app.state.naver_ads = NaverAdsClient(http_client=http_client)
    app.state.trending = TrendingService(http_client=http_client)
    app.state.learner = TopBlogLearner(
        app.state.naver,
        http_client=http_client,
        request_delay=learning_config.get("request_delay", 0.5),
    )
    app.state.rag = RagService()


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 공유 클라이언트 생성
    종료 시: HTTP 클라이언트 정리
    """
    # Startup
    config = load_config()
    timeout = config.get("naver", {}).get("timeout", 10.0)
    http_client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    init_state(app, config, http_client)
    logger.info("Application started")

    yield

    # Shutdown
    await http_client.aclose()


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Fitness Blog Booster",
    description="피트니스 업종 SEO 블로그 자동 생성 + 키워드 분석 + 구독 결제",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)


# =============================================================================
# Routes
# =============================================================================

app.include_router(generate.api_router, prefix="/api/generate", tags=["Generate API"])
app.include_router(keywords.api_router, prefix="/api/keywords", tags=["Keywords API"])
app.include_router(images.api_router, prefix="/api/images", tags=["Images API"])
app.include_router(naver.api_router, prefix="/api/naver", tags=["Naver API"])
app.include_router(learning.api_router, prefix="/api", tags=["Learning API"])
app.include_router(rag.api_router, prefix="/api/rag", tags=["RAG API"])
app.include_router(posts.api_router, prefix="/api/posts", tags=["Posts API"])
app.include_router(usage.api_router, prefix="/api/usage", tags=["Usage API"])
app.include_router(settings.api_router, prefix="/api/settings", tags=["Settings API"])
app.include_router(teams.api_router, prefix="/api/teams", tags=["Teams API"])
app.include_router(payments.api_router, prefix="/api/payment", tags=["Payment API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/")
async def root() -> dict[str, Any]:
    return {
        "message": "Fitness Blog Booster",
        "endpoints": {
            "generate": "/api/generate/{provider}",
            "generateTest": "/api/generate/test/{provider}",
            "keywords": "/api/keywords",
            "images": "/api/images",
            "naver": "/api/naver",
            "rag": "/api/rag",
            "posts": "/api/posts",
            "usage": "/api/usage",
            "settings": "/api/settings",
            "teams": "/api/teams",
            "payment": "/api/payment",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
