"""
FastAPI Routes.

API 라우트만 (JSON). 각 모듈의 api_router를 main.py에서 /api/... 로 등록.
"""

from . import (
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

__all__ = [
    "generate",
    "images",
    "keywords",
    "learning",
    "naver",
    "payments",
    "posts",
    "rag",
    "settings",
    "teams",
    "usage",
]
