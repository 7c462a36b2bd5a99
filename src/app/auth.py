"""
API 요청 인증.

순서:
1. Authorization: Bearer <Firebase ID 토큰> → firebase-admin 검증
2. 검증 실패/헤더 없음 → body의 userId (개발 환경 호환)
3. 둘 다 없으면 401
"""

import asyncio
import logging
from typing import Any

from fastapi import HTTPException, Request
from firebase_admin import auth

from src.core.store import get_firebase_app
from src.domain.errors import ErrorCodes, PolicyRejectError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def verify_token(token: str) -> str | None:
    """
    Firebase ID 토큰 검증.

    Returns:
        uid 또는 None (검증 실패)
    """
    try:
        decoded = auth.verify_id_token(token, app=get_firebase_app())
    except (
        ValueError,
        FileNotFoundError,
        auth.InvalidIdTokenError,
        auth.CertificateFetchError,
        auth.UserDisabledError,
    ) as e:
        logger.warning(f"ID token verification failed: {e}")
        return None
    return decoded.get("uid")


async def authenticate_request(request: Request, body: dict[str, Any] | None = None) -> str:
    """
    요청 사용자 ID.

    Raises:
        HTTPException: 401 인증 필요
    """
    header = request.headers.get("Authorization", "")
    if header.startswith(BEARER_PREFIX):
        uid = await asyncio.to_thread(verify_token, header[len(BEARER_PREFIX):])
        if uid:
            return uid

    user_id = (body or {}).get("userId")
    if user_id:
        return str(user_id)

    error = PolicyRejectError(ErrorCodes.UNAUTHORIZED)
    raise HTTPException(status_code=error.status_code, detail=error.to_dict())
