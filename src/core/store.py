"""
Firestore 접근: firebase-admin 초기화 + 경로 헬퍼.

규칙:
- 초기화 실패 시 None 반환 → 호출부에서 "DB 미초기화"로 거절
- 자격 증명: FIREBASE_CREDENTIALS (서비스 계정 JSON 경로) > 기본 자격 증명
- 경로는 슬래시 문자열 ("users/{uid}/subscription/current")
"""

import logging
import os
import threading
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()


def get_firebase_app() -> Any:
    """
    firebase-admin 기본 앱 (lazy init).

    Returns:
        firebase_admin.App

    Raises:
        ValueError: 자격 증명 파일 형식 오류
        FileNotFoundError: FIREBASE_CREDENTIALS 경로에 파일 없음
    """
    with _init_lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            pass

        credentials_path = os.environ.get("FIREBASE_CREDENTIALS")
        if credentials_path:
            cred = credentials.Certificate(credentials_path)
            logger.info("Initializing firebase-admin with service account file")
            return firebase_admin.initialize_app(cred)

        logger.info("Initializing firebase-admin with default credentials")
        return firebase_admin.initialize_app()


def get_firestore_client() -> Any | None:
    """
    Firestore 클라이언트.

    Returns:
        firestore.Client 또는 None (초기화 실패)
    """
    try:
        app = get_firebase_app()
        return firestore.client(app)
    except Exception as e:
        logger.error(f"Firestore initialization failed: {e}", exc_info=True)
        return None


def document(db: Any, path: str) -> Any:
    """
    슬래시 경로 → DocumentReference.

    Raises:
        ValueError: 세그먼트 수가 짝수가 아닐 때 (컬렉션 경로)
    """
    segments = [s for s in path.split("/") if s]
    if not segments or len(segments) % 2 != 0:
        raise ValueError(f"Not a document path: {path!r}")
    return db.document(*segments)


def collection(db: Any, path: str) -> Any:
    """
    슬래시 경로 → CollectionReference.

    Raises:
        ValueError: 세그먼트 수가 홀수가 아닐 때 (문서 경로)
    """
    segments = [s for s in path.split("/") if s]
    if not segments or len(segments) % 2 != 1:
        raise ValueError(f"Not a collection path: {path!r}")
    return db.collection(*segments)
