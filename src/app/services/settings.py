"""
사용자 설정: 업체 정보, 프리셋, AI API 키.

Firestore:
- users/{uid}/businessInfo/current
- users/{uid}/presets/{presetId}
- users/{uid}/settings/api

규칙:
- 프리셋 개수는 플랜 preset_limit까지 (-1 무제한, 관리자는 항상 허용)
- 한도 계산은 저장된 프리셋 문서 수 기준 (삭제하면 다시 저장 가능)
- DB 미초기화: 쓰기는 PolicyRejectError, 조회는 None/빈 값
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from firebase_admin import firestore

from src.app.providers.factory import PROVIDER_NAMES
from src.app.services.usage import UsageService, is_unlimited
from src.core.clock import now_utc
from src.core.ids import generate_preset_id
from src.core.store import collection, document
from src.domain.constants import (
    ADMIN_USER_ID,
    API_SETTINGS_DOC,
    BUSINESS_INFO_DOC,
    PLANS,
    PRESETS_COLLECTION,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import ApiSettings, BusinessInfo, Preset

logger = logging.getLogger(__name__)


class SettingsService:
    """
    업체 정보 / 프리셋 / API 키 저장소.

    Usage:
        settings = SettingsService(db)
        preset = settings.save_preset(uid, "강남점", {"businessName": "핏센터", ...})
        presets = settings.load_presets(uid)
    """

    def __init__(self, db: Any, clock: Callable[[], datetime] = now_utc):
        self.db = db
        self._clock = clock

    # =========================================================================
    # Business Info
    # =========================================================================

    def save_business_info(self, user_id: str, data: dict[str, Any]) -> BusinessInfo:
        """현재 업체 정보 덮어쓰기 (빈 값은 기본값으로)."""
        info = BusinessInfo.from_dict(data)
        self._business_ref(user_id).set({**info.to_dict(), "updatedAt": self._clock()})
        return info

    def load_business_info(self, user_id: str) -> BusinessInfo | None:
        if self.db is None:
            return None
        snapshot = self._business_ref(user_id).get()
        if not snapshot.exists:
            return None
        return BusinessInfo.from_dict(snapshot.to_dict() or {})

    # =========================================================================
    # Presets
    # =========================================================================

    def save_preset(self, user_id: str, name: str, data: dict[str, Any]) -> Preset:
        """
        새 프리셋 저장.

        Raises:
            PolicyRejectError: DB 미초기화 / 이름 누락 / 플랜 프리셋 한도 초과
        """
        name = (name or "").strip()
        if not name:
            raise PolicyRejectError(ErrorCodes.MISSING_PARAMS, message="프리셋 이름을 입력해주세요")

        self._check_preset_limit(user_id)

        now = self._clock()
        preset = Preset(
            id=generate_preset_id(),
            name=name,
            info=BusinessInfo.from_dict(data),
            created_at=now,
            updated_at=now,
        )
        self._preset_ref(user_id, preset.id).set(preset.to_dict())
        logger.info(f"Preset saved: user={user_id}, preset={preset.id}")
        return preset

    def load_presets(self, user_id: str) -> list[Preset]:
        """프리셋 목록 (최신순)."""
        if self.db is None:
            return []
        query = collection(self.db, PRESETS_COLLECTION.format(uid=user_id)).order_by(
            "createdAt", direction=firestore.Query.DESCENDING
        )
        return [
            Preset.from_dict({**(snap.to_dict() or {}), "id": snap.id})
            for snap in query.stream()
        ]

    def count_presets(self, user_id: str) -> int:
        if self.db is None:
            return 0
        return len(list(collection(self.db, PRESETS_COLLECTION.format(uid=user_id)).stream()))

    def delete_preset(self, user_id: str, preset_id: str) -> None:
        """
        Raises:
            PolicyRejectError: DB 미초기화 / 없는 프리셋
        """
        ref = self._preset_ref(user_id, preset_id)
        if not ref.get().exists:
            raise PolicyRejectError(ErrorCodes.PRESET_NOT_FOUND, preset_id=preset_id)
        ref.delete()
        logger.info(f"Preset deleted: user={user_id}, preset={preset_id}")

    def _check_preset_limit(self, user_id: str) -> None:
        self._require_db()
        if user_id == ADMIN_USER_ID:
            return

        subscription = UsageService(self.db, self._clock).get_subscription(user_id)
        if subscription is None:
            raise PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED)

        limit = PLANS[subscription.current_plan].preset_limit
        if is_unlimited(limit):
            return

        count = self.count_presets(user_id)
        if count >= limit:
            logger.warning(f"Preset rejected: user={user_id}, count={count}, limit={limit}")
            raise PolicyRejectError(
                ErrorCodes.PRESET_LIMIT_EXCEEDED,
                message=f"현재 플랜에서는 프리셋을 최대 {limit}개까지 저장할 수 있습니다",
                limit=limit,
            )

    # =========================================================================
    # API Settings
    # =========================================================================

    def save_api_settings(self, user_id: str, api_provider: str, api_key: str) -> ApiSettings:
        """
        Raises:
            PolicyRejectError: DB 미초기화 / 지원하지 않는 제공자
        """
        if api_provider not in PROVIDER_NAMES:
            raise PolicyRejectError(ErrorCodes.INVALID_API_PROVIDER, api_provider=api_provider)

        settings = ApiSettings(api_provider=api_provider, api_key=(api_key or "").strip())
        self._api_ref(user_id).set({**settings.to_dict(), "updatedAt": self._clock()})
        logger.info(f"API settings saved: user={user_id}, provider={api_provider}")
        return settings

    def load_api_settings(self, user_id: str) -> ApiSettings | None:
        if self.db is None:
            return None
        snapshot = self._api_ref(user_id).get()
        if not snapshot.exists:
            return None
        return ApiSettings.from_dict(snapshot.to_dict() or {})

    # =========================================================================
    # Internal
    # =========================================================================

    def _require_db(self) -> Any:
        if self.db is None:
            raise PolicyRejectError(ErrorCodes.DB_NOT_INITIALIZED)
        return self.db

    def _business_ref(self, user_id: str) -> Any:
        return document(self._require_db(), BUSINESS_INFO_DOC.format(uid=user_id))

    def _preset_ref(self, user_id: str, preset_id: str) -> Any:
        return document(self._require_db(), f"{PRESETS_COLLECTION.format(uid=user_id)}/{preset_id}")

    def _api_ref(self, user_id: str) -> Any:
        return document(self._require_db(), API_SETTINGS_DOC.format(uid=user_id))
