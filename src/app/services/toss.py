"""
Toss Payments API 클라이언트 (승인/취소).

- 인증: Basic base64("{secret_key}:")
- 승인 요청은 Idempotency-Key 헤더 포함
- 2xx 외 응답 → TossAPIError (토스 status/code/message 그대로)
"""

import base64
import logging
import os
from typing import Any
from urllib.parse import quote

import httpx

from src.app.providers.base import ProviderError
from src.domain.errors import ErrorCodes, PolicyRejectError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.tosspayments.com"


class TossAPIError(ProviderError):
    """토스 API 에러 응답."""
    pass


class TossPaymentsClient:
    """
    Toss Payments 클라이언트.

    Usage:
        client = TossPaymentsClient()
        data = await client.confirm(payment_key, order_id, amount, idempotency_key)
    """

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Raises:
            PolicyRejectError: TOSS_SECRET_KEY 미설정 (SERVER_CONFIG_ERROR)
        """
        self.secret_key = secret_key or os.environ.get("TOSS_SECRET_KEY")
        if not self.secret_key:
            logger.error("TOSS_SECRET_KEY is not configured")
            raise PolicyRejectError(ErrorCodes.SERVER_CONFIG_ERROR)

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _auth_header(self) -> str:
        token = base64.b64encode(f"{self.secret_key}:".encode()).decode()
        return f"Basic {token}"

    async def confirm(
        self,
        payment_key: str,
        order_id: str,
        amount: int,
        idempotency_key: str,
    ) -> dict[str, Any]:
        """
        결제 승인.

        Raises:
            TossAPIError: 토스 에러 응답 (기본 코드 TOSS_API_ERROR)
        """
        return await self._post(
            "/v1/payments/confirm",
            {"paymentKey": payment_key, "orderId": order_id, "amount": amount},
            default_code=ErrorCodes.TOSS_API_ERROR,
            default_message="결제 승인 실패",
            idempotency_key=idempotency_key,
        )

    async def cancel(
        self,
        payment_key: str,
        reason: str,
        cancel_amount: int | None = None,
    ) -> dict[str, Any]:
        """
        결제 취소 (cancel_amount 지정 시 부분 취소).

        Raises:
            TossAPIError: 토스 에러 응답 (기본 코드 TOSS_CANCEL_ERROR)
        """
        body: dict[str, Any] = {"cancelReason": reason}
        if cancel_amount:
            body["cancelAmount"] = cancel_amount

        return await self._post(
            f"/v1/payments/{quote(payment_key, safe='')}/cancel",
            body,
            default_code=ErrorCodes.TOSS_CANCEL_ERROR,
            default_message="결제 취소 실패",
        )

    async def _post(
        self,
        path: str,
        body: dict[str, Any],
        default_code: str,
        default_message: str,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        headers = {
            "Authorization": self._auth_header(),
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        response = await self._get_client().post(
            f"{self.base_url}{path}", json=body, headers=headers
        )

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            logger.error(f"Toss API error ({response.status_code}): {data}")
            raise TossAPIError(
                data.get("code") or default_code,
                data.get("message") or default_message,
                status_code=response.status_code,
            )

        return data
