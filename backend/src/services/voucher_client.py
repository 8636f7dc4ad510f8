"""
Client for the external voucher validation service.

The service owns voucher definitions (expiry, usage limits, minimum amounts)
and returns the discount and the combined final amount for an order. Retries
are left to the caller.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from core.config import VOUCHER_SERVICE_URL, VOUCHER_SERVICE_TIMEOUT_SECONDS
from core.constants import VOUCHER_VALIDATE_PATH
from services.pricing_errors import VoucherServiceError
from services.pricing_types import VoucherValidationRequest, VoucherValidationResult

logger = logging.getLogger(__name__)


class VoucherValidationClient:
    """Async HTTP client for voucher validation."""

    def __init__(
        self,
        base_url: str = VOUCHER_SERVICE_URL,
        timeout: float = VOUCHER_SERVICE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def _to_payload(request: VoucherValidationRequest) -> Dict[str, Any]:
        return {
            "code": request['code'],
            "totalAmount": float(request['total_amount']),
            "procedureOnlyAmount": float(request['procedure_only_amount']),
            "administrativeFee": float(request['administrative_fee']),
            "subjectId": request['subject_id'],
        }

    @staticmethod
    def _to_decimal(value: Any) -> Decimal:
        try:
            return Decimal(str(value if value is not None else 0))
        except InvalidOperation as e:
            raise VoucherServiceError(f"Invalid amount in voucher response: {value!r}") from e

    @staticmethod
    def _parse_response(data: Dict[str, Any]) -> VoucherValidationResult:
        return VoucherValidationResult(
            valid=bool(data.get("valid", False)),
            discount_amount=VoucherValidationClient._to_decimal(data.get("discountAmount")),
            final_amount=VoucherValidationClient._to_decimal(data.get("finalAmount")),
            message=data.get("message")
        )

    async def validate(self, request: VoucherValidationRequest) -> VoucherValidationResult:
        """
        Ask the voucher service whether a code applies to this order.

        Args:
            request: Validation request built by VoucherAdjuster.build_request

        Returns:
            VoucherValidationResult

        Raises:
            VoucherServiceError: On transport errors, non-2xx responses or malformed bodies
        """
        url = f"{self.base_url}{VOUCHER_VALIDATE_PATH}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=self._to_payload(request))
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Voucher service returned {e.response.status_code} for {request['code']}: {e.response.text}"
            )
            raise VoucherServiceError("Voucher service rejected the request") from e
        except httpx.HTTPError as e:
            logger.warning(f"Voucher service unreachable: {e}")
            raise VoucherServiceError("Voucher service is unavailable") from e
        except ValueError as e:
            raise VoucherServiceError("Voucher service returned an invalid response") from e

        if not isinstance(data, dict):
            raise VoucherServiceError("Voucher service returned an invalid response")

        return self._parse_response(data)


def get_voucher_validator() -> VoucherValidationClient:
    """FastAPI dependency providing the voucher validation client."""
    return VoucherValidationClient()
