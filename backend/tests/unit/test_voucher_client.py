"""
Unit tests for the voucher validation client.

The HTTP layer is replaced with httpx.MockTransport.
"""
import json
import pytest
from decimal import Decimal

import httpx

from services.pricing_errors import VoucherServiceError
from services.pricing_types import VoucherValidationRequest
from services.voucher_client import VoucherValidationClient


@pytest.fixture
def request_body() -> VoucherValidationRequest:
    return VoucherValidationRequest(
        code="SAVE10",
        total_amount=Decimal('395000'),
        procedure_only_amount=Decimal('360000'),
        administrative_fee=Decimal('20000'),
        subject_id="patient-1"
    )


def client_for(handler) -> VoucherValidationClient:
    return VoucherValidationClient(base_url="http://vouchers.test/", transport=httpx.MockTransport(handler))


class TestVoucherValidationClient:
    """Test request encoding and response handling."""

    @pytest.mark.asyncio
    async def test_valid_voucher(self, request_body):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['url'] = str(request.url)
            seen['body'] = json.loads(request.content)
            return httpx.Response(200, json={"valid": True, "discountAmount": 36000, "finalAmount": 359000})

        result = await client_for(handler).validate(request_body)

        assert result['valid'] is True
        assert result['discount_amount'] == Decimal('36000')
        assert result['final_amount'] == Decimal('359000')
        assert seen['url'] == "http://vouchers.test/vouchers/validate"
        assert seen['body'] == {
            "code": "SAVE10",
            "totalAmount": 395000.0,
            "procedureOnlyAmount": 360000.0,
            "administrativeFee": 20000.0,
            "subjectId": "patient-1",
        }

    @pytest.mark.asyncio
    async def test_invalid_voucher(self, request_body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"valid": False, "message": "Voucher expired"})

        result = await client_for(handler).validate(request_body)

        assert result['valid'] is False
        assert result['message'] == "Voucher expired"
        assert result['discount_amount'] == Decimal('0')

    @pytest.mark.asyncio
    async def test_server_error(self, request_body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with pytest.raises(VoucherServiceError):
            await client_for(handler).validate(request_body)

    @pytest.mark.asyncio
    async def test_connection_error(self, request_body):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(VoucherServiceError, match="unavailable"):
            await client_for(handler).validate(request_body)

    @pytest.mark.asyncio
    async def test_malformed_body(self, request_body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        with pytest.raises(VoucherServiceError):
            await client_for(handler).validate(request_body)

    @pytest.mark.asyncio
    async def test_non_object_body(self, request_body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["valid"])

        with pytest.raises(VoucherServiceError):
            await client_for(handler).validate(request_body)

    @pytest.mark.asyncio
    async def test_bad_amount(self, request_body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"valid": True, "discountAmount": "lots", "finalAmount": 1})

        with pytest.raises(VoucherServiceError):
            await client_for(handler).validate(request_body)
