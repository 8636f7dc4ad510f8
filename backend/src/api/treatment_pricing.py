"""
Treatment pricing API endpoints.

Stateless wrappers around the pricing engine: the client sends the whole order
as it currently stands and gets back the recomputed snapshot. Commission rules
are read from the rule store on every request.
"""

import logging
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.responses import (
    FinalizedOrderResponse,
    PricingSnapshotResponse,
    build_finalized_response,
    build_snapshot_response,
)
from core.database import get_db
from services.commission_rule_service import CommissionRuleService
from services.pricing_errors import (
    VoucherConflictError,
    VoucherRejectedError,
    VoucherServiceError,
)
from services.pricing_types import (
    MedicationSelection,
    OrderInputs,
    PaymentInfo,
    Practitioner,
    ProcedureSelection,
)
from services.treatment_pricing_engine import OrderSession
from services.voucher_client import VoucherValidationClient, get_voucher_validator

logger = logging.getLogger(__name__)

router = APIRouter()


# Request Models
class PractitionerRequest(BaseModel):
    """Practitioner performing the procedures."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class ProcedureRequest(BaseModel):
    """Selected procedure with its per-item discount."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category: Optional[str] = None
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(1)
    discount_value: Decimal = Field(Decimal("0"))
    discount_type: Literal["percentage", "fixed_amount"] = Field("percentage")


class MedicationRequest(BaseModel):
    """Selected medication."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(1)
    available_stock: Optional[int] = Field(None, description="Stock reported by the medication catalog")


class PaymentRequest(BaseModel):
    """Payment terms."""
    payment_status: Literal["paid_in_full", "down_payment"] = Field("paid_in_full")
    down_payment_amount: Decimal = Field(Decimal("0"))


class OrderPricingRequest(BaseModel):
    """Complete order as currently composed."""
    subject_id: Optional[str] = Field(None, description="Patient the order is for")
    practitioner: Optional[PractitionerRequest] = None
    procedures: List[ProcedureRequest] = Field(default_factory=list)
    medications: List[MedicationRequest] = Field(default_factory=list)
    administrative_fee_override: Optional[Decimal] = None
    manual_percentage: Optional[Decimal] = None
    multi_rule_commission: Optional[Decimal] = Field(
        None, description="Total commission apportioned by the multi-rule calculator; bypasses rule matching"
    )
    voucher_code: Optional[str] = Field(
        None, description="Voucher applied to the order; validated with the voucher service on every request"
    )
    payment: PaymentRequest = Field(default_factory=PaymentRequest)


class ApplyVoucherRequest(OrderPricingRequest):
    """Order plus the voucher code to validate."""
    voucher_code: str = Field(..., min_length=1)


def _to_order_inputs(request: OrderPricingRequest) -> OrderInputs:
    """Translate the request body into engine inputs, without any voucher."""
    return OrderInputs(
        subject_id=request.subject_id,
        practitioner=Practitioner(**request.practitioner.model_dump()) if request.practitioner else None,
        procedures=[ProcedureSelection(**p.model_dump()) for p in request.procedures],
        medications=[MedicationSelection(**m.model_dump()) for m in request.medications],
        administrative_fee_override=request.administrative_fee_override,
        manual_percentage=request.manual_percentage,
        multi_rule_commission=request.multi_rule_commission,
        voucher=None,
        payment=PaymentInfo(**request.payment.model_dump())
    )


async def _build_session(
    request: OrderPricingRequest,
    db: Session,
    validator: VoucherValidationClient
) -> OrderSession:
    """
    Build an order session from the request body.

    Voucher amounts never come from the client. When the order names a
    voucher code, it is validated against the current totals before the
    session is returned.

    Raises:
        VoucherConflictError: If the voucher is combined with manual discounts
        VoucherRejectedError: If the voucher service rejected the code
        VoucherServiceError: If the voucher service could not be reached
    """
    rules = CommissionRuleService.list_canonical_rules(db)
    session = OrderSession(rules, inputs=_to_order_inputs(request))
    if request.voucher_code and request.voucher_code.strip():
        snapshot = await session.apply_voucher(request.voucher_code, validator.validate)
        if snapshot is None:
            raise HTTPException(
                status_code=http_status.HTTP_409_CONFLICT,
                detail="Voucher request was superseded"
            )
    return session


@router.post("/preview", summary="Recompute order pricing", response_model=PricingSnapshotResponse)
async def preview_pricing(
    request: OrderPricingRequest,
    db: Session = Depends(get_db),
    validator: VoucherValidationClient = Depends(get_voucher_validator)
) -> PricingSnapshotResponse:
    """
    Recompute line items, totals and the practitioner commission for an order.

    Safe to call after every change; the result depends only on the request
    body, the configured commission rules and, when a voucher code is given,
    the voucher service.
    """
    try:
        session = await _build_session(request, db, validator)
        return build_snapshot_response(session.snapshot)
    except VoucherConflictError as e:
        raise HTTPException(status_code=http_status.HTTP_409_CONFLICT, detail=str(e))
    except VoucherServiceError as e:
        logger.warning(f"Voucher validation failed: {e}")
        raise HTTPException(status_code=http_status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to compute pricing preview: {e}")
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute pricing"
        )


@router.post("/voucher", summary="Apply a voucher to an order", response_model=PricingSnapshotResponse)
async def apply_voucher(
    request: ApplyVoucherRequest,
    db: Session = Depends(get_db),
    validator: VoucherValidationClient = Depends(get_voucher_validator)
) -> PricingSnapshotResponse:
    """
    Validate a voucher code against the order and return the voucher-adjusted pricing.

    Refused with 409 while any procedure carries a manual discount.
    """
    try:
        session = await _build_session(request, db, validator)
        return build_snapshot_response(session.snapshot)
    except VoucherConflictError as e:
        raise HTTPException(status_code=http_status.HTTP_409_CONFLICT, detail=str(e))
    except VoucherRejectedError as e:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))
    except VoucherServiceError as e:
        logger.warning(f"Voucher validation failed: {e}")
        raise HTTPException(status_code=http_status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to apply voucher: {e}")
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to apply voucher"
        )


@router.post("/finalize", summary="Finalize an order", response_model=FinalizedOrderResponse)
async def finalize_order(
    request: OrderPricingRequest,
    db: Session = Depends(get_db),
    validator: VoucherValidationClient = Depends(get_voucher_validator)
) -> FinalizedOrderResponse:
    """
    Produce the finalized order payload (line items, totals, commission,
    voucher and payment) for persistence and invoice rendering.

    A voucher code in the body is re-validated against the final totals, so
    the grand total always reflects what the voucher service approved.
    """
    try:
        session = await _build_session(request, db, validator)
        order = session.finalize()
        logger.info(
            f"Finalized order for practitioner {order['practitioner']['id'] if order['practitioner'] else None}: "
            f"grand total {order['totals']['grand_total']}, commission {order['commission']['commission_amount']}"
        )
        return build_finalized_response(order)
    except VoucherConflictError as e:
        raise HTTPException(status_code=http_status.HTTP_409_CONFLICT, detail=str(e))
    except VoucherServiceError as e:
        logger.warning(f"Voucher validation failed: {e}")
        raise HTTPException(status_code=http_status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to finalize order: {e}")
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to finalize order"
        )
