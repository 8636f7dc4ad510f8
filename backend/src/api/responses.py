"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
Money is reported as floats rounded to 2 decimal places.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from models.commission_rule import CommissionRule
from services.commission_rule_service import CommissionRuleService
from services.pricing_types import (
    AppliedVoucher,
    FinalizedOrder,
    MedicationLineItem,
    OrderTotals,
    PaymentSummary,
    PricingSnapshot,
    ProcedureLineItem,
    ResolvedCommission,
)
from utils.datetime_utils import ensure_clinic_tz


def money(value: Decimal) -> float:
    """Round a Decimal amount for JSON output."""
    return float(value.quantize(Decimal('0.01')))


def optional_money(value: Optional[Decimal]) -> Optional[float]:
    return money(value) if value is not None else None


class ProcedureLineItemResponse(BaseModel):
    """Priced procedure line."""
    id: str
    name: str
    category: Optional[str] = None
    unit_price: float
    quantity: int
    discount_value: float
    discount_type: str
    subtotal_price: float
    discount_amount: float
    final_price: float


class MedicationLineItemResponse(BaseModel):
    """Priced medication line."""
    id: str
    name: str
    unit_price: float
    quantity: int
    total_price: float


class OrderTotalsResponse(BaseModel):
    """Aggregated order figures."""
    subtotal: float
    total_discount: float
    net_procedure_amount: float
    medication_cost: float
    administrative_fee: float
    amount_before_voucher: float
    voucher_discount: float
    grand_total: float


class ResolvedCommissionResponse(BaseModel):
    """Resolved practitioner commission."""
    rule_id: Optional[int] = None
    score: int
    match_type: Optional[str] = None
    percentage: Optional[float] = None  # None when no rule matched and nothing was entered manually
    commission_amount: float
    source: str
    is_multi_rule: bool


class AppliedVoucherResponse(BaseModel):
    """Voucher accepted by the validation service."""
    code: str
    discount_amount: float
    final_amount: float
    validated_procedure_amount: float
    validated_administrative_fee: float
    validated_total_amount: float


class PaymentSummaryResponse(BaseModel):
    """Payment terms with the outstanding balance."""
    payment_status: str
    down_payment_amount: float
    outstanding_amount: float


class PricingSnapshotResponse(BaseModel):
    """Complete pricing view of an order."""
    procedures: List[ProcedureLineItemResponse]
    medications: List[MedicationLineItemResponse]
    totals: OrderTotalsResponse
    commission: ResolvedCommissionResponse
    voucher: Optional[AppliedVoucherResponse] = None
    has_manual_discount: bool
    voucher_is_stale: bool
    payment: PaymentSummaryResponse


class PractitionerResponse(BaseModel):
    """Practitioner reference."""
    id: str
    name: str


class FinalizedOrderResponse(BaseModel):
    """Finalized order payload for persistence and invoice rendering."""
    subject_id: Optional[str] = None
    practitioner: Optional[PractitionerResponse] = None
    procedures: List[ProcedureLineItemResponse]
    medications: List[MedicationLineItemResponse]
    totals: OrderTotalsResponse
    commission: ResolvedCommissionResponse
    voucher: Optional[AppliedVoucherResponse] = None
    payment: PaymentSummaryResponse
    finalized_at: str


class CommissionRuleResponse(BaseModel):
    """Response model for a commission rule."""
    id: int
    practitioner_ids: List[str]
    practitioner_names: List[str]
    category: Optional[str] = None
    procedure_names: List[str]
    percentage: float
    is_default_fallback: bool
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CommissionRuleListResponse(BaseModel):
    """Response model for listing commission rules."""
    rules: List[CommissionRuleResponse]


def _commission_response(commission: ResolvedCommission) -> ResolvedCommissionResponse:
    return ResolvedCommissionResponse(
        rule_id=commission['rule_id'],
        score=commission['score'],
        match_type=commission['match_type'],
        percentage=optional_money(commission['percentage']),
        commission_amount=money(commission['commission_amount']),
        source=commission['source'],
        is_multi_rule=commission['is_multi_rule']
    )


def _procedure_responses(items: List[ProcedureLineItem]) -> List[ProcedureLineItemResponse]:
    return [
        ProcedureLineItemResponse(
            id=item['id'],
            name=item['name'],
            category=item['category'],
            unit_price=money(item['unit_price']),
            quantity=item['quantity'],
            discount_value=money(item['discount_value']),
            discount_type=item['discount_type'],
            subtotal_price=money(item['subtotal_price']),
            discount_amount=money(item['discount_amount']),
            final_price=money(item['final_price'])
        )
        for item in items
    ]


def _medication_responses(items: List[MedicationLineItem]) -> List[MedicationLineItemResponse]:
    return [
        MedicationLineItemResponse(
            id=item['id'],
            name=item['name'],
            unit_price=money(item['unit_price']),
            quantity=item['quantity'],
            total_price=money(item['total_price'])
        )
        for item in items
    ]


def _totals_response(totals: OrderTotals) -> OrderTotalsResponse:
    return OrderTotalsResponse(**{key: money(value) for key, value in totals.items()})


def _voucher_response(voucher: Optional[AppliedVoucher]) -> Optional[AppliedVoucherResponse]:
    if voucher is None:
        return None
    return AppliedVoucherResponse(
        code=voucher['code'],
        **{key: money(value) for key, value in voucher.items() if key != 'code'}
    )


def _payment_response(payment: PaymentSummary) -> PaymentSummaryResponse:
    return PaymentSummaryResponse(
        payment_status=payment['payment_status'],
        down_payment_amount=money(payment['down_payment_amount']),
        outstanding_amount=money(payment['outstanding_amount'])
    )


def build_snapshot_response(snapshot: PricingSnapshot) -> PricingSnapshotResponse:
    """Convert an engine snapshot into its API representation."""
    return PricingSnapshotResponse(
        procedures=_procedure_responses(snapshot['procedures']),
        medications=_medication_responses(snapshot['medications']),
        totals=_totals_response(snapshot['totals']),
        commission=_commission_response(snapshot['commission']),
        voucher=_voucher_response(snapshot['voucher']),
        has_manual_discount=snapshot['has_manual_discount'],
        voucher_is_stale=snapshot['voucher_is_stale'],
        payment=_payment_response(snapshot['payment'])
    )


def build_finalized_response(order: FinalizedOrder) -> FinalizedOrderResponse:
    """Convert a finalized order into its API representation."""
    practitioner = order['practitioner']
    return FinalizedOrderResponse(
        subject_id=order['subject_id'],
        practitioner=PractitionerResponse(**practitioner) if practitioner else None,
        procedures=_procedure_responses(order['procedures']),
        medications=_medication_responses(order['medications']),
        totals=_totals_response(order['totals']),
        commission=_commission_response(order['commission']),
        voucher=_voucher_response(order['voucher']),
        payment=_payment_response(order['payment']),
        finalized_at=order['finalized_at']
    )


def build_rule_response(rule: CommissionRule) -> CommissionRuleResponse:
    """Convert a commission rule row (legacy fields included) into its API representation."""
    canonical = CommissionRuleService.normalize_rule(rule)
    return CommissionRuleResponse(
        id=canonical['id'],
        practitioner_ids=sorted(canonical['practitioner_ids']),
        practitioner_names=sorted(canonical['practitioner_names']),
        category=canonical['category'],
        procedure_names=sorted(canonical['procedure_names']),
        percentage=money(canonical['percentage']),
        is_default_fallback=canonical['is_default_fallback'],
        description=canonical['description'],
        created_at=ensure_clinic_tz(rule.created_at),
        updated_at=ensure_clinic_tz(rule.updated_at)
    )
