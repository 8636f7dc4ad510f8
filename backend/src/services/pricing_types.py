"""
Type definitions for treatment pricing and commission resolution.

Selections are what the operator enters; line items, totals and resolved
commissions are derived from them and never edited directly. Every derived
value is rebuilt by TreatmentPricingEngine.recompute on each change.
"""
from typing import TypedDict, Optional, Literal, List, FrozenSet
from decimal import Decimal


DiscountType = Literal["percentage", "fixed_amount"]
CommissionSource = Literal["rule", "manual", "multi_rule", "none"]
PaymentStatus = Literal["paid_in_full", "down_payment"]


class ProcedureSelection(TypedDict):
    """A procedure chosen for the order, as entered by the operator."""
    id: str
    name: str
    category: Optional[str]  # From the procedure catalog, used for rule matching
    unit_price: Decimal
    quantity: int
    discount_value: Decimal  # Percentage (0-100) or fixed amount, depending on discount_type
    discount_type: DiscountType


class MedicationSelection(TypedDict):
    """A medication chosen for the order."""
    id: str
    name: str
    unit_price: Decimal
    quantity: int
    available_stock: Optional[int]  # Reported by the medication catalog; None means unknown


class ProcedureLineItem(TypedDict):
    """Priced procedure line."""
    id: str
    name: str
    category: Optional[str]
    unit_price: Decimal
    quantity: int
    discount_value: Decimal
    discount_type: DiscountType
    subtotal_price: Decimal  # unit_price * quantity
    discount_amount: Decimal
    final_price: Decimal  # subtotal_price - discount_amount


class MedicationLineItem(TypedDict):
    """Priced medication line."""
    id: str
    name: str
    unit_price: Decimal
    quantity: int
    total_price: Decimal


class OrderTotals(TypedDict):
    """Aggregated order figures."""
    subtotal: Decimal
    total_discount: Decimal
    net_procedure_amount: Decimal  # Exclusive commission base
    medication_cost: Decimal
    administrative_fee: Decimal
    amount_before_voucher: Decimal
    voucher_discount: Decimal  # Display only
    grand_total: Decimal


class Practitioner(TypedDict):
    """Practitioner reference from the practitioner directory."""
    id: str
    name: str


class CanonicalCommissionRule(TypedDict):
    """
    Commission rule in the canonical shape consumed by the matcher.

    Legacy singular fields are already folded into the sets.
    """
    id: int
    practitioner_ids: FrozenSet[str]
    practitioner_names: FrozenSet[str]
    category: Optional[str]
    procedure_names: FrozenSet[str]
    percentage: Decimal
    is_default_fallback: bool
    description: Optional[str]


class RuleMatch(TypedDict):
    """Best-scoring rule for an order."""
    rule: CanonicalCommissionRule
    score: int
    match_type: str


class ResolvedCommission(TypedDict):
    """Commission resolved for an order."""
    rule_id: Optional[int]
    score: int
    match_type: Optional[str]
    percentage: Optional[Decimal]  # None when nothing resolved and no manual entry
    commission_amount: Decimal
    source: CommissionSource
    is_multi_rule: bool


class VoucherValidationRequest(TypedDict):
    """Request body sent to the voucher validation service."""
    code: str
    total_amount: Decimal
    procedure_only_amount: Decimal
    administrative_fee: Decimal
    subject_id: Optional[str]


class VoucherValidationResult(TypedDict):
    """Response of the voucher validation service."""
    valid: bool
    discount_amount: Decimal
    final_amount: Decimal
    message: Optional[str]


class AppliedVoucher(TypedDict):
    """
    A voucher accepted by the validation service.

    The validated_* fields record the amounts the service saw, so a later
    change to the order can be detected as stale.
    """
    code: str
    discount_amount: Decimal
    final_amount: Decimal
    validated_procedure_amount: Decimal
    validated_administrative_fee: Decimal
    validated_total_amount: Decimal


class PaymentInfo(TypedDict):
    """Payment terms entered at checkout."""
    payment_status: PaymentStatus
    down_payment_amount: Decimal


class PaymentSummary(TypedDict):
    """Derived payment figures."""
    payment_status: PaymentStatus
    down_payment_amount: Decimal
    outstanding_amount: Decimal


class OrderInputs(TypedDict):
    """
    Everything the operator has entered for one order.

    This is the only mutable state of an order-composition session.
    """
    subject_id: Optional[str]  # Patient the order is for
    practitioner: Optional[Practitioner]
    procedures: List[ProcedureSelection]
    medications: List[MedicationSelection]
    administrative_fee_override: Optional[Decimal]
    manual_percentage: Optional[Decimal]
    multi_rule_commission: Optional[Decimal]  # Pre-computed by the multi-rule calculator
    voucher: Optional[AppliedVoucher]
    payment: PaymentInfo


class PricingSnapshot(TypedDict):
    """Complete derived view of an order."""
    procedures: List[ProcedureLineItem]
    medications: List[MedicationLineItem]
    totals: OrderTotals
    commission: ResolvedCommission
    voucher: Optional[AppliedVoucher]
    has_manual_discount: bool
    voucher_is_stale: bool
    payment: PaymentSummary


class FinalizedOrder(TypedDict):
    """Order payload handed to persistence and invoice rendering."""
    subject_id: Optional[str]
    practitioner: Optional[Practitioner]
    procedures: List[ProcedureLineItem]
    medications: List[MedicationLineItem]
    totals: OrderTotals
    commission: ResolvedCommission
    voucher: Optional[AppliedVoucher]
    payment: PaymentSummary
    finalized_at: str  # ISO format datetime string
