"""
Treatment pricing engine.

TreatmentPricingEngine.recompute is the single place where an order's derived
figures are computed: line items, totals, the resolved commission and the
payment summary all come out of one pure call on the operator's inputs.
OrderSession holds those inputs for one order-composition session and
recomputes after every change, so no derived value is ever patched in place.
"""
import logging
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional

from core.config import DEFAULT_ADMINISTRATIVE_FEE
from services.commission_calculator import CommissionCalculator
from services.fee_rule_matcher import FeeRuleMatcher
from services.line_item_pricer import LineItemPricer
from services.order_totals import OrderTotalsCalculator
from services.pricing_errors import PricingValidationError
from services.pricing_types import (
    CanonicalCommissionRule,
    DiscountType,
    FinalizedOrder,
    MedicationSelection,
    OrderInputs,
    OrderTotals,
    PaymentInfo,
    PaymentStatus,
    PaymentSummary,
    Practitioner,
    PricingSnapshot,
    ProcedureSelection,
    VoucherValidationRequest,
    VoucherValidationResult,
)
from services.voucher_adjuster import VoucherAdjuster
from utils.datetime_utils import clinic_now

logger = logging.getLogger(__name__)

VoucherValidator = Callable[[VoucherValidationRequest], Awaitable[VoucherValidationResult]]


def empty_order_inputs(subject_id: Optional[str] = None) -> OrderInputs:
    """Inputs for a fresh order with nothing selected."""
    return OrderInputs(
        subject_id=subject_id,
        practitioner=None,
        procedures=[],
        medications=[],
        administrative_fee_override=None,
        manual_percentage=None,
        multi_rule_commission=None,
        voucher=None,
        payment=PaymentInfo(payment_status="paid_in_full", down_payment_amount=Decimal("0"))
    )


class TreatmentPricingEngine:
    """Pure computation of an order's derived figures."""

    @staticmethod
    def summarize_payment(payment: PaymentInfo, totals: OrderTotals) -> PaymentSummary:
        """
        Derive the outstanding balance.

        Orders paid in full have nothing outstanding. For down payments the
        outstanding amount is the grand total minus the down payment.

        Raises:
            PricingValidationError: If the down payment is negative
        """
        down_payment = payment['down_payment_amount']
        if down_payment < 0:
            raise PricingValidationError("Down payment must be >= 0")

        if payment['payment_status'] == "down_payment":
            outstanding = max(Decimal("0"), totals['grand_total'] - down_payment)
        else:
            down_payment = Decimal("0")
            outstanding = Decimal("0")

        return PaymentSummary(
            payment_status=payment['payment_status'],
            down_payment_amount=down_payment,
            outstanding_amount=outstanding
        )

    @staticmethod
    def recompute(
        inputs: OrderInputs,
        rules: List[CanonicalCommissionRule],
        default_administrative_fee: Decimal = DEFAULT_ADMINISTRATIVE_FEE
    ) -> PricingSnapshot:
        """
        Compute the complete pricing snapshot for an order.

        Pure: calling it again with equal arguments yields an equal snapshot.

        Args:
            inputs: Operator inputs for the order
            rules: Canonical commission rules (store order)
            default_administrative_fee: Clinic default administrative fee

        Returns:
            PricingSnapshot

        Raises:
            PricingValidationError: If any input is invalid
            VoucherConflictError: If a voucher is applied alongside manual discounts
        """
        procedures = [LineItemPricer.price_procedure(p) for p in inputs['procedures']]
        medications = [LineItemPricer.price_medication(m) for m in inputs['medications']]

        has_manual_discount = VoucherAdjuster.has_manual_discount(inputs['procedures'])
        voucher = inputs['voucher']
        if voucher is not None:
            VoucherAdjuster.ensure_can_apply(inputs['procedures'])

        administrative_fee = OrderTotalsCalculator.resolve_administrative_fee(
            inputs['administrative_fee_override'], default_administrative_fee
        )
        totals = OrderTotalsCalculator.calculate(procedures, medications, administrative_fee, voucher)

        # Multi-rule mode bypasses rule matching entirely
        match = None
        if inputs['multi_rule_commission'] is None:
            match = FeeRuleMatcher.find_best_rule(rules, inputs['practitioner'], inputs['procedures'])

        commission = CommissionCalculator.calculate(
            totals['net_procedure_amount'],
            match=match,
            manual_percentage=inputs['manual_percentage'],
            multi_rule_commission=inputs['multi_rule_commission']
        )

        return PricingSnapshot(
            procedures=procedures,
            medications=medications,
            totals=totals,
            commission=commission,
            voucher=voucher,
            has_manual_discount=has_manual_discount,
            voucher_is_stale=VoucherAdjuster.is_stale(voucher, totals),
            payment=TreatmentPricingEngine.summarize_payment(inputs['payment'], totals)
        )

    @staticmethod
    def finalize(inputs: OrderInputs, snapshot: PricingSnapshot) -> FinalizedOrder:
        """
        Build the finalized order payload for persistence and invoicing.

        Raises:
            PricingValidationError: If the order is incomplete or its voucher is stale
        """
        if inputs['practitioner'] is None:
            raise PricingValidationError("A practitioner must be selected")
        if not inputs['procedures']:
            raise PricingValidationError("At least one procedure must be selected")
        if snapshot['voucher_is_stale']:
            logger.warning(f"Refusing to finalize with stale voucher {snapshot['voucher']['code']}")
            raise PricingValidationError(
                "The order changed after the voucher was validated; re-apply or remove the voucher"
            )

        return FinalizedOrder(
            subject_id=inputs['subject_id'],
            practitioner=inputs['practitioner'],
            procedures=snapshot['procedures'],
            medications=snapshot['medications'],
            totals=snapshot['totals'],
            commission=snapshot['commission'],
            voucher=snapshot['voucher'],
            payment=snapshot['payment'],
            finalized_at=clinic_now().isoformat()
        )


class OrderSession:
    """
    Inputs of one order being composed, with the snapshot derived from them.

    Every mutator builds new inputs, recomputes, and only then replaces the
    session state. A mutation that fails validation leaves the session as it
    was.
    """

    def __init__(
        self,
        rules: List[CanonicalCommissionRule],
        default_administrative_fee: Decimal = DEFAULT_ADMINISTRATIVE_FEE,
        inputs: Optional[OrderInputs] = None,
        subject_id: Optional[str] = None
    ):
        self._rules = list(rules)
        self._default_administrative_fee = default_administrative_fee
        self._voucher_request_seq = 0
        initial = inputs if inputs is not None else empty_order_inputs(subject_id)
        self._inputs = initial
        self._snapshot = TreatmentPricingEngine.recompute(initial, self._rules, default_administrative_fee)

    @property
    def inputs(self) -> OrderInputs:
        return self._inputs

    @property
    def snapshot(self) -> PricingSnapshot:
        return self._snapshot

    @property
    def has_manual_discount(self) -> bool:
        return self._snapshot['has_manual_discount']

    def _commit(self, **changes) -> PricingSnapshot:
        inputs = OrderInputs(**{**self._inputs, **changes})
        snapshot = TreatmentPricingEngine.recompute(inputs, self._rules, self._default_administrative_fee)
        self._inputs = inputs
        self._snapshot = snapshot
        return snapshot

    def _commit_selection(self, **changes) -> PricingSnapshot:
        """Commit a change to which practitioner/procedures are selected; drops the manual percentage."""
        return self._commit(manual_percentage=None, **changes)

    def _find_procedure(self, procedure_id: str) -> int:
        for index, procedure in enumerate(self._inputs['procedures']):
            if procedure['id'] == procedure_id:
                return index
        raise PricingValidationError(f"Procedure {procedure_id} is not in the order")

    def _find_medication(self, medication_id: str) -> int:
        for index, medication in enumerate(self._inputs['medications']):
            if medication['id'] == medication_id:
                return index
        raise PricingValidationError(f"Medication {medication_id} is not in the order")

    # Rule configuration

    def replace_rules(self, rules: List[CanonicalCommissionRule]) -> PricingSnapshot:
        """Swap in a freshly fetched rule list and re-resolve."""
        self._rules = list(rules)
        self._snapshot = TreatmentPricingEngine.recompute(
            self._inputs, self._rules, self._default_administrative_fee
        )
        return self._snapshot

    # Practitioner

    def set_practitioner(self, practitioner: Optional[Practitioner]) -> PricingSnapshot:
        current = self._inputs['practitioner']
        if current is not None and practitioner is not None and current['id'] == practitioner['id']:
            return self._commit(practitioner=practitioner)
        return self._commit_selection(practitioner=practitioner)

    # Procedures

    def add_procedure(
        self,
        procedure_id: str,
        name: str,
        unit_price: Decimal,
        category: Optional[str] = None,
        quantity: int = 1,
        discount_value: Decimal = Decimal("0"),
        discount_type: DiscountType = "percentage"
    ) -> PricingSnapshot:
        if any(p['id'] == procedure_id for p in self._inputs['procedures']):
            raise PricingValidationError(f"Procedure {name} is already in the order")
        VoucherAdjuster.ensure_can_discount(self._inputs['voucher'], discount_value)

        selection = ProcedureSelection(
            id=procedure_id,
            name=name,
            category=category,
            unit_price=unit_price,
            quantity=quantity,
            discount_value=discount_value,
            discount_type=discount_type
        )
        return self._commit_selection(procedures=[*self._inputs['procedures'], selection])

    def update_procedure_quantity(self, procedure_id: str, quantity: int) -> PricingSnapshot:
        """Change a quantity; the existing discount value and type are kept."""
        index = self._find_procedure(procedure_id)
        procedures = list(self._inputs['procedures'])
        procedures[index] = ProcedureSelection(**{**procedures[index], 'quantity': quantity})
        return self._commit(procedures=procedures)

    def set_procedure_discount(
        self,
        procedure_id: str,
        discount_value: Decimal,
        discount_type: DiscountType
    ) -> PricingSnapshot:
        """
        Set a manual discount on one procedure.

        Raises:
            VoucherConflictError: If a voucher is applied and the discount is non-zero
        """
        VoucherAdjuster.ensure_can_discount(self._inputs['voucher'], discount_value)
        index = self._find_procedure(procedure_id)
        procedures = list(self._inputs['procedures'])
        procedures[index] = ProcedureSelection(**{
            **procedures[index],
            'discount_value': discount_value,
            'discount_type': discount_type,
        })
        return self._commit(procedures=procedures)

    def reset_manual_discounts(self) -> PricingSnapshot:
        """Clear every manual procedure discount (e.g. before applying a voucher)."""
        procedures = [
            ProcedureSelection(**{**p, 'discount_value': Decimal("0")})
            for p in self._inputs['procedures']
        ]
        return self._commit(procedures=procedures)

    def remove_procedure(self, procedure_id: str) -> PricingSnapshot:
        index = self._find_procedure(procedure_id)
        procedures = [p for i, p in enumerate(self._inputs['procedures']) if i != index]
        return self._commit_selection(procedures=procedures)

    # Medications

    def add_medication(
        self,
        medication_id: str,
        name: str,
        unit_price: Decimal,
        quantity: int = 1,
        available_stock: Optional[int] = None
    ) -> PricingSnapshot:
        if any(m['id'] == medication_id for m in self._inputs['medications']):
            raise PricingValidationError(f"Medication {name} is already in the order")

        selection = MedicationSelection(
            id=medication_id,
            name=name,
            unit_price=unit_price,
            quantity=quantity,
            available_stock=available_stock
        )
        return self._commit(medications=[*self._inputs['medications'], selection])

    def update_medication_quantity(
        self,
        medication_id: str,
        quantity: int,
        available_stock: Optional[int] = None
    ) -> PricingSnapshot:
        """
        Change a medication quantity.

        Args:
            medication_id: Medication line to change
            quantity: New quantity
            available_stock: Fresh stock figure from the catalog; keeps the
                previously reported figure when None

        Raises:
            StockExceededError: If quantity exceeds stock (session unchanged)
        """
        index = self._find_medication(medication_id)
        medications = list(self._inputs['medications'])
        current = medications[index]
        stock = available_stock if available_stock is not None else current.get('available_stock')
        medications[index] = MedicationSelection(**{**current, 'quantity': quantity, 'available_stock': stock})
        return self._commit(medications=medications)

    def remove_medication(self, medication_id: str) -> PricingSnapshot:
        index = self._find_medication(medication_id)
        medications = [m for i, m in enumerate(self._inputs['medications']) if i != index]
        return self._commit(medications=medications)

    # Fees and commission

    def set_administrative_fee_override(self, amount: Optional[Decimal]) -> PricingSnapshot:
        """Override the clinic default administrative fee; None restores the default."""
        return self._commit(administrative_fee_override=amount)

    def set_manual_percentage(self, percentage: Decimal) -> PricingSnapshot:
        """Hand-edit the commission percentage; kept until the selection changes."""
        return self._commit(manual_percentage=percentage)

    def clear_manual_percentage(self) -> PricingSnapshot:
        return self._commit(manual_percentage=None)

    def set_multi_rule_commission(self, amount: Decimal) -> PricingSnapshot:
        """Switch to multi-rule mode with an externally apportioned commission total."""
        return self._commit(multi_rule_commission=amount)

    def clear_multi_rule_commission(self) -> PricingSnapshot:
        return self._commit(multi_rule_commission=None)

    # Payment

    def set_payment(
        self,
        payment_status: PaymentStatus,
        down_payment_amount: Decimal = Decimal("0")
    ) -> PricingSnapshot:
        """
        Record payment terms.

        Raises:
            PricingValidationError: If the down payment exceeds the current grand total
        """
        if payment_status == "down_payment" and down_payment_amount > self._snapshot['totals']['grand_total']:
            raise PricingValidationError("Down payment cannot exceed the grand total")
        return self._commit(payment=PaymentInfo(
            payment_status=payment_status,
            down_payment_amount=down_payment_amount
        ))

    # Voucher

    async def apply_voucher(self, code: str, validator: VoucherValidator) -> Optional[PricingSnapshot]:
        """
        Validate a voucher with the external service and apply it.

        The session does not change until the service answers. If another
        apply or a removal happens while this request is pending, this
        response is discarded and None is returned.

        Raises:
            VoucherConflictError: If any procedure has a manual discount
            PricingValidationError: If the code is blank or the order total is 0
            VoucherRejectedError: If the service rejected the voucher
            VoucherServiceError: If the service call failed
        """
        VoucherAdjuster.ensure_can_apply(self._inputs['procedures'])
        request = VoucherAdjuster.build_request(code, self._snapshot['totals'], self._inputs['subject_id'])

        self._voucher_request_seq += 1
        request_seq = self._voucher_request_seq

        result = await validator(request)

        if request_seq != self._voucher_request_seq:
            logger.warning(f"Discarding superseded voucher response for {request['code']}")
            return None

        voucher = VoucherAdjuster.accept(request, result)
        # Discounts may have been entered while the request was in flight
        VoucherAdjuster.ensure_can_apply(self._inputs['procedures'])
        return self._commit(voucher=voucher)

    def remove_voucher(self) -> PricingSnapshot:
        """Return to the no-voucher state; also supersedes any pending validation."""
        self._voucher_request_seq += 1
        if self._inputs['voucher'] is not None:
            logger.info(f"Voucher {self._inputs['voucher']['code']} removed")
        return self._commit(voucher=None)

    def finalize(self) -> FinalizedOrder:
        """Produce the finalized order payload from the current snapshot."""
        return TreatmentPricingEngine.finalize(self._inputs, self._snapshot)
