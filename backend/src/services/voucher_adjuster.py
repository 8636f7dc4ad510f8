"""
Voucher override of the order grand total.

An order is either in the no-voucher state (grand total is the additive sum)
or the voucher-applied state (grand total is the final amount returned by the
voucher service). Vouchers and manual per-item discounts are mutually
exclusive in both directions.
"""
import logging
from decimal import Decimal
from typing import Iterable, Literal, Optional

from services.pricing_errors import PricingValidationError, VoucherConflictError, VoucherRejectedError
from services.pricing_types import (
    AppliedVoucher,
    OrderTotals,
    ProcedureSelection,
    VoucherValidationRequest,
    VoucherValidationResult,
)

logger = logging.getLogger(__name__)

VoucherState = Literal["no_voucher", "voucher_applied"]

MANUAL_DISCOUNT_CONFLICT_MESSAGE = (
    "Remove all manual procedure discounts before applying a voucher"
)
VOUCHER_ACTIVE_CONFLICT_MESSAGE = (
    "Manual discounts are disabled while a voucher is applied; remove the voucher first"
)


class VoucherAdjuster:
    """Guards and performs voucher state transitions."""

    @staticmethod
    def state(voucher: Optional[AppliedVoucher]) -> VoucherState:
        return "voucher_applied" if voucher is not None else "no_voucher"

    @staticmethod
    def has_manual_discount(procedures: Iterable[ProcedureSelection]) -> bool:
        """True if any procedure carries a non-zero manual discount."""
        return any(p['discount_value'] > 0 for p in procedures)

    @staticmethod
    def ensure_can_apply(procedures: Iterable[ProcedureSelection]) -> None:
        """
        Refuse voucher activation while manual discounts exist.

        Raises:
            VoucherConflictError: If any procedure has a manual discount
        """
        if VoucherAdjuster.has_manual_discount(procedures):
            raise VoucherConflictError(MANUAL_DISCOUNT_CONFLICT_MESSAGE)

    @staticmethod
    def ensure_can_discount(voucher: Optional[AppliedVoucher], discount_value: Decimal) -> None:
        """
        Refuse a non-zero manual discount while a voucher is applied.

        Raises:
            VoucherConflictError: If a voucher is active and discount_value > 0
        """
        if voucher is not None and discount_value > 0:
            raise VoucherConflictError(VOUCHER_ACTIVE_CONFLICT_MESSAGE)

    @staticmethod
    def build_request(
        code: str,
        totals: OrderTotals,
        subject_id: Optional[str] = None
    ) -> VoucherValidationRequest:
        """
        Build the validation request for the current order.

        The service discounts the procedure-only amount; it is also told the
        administrative fee and the full pre-voucher total so it can return the
        combined final amount.

        Raises:
            PricingValidationError: If the code is blank or the order total is not positive
        """
        normalized_code = code.strip().upper()
        if not normalized_code:
            raise PricingValidationError("Voucher code is required")
        if totals['amount_before_voucher'] <= 0:
            raise PricingValidationError("Order total must be greater than 0 to apply a voucher")

        return VoucherValidationRequest(
            code=normalized_code,
            total_amount=totals['amount_before_voucher'],
            procedure_only_amount=totals['net_procedure_amount'],
            administrative_fee=totals['administrative_fee'],
            subject_id=subject_id
        )

    @staticmethod
    def accept(
        request: VoucherValidationRequest,
        result: VoucherValidationResult
    ) -> AppliedVoucher:
        """
        Turn a validation result into an applied voucher.

        Raises:
            VoucherRejectedError: If the service reported the voucher as invalid
        """
        if not result['valid']:
            message = result.get('message') or "Voucher is not valid"
            logger.warning(f"Voucher {request['code']} rejected: {message}")
            raise VoucherRejectedError(message)

        logger.info(
            f"Voucher {request['code']} applied: discount {result['discount_amount']}, "
            f"final amount {result['final_amount']}"
        )
        return AppliedVoucher(
            code=request['code'],
            discount_amount=result['discount_amount'],
            final_amount=result['final_amount'],
            validated_procedure_amount=request['procedure_only_amount'],
            validated_administrative_fee=request['administrative_fee'],
            validated_total_amount=request['total_amount']
        )

    @staticmethod
    def is_stale(voucher: Optional[AppliedVoucher], totals: OrderTotals) -> bool:
        """
        Whether the order changed since the voucher was validated.

        A stale voucher still overrides the grand total for display, but the
        order cannot be finalized until it is re-validated or removed.
        """
        if voucher is None:
            return False
        return (
            voucher['validated_procedure_amount'] != totals['net_procedure_amount']
            or voucher['validated_administrative_fee'] != totals['administrative_fee']
            or voucher['validated_total_amount'] != totals['amount_before_voucher']
        )
