"""
Order total aggregation.

Totals are a pure function of the priced lines, the administrative fee and the
applied voucher. With a voucher, the grand total is replaced outright by the
voucher service's final amount rather than adjusted by the discount.
"""
from decimal import Decimal
from typing import List, Optional

from services.pricing_errors import PricingValidationError
from services.pricing_types import (
    ProcedureLineItem,
    MedicationLineItem,
    OrderTotals,
    AppliedVoucher,
)


class OrderTotalsCalculator:
    """Aggregates priced lines into order totals."""

    @staticmethod
    def resolve_administrative_fee(
        override: Optional[Decimal],
        clinic_default: Decimal
    ) -> Decimal:
        """
        Pick the administrative fee for an order.

        An explicit override (including 0) wins over the clinic default.

        Raises:
            PricingValidationError: If the override is negative
        """
        if override is None:
            return clinic_default
        if override < 0:
            raise PricingValidationError("Administrative fee must be >= 0")
        return override

    @staticmethod
    def procedure_amount(procedures: List[ProcedureLineItem]) -> Decimal:
        """Net procedure amount: sum of discounted procedure prices."""
        return sum((item['final_price'] for item in procedures), Decimal('0'))

    @staticmethod
    def calculate(
        procedures: List[ProcedureLineItem],
        medications: List[MedicationLineItem],
        administrative_fee: Decimal,
        voucher: Optional[AppliedVoucher] = None
    ) -> OrderTotals:
        """
        Calculate all order totals.

        Args:
            procedures: Priced procedure lines
            medications: Priced medication lines
            administrative_fee: Resolved administrative fee
            voucher: Applied voucher, if any

        Returns:
            OrderTotals with every aggregate filled in
        """
        subtotal = Decimal('0')
        total_discount = Decimal('0')
        for item in procedures:
            subtotal += item['subtotal_price']
            total_discount += item['discount_amount']

        net_procedure_amount = OrderTotalsCalculator.procedure_amount(procedures)
        medication_cost = sum((item['total_price'] for item in medications), Decimal('0'))
        amount_before_voucher = net_procedure_amount + medication_cost + administrative_fee

        if voucher is not None:
            grand_total = voucher['final_amount']
            voucher_discount = voucher['discount_amount']
        else:
            grand_total = amount_before_voucher
            voucher_discount = Decimal('0')

        return OrderTotals(
            subtotal=subtotal,
            total_discount=total_discount,
            net_procedure_amount=net_procedure_amount,
            medication_cost=medication_cost,
            administrative_fee=administrative_fee,
            amount_before_voucher=amount_before_voucher,
            voucher_discount=voucher_discount,
            grand_total=grand_total
        )
