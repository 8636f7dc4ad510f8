"""
Line item pricing for procedures and medications.

Discounts are always re-derived from the stored discount value and type, so
changing a quantity never requires re-entering the discount.
"""
from decimal import Decimal
from typing import Optional

from core.constants import PERCENTAGE_MIN, PERCENTAGE_MAX
from services.pricing_errors import PricingValidationError, StockExceededError
from services.pricing_types import (
    ProcedureSelection,
    MedicationSelection,
    ProcedureLineItem,
    MedicationLineItem,
    DiscountType,
)


class LineItemPricer:
    """Computes derived amounts for individual order lines."""

    @staticmethod
    def validate_quantity(quantity: int) -> None:
        """Raise PricingValidationError unless quantity is a positive integer."""
        if quantity <= 0:
            raise PricingValidationError("Quantity must be at least 1")

    @staticmethod
    def validate_unit_price(unit_price: Decimal) -> None:
        """Raise PricingValidationError for negative prices."""
        if unit_price < 0:
            raise PricingValidationError("Unit price must be >= 0")

    @staticmethod
    def validate_discount(discount_value: Decimal, discount_type: DiscountType) -> None:
        """
        Validate a per-item discount.

        Percentages must be within [0, 100]. Fixed amounts must not be
        negative; amounts above the line total are clamped later, not rejected.

        Raises:
            PricingValidationError: If the discount is out of range
        """
        if discount_type == "percentage":
            if discount_value < PERCENTAGE_MIN or discount_value > PERCENTAGE_MAX:
                raise PricingValidationError("Discount percentage must be between 0 and 100")
        elif discount_type == "fixed_amount":
            if discount_value < 0:
                raise PricingValidationError("Discount amount must be >= 0")
        else:
            raise PricingValidationError(f"Unknown discount type: {discount_type}")

    @staticmethod
    def validate_stock(name: str, quantity: int, available_stock: Optional[int]) -> None:
        """
        Block medication quantities above the reported stock.

        Raises:
            StockExceededError: If quantity > available_stock
        """
        if available_stock is not None and quantity > available_stock:
            raise StockExceededError(name, quantity, available_stock)

    @staticmethod
    def discount_amount(
        subtotal_price: Decimal,
        discount_value: Decimal,
        discount_type: DiscountType
    ) -> Decimal:
        """
        Compute the discount for a line total.

        Args:
            subtotal_price: unit_price * quantity
            discount_value: Percentage or fixed amount
            discount_type: "percentage" or "fixed_amount"

        Returns:
            Discount amount, never negative and never above subtotal_price
        """
        if discount_type == "percentage":
            amount = subtotal_price * discount_value / Decimal("100")
        else:
            amount = min(discount_value, subtotal_price)
        return max(Decimal("0"), min(amount, subtotal_price))

    @staticmethod
    def price_procedure(selection: ProcedureSelection) -> ProcedureLineItem:
        """
        Price one procedure selection.

        Raises:
            PricingValidationError: If quantity, price or discount is invalid
        """
        LineItemPricer.validate_quantity(selection['quantity'])
        LineItemPricer.validate_unit_price(selection['unit_price'])
        LineItemPricer.validate_discount(selection['discount_value'], selection['discount_type'])

        subtotal_price = selection['unit_price'] * Decimal(str(selection['quantity']))
        discount_amount = LineItemPricer.discount_amount(
            subtotal_price, selection['discount_value'], selection['discount_type']
        )

        return ProcedureLineItem(
            id=selection['id'],
            name=selection['name'],
            category=selection.get('category'),
            unit_price=selection['unit_price'],
            quantity=selection['quantity'],
            discount_value=selection['discount_value'],
            discount_type=selection['discount_type'],
            subtotal_price=subtotal_price,
            discount_amount=discount_amount,
            final_price=subtotal_price - discount_amount
        )

    @staticmethod
    def price_medication(selection: MedicationSelection) -> MedicationLineItem:
        """
        Price one medication selection.

        Raises:
            PricingValidationError: If quantity or price is invalid
            StockExceededError: If quantity exceeds the reported stock
        """
        LineItemPricer.validate_quantity(selection['quantity'])
        LineItemPricer.validate_unit_price(selection['unit_price'])
        LineItemPricer.validate_stock(
            selection['name'], selection['quantity'], selection.get('available_stock')
        )

        return MedicationLineItem(
            id=selection['id'],
            name=selection['name'],
            unit_price=selection['unit_price'],
            quantity=selection['quantity'],
            total_price=selection['unit_price'] * Decimal(str(selection['quantity']))
        )
