"""
Exceptions raised by the treatment pricing engine.

Validation and conflict errors subclass ValueError so the API's global
ValueError handler reports them as 400s unless an endpoint maps them more
precisely.
"""


class PricingValidationError(ValueError):
    """Invalid operator input (quantity, discount, fee, percentage, payment)."""
    pass


class StockExceededError(PricingValidationError):
    """Medication quantity exceeds the stock reported by the catalog."""

    def __init__(self, medication_name: str, requested: int, available: int):
        self.medication_name = medication_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Quantity {requested} exceeds available stock for {medication_name} ({available})"
        )


class VoucherConflictError(ValueError):
    """Voucher and manual per-item discounts cannot be combined."""
    pass


class VoucherRejectedError(ValueError):
    """The voucher validation service reported the voucher as invalid."""
    pass


class VoucherServiceError(Exception):
    """The voucher validation service could not be reached or failed."""
    pass
