"""
Services package for pricing and commission business logic.

This package contains the service classes behind the pricing and commission
rule API endpoints.
"""

from .line_item_pricer import LineItemPricer
from .order_totals import OrderTotalsCalculator
from .fee_rule_matcher import FeeRuleMatcher
from .commission_calculator import CommissionCalculator
from .voucher_adjuster import VoucherAdjuster
from .commission_rule_service import CommissionRuleService
from .treatment_pricing_engine import OrderSession, TreatmentPricingEngine
from .voucher_client import VoucherValidationClient

__all__ = [
    "LineItemPricer",
    "OrderTotalsCalculator",
    "FeeRuleMatcher",
    "CommissionCalculator",
    "VoucherAdjuster",
    "CommissionRuleService",
    "OrderSession",
    "TreatmentPricingEngine",
    "VoucherValidationClient",
]
