"""
Practitioner commission calculation.

The commission base is always the net procedure amount. Medication cost, the
administrative fee and any voucher discount never enter it.
"""
from decimal import Decimal
from typing import Optional

from core.constants import PERCENTAGE_MIN, PERCENTAGE_MAX
from services.pricing_errors import PricingValidationError
from services.pricing_types import ResolvedCommission, RuleMatch


class CommissionCalculator:
    """Turns a resolved percentage (or a multi-rule total) into a commission."""

    @staticmethod
    def validate_percentage(percentage: Decimal) -> None:
        """
        Validate an operator-entered commission percentage.

        Raises:
            PricingValidationError: If outside [0, 100]
        """
        if percentage < PERCENTAGE_MIN or percentage > PERCENTAGE_MAX:
            raise PricingValidationError("Commission percentage must be between 0 and 100")

    @staticmethod
    def commission_amount(net_procedure_amount: Decimal, percentage: Decimal) -> Decimal:
        """Single-rule commission: net_procedure_amount * percentage / 100."""
        return net_procedure_amount * percentage / Decimal("100")

    @staticmethod
    def calculate(
        net_procedure_amount: Decimal,
        match: Optional[RuleMatch] = None,
        manual_percentage: Optional[Decimal] = None,
        multi_rule_commission: Optional[Decimal] = None
    ) -> ResolvedCommission:
        """
        Resolve the commission for an order.

        Precedence: multi-rule total, then manual percentage, then the matched
        rule. With none of them the commission is unresolved (percentage None,
        amount 0) and the operator may enter one manually.

        Args:
            net_procedure_amount: Commission base
            match: Best rule from FeeRuleMatcher, if any
            manual_percentage: Operator-entered percentage, if any
            multi_rule_commission: Externally apportioned total commission

        Returns:
            ResolvedCommission
        """
        rule_id = match['rule']['id'] if match else None
        score = match['score'] if match else 0
        match_type = match['match_type'] if match else None

        if multi_rule_commission is not None:
            if multi_rule_commission < 0:
                raise PricingValidationError("Multi-rule commission must be >= 0")
            return ResolvedCommission(
                rule_id=None,
                score=0,
                match_type=None,
                percentage=None,
                commission_amount=multi_rule_commission,
                source="multi_rule",
                is_multi_rule=True
            )

        if manual_percentage is not None:
            CommissionCalculator.validate_percentage(manual_percentage)
            return ResolvedCommission(
                rule_id=rule_id,
                score=score,
                match_type=match_type,
                percentage=manual_percentage,
                commission_amount=CommissionCalculator.commission_amount(
                    net_procedure_amount, manual_percentage
                ),
                source="manual",
                is_multi_rule=False
            )

        if match is not None:
            percentage = match['rule']['percentage']
            return ResolvedCommission(
                rule_id=rule_id,
                score=score,
                match_type=match_type,
                percentage=percentage,
                commission_amount=CommissionCalculator.commission_amount(
                    net_procedure_amount, percentage
                ),
                source="rule",
                is_multi_rule=False
            )

        return ResolvedCommission(
            rule_id=None,
            score=0,
            match_type=None,
            percentage=None,
            commission_amount=Decimal("0"),
            source="none",
            is_multi_rule=False
        )
