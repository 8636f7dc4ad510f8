"""
Unit tests for commission calculation.
"""
import pytest
from decimal import Decimal

from services.commission_calculator import CommissionCalculator
from services.pricing_errors import PricingValidationError
from services.pricing_types import RuleMatch
from tests.conftest import make_rule


@pytest.fixture
def scaling_match() -> RuleMatch:
    return RuleMatch(
        rule=make_rule(1, "15", practitioner_ids=["dr-1"], procedure_names=["Scaling"]),
        score=100,
        match_type="Practitioner Dr. Sari + specific procedure"
    )


class TestCommissionCalculator:
    """Test commission resolution precedence and amounts."""

    def test_rule_commission(self, scaling_match):
        """360,000 x 15% = 54,000."""
        result = CommissionCalculator.calculate(Decimal('360000'), match=scaling_match)

        assert result['commission_amount'] == Decimal('54000')
        assert result['percentage'] == Decimal('15')
        assert result['rule_id'] == 1
        assert result['score'] == 100
        assert result['source'] == 'rule'
        assert result['is_multi_rule'] is False

    def test_no_match_is_unresolved(self):
        result = CommissionCalculator.calculate(Decimal('360000'))

        assert result['percentage'] is None
        assert result['commission_amount'] == Decimal('0')
        assert result['rule_id'] is None
        assert result['source'] == 'none'

    def test_manual_percentage_overrides_rule(self, scaling_match):
        result = CommissionCalculator.calculate(
            Decimal('360000'), match=scaling_match, manual_percentage=Decimal('20')
        )

        assert result['commission_amount'] == Decimal('72000')
        assert result['source'] == 'manual'
        # The matched rule is still reported for reference
        assert result['rule_id'] == 1

    def test_manual_percentage_without_rule(self):
        result = CommissionCalculator.calculate(Decimal('100000'), manual_percentage=Decimal('12.5'))

        assert result['commission_amount'] == Decimal('12500')
        assert result['source'] == 'manual'

    @pytest.mark.parametrize("percentage", ["-0.01", "100.5"])
    def test_manual_percentage_out_of_range(self, percentage):
        with pytest.raises(PricingValidationError):
            CommissionCalculator.calculate(Decimal('100000'), manual_percentage=Decimal(percentage))

    def test_multi_rule_amount_used_verbatim(self, scaling_match):
        result = CommissionCalculator.calculate(
            Decimal('360000'),
            match=scaling_match,
            manual_percentage=Decimal('20'),
            multi_rule_commission=Decimal('61500')
        )

        assert result['commission_amount'] == Decimal('61500')
        assert result['is_multi_rule'] is True
        assert result['source'] == 'multi_rule'
        assert result['percentage'] is None

    def test_negative_multi_rule_amount_rejected(self):
        with pytest.raises(PricingValidationError):
            CommissionCalculator.calculate(Decimal('360000'), multi_rule_commission=Decimal('-1'))

    def test_zero_base(self, scaling_match):
        result = CommissionCalculator.calculate(Decimal('0'), match=scaling_match)

        assert result['commission_amount'] == Decimal('0')
