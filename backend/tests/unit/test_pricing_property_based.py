"""
Property-based tests for pricing and commission invariants.

These tests verify arithmetic invariants that must hold for any order,
regardless of input data. Uses Hypothesis for property-based testing.
"""
from decimal import Decimal
from typing import List

from hypothesis import given, strategies as st

from services.commission_calculator import CommissionCalculator
from services.fee_rule_matcher import FeeRuleMatcher
from services.line_item_pricer import LineItemPricer
from services.order_totals import OrderTotalsCalculator
from services.pricing_types import MedicationSelection, Practitioner, ProcedureSelection
from tests.conftest import make_rule


money = st.decimals(min_value=Decimal('0'), max_value=Decimal('10000000'), places=2)
quantities = st.integers(min_value=1, max_value=20)
percentages = st.decimals(min_value=Decimal('0'), max_value=Decimal('100'), places=2)


def procedure_strategy():
    """Generate a procedure selection with either discount type."""
    return st.one_of(
        st.fixed_dictionaries({
            'id': st.uuids().map(str),
            'name': st.sampled_from(['Scaling', 'Filling', 'Extraction', 'Whitening']),
            'category': st.one_of(st.none(), st.sampled_from(['Hygiene', 'Surgery'])),
            'unit_price': money,
            'quantity': quantities,
            'discount_value': percentages,
            'discount_type': st.just('percentage'),
        }),
        st.fixed_dictionaries({
            'id': st.uuids().map(str),
            'name': st.sampled_from(['Scaling', 'Filling', 'Extraction', 'Whitening']),
            'category': st.one_of(st.none(), st.sampled_from(['Hygiene', 'Surgery'])),
            'unit_price': money,
            'quantity': quantities,
            'discount_value': money,
            'discount_type': st.just('fixed_amount'),
        }),
    )


def medication_strategy():
    return st.fixed_dictionaries({
        'id': st.uuids().map(str),
        'name': st.sampled_from(['Paracetamol', 'Amoxicillin']),
        'unit_price': money,
        'quantity': quantities,
        'available_stock': st.none(),
    })


class TestLineItemInvariants:
    """Property-based tests for line item pricing."""

    @given(procedure=procedure_strategy())
    def test_discount_within_line_total(self, procedure: ProcedureSelection):
        """Property: 0 <= discount <= unit_price * quantity, final_price = subtotal - discount."""
        item = LineItemPricer.price_procedure(procedure)

        assert Decimal('0') <= item['discount_amount'] <= item['subtotal_price']
        assert item['final_price'] == item['subtotal_price'] - item['discount_amount']
        assert item['final_price'] >= 0

    @given(unit_price=money, quantity=quantities, percentage=percentages)
    def test_percentage_discount_formula(self, unit_price: Decimal, quantity: int, percentage: Decimal):
        subtotal = unit_price * quantity
        amount = LineItemPricer.discount_amount(subtotal, percentage, 'percentage')

        assert amount == subtotal * percentage / Decimal('100')

    @given(unit_price=money, quantity=quantities, fixed=money)
    def test_fixed_discount_formula(self, unit_price: Decimal, quantity: int, fixed: Decimal):
        subtotal = unit_price * quantity
        amount = LineItemPricer.discount_amount(subtotal, fixed, 'fixed_amount')

        assert amount == min(fixed, subtotal)


class TestTotalsInvariants:
    """Property-based tests for order totals and commission."""

    @given(
        procedures=st.lists(procedure_strategy(), min_size=0, max_size=10),
        medications=st.lists(medication_strategy(), min_size=0, max_size=5),
        fee=money,
    )
    def test_net_procedure_amount_is_sum_of_final_prices(
        self,
        procedures: List[ProcedureSelection],
        medications: List[MedicationSelection],
        fee: Decimal
    ):
        """Property: net procedure amount depends on procedure lines only."""
        priced = [LineItemPricer.price_procedure(p) for p in procedures]
        meds = [LineItemPricer.price_medication(m) for m in medications]

        totals = OrderTotalsCalculator.calculate(priced, meds, fee)
        procedures_only = OrderTotalsCalculator.calculate(priced, [], Decimal('0'))

        assert totals['net_procedure_amount'] == sum((p['final_price'] for p in priced), Decimal('0'))
        assert totals['net_procedure_amount'] == procedures_only['net_procedure_amount']
        assert totals['subtotal'] - totals['total_discount'] == totals['net_procedure_amount']
        assert totals['grand_total'] == totals['net_procedure_amount'] + totals['medication_cost'] + fee

    @given(
        procedures=st.lists(procedure_strategy(), min_size=1, max_size=10),
        medications=st.lists(medication_strategy(), min_size=0, max_size=5),
        fee=money,
        percentage=percentages,
    )
    def test_commission_independent_of_fee_and_medication(
        self,
        procedures: List[ProcedureSelection],
        medications: List[MedicationSelection],
        fee: Decimal,
        percentage: Decimal
    ):
        """Property: commission = net * pct / 100, whatever the medication and fee."""
        priced = [LineItemPricer.price_procedure(p) for p in procedures]
        meds = [LineItemPricer.price_medication(m) for m in medications]
        totals = OrderTotalsCalculator.calculate(priced, meds, fee)

        commission = CommissionCalculator.calculate(
            totals['net_procedure_amount'], manual_percentage=percentage
        )

        assert commission['commission_amount'] == totals['net_procedure_amount'] * percentage / Decimal('100')


class TestMatcherInvariants:
    """Property-based tests for rule matching."""

    @given(
        procedures=st.lists(procedure_strategy(), min_size=1, max_size=5),
        default_first=st.booleans(),
    )
    def test_practitioner_procedure_rule_beats_default(
        self,
        procedures: List[ProcedureSelection],
        default_first: bool
    ):
        """Property: a practitioner + procedure rule always beats the default rule."""
        practitioner = Practitioner(id="dr-1", name="Dr. Sari")
        procedures = [*procedures, {**procedures[0], 'id': 'scaling', 'name': 'Scaling'}]
        specific = make_rule(1, "15", practitioner_ids=["dr-1"], procedure_names=["Scaling"])
        default = make_rule(2, "10", is_default_fallback=True)
        rules = [default, specific] if default_first else [specific, default]

        match = FeeRuleMatcher.find_best_rule(rules, practitioner, procedures)

        assert match is not None
        assert match['rule']['id'] == 1
        assert match['score'] == 100
