"""
Unit tests for commission rule matching.
"""
import pytest

from services.fee_rule_matcher import FeeRuleMatcher
from services.pricing_types import Practitioner
from tests.conftest import make_procedure, make_rule


@pytest.fixture
def scaling():
    return [make_procedure("p1", "Scaling", "200000", category="Hygiene")]


class TestScoreRule:
    """Test scoring of individual rules."""

    def test_practitioner_and_procedure(self, practitioner):
        rule = make_rule(1, "15", practitioner_ids=["dr-1"], procedure_names=["Scaling"])

        score, match_type = FeeRuleMatcher.score_rule(rule, practitioner, {"Scaling"}, {"Hygiene"})

        assert score == 100
        assert match_type == "Practitioner Dr. Sari + specific procedure"

    def test_practitioner_and_category(self, practitioner):
        rule = make_rule(1, "12", practitioner_ids=["dr-1"], category="Hygiene")

        score, match_type = FeeRuleMatcher.score_rule(rule, practitioner, {"Scaling"}, {"Hygiene"})

        assert score == 80
        assert match_type == "Practitioner Dr. Sari + category Hygiene"

    def test_practitioner_only(self, practitioner):
        """A practitioner rule scores 75 even if its procedure list misses the order."""
        rule = make_rule(1, "12", practitioner_ids=["dr-1"], procedure_names=["Whitening"])

        score, match_type = FeeRuleMatcher.score_rule(rule, practitioner, {"Scaling"}, {"Hygiene"})

        assert score == 75
        assert match_type == "Practitioner Dr. Sari - general"

    def test_category_only(self, practitioner):
        rule = make_rule(1, "8", category="Hygiene")

        score, match_type = FeeRuleMatcher.score_rule(rule, practitioner, {"Scaling"}, {"Hygiene"})

        assert score == 60
        assert match_type == "Category Hygiene - all practitioners"

    def test_category_rule_for_other_practitioner_does_not_match(self, practitioner):
        rule = make_rule(1, "8", practitioner_ids=["dr-2"], category="Hygiene")

        score, match_type = FeeRuleMatcher.score_rule(rule, practitioner, {"Scaling"}, {"Hygiene"})

        assert score == 0
        assert match_type is None

    def test_default_fallback(self, practitioner):
        rule = make_rule(1, "10", is_default_fallback=True)

        score, match_type = FeeRuleMatcher.score_rule(rule, practitioner, {"Scaling"}, set())

        assert score == 40
        assert match_type == "Default rule"

    def test_match_by_legacy_name(self):
        """Rules that only carry the practitioner's name still apply."""
        rule = make_rule(1, "15", practitioner_names=["Dr. Sari"], procedure_names=["Scaling"])

        score, _ = FeeRuleMatcher.score_rule(
            rule, Practitioner(id="dr-99", name="Dr. Sari"), {"Scaling"}, set()
        )

        assert score == 100

    def test_category_mismatch(self, practitioner):
        rule = make_rule(1, "8", category="Orthodontics")

        score, _ = FeeRuleMatcher.score_rule(rule, practitioner, {"Scaling"}, {"Hygiene"})

        assert score == 0


class TestFindBestRule:
    """Test best rule selection."""

    def test_specific_rule_beats_default(self, practitioner, scaling):
        rules = [
            make_rule(1, "10", is_default_fallback=True),
            make_rule(2, "15", practitioner_ids=["dr-1"], procedure_names=["Scaling"]),
        ]

        match = FeeRuleMatcher.find_best_rule(rules, practitioner, scaling)

        assert match is not None
        assert match['rule']['id'] == 2
        assert match['score'] == 100

    def test_full_ladder(self, practitioner, scaling):
        """Each more specific rule outranks the less specific ones."""
        rules = [
            make_rule(1, "10", is_default_fallback=True),
            make_rule(2, "11", category="Hygiene"),
            make_rule(3, "12", practitioner_ids=["dr-1"]),
            make_rule(4, "13", practitioner_ids=["dr-1"], category="Hygiene"),
        ]

        for count, expected_score in [(1, 40), (2, 60), (3, 75), (4, 80)]:
            match = FeeRuleMatcher.find_best_rule(rules[:count], practitioner, scaling)
            assert match is not None
            assert match['score'] == expected_score
            assert match['rule']['id'] == count

    def test_tie_keeps_first_rule(self, practitioner, scaling):
        rules = [
            make_rule(7, "12", practitioner_ids=["dr-1"], procedure_names=["Scaling"]),
            make_rule(8, "20", practitioner_ids=["dr-1"], procedure_names=["Scaling"]),
        ]

        match = FeeRuleMatcher.find_best_rule(rules, practitioner, scaling)

        assert match is not None
        assert match['rule']['id'] == 7

    def test_no_practitioner(self, scaling, scaling_rules):
        assert FeeRuleMatcher.find_best_rule(scaling_rules, None, scaling) is None

    def test_no_procedures(self, practitioner, scaling_rules):
        assert FeeRuleMatcher.find_best_rule(scaling_rules, practitioner, []) is None

    def test_no_rules(self, practitioner, scaling):
        assert FeeRuleMatcher.find_best_rule([], practitioner, scaling) is None

    def test_nothing_matches(self, scaling):
        rules = [make_rule(1, "15", practitioner_ids=["dr-2"], procedure_names=["Scaling"])]

        assert FeeRuleMatcher.find_best_rule(rules, Practitioner(id="dr-1", name="Dr. Sari"), scaling) is None

    def test_any_selected_procedure_can_match(self, practitioner):
        procedures = [
            make_procedure("p1", "Consultation", "50000"),
            make_procedure("p2", "Scaling", "200000"),
        ]
        rules = [make_rule(1, "15", practitioner_ids=["dr-1"], procedure_names=["Scaling"])]

        match = FeeRuleMatcher.find_best_rule(rules, practitioner, procedures)

        assert match is not None
        assert match['score'] == 100
