"""
Commission rule matching.

Scores every configured rule against the selected practitioner and procedures
and returns the most specific match:

    100  practitioner + specific procedure
     80  practitioner + procedure category
     75  practitioner only
     60  category, rule has no practitioner constraint
     40  default fallback rule
      0  not a candidate

Ties go to the first rule in iteration order. CommissionRuleService lists
rules by id, so in practice the oldest rule wins a tie.
"""
import logging
from typing import Iterable, List, Optional, Set, Tuple

from core.constants import (
    SCORE_PRACTITIONER_AND_PROCEDURE,
    SCORE_PRACTITIONER_AND_CATEGORY,
    SCORE_PRACTITIONER_ONLY,
    SCORE_CATEGORY_ONLY,
    SCORE_DEFAULT_FALLBACK,
    SCORE_NO_MATCH,
)
from services.pricing_types import (
    CanonicalCommissionRule,
    Practitioner,
    ProcedureSelection,
    RuleMatch,
)

logger = logging.getLogger(__name__)


class FeeRuleMatcher:
    """Selects the best commission rule for an order."""

    @staticmethod
    def _procedure_names(procedures: Iterable[ProcedureSelection]) -> Set[str]:
        return {p['name'] for p in procedures}

    @staticmethod
    def _procedure_categories(procedures: Iterable[ProcedureSelection]) -> Set[str]:
        return {p['category'] for p in procedures if p.get('category')}

    @staticmethod
    def applies_to_practitioner(rule: CanonicalCommissionRule, practitioner: Practitioner) -> bool:
        """Whether the rule's practitioner set names this practitioner (by id or legacy name)."""
        return (
            practitioner['id'] in rule['practitioner_ids']
            or practitioner['name'] in rule['practitioner_names']
        )

    @staticmethod
    def has_practitioner_constraint(rule: CanonicalCommissionRule) -> bool:
        return bool(rule['practitioner_ids'] or rule['practitioner_names'])

    @staticmethod
    def score_rule(
        rule: CanonicalCommissionRule,
        practitioner: Practitioner,
        procedure_names: Set[str],
        procedure_categories: Set[str]
    ) -> Tuple[int, Optional[str]]:
        """
        Score a single rule.

        Args:
            rule: Canonical commission rule
            practitioner: Selected practitioner
            procedure_names: Names of the selected procedures
            procedure_categories: Categories of the selected procedures

        Returns:
            Tuple of (score, match_type). match_type is None when score is 0.
        """
        category = rule['category']
        category_matches = bool(category) and category in procedure_categories

        if FeeRuleMatcher.applies_to_practitioner(rule, practitioner):
            name = practitioner['name']
            if rule['procedure_names'] & procedure_names:
                return SCORE_PRACTITIONER_AND_PROCEDURE, f"Practitioner {name} + specific procedure"
            if category_matches:
                return SCORE_PRACTITIONER_AND_CATEGORY, f"Practitioner {name} + category {category}"
            return SCORE_PRACTITIONER_ONLY, f"Practitioner {name} - general"

        if not FeeRuleMatcher.has_practitioner_constraint(rule) and category_matches:
            return SCORE_CATEGORY_ONLY, f"Category {category} - all practitioners"

        if rule['is_default_fallback']:
            return SCORE_DEFAULT_FALLBACK, "Default rule"

        return SCORE_NO_MATCH, None

    @staticmethod
    def find_best_rule(
        rules: List[CanonicalCommissionRule],
        practitioner: Optional[Practitioner],
        procedures: List[ProcedureSelection]
    ) -> Optional[RuleMatch]:
        """
        Find the highest-scoring rule.

        Args:
            rules: Canonical rules, in the order listed by the rule store
            practitioner: Selected practitioner (None if not chosen yet)
            procedures: Selected procedures

        Returns:
            RuleMatch for the best rule, or None if no practitioner or procedure
            is selected or every rule scores 0
        """
        if practitioner is None or not procedures or not rules:
            return None

        procedure_names = FeeRuleMatcher._procedure_names(procedures)
        procedure_categories = FeeRuleMatcher._procedure_categories(procedures)

        best: Optional[RuleMatch] = None
        for rule in rules:
            score, match_type = FeeRuleMatcher.score_rule(
                rule, practitioner, procedure_names, procedure_categories
            )
            # Strictly greater: the first rule to reach a score keeps it
            if score > SCORE_NO_MATCH and (best is None or score > best['score']):
                best = RuleMatch(rule=rule, score=score, match_type=match_type or "")

        if best is None:
            logger.debug(f"No commission rule matched practitioner {practitioner['id']}")
        else:
            logger.debug(
                f"Commission rule {best['rule']['id']} matched with score {best['score']} "
                f"({best['match_type']})"
            )
        return best
