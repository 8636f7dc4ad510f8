"""
Service for managing commission rules.

Commission rules are the configuration the fee rule matcher reads. This
service is the only path between the database rows and the matcher: it
validates rules on write and normalizes legacy single-value fields into the
canonical set form on read.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from core.constants import PERCENTAGE_MAX
from core.sentinels import MISSING
from models.commission_rule import CommissionRule
from services.pricing_types import CanonicalCommissionRule

logger = logging.getLogger(__name__)


def _clean_values(values: Optional[Iterable[Any]]) -> List[str]:
    """Strip, drop blanks and de-duplicate while keeping first-seen order."""
    cleaned: List[str] = []
    for value in values or []:
        if value is None:
            continue
        text = str(value).strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text or None


class CommissionRuleService:
    """Service for commission rule operations."""

    @staticmethod
    def validate_rule(
        percentage: Decimal,
        practitioner_ids: List[str],
        practitioner_names: List[str],
        category: Optional[str],
        procedure_names: List[str],
        is_default_fallback: bool
    ) -> None:
        """
        Validate a rule before it is written.

        Raises:
            ValueError: If the percentage is outside (0, 100] or the rule has no constraint
        """
        if percentage <= 0 or percentage > PERCENTAGE_MAX:
            raise ValueError("Commission percentage must be greater than 0 and at most 100")

        if not (practitioner_ids or practitioner_names or category or procedure_names or is_default_fallback):
            raise ValueError(
                "Commission rule must target a practitioner, category or procedure, or be the default rule"
            )

    @staticmethod
    def normalize_rule(rule: CommissionRule) -> CanonicalCommissionRule:
        """
        Convert a stored rule into the canonical shape.

        Legacy single-value columns are merged into the corresponding sets so
        the matcher never has to look at them.

        Args:
            rule: Commission rule row

        Returns:
            CanonicalCommissionRule
        """
        practitioner_ids = set(_clean_values(rule.practitioner_ids))
        practitioner_names = set(_clean_values(rule.practitioner_names))
        procedure_names = set(_clean_values(rule.procedure_names))

        legacy_id = _clean_optional(rule.legacy_practitioner_id)
        if legacy_id:
            practitioner_ids.add(legacy_id)
        legacy_name = _clean_optional(rule.legacy_practitioner_name)
        if legacy_name:
            practitioner_names.add(legacy_name)
        legacy_procedure = _clean_optional(rule.legacy_procedure_type)
        if legacy_procedure:
            procedure_names.add(legacy_procedure)

        return CanonicalCommissionRule(
            id=rule.id,
            practitioner_ids=frozenset(practitioner_ids),
            practitioner_names=frozenset(practitioner_names),
            category=_clean_optional(rule.category),
            procedure_names=frozenset(procedure_names),
            percentage=Decimal(str(rule.percentage)),
            is_default_fallback=bool(rule.is_default_fallback),
            description=rule.description
        )

    @staticmethod
    def list_rules(
        db: Session,
        include_deleted: bool = False
    ) -> List[CommissionRule]:
        """
        List commission rules in id order.

        The matcher breaks score ties by list order, so this ordering is what
        makes rule resolution deterministic.

        Args:
            db: Database session
            include_deleted: Whether to include soft-deleted rules

        Returns:
            List of commission rules
        """
        query = db.query(CommissionRule)

        if not include_deleted:
            query = query.filter(CommissionRule.is_deleted == False)

        return query.order_by(CommissionRule.id).all()

    @staticmethod
    def list_canonical_rules(db: Session) -> List[CanonicalCommissionRule]:
        """List active rules in canonical form, ready for the matcher."""
        return [CommissionRuleService.normalize_rule(rule) for rule in CommissionRuleService.list_rules(db)]

    @staticmethod
    def get_rule(
        db: Session,
        rule_id: int
    ) -> Optional[CommissionRule]:
        """
        Get a commission rule by ID.

        Args:
            db: Database session
            rule_id: ID of the commission rule

        Returns:
            Commission rule or None if not found
        """
        return db.query(CommissionRule).filter(
            CommissionRule.id == rule_id,
            CommissionRule.is_deleted == False
        ).first()

    @staticmethod
    def create_rule(
        db: Session,
        percentage: Decimal,
        practitioner_ids: Optional[List[str]] = None,
        practitioner_names: Optional[List[str]] = None,
        category: Optional[str] = None,
        procedure_names: Optional[List[str]] = None,
        is_default_fallback: bool = False,
        description: Optional[str] = None,
        legacy_practitioner_id: Optional[str] = None,
        legacy_practitioner_name: Optional[str] = None,
        legacy_procedure_type: Optional[str] = None
    ) -> CommissionRule:
        """
        Create a new commission rule.

        Legacy single-value fields are accepted from older clients and folded
        into the list columns before the row is written.

        Returns:
            Created commission rule

        Raises:
            ValueError: If the rule is invalid
        """
        ids = _clean_values([*(practitioner_ids or []), legacy_practitioner_id])
        names = _clean_values([*(practitioner_names or []), legacy_practitioner_name])
        procedures = _clean_values([*(procedure_names or []), legacy_procedure_type])
        category = _clean_optional(category)

        CommissionRuleService.validate_rule(percentage, ids, names, category, procedures, is_default_fallback)

        rule = CommissionRule(
            practitioner_ids=ids,
            practitioner_names=names,
            category=category,
            procedure_names=procedures,
            percentage=percentage,
            is_default_fallback=is_default_fallback,
            description=description
        )

        db.add(rule)
        db.flush()
        logger.info(f"Created commission rule {rule.id} ({percentage}%)")
        return rule

    @staticmethod
    def update_rule(
        db: Session,
        rule_id: int,
        percentage: Any = MISSING,
        practitioner_ids: Any = MISSING,
        practitioner_names: Any = MISSING,
        category: Any = MISSING,
        procedure_names: Any = MISSING,
        is_default_fallback: Any = MISSING,
        description: Any = MISSING
    ) -> CommissionRule:
        """
        Update a commission rule.

        Omitted fields (MISSING) keep their value; an explicit None clears an
        optional field. Updating a rule also folds its legacy columns into the
        list columns and clears them.

        Returns:
            Updated commission rule

        Raises:
            ValueError: If the rule is not found or the result is invalid
        """
        rule = CommissionRuleService.get_rule(db, rule_id)
        if not rule:
            raise ValueError("Commission rule not found")

        current = CommissionRuleService.normalize_rule(rule)

        new_percentage = percentage if percentage is not MISSING else current['percentage']
        new_ids = _clean_values(practitioner_ids) if practitioner_ids is not MISSING else sorted(current['practitioner_ids'])
        new_names = _clean_values(practitioner_names) if practitioner_names is not MISSING else sorted(current['practitioner_names'])
        new_category = _clean_optional(category) if category is not MISSING else current['category']
        new_procedures = _clean_values(procedure_names) if procedure_names is not MISSING else sorted(current['procedure_names'])
        new_default = is_default_fallback if is_default_fallback is not MISSING else current['is_default_fallback']

        CommissionRuleService.validate_rule(
            new_percentage, new_ids, new_names, new_category, new_procedures, new_default
        )

        rule.percentage = new_percentage
        rule.practitioner_ids = new_ids
        rule.practitioner_names = new_names
        rule.category = new_category
        rule.procedure_names = new_procedures
        rule.is_default_fallback = new_default
        if description is not MISSING:
            rule.description = description
        rule.legacy_practitioner_id = None
        rule.legacy_practitioner_name = None
        rule.legacy_procedure_type = None

        db.flush()
        logger.info(f"Updated commission rule {rule.id}")
        return rule

    @staticmethod
    def delete_rule(
        db: Session,
        rule_id: int
    ) -> None:
        """
        Soft delete a commission rule.

        Raises:
            ValueError: If rule not found
        """
        rule = CommissionRuleService.get_rule(db, rule_id)
        if not rule:
            raise ValueError("Commission rule not found")

        rule.is_deleted = True
        rule.deleted_at = datetime.now(timezone.utc)
        db.flush()
        logger.info(f"Deleted commission rule {rule_id}")
