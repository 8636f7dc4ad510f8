"""
Commission rule model representing configured practitioner compensation rules.

A commission rule maps a combination of constraints (practitioners, procedure
category, specific procedures) to a commission percentage. Rules may overlap;
the fee rule matcher scores them and picks the most specific one for an order.
"""

from datetime import datetime
from typing import Optional, List
from decimal import Decimal

from sqlalchemy import String, TIMESTAMP, Boolean, Numeric, Index, CheckConstraint, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import MAX_STRING_LENGTH
from core.database import Base


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests/local dev)
JSONList = JSONB().with_variant(JSON(), "sqlite")


class CommissionRule(Base):
    """
    Commission rule entity.

    Each rule defines:
    - Which practitioners it applies to (empty means all practitioners)
    - Which procedure category and/or specific procedures it covers
    - The commission percentage paid to the practitioner
    - Whether it is the clinic-wide default fallback

    Older rules were saved with single-value fields (one practitioner, one
    procedure type). Those legacy columns are kept so existing rows stay
    readable; CommissionRuleService.normalize_rule folds them into the list
    columns before a rule is scored.
    """

    __tablename__ = "commission_rules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the commission rule."""

    practitioner_ids: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    """Practitioner IDs this rule applies to. Empty means no practitioner constraint."""

    practitioner_names: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    """Practitioner names mirrored alongside the IDs (legacy matching by name)."""

    category: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Procedure category this rule covers (e.g., "Dental", "Aesthetic")."""

    procedure_names: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    """Specific procedure names this rule covers."""

    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    """Commission percentage paid to the practitioner (0 < percentage <= 100)."""

    is_default_fallback: Mapped[bool] = mapped_column(Boolean, default=False)
    """Whether this rule applies when nothing more specific matches."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Free-text description shown to operators."""

    legacy_practitioner_id: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Legacy single practitioner ID (superseded by practitioner_ids)."""

    legacy_practitioner_name: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Legacy single practitioner name (superseded by practitioner_names)."""

    legacy_procedure_type: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Legacy single procedure name (superseded by procedure_names)."""

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    """Soft delete flag. True if this rule has been deleted."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Timestamp when the rule was soft deleted (if applicable)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the rule was created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the rule was last updated."""

    __table_args__ = (
        Index('idx_commission_rules_deleted', 'is_deleted'),
        CheckConstraint('percentage > 0', name='chk_commission_percentage_positive'),
        CheckConstraint('percentage <= 100', name='chk_commission_percentage_max'),
    )
