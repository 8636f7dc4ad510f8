"""
Test configuration and shared fixtures for the treatment pricing test suite.

Rule store tests run against an in-memory SQLite database; each test gets a
fresh schema. Builders for canonical rules and order selections live here so
unit tests can construct inputs without touching the database.
"""

from decimal import Decimal
from typing import Generator, Iterable, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base
from models.commission_rule import CommissionRule  # noqa: F401  (registers the table)
from services.pricing_types import (
    CanonicalCommissionRule,
    MedicationSelection,
    Practitioner,
    ProcedureSelection,
)


TEST_DATABASE_URL = "sqlite://"


@pytest.fixture(scope="function")
def db_engine():
    """
    Create an in-memory database engine for a single test.

    StaticPool keeps one connection alive so the schema survives across
    sessions (and across the TestClient's worker thread).
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session bound to the per-test engine."""
    TestingSession = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = TestingSession()

    yield session

    session.close()


def make_rule(
    rule_id: int,
    percentage: str,
    practitioner_ids: Iterable[str] = (),
    practitioner_names: Iterable[str] = (),
    category: Optional[str] = None,
    procedure_names: Iterable[str] = (),
    is_default_fallback: bool = False,
    description: Optional[str] = None
) -> CanonicalCommissionRule:
    """Build a canonical commission rule."""
    return CanonicalCommissionRule(
        id=rule_id,
        practitioner_ids=frozenset(practitioner_ids),
        practitioner_names=frozenset(practitioner_names),
        category=category,
        procedure_names=frozenset(procedure_names),
        percentage=Decimal(percentage),
        is_default_fallback=is_default_fallback,
        description=description
    )


def make_procedure(
    procedure_id: str,
    name: str,
    unit_price: str,
    quantity: int = 1,
    discount_value: str = "0",
    discount_type: str = "percentage",
    category: Optional[str] = None
) -> ProcedureSelection:
    """Build a procedure selection."""
    return ProcedureSelection(
        id=procedure_id,
        name=name,
        category=category,
        unit_price=Decimal(unit_price),
        quantity=quantity,
        discount_value=Decimal(discount_value),
        discount_type=discount_type,  # type: ignore[typeddict-item]
    )


def make_medication(
    medication_id: str,
    name: str,
    unit_price: str,
    quantity: int = 1,
    available_stock: Optional[int] = None
) -> MedicationSelection:
    """Build a medication selection."""
    return MedicationSelection(
        id=medication_id,
        name=name,
        unit_price=Decimal(unit_price),
        quantity=quantity,
        available_stock=available_stock
    )


@pytest.fixture
def practitioner() -> Practitioner:
    """The practitioner used across pricing tests."""
    return Practitioner(id="dr-1", name="Dr. Sari")


@pytest.fixture
def scaling_rules():
    """A procedure-specific rule for Dr. Sari and a clinic-wide default."""
    return [
        make_rule(1, "15", practitioner_ids=["dr-1"], procedure_names=["Scaling"]),
        make_rule(2, "10", is_default_fallback=True),
    ]
