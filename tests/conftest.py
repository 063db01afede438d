"""Shared test fixtures for all test modules."""

import contextlib
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import subscription_engine.models  # noqa: F401  (registers tables on Base.metadata)
from subscription_engine.core import database as db_module
from subscription_engine.core.database import Base, get_db
from subscription_engine.models.plan import Plan
from subscription_engine.models.price import Price
from subscription_engine.models.subscription import Subscription, SubscriptionStatus
from subscription_engine.schemas.lifecycle import LifecycleState

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

# Fixed instant used by the lifecycle tests
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def plan(db_session: Session) -> Plan:
    p = Plan(code="pro", name="Pro")
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture
def price(db_session: Session, plan: Plan) -> Price:
    p = Price(plan_id=plan.id, unit_amount=2900, currency="USD", billing_interval=None)
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture
def make_subscription(db_session: Session, plan: Plan) -> Callable[..., Subscription]:
    """Factory for subscriptions on the ``plan`` fixture.

    Defaults to an active subscription whose period ends 20 days after NOW.
    ``lifecycle_state`` may be a LifecycleState or its raw JSON form.
    """

    def _make(
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        trial_end: datetime | None = None,
        period_end: datetime | None = None,
        lifecycle_state: LifecycleState | dict[str, Any] | None = None,
        payment_method_collected: bool = False,
        cancel_at_period_end: bool = False,
        quantity: int = 1,
        customer_id: uuid.UUID | None = None,
    ) -> Subscription:
        period_end = period_end or NOW + timedelta(days=20)
        if isinstance(lifecycle_state, LifecycleState):
            lifecycle_state = lifecycle_state.dump()
        sub = Subscription(
            customer_id=customer_id or uuid.uuid4(),
            plan_id=plan.id,
            status=status.value,
            trial_start=trial_end - timedelta(days=14) if trial_end else None,
            trial_end=trial_end,
            current_period_start=period_end - timedelta(days=30),
            current_period_end=period_end,
            cancel_at_period_end=cancel_at_period_end,
            quantity=quantity,
            subscription_metadata=(
                {"payment_method_collected": True} if payment_method_collected else {}
            ),
            lifecycle_state=lifecycle_state,
        )
        db_session.add(sub)
        db_session.commit()
        db_session.refresh(sub)
        return sub

    return _make
