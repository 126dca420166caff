"""
Pytest fixtures for the ledger test suite.

Provides:
- A database session per test (session-scoped engine and tables, per-test
  rollback)
- A deterministic clock, tenant context and report cache
- A seeded tenant: one USD entity with a small chart of accounts, a client
  and a vendor
- ``post``: write a balanced journal entry by account code

Environment Variables:
- LEDGER_DATABASE_URL: database URL.  Defaults to in-memory SQLite; set a
  postgresql:// URL to run the suite against PostgreSQL.
"""

import json
import logging
import os
from datetime import UTC, date, datetime
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.context import TenantContext
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import AccountType, GLAccount
from ledger_kernel.models.journal import JournalSourceType
from ledger_kernel.models.party import Party, PartyType
from ledger_kernel.models.tenant import Entity, Tenant
from ledger_kernel.services.journal_writer import JournalWriter, LineSpec
from ledger_kernel.services.report_cache import InMemoryReportCache

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"

# Test actor ID for all test operations
TEST_USER_ID = uuid4()

CHART_OF_ACCOUNTS = (
    ("1000", "Cash", AccountType.ASSET),
    ("1100", "Accounts Receivable", AccountType.ASSET),
    ("1500", "Equipment", AccountType.ASSET),
    ("2000", "Accounts Payable", AccountType.LIABILITY),
    ("2500", "Long-term Debt", AccountType.LIABILITY),
    ("3000", "Owner Capital", AccountType.EQUITY),
    ("3100", "Retained Earnings", AccountType.EQUITY),
    ("4000", "Service Revenue", AccountType.REVENUE),
    ("5000", "Rent Expense", AccountType.EXPENSE),
    ("5100", "Supplies Expense", AccountType.EXPENSE),
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, reversal):
            reversal.void_entry(entry.id, "duplicate")
            logs = captured_logs()
            assert any(r["message"] == "entry_voided" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    handler.setLevel(logging.DEBUG)
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("LEDGER_DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Uses the SQLAlchemy 2.0 ``join_transaction_mode`` pattern:
    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction
    - Service-level ``begin_nested()`` blocks become real SAVEPOINTs
    - At teardown the outer transaction is rolled back, undoing ALL data
      changes made during the test
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Call context
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2026, 3, 31, 12, 0, tzinfo=UTC))


@pytest.fixture
def cache() -> InMemoryReportCache:
    return InMemoryReportCache()


@pytest.fixture
def tenant(session) -> Tenant:
    tenant = Tenant(name="Acme Holdings")
    session.add(tenant)
    session.flush()
    return tenant


@pytest.fixture
def context(tenant) -> TenantContext:
    return TenantContext(tenant_id=tenant.id, user_id=TEST_USER_ID)


def make_entity(session, tenant, name="Acme US", currency="USD", fiscal_year_start=1) -> Entity:
    entity = Entity(
        tenant_id=tenant.id,
        name=name,
        functional_currency=currency,
        fiscal_year_start=fiscal_year_start,
    )
    session.add(entity)
    session.flush()
    return entity


def make_accounts(session, entity) -> dict[str, GLAccount]:
    accounts = {
        code: GLAccount(entity_id=entity.id, code=code, name=name, account_type=account_type)
        for code, name, account_type in CHART_OF_ACCOUNTS
    }
    session.add_all(accounts.values())
    session.flush()
    return accounts


def make_party(session, entity, party_type: PartyType, name: str) -> Party:
    party = Party(
        entity_id=entity.id,
        party_type=party_type.value,
        name=name,
        created_by_id=TEST_USER_ID,
    )
    session.add(party)
    session.flush()
    return party


@pytest.fixture
def entity(session, tenant) -> Entity:
    return make_entity(session, tenant)


@pytest.fixture
def accounts(session, entity) -> dict[str, GLAccount]:
    return make_accounts(session, entity)


@pytest.fixture
def client(session, entity) -> Party:
    return make_party(session, entity, PartyType.CLIENT, "Globex")


@pytest.fixture
def vendor(session, entity) -> Party:
    return make_party(session, entity, PartyType.VENDOR, "Initech Supplies")


@pytest.fixture
def other_tenant(session):
    """A second tenant with its own entity, accounts and client."""
    tenant = Tenant(name="Umbrella Corp")
    session.add(tenant)
    session.flush()
    entity = make_entity(session, tenant, name="Umbrella EU", currency="USD")
    return {
        "tenant": tenant,
        "context": TenantContext(tenant_id=tenant.id, user_id=uuid4()),
        "entity": entity,
        "accounts": make_accounts(session, entity),
        "client": make_party(session, entity, PartyType.CLIENT, "Wayne Enterprises"),
    }


@pytest.fixture
def writer(session, context, clock, cache) -> JournalWriter:
    return JournalWriter(session, context, clock, cache)


@pytest.fixture
def post(writer, entity, accounts):
    """
    Post a balanced entry by account code.

    Usage::

        post(date(2026, 1, 5), [("1000", 50_000, 0), ("4000", 0, 50_000)])
    """

    def _post(
        entry_date: date,
        lines: list[tuple[str, int, int]],
        memo: str | None = None,
        source_type: JournalSourceType = JournalSourceType.MANUAL,
        source_id: UUID | None = None,
        entity_id: UUID | None = None,
        chart: dict[str, GLAccount] | None = None,
    ):
        chart = chart or accounts
        return writer.create_entry(
            entity_id=entity_id or entity.id,
            entry_date=entry_date,
            lines=[
                LineSpec(gl_account_id=chart[code].id, debit_amount=debit, credit_amount=credit)
                for code, debit, credit in lines
            ],
            memo=memo,
            source_type=source_type,
            source_id=source_id,
        )

    return _post


@pytest.fixture
def entity_factory(session, tenant):
    """Create further entities of the calling tenant."""

    def _create(name: str, currency: str = "USD", fiscal_year_start: int = 1) -> Entity:
        return make_entity(session, tenant, name=name, currency=currency, fiscal_year_start=fiscal_year_start)

    return _create
