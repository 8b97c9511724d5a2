"""
Pytest fixtures for the proposal engine test suite.

Provides:
- In-memory SQLite sessions for persistence and service tests
- A deterministic clock and default engine settings
- Fake collaborators (unit gateway, document generator, price tables,
  entity directory) recording the calls they receive
- Captured structured log records
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from sales_config.schema import EngineSettings
from sales_engines.standard_flow import PriceTableEntry
from sales_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from sales_kernel.domain.clock import DeterministicClock
from sales_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from sales_services.proposal_service import ProposalService
from tests.factories import (
    FakeDocumentGenerator,
    FakeEntityDirectory,
    FakePriceTables,
    FakeUnitGateway,
    make_conditions,
    make_template,
)

TEST_ACTOR_ID = uuid4()
FIXED_NOW = datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


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
    Capture sales_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "proposal_submit_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("sales_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Time and settings
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(fixed_time=FIXED_NOW)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings.with_defaults()


@pytest.fixture
def actor_id() -> UUID:
    return TEST_ACTOR_ID


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session():
    """Fresh in-memory SQLite database with all proposal tables."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    s = get_session()
    yield s
    s.close()
    drop_tables()
    reset_engine()


@pytest.fixture
def units() -> FakeUnitGateway:
    return FakeUnitGateway()


@pytest.fixture
def documents() -> FakeDocumentGenerator:
    return FakeDocumentGenerator()


@pytest.fixture
def price_tables() -> FakePriceTables:
    return FakePriceTables(template=make_template())


@pytest.fixture
def entities() -> FakeEntityDirectory:
    return FakeEntityDirectory()


@pytest.fixture
def unit_id(price_tables) -> UUID:
    """A 100 m2 unit at 2000/m2: table price 200000."""
    uid = uuid4()
    price_tables.entry_for[uid] = PriceTableEntry(
        unit_id=uid, private_area=Decimal("100"), price_per_m2=Decimal("2000"),
    )
    return uid


@pytest.fixture
def service(session, units, documents, clock, settings, price_tables, entities):
    return ProposalService(
        session,
        units,
        documents,
        clock=clock,
        settings=settings,
        price_tables=price_tables,
        entities=entities,
    )


@pytest.fixture
def draft(service, unit_id, actor_id):
    """A RASCUNHO proposal at 190000 against a 200000 table price."""
    return service.create_proposal(
        unit_id=unit_id,
        table_value=Decimal("200000"),
        proposal_value=Decimal("190000"),
        conditions=make_conditions(Decimal("190000")),
        actor_id=actor_id,
        commission_value=Decimal("10000"),
    )
