"""
Pytest fixtures for the fincalc test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- ``captured_logs`` for asserting on emitted JSON log records
- An in-memory SQLite session with all tables, rolled back after each test
- The default engine configuration and a deterministic clock
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from fincalc_config import get_active_config
from fincalc_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from fincalc_kernel.domain.clock import DeterministicClock
from fincalc_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture fincalc_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            TaxBracketCalculator().estimate(basic_salary=0)
            logs = captured_logs()
            assert any(r["message"] == "tax_estimate_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fincalc_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Configuration and time
# =============================================================================


@pytest.fixture(scope="session")
def engine_config():
    """The default configuration set shipped with fincalc_config."""
    return get_active_config()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single in-memory SQLite engine for the whole test session."""
    eng = init_engine_from_url("sqlite://", echo=False)
    create_tables()
    yield eng
    reset_engine()


@pytest.fixture
def session(db_engine):
    """
    Session whose work is rolled back after the test.

    Services only flush, so everything a test writes stays inside the
    outer transaction.
    """
    connection = db_engine.connect()
    transaction = connection.begin()
    sess = get_session_factory()(bind=connection)
    try:
        yield sess
    finally:
        sess.close()
        transaction.rollback()
        connection.close()
