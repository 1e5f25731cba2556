"""
Tests for JournalService.

Covers:
- Balanced manual entries are persisted with their lines
- Rejected entries raise and write nothing
- Idempotent system postings
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from fincalc_engines.ledger_balance import JournalEntryLine
from fincalc_kernel.exceptions import UnbalancedJournalError
from fincalc_kernel.models.journal import JournalEntryModel
from fincalc_services.journal_service import JournalService, parse_iso_date


def entry_count(session) -> int:
    return session.execute(select(func.count()).select_from(JournalEntryModel)).scalar_one()


class TestCreateEntry:
    """The manual journal endpoint."""

    def test_balanced_entry_persisted(self, session):
        model = JournalService(session).create_entry(
            {
                "transaction_date": "2025-01-20",
                "description": "Office supplies",
                "reference": "MEMO-7",
                "entries": [
                    {"account_id": "6-1100", "debit": "5000000"},
                    {"account_id": "1-1100", "credit": 5_000_000},
                ],
            },
            created_by="finance.admin",
        )
        assert model.transaction_date == date(2025, 1, 20)
        assert model.source == "manual"
        assert model.total_amount == Decimal("5000000")
        assert [line.account_code for line in model.lines] == ["6-1100", "1-1100"]
        assert model.is_balanced
        assert model.created_by == "finance.admin"

    def test_unbalanced_entry_rejected(self, session):
        with pytest.raises(UnbalancedJournalError) as exc_info:
            JournalService(session).create_entry({
                "transaction_date": "2025-01-20",
                "description": "Typo",
                "entries": [
                    {"account_id": "A", "debit": 5_000_000},
                    {"account_id": "B", "credit": 4_000_000},
                ],
            })
        assert exc_info.value.imbalance_amount == "1000000"
        assert entry_count(session) == 0

    def test_no_entries_rejected(self, session):
        with pytest.raises(UnbalancedJournalError) as exc_info:
            JournalService(session).create_entry({"transaction_date": "2025-01-20", "entries": []})
        assert exc_info.value.reason == "insufficient_lines"

    def test_missing_date(self, session):
        with pytest.raises(ValueError):
            JournalService(session).create_entry({"entries": []})


class TestPostLines:
    """The internal posting path used by other services."""

    def lines(self, amount=1_000):
        return [
            JournalEntryLine.create("6-1500", debit=amount),
            JournalEntryLine.create("1-2900", credit=amount),
        ]

    def test_idempotency_key_returns_existing(self, session):
        service = JournalService(session)
        first = service.post_lines(
            self.lines(), date(2025, 1, 31), "Depreciation", source="depreciation",
            idempotency_key="depreciation:A:2025-01",
        )
        second = service.post_lines(
            self.lines(), date(2025, 1, 31), "Depreciation", source="depreciation",
            idempotency_key="depreciation:A:2025-01",
        )
        assert first.id == second.id
        assert entry_count(session) == 1

    def test_without_key_posts_twice(self, session):
        service = JournalService(session)
        service.post_lines(self.lines(), date(2025, 1, 31), "One")
        service.post_lines(self.lines(), date(2025, 1, 31), "Two")
        assert entry_count(session) == 2

    def test_logged(self, session, captured_logs):
        JournalService(session).post_lines(self.lines(), date(2025, 1, 31), "Logged")
        created = [r for r in captured_logs() if r["message"] == "journal_entry_created"]
        assert created[0]["line_count"] == 2
        assert created[0]["total"] == "1000"


class TestParseIsoDate:

    def test_date_passthrough(self):
        assert parse_iso_date(date(2025, 1, 1)) == date(2025, 1, 1)

    def test_datetime_string_cut(self):
        assert parse_iso_date("2025-01-20T10:00:00Z") == date(2025, 1, 20)

    @pytest.mark.parametrize("value", [None, "", 20250120])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_iso_date(value)
