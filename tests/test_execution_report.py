"""
Tests for Execution Reporter
"""

from datetime import date
from decimal import Decimal

import pytest

from credit_ledger import (
    BalanceCalculator,
    Cancellation,
    Commitment,
    ExecutionReporter,
    LedgerFilters,
    Refund,
)

TODAY = date(2026, 3, 1)


@pytest.fixture
def reporter(config_dir):
    """Create reporter with test config."""
    return ExecutionReporter(config_dir)


@pytest.fixture
def history(cancelled_snapshot, refund_100):
    """Scenario D history: X 150, Y 350, Z 2000."""
    s = cancelled_snapshot.with_refund(refund_100)
    return s.credits, s.commitments, s.refunds, s.cancellations


def ids(rows):
    return [r.id for r in rows]


class TestSummarize:
    """Tests for dashboard totals."""

    def test_totals(self, reporter, history):
        summary = reporter.summarize(*history, today=TODAY)

        assert summary.credit_count == 3
        assert summary.total_received == Decimal("3500.00")
        assert summary.total_refunded == Decimal("100.00")
        assert summary.total_committed == Decimal("900.00")
        assert summary.total_available == Decimal("2500.00")
        assert summary.net_received == Decimal("3400.00")
        assert summary.execution_percent == Decimal("26.47")

    def test_filtered_by_unit(self, reporter, history):
        summary = reporter.summarize(
            *history, filters=LedgerFilters(managing_unit="160211"), today=TODAY
        )

        assert summary.credit_count == 2
        assert summary.total_received == Decimal("1500.00")
        assert summary.total_available == Decimal("500.00")

    def test_to_dict(self, reporter, history):
        data = reporter.summarize(*history, today=TODAY).to_dict()

        assert data["total_available"] == 2500.0
        assert data["alerts"][0]["credit_id"] == "X"


class TestAlerts:
    """Tests for deadline and low balance alerts."""

    def test_deadline_alert(self, reporter, history):
        alerts = reporter.summarize(*history, today=TODAY).alerts

        assert len(alerts) == 1
        assert alerts[0].credit_balance.id == "X"
        assert alerts[0].reasons == ["deadline"]
        assert alerts[0].days_to_deadline == 10

    def test_low_balance_alert(self, reporter, history):
        credits, commitments, refunds, cancellations = history
        drain_z = Commitment.single("m2", "Z", Decimal("1950.00"))

        alerts = reporter.summarize(
            credits, commitments + (drain_z,), refunds, cancellations, today=TODAY
        ).alerts

        assert [a.credit_balance.id for a in alerts] == ["X", "Z"]
        assert alerts[1].reasons == ["low_balance"]
        assert alerts[1].days_to_deadline is None

    def test_zero_balance_not_alerted(self, reporter, history):
        credits, commitments, refunds, cancellations = history
        drain_x = Refund("r2", "X", Decimal("150.00"))

        alerts = reporter.summarize(
            credits, commitments, refunds + (drain_x,), cancellations, today=TODAY
        ).alerts

        assert alerts == []

    def test_limits_from_config(self, tmp_path, history):
        (tmp_path / "ledger_config.yaml").write_text("alerts:\n  deadline_days: 200\n")
        reporter = ExecutionReporter(tmp_path)

        alerts = reporter.summarize(*history, today=TODAY).alerts

        assert [a.credit_balance.id for a in alerts] == ["X", "Y"]


class TestUnitReport:
    """Tests for per managing unit totals."""

    def test_units(self, reporter, history):
        units = reporter.unit_report(*history)

        assert [u.managing_unit for u in units] == ["160211", "167211"]
        first = units[0]
        assert first.received == Decimal("1500.00")
        assert first.committed == Decimal("1200.00")
        assert first.refunded == Decimal("100.00")
        assert first.cancelled == Decimal("300.00")
        assert first.available == Decimal("500.00")
        assert units[1].to_dict()["available"] == 2000.0


class TestListCredits:
    """Tests for the credit listing."""

    def test_default_sort_newest_first(self, reporter, history):
        assert ids(reporter.list_credits(*history)) == ["Y", "Z", "X"]

    def test_credits_with_balance_first(self, reporter, history):
        credits, commitments, refunds, cancellations = history
        drain_x = Refund("r2", "X", Decimal("150.00"))

        rows = reporter.list_credits(
            credits, commitments, refunds + (drain_x,), cancellations,
            LedgerFilters(sort_order="asc"),
        )
        hidden = reporter.list_credits(
            credits, commitments, refunds + (drain_x,), cancellations,
            LedgerFilters(hide_zero_balance=True),
        )

        assert ids(rows) == ["Z", "Y", "X"]
        assert ids(hidden) == ["Y", "Z"]

    def test_sort_by_balance(self, reporter, history):
        rows = reporter.list_credits(*history, LedgerFilters(sort_by="balance"))

        assert [r.balance for r in rows] == [
            Decimal("2000.00"), Decimal("350.00"), Decimal("150.00"),
        ]

    def test_filters(self, reporter, history):
        by_unit = reporter.list_credits(*history, LedgerFilters(managing_unit="160211"))
        by_search = reporter.list_credits(*history, LedgerFilters(search="nc00000y"))

        assert ids(by_unit) == ["Y", "X"]
        assert ids(by_search) == ["Y"]

    def test_unknown_sort_field(self, reporter, history):
        with pytest.raises(ValueError):
            reporter.list_credits(*history, LedgerFilters(sort_by="organ"))


class TestListCommitments:
    """Tests for the commitment listing."""

    @pytest.fixture
    def listing_history(self, history):
        credits, commitments, _, cancellations = history
        extra = (
            Commitment.single("m2", "Z", Decimal("100.00"), date(2026, 3, 1), "2026NE000002"),
            Commitment.single("m3", "Z", Decimal("50.00"), date(2026, 3, 5), "2026NE000003"),
        )
        settled = Cancellation("c3", "m3", Decimal("50.00"), date(2026, 3, 6))
        return credits, commitments + extra, cancellations + (settled,)

    def test_default_order(self, reporter, listing_history):
        rows = reporter.list_commitments(*listing_history)

        assert [r.commitment.id for r in rows] == ["m2", "m1", "m3"]
        assert rows[1].cancelled == Decimal("300.00")
        assert rows[1].remaining == Decimal("900.00")
        assert rows[1].credit_notes == ["2026NC00000X", "2026NC00000Y"]
        assert rows[2].is_settled

    def test_hide_settled(self, reporter, listing_history):
        rows = reporter.list_commitments(*listing_history, LedgerFilters(hide_zero_balance=True))

        assert [r.commitment.id for r in rows] == ["m2", "m1"]

    def test_filters(self, reporter, listing_history):
        by_unit = reporter.list_commitments(*listing_history, LedgerFilters(managing_unit="160211"))
        by_search = reporter.list_commitments(*listing_history, LedgerFilters(search="NE000002"))
        by_date = reporter.list_commitments(
            *listing_history, LedgerFilters(start_date=date(2026, 3, 1), sort_order="asc")
        )

        assert [r.commitment.id for r in by_unit] == ["m1"]
        assert [r.commitment.id for r in by_search] == ["m2"]
        assert [r.commitment.id for r in by_date] == ["m2", "m3"]

    def test_amounts_from_calculator(self, config_dir, listing_history):
        """Test each row takes its amounts from the reporter's calculator."""
        seen = []

        class RecordingCalculator(BalanceCalculator):
            def commitment_remaining(self, commitment, cancellations):
                seen.append(commitment.id)
                return super().commitment_remaining(commitment, cancellations)

        reporter = ExecutionReporter(config_dir, RecordingCalculator())
        credits, commitments, cancellations = listing_history

        rows = reporter.list_commitments(credits, commitments, cancellations)

        assert set(seen) == {"m1", "m2", "m3"}
        for row in rows:
            own = [c for c in cancellations if c.commitment_id == row.commitment.id]
            assert row.remaining == reporter.calculator.commitment_remaining(row.commitment, own)
            assert row.cancelled == reporter.calculator.prorater.cancelled_total(row.commitment, own)
