"""
Pytest configuration and fixtures for credit ledger tests.
"""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from credit_ledger import (
    Allocation,
    Cancellation,
    Classification,
    Commitment,
    Credit,
    LedgerSnapshot,
    Refund,
)

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


def make_credit(
    credit_id: str,
    value: str,
    created_at: datetime,
    classification: Classification,
    deadline: date | None = None,
    credit_note: str = "",
    section: str = "SALC",
) -> Credit:
    return Credit(
        id=credit_id,
        classification=classification,
        value_received=Decimal(value),
        created_at=created_at,
        deadline=deadline,
        credit_note=credit_note or f"2026NC{credit_id:0>6}",
        section=section,
    )


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Temp config directory with a minimal ledger config."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "ledger_config.yaml").write_text("""
balance:
  zero_threshold: "0.01"
alerts:
  deadline_days: 15
  low_balance_percent: 5
  max_alerts: 10
listing:
  default_sort: created_at
  default_order: desc
""")
    return config_dir


@pytest.fixture
def cell() -> Classification:
    """Classification shared by credits X and Y."""
    return Classification(
        managing_unit="160211",
        internal_plan="E6SUPLJA5Q",
        expense_nature="339030",
        funding_source="0100",
        budget_program="123456",
        responsible_unit="160211",
    )


@pytest.fixture
def other_cell() -> Classification:
    """A different classification."""
    return Classification(
        managing_unit="167211",
        internal_plan="E6SUPLJA5Q",
        expense_nature="339039",
    )


@pytest.fixture
def credit_x(cell: Classification) -> Credit:
    """Older credit of 1000."""
    return make_credit("X", "1000.00", datetime(2026, 1, 10, 9, 0), cell, date(2026, 3, 11))


@pytest.fixture
def credit_y(cell: Classification) -> Credit:
    """Newer credit of 500 in the same cell."""
    return make_credit("Y", "500.00", datetime(2026, 2, 10, 9, 0), cell, date(2026, 6, 30))


@pytest.fixture
def credit_z(other_cell: Classification) -> Credit:
    """Credit of 2000 in another cell."""
    return make_credit("Z", "2000.00", datetime(2026, 1, 20, 9, 0), other_cell)


@pytest.fixture
def split_commitment() -> Commitment:
    """Commitment of 1200 drawn as X:1000, Y:200."""
    return Commitment.from_allocations(
        "m1",
        [Allocation("X", Decimal("1000.00")), Allocation("Y", Decimal("200.00"))],
        date=date(2026, 2, 15),
        number="2026NE000001",
        description="Aquisicao de generos",
    )


@pytest.fixture
def cancellation_300() -> Cancellation:
    """Cancellation of 300 against the split commitment."""
    return Cancellation("c1", "m1", Decimal("300.00"), date(2026, 2, 20), "2026RO000001")


@pytest.fixture
def refund_100() -> Refund:
    """Refund of 100 against credit X."""
    return Refund("r1", "X", Decimal("100.00"), date(2026, 2, 25))


@pytest.fixture
def snapshot(credit_x, credit_y, credit_z) -> LedgerSnapshot:
    """Credits only, no movements."""
    return LedgerSnapshot.of(credits=[credit_x, credit_y, credit_z])


@pytest.fixture
def committed_snapshot(snapshot, split_commitment) -> LedgerSnapshot:
    """Snapshot after the split commitment (scenario A)."""
    return snapshot.with_commitment(split_commitment)


@pytest.fixture
def cancelled_snapshot(committed_snapshot, cancellation_300) -> LedgerSnapshot:
    """Snapshot after cancelling 300 (scenario B)."""
    return committed_snapshot.with_cancellation(cancellation_300)


@pytest.fixture
def credit_factory():
    """Return the credit builder used by the fixtures above."""
    return make_credit
