"""
Execution Report Module

Budget execution summaries, deadline/low-balance alerts and filtered listings
of credits and commitments. All balances come from BalanceCalculator.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from .balance_calculator import BalanceCalculator
from .config import default_config_dir, load_config
from .models import Cancellation, Commitment, Credit, CreditBalance, Refund
from .money import ZERO, percent, sum_money

logger = logging.getLogger(__name__)

CREDIT_SORT_FIELDS = ("created_at", "value_received", "deadline", "balance")
COMMITMENT_SORT_FIELDS = ("date", "value", "remaining")


@dataclass
class LedgerFilters:
    """Listing filters shared by the credit and commitment views."""

    managing_unit: str | None = None
    internal_plan: str | None = None
    expense_nature: str | None = None
    section: str | None = None
    search: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    hide_zero_balance: bool = False
    sort_by: str | None = None
    sort_order: str | None = None

    def classification_prefix(self) -> dict:
        return {
            "managing_unit": self.managing_unit,
            "internal_plan": self.internal_plan,
            "expense_nature": self.expense_nature,
        }

    def matches_credit(self, credit: Credit) -> bool:
        if not credit.classification.matches(**self.classification_prefix()):
            return False
        if self.section and credit.section != self.section:
            return False
        return True


@dataclass
class CreditAlert:
    """Credit that still holds balance but needs attention."""

    credit_balance: CreditBalance
    reasons: list[str] = field(default_factory=list)
    days_to_deadline: int | None = None

    def to_dict(self) -> dict:
        return {
            "credit_id": self.credit_balance.id,
            "credit_note": self.credit_balance.credit.credit_note,
            "balance": float(self.credit_balance.balance),
            "value_received": float(self.credit_balance.credit.value_received),
            "days_to_deadline": self.days_to_deadline,
            "reasons": self.reasons,
        }


@dataclass
class ExecutionSummary:
    """Dashboard totals for a set of credits."""

    total_received: Decimal = ZERO
    total_refunded: Decimal = ZERO
    total_committed: Decimal = ZERO
    total_available: Decimal = ZERO
    execution_percent: Decimal = ZERO
    credit_count: int = 0
    alerts: list[CreditAlert] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def net_received(self) -> Decimal:
        """Received minus refunded."""
        return self.total_received - self.total_refunded

    def to_dict(self) -> dict:
        return {
            "total_received": float(self.total_received),
            "total_refunded": float(self.total_refunded),
            "net_received": float(self.net_received),
            "total_committed": float(self.total_committed),
            "total_available": float(self.total_available),
            "execution_percent": float(self.execution_percent),
            "credit_count": self.credit_count,
            "alerts": [a.to_dict() for a in self.alerts],
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass
class UnitSummary:
    """Execution totals for one managing unit."""

    managing_unit: str
    received: Decimal = ZERO
    committed: Decimal = ZERO
    refunded: Decimal = ZERO
    cancelled: Decimal = ZERO
    available: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "managing_unit": self.managing_unit,
            "received": float(self.received),
            "committed": float(self.committed),
            "refunded": float(self.refunded),
            "cancelled": float(self.cancelled),
            "available": float(self.available),
        }


@dataclass
class CommitmentStatus:
    """Commitment with its cancelled and remaining values."""

    commitment: Commitment
    cancelled: Decimal = ZERO
    remaining: Decimal = ZERO
    credit_notes: list[str] = field(default_factory=list)

    @property
    def is_settled(self) -> bool:
        """Fully cancelled (nothing left in effect)."""
        return self.remaining <= 0

    def to_dict(self) -> dict:
        return {
            **self.commitment.to_dict(),
            "cancelled": float(self.cancelled),
            "remaining": float(self.remaining),
            "credit_notes": self.credit_notes,
            "is_settled": self.is_settled,
        }


class ExecutionReporter:
    """Builds execution summaries and listings from the ledger history."""

    def __init__(
        self,
        config_dir: Path | str | None = None,
        calculator: BalanceCalculator | None = None,
    ):
        """Initialize the reporter.

        Args:
            config_dir: Path to configuration directory
            calculator: Balance calculator
        """
        self.config_dir = Path(config_dir) if config_dir else default_config_dir()
        self._load_config()
        self.calculator = calculator or BalanceCalculator()

    def _load_config(self) -> None:
        """Load alert and listing configuration."""
        self.config = load_config(self.config_dir, self._default_config())

        alerts = self.config["alerts"]
        self.deadline_days = int(alerts["deadline_days"])
        self.low_balance_percent = Decimal(str(alerts["low_balance_percent"]))
        self.max_alerts = int(alerts["max_alerts"])
        self.zero_threshold = Decimal(str(self.config["balance"]["zero_threshold"]))

    def _default_config(self) -> dict:
        """Get default configuration."""
        return {
            "balance": {"zero_threshold": "0.01"},
            "alerts": {
                "deadline_days": 15,
                "low_balance_percent": 5,
                "max_alerts": 10,
            },
            "listing": {
                "default_sort": "created_at",
                "default_order": "desc",
            },
        }

    def summarize(
        self,
        credits: Iterable[Credit],
        commitments: Iterable[Commitment],
        refunds: Iterable[Refund],
        cancellations: Iterable[Cancellation],
        filters: LedgerFilters | None = None,
        today: date | None = None,
    ) -> ExecutionSummary:
        """Compute dashboard totals and alerts.

        Args:
            credits: All credits
            commitments: All commitments
            refunds: All refunds
            cancellations: All cancellations
            filters: Optional classification/section filters
            today: Reference date for deadline alerts

        Returns:
            ExecutionSummary
        """
        filters = filters or LedgerFilters()
        selected = [c for c in credits if filters.matches_credit(c)]
        balances = self.calculator.balances(selected, commitments, refunds, cancellations)

        summary = ExecutionSummary(credit_count=len(balances))
        summary.total_received = sum_money(b.credit.value_received for b in balances.values())
        summary.total_refunded = sum_money(b.refunded for b in balances.values())
        summary.total_committed = sum_money(b.spent - b.restored for b in balances.values())
        summary.total_available = sum_money(b.balance for b in balances.values())
        summary.execution_percent = percent(summary.total_committed, summary.net_received)
        summary.alerts = self.alerts(balances.values(), today)

        logger.debug(
            f"Execution summary: {summary.credit_count} credits, "
            f"{summary.execution_percent}% executed, {len(summary.alerts)} alerts"
        )
        return summary

    def alerts(
        self,
        balances: Iterable[CreditBalance],
        today: date | None = None,
    ) -> list[CreditAlert]:
        """Credits with balance that are near their deadline or nearly spent."""
        today = today or date.today()
        alerts = []

        for balance in balances:
            if balance.balance <= self.zero_threshold:
                continue

            reasons = []
            days = balance.credit.days_to_deadline(today)
            if days is not None and days <= self.deadline_days:
                reasons.append("deadline")

            low_limit = balance.credit.value_received * self.low_balance_percent / 100
            if balance.balance < low_limit:
                reasons.append("low_balance")

            if reasons:
                alerts.append(CreditAlert(balance, reasons, days))

        alerts.sort(key=lambda a: (
            a.days_to_deadline is None,
            a.days_to_deadline or 0,
            a.credit_balance.id,
        ))
        return alerts[:self.max_alerts]

    def unit_report(
        self,
        credits: Iterable[Credit],
        commitments: Iterable[Commitment],
        refunds: Iterable[Refund],
        cancellations: Iterable[Cancellation],
    ) -> list[UnitSummary]:
        """Totals per managing unit, cancellations attributed by proration."""
        balances = self.calculator.balances(credits, commitments, refunds, cancellations)

        units: dict[str, UnitSummary] = {}
        for balance in balances.values():
            unit_code = balance.credit.classification.managing_unit
            unit = units.setdefault(unit_code, UnitSummary(managing_unit=unit_code))
            unit.received += balance.credit.value_received
            unit.committed += balance.spent
            unit.refunded += balance.refunded
            unit.cancelled += balance.restored
            unit.available += balance.balance

        return [units[code] for code in sorted(units)]

    def list_credits(
        self,
        credits: Iterable[Credit],
        commitments: Iterable[Commitment],
        refunds: Iterable[Refund],
        cancellations: Iterable[Cancellation],
        filters: LedgerFilters | None = None,
    ) -> list[CreditBalance]:
        """Filtered credit listing; credits with balance always come first."""
        filters = filters or LedgerFilters()
        sort_by = filters.sort_by or self.config["listing"]["default_sort"]
        if sort_by not in CREDIT_SORT_FIELDS:
            raise ValueError(f"Unknown credit sort field: {sort_by}")

        selected = [c for c in credits if filters.matches_credit(c)]
        balances = self.calculator.balances(selected, commitments, refunds, cancellations)

        rows = []
        for balance in balances.values():
            if filters.hide_zero_balance and not balance.has_balance(self.zero_threshold):
                continue
            if filters.search and not self._credit_matches_search(balance.credit, filters.search):
                continue
            rows.append(balance)

        def sort_key(b: CreditBalance):
            if sort_by == "balance":
                return b.balance
            if sort_by == "value_received":
                return b.credit.value_received
            if sort_by == "deadline":
                return b.credit.deadline or date.max
            return b.credit.created_at

        rows.sort(key=sort_key, reverse=self._descending(filters))
        rows.sort(key=lambda b: not b.has_balance(self.zero_threshold))
        return rows

    def list_commitments(
        self,
        credits: Iterable[Credit],
        commitments: Iterable[Commitment],
        cancellations: Iterable[Cancellation],
        filters: LedgerFilters | None = None,
    ) -> list[CommitmentStatus]:
        """Filtered commitment listing; commitments still in effect come first."""
        filters = filters or LedgerFilters()
        sort_by = filters.sort_by or "date"
        if sort_by not in COMMITMENT_SORT_FIELDS:
            raise ValueError(f"Unknown commitment sort field: {sort_by}")

        credits_by_id = {c.id: c for c in credits}
        cancellations_by_commitment: dict[str, list[Cancellation]] = defaultdict(list)
        for cancellation in cancellations:
            cancellations_by_commitment[cancellation.commitment_id].append(cancellation)

        rows = []
        for commitment in commitments:
            linked = [credits_by_id[i] for i in commitment.credit_ids if i in credits_by_id]
            if not linked:
                if any(v for v in filters.classification_prefix().values()) or filters.section:
                    continue
            elif not filters.matches_credit(linked[0]):
                continue

            if filters.start_date and (commitment.date is None or commitment.date < filters.start_date):
                continue
            if filters.end_date and (commitment.date is None or commitment.date > filters.end_date):
                continue

            own = cancellations_by_commitment[commitment.id]
            status = CommitmentStatus(
                commitment=commitment,
                cancelled=self.calculator.prorater.cancelled_total(commitment, own),
                remaining=self.calculator.commitment_remaining(commitment, own),
                credit_notes=[c.credit_note for c in linked],
            )

            if filters.hide_zero_balance and status.remaining < self.zero_threshold:
                continue
            if filters.search and not self._commitment_matches_search(status, filters.search):
                continue
            rows.append(status)

        def sort_key(s: CommitmentStatus):
            if sort_by == "value":
                return s.commitment.value
            if sort_by == "remaining":
                return s.remaining
            return s.commitment.date or date.min

        rows.sort(key=sort_key, reverse=self._descending(filters))
        rows.sort(key=lambda s: s.remaining < self.zero_threshold)
        return rows

    def _descending(self, filters: LedgerFilters) -> bool:
        order = filters.sort_order or self.config["listing"]["default_order"]
        return order != "asc"

    def _credit_matches_search(self, credit: Credit, term: str) -> bool:
        term = term.lower()
        return any(
            term in (text or "").lower()
            for text in (credit.credit_note, credit.description, credit.classification.internal_plan)
        )

    def _commitment_matches_search(self, status: CommitmentStatus, term: str) -> bool:
        term = term.lower()
        texts = [status.commitment.number, status.commitment.description, *status.credit_notes]
        return any(term in (text or "").lower() for text in texts)
