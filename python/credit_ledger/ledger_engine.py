"""
Ledger Engine Module

Central write-path validation for commitments, refunds and cancellations.

Every write is validated here against a snapshot of the full history before
the data layer persists it. Callers pass the fingerprint of the snapshot they
read; if the history changed in the meantime the write is rejected.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from .balance_calculator import BalanceCalculator
from .budget_cell import BudgetCell, BudgetCellGrouper
from .cancellation_prorater import CancellationProrater
from .exceptions import (
    InsufficientBalance,
    InvalidAmount,
    InvalidClassificationSpan,
    LedgerError,
    OverCancellation,
    StaleSnapshot,
    UnknownRecord,
)
from .fifo_allocator import AllocationProposal, FIFOAllocator
from .models import Allocation, Cancellation, Classification, Commitment, CreditBalance, Refund
from .money import sum_money, to_money
from .snapshot import LedgerSnapshot

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of validating a write or the whole history."""

    errors: list[LedgerError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_first(self) -> None:
        if self.errors:
            raise self.errors[0]

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
        }


class LedgerEngine:
    """Facade composing balances, cells, FIFO and proration."""

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the engine.

        Args:
            config_dir: Path to configuration directory
        """
        self.prorater = CancellationProrater()
        self.calculator = BalanceCalculator(self.prorater)
        self.allocator = FIFOAllocator()
        self.grouper = BudgetCellGrouper(config_dir, self.calculator, self.allocator)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def balances(
        self,
        snapshot: LedgerSnapshot,
        exclude_commitment_id: str | None = None,
    ) -> dict[str, CreditBalance]:
        return self.calculator.balances(
            snapshot.credits,
            snapshot.commitments,
            snapshot.refunds,
            snapshot.cancellations,
            exclude_commitment_id,
        )

    def cells(
        self,
        snapshot: LedgerSnapshot,
        exclude_commitment_id: str | None = None,
    ) -> dict[Classification, BudgetCell]:
        return self.grouper.group_balances(
            self.balances(snapshot, exclude_commitment_id).values()
        )

    def cell_for(
        self,
        snapshot: LedgerSnapshot,
        classification: Classification,
        exclude_commitment_id: str | None = None,
    ) -> BudgetCell:
        """Cell for a classification (empty if no credit carries it)."""
        cells = self.cells(snapshot, exclude_commitment_id)
        return cells.get(classification, BudgetCell(classification))

    def propose_commitment(
        self,
        snapshot: LedgerSnapshot,
        classification: Classification,
        value: Decimal,
        exclude_commitment_id: str | None = None,
    ) -> AllocationProposal:
        """FIFO proposal for a new commitment; shortfall is reported, not raised."""
        cell = self.cell_for(snapshot, classification, exclude_commitment_id)
        return self.grouper.propose(cell, to_money(value))

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def _check_fresh(self, snapshot: LedgerSnapshot, expected_fingerprint: str | None) -> None:
        if expected_fingerprint is None:
            return
        actual = snapshot.fingerprint
        if actual != expected_fingerprint:
            logger.warning("Rejected write against a stale ledger snapshot")
            raise StaleSnapshot(expected_fingerprint, actual)

    def accept_commitment(
        self,
        snapshot: LedgerSnapshot,
        commitment_id: str,
        classification: Classification,
        value: Decimal | None = None,
        allocations: Sequence[Allocation] | None = None,
        date: date | None = None,
        number: str = "",
        description: str = "",
        expected_fingerprint: str | None = None,
    ) -> Commitment:
        """Validate and build a commitment ready to persist.

        Without explicit allocations the value is distributed FIFO across the
        classification's cell. With allocations (operator override) they are
        checked against the cell and the value. Editing an existing commitment
        re-validates it against balances that exclude its own prior effect.

        Args:
            snapshot: Current ledger history
            commitment_id: New or existing commitment id
            classification: Declared budget cell of the commitment
            value: Commitment value (required for FIFO, optional with allocations)
            allocations: Operator allocations overriding FIFO
            date: Commitment date
            number: Commitment note number (NE)
            description: Free text
            expected_fingerprint: Fingerprint of the snapshot the caller read

        Returns:
            Commitment whose allocations sum to its value

        Raises:
            StaleSnapshot, InvalidAmount, InsufficientBalance,
            InvalidClassificationSpan, MalformedCommitment, OverCancellation,
            UnknownRecord
        """
        self._check_fresh(snapshot, expected_fingerprint)

        existing = snapshot.commitment(commitment_id)
        exclude = commitment_id if existing else None
        cell = self.cell_for(snapshot, classification, exclude)

        if allocations is None:
            if value is None:
                raise InvalidAmount(value, "commitment value is required")
            target = to_money(value)
            chosen = self.grouper.propose(cell, target).require_full()
        else:
            for allocation in allocations:
                if snapshot.credit(allocation.credit_id) is None:
                    raise UnknownRecord("credit", allocation.credit_id)
            allocations = [
                Allocation(a.credit_id, to_money(a.value, "allocation")) for a in allocations
            ]
            target = to_money(value) if value is not None else sum_money(a.value for a in allocations)
            chosen = self.allocator.validate_manual(target, allocations, cell.members, cell.key)

        commitment = Commitment(
            id=commitment_id,
            allocations=tuple(chosen),
            value=target,
            date=date,
            number=number,
            description=description,
        )
        commitment.check()

        if existing:
            cancelled = self.prorater.cancelled_total(existing, snapshot.cancellations)
            if cancelled > commitment.value:
                raise OverCancellation(commitment.id, cancelled, commitment.value)

        logger.info(
            f"Accepted commitment {commitment.id} of {commitment.value} "
            f"over {len(commitment.allocations)} credits"
        )
        return commitment

    def accept_refund(
        self,
        snapshot: LedgerSnapshot,
        refund: Refund,
        expected_fingerprint: str | None = None,
    ) -> Refund:
        """Validate a refund against its credit's balance.

        Raises:
            StaleSnapshot, InvalidAmount, UnknownRecord, InsufficientBalance
        """
        self._check_fresh(snapshot, expected_fingerprint)

        value = to_money(refund.value)
        if value <= 0:
            raise InvalidAmount(refund.value, "refund must be positive")

        credit = snapshot.credit(refund.credit_id)
        if credit is None:
            raise UnknownRecord("credit", refund.credit_id)

        # An edited refund must not count against itself
        others = [r for r in snapshot.refunds if r.id != refund.id]
        available = self.calculator.balance(
            credit, snapshot.commitments, others, snapshot.cancellations
        )
        if value > available:
            logger.warning(
                f"Rejected refund {refund.id} of {value} on credit {credit.id} (available {available})"
            )
            raise InsufficientBalance(value, available, credit.id)

        logger.info(f"Accepted refund {refund.id} of {value} on credit {credit.id}")
        return refund

    def accept_cancellation(
        self,
        snapshot: LedgerSnapshot,
        cancellation: Cancellation,
        expected_fingerprint: str | None = None,
    ) -> list[Allocation]:
        """Validate a cancellation and return its per-credit reversal.

        Raises:
            StaleSnapshot, InvalidAmount, UnknownRecord, MalformedCommitment,
            OverCancellation
        """
        self._check_fresh(snapshot, expected_fingerprint)

        value = to_money(cancellation.value)
        commitment = snapshot.commitment(cancellation.commitment_id)
        if commitment is None:
            raise UnknownRecord("commitment", cancellation.commitment_id)

        prior = [c for c in snapshot.cancellations if c.id != cancellation.id]
        reversal = self.prorater.prorate(commitment, value, prior)

        logger.info(
            f"Accepted cancellation {cancellation.id} of {value} on commitment {commitment.id}"
        )
        return reversal

    # ------------------------------------------------------------------
    # Validation wrappers
    # ------------------------------------------------------------------

    def validate_commitment(self, snapshot: LedgerSnapshot, **kwargs) -> ValidationResult:
        return self._collect(self.accept_commitment, snapshot, **kwargs)

    def validate_refund(self, snapshot: LedgerSnapshot, refund: Refund, **kwargs) -> ValidationResult:
        return self._collect(self.accept_refund, snapshot, refund, **kwargs)

    def validate_cancellation(
        self,
        snapshot: LedgerSnapshot,
        cancellation: Cancellation,
        **kwargs,
    ) -> ValidationResult:
        return self._collect(self.accept_cancellation, snapshot, cancellation, **kwargs)

    def _collect(self, accept, *args, **kwargs) -> ValidationResult:
        result = ValidationResult()
        try:
            accept(*args, **kwargs)
        except LedgerError as e:
            result.errors.append(e)
        return result

    def check_history(self, snapshot: LedgerSnapshot) -> ValidationResult:
        """Audit stored history for records that break ledger invariants.

        Checks every commitment balances and stays within one cell, every
        allocation and refund references a known credit, and cancellations
        never exceed their commitment.
        """
        result = ValidationResult()
        credits = {c.id: c for c in snapshot.credits}

        for commitment in snapshot.commitments:
            try:
                commitment.check()
            except LedgerError as e:
                result.errors.append(e)
                continue

            cell = None
            for allocation in commitment.allocations:
                credit = credits.get(allocation.credit_id)
                if credit is None:
                    result.errors.append(UnknownRecord("credit", allocation.credit_id))
                    continue
                if cell is None:
                    cell = credit.classification
                elif credit.classification != cell:
                    result.errors.append(
                        InvalidClassificationSpan(allocation.credit_id, cell.as_tuple())
                    )
                    break

            cancelled = self.prorater.cancelled_total(commitment, snapshot.cancellations)
            if cancelled > commitment.value:
                result.errors.append(OverCancellation(commitment.id, cancelled, commitment.value))

        known = {c.id for c in snapshot.commitments}
        for cancellation in snapshot.cancellations:
            if cancellation.commitment_id not in known:
                result.errors.append(UnknownRecord("commitment", cancellation.commitment_id))

        for refund in snapshot.refunds:
            if refund.credit_id not in credits:
                result.errors.append(UnknownRecord("credit", refund.credit_id))

        if not result.is_valid:
            logger.warning(f"Ledger history has {len(result.errors)} integrity errors")
        return result
