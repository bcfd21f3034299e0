"""
FIFO Allocator Module

Distributes a commitment value across credits, oldest credit first.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Sequence

from .exceptions import (
    InsufficientBalance,
    InvalidAmount,
    InvalidClassificationSpan,
    MalformedCommitment,
)
from .models import Allocation, CreditBalance
from .money import ZERO, sum_money

logger = logging.getLogger(__name__)


@dataclass
class AllocationProposal:
    """Result of a FIFO allocation run."""

    target: Decimal
    allocations: list[Allocation] = field(default_factory=list)
    shortfall: Decimal = ZERO

    @property
    def allocated_total(self) -> Decimal:
        return sum_money(a.value for a in self.allocations)

    @property
    def is_complete(self) -> bool:
        return self.shortfall == 0

    def require_full(self) -> list[Allocation]:
        """Return the allocations, or raise if the cell could not cover the target."""
        if not self.is_complete:
            raise InsufficientBalance(self.target, self.allocated_total)
        return list(self.allocations)

    def to_dict(self) -> dict:
        return {
            "target": float(self.target),
            "allocations": [a.to_dict() for a in self.allocations],
            "allocated_total": float(self.allocated_total),
            "shortfall": float(self.shortfall),
            "is_complete": self.is_complete,
        }


class FIFOAllocator:
    """Default oldest-first allocation strategy."""

    @staticmethod
    def fifo_order(balances: Iterable[CreditBalance]) -> list[CreditBalance]:
        """Filter to credits with positive balance and sort oldest first.

        Ties on created_at are broken by credit id.
        """
        return sorted(
            (b for b in balances if b.balance > 0),
            key=lambda b: b.fifo_key,
        )

    def allocate(
        self,
        target: Decimal,
        candidates: Sequence[CreditBalance],
    ) -> AllocationProposal:
        """Allocate a target value across candidate credits.

        Args:
            target: Commitment value to cover
            candidates: Credits with positive balance, sorted by fifo_order()

        Returns:
            AllocationProposal whose allocations plus shortfall equal target

        Raises:
            InvalidAmount: If target is not positive
            ValueError: If candidates are not filtered and sorted FIFO
        """
        if target <= 0:
            raise InvalidAmount(target, "commitment value must be positive")
        self._check_candidates(candidates)

        proposal = AllocationProposal(target=target)
        remaining = target

        for candidate in candidates:
            if remaining <= 0:
                break
            take = min(remaining, candidate.balance)
            if take > 0:
                proposal.allocations.append(Allocation(candidate.id, take))
                remaining -= take

        proposal.shortfall = remaining

        if proposal.shortfall > 0:
            logger.info(
                f"FIFO allocation of {target} short by {proposal.shortfall} "
                f"across {len(candidates)} credits"
            )
        else:
            logger.debug(
                f"FIFO allocated {target} over {len(proposal.allocations)} credits"
            )

        return proposal

    def _check_candidates(self, candidates: Sequence[CreditBalance]) -> None:
        previous = None
        for candidate in candidates:
            if candidate.balance <= 0:
                raise ValueError(f"Candidate credit {candidate.id} has no balance")
            if previous is not None and candidate.fifo_key <= previous.fifo_key:
                raise ValueError(
                    f"Candidate credits not in FIFO order at {candidate.id}"
                )
            previous = candidate

    def validate_manual(
        self,
        target: Decimal,
        allocations: Sequence[Allocation],
        members: Iterable[CreditBalance],
        cell_key: tuple | None = None,
    ) -> list[Allocation]:
        """Validate operator-supplied allocations that override FIFO.

        Args:
            target: Commitment value
            allocations: Operator allocations
            members: Balances of every credit in the commitment's cell
            cell_key: Cell classification, for error reporting

        Returns:
            The allocations, unchanged

        Raises:
            InvalidAmount: If target or an allocation is not positive
            InvalidClassificationSpan: If an allocation is outside the cell
            MalformedCommitment: If a credit repeats or the sum differs from target
            InsufficientBalance: If an allocation exceeds its credit's balance
        """
        if target <= 0:
            raise InvalidAmount(target, "commitment value must be positive")
        if not allocations:
            raise MalformedCommitment(None, "no allocations supplied")

        by_id = {m.id: m for m in members}
        seen: set[str] = set()

        for allocation in allocations:
            member = by_id.get(allocation.credit_id)
            if member is None:
                raise InvalidClassificationSpan(allocation.credit_id, cell_key)
            if allocation.value <= 0:
                raise InvalidAmount(allocation.value, "allocation must be positive", "allocation")
            if allocation.credit_id in seen:
                raise MalformedCommitment(
                    None, f"credit {allocation.credit_id} is allocated more than once"
                )
            seen.add(allocation.credit_id)
            if allocation.value > member.balance:
                raise InsufficientBalance(allocation.value, member.balance, allocation.credit_id)

        total = sum_money(a.value for a in allocations)
        if total != target:
            raise MalformedCommitment(
                None, f"allocations sum to {total}, commitment value is {target}"
            )

        return list(allocations)
