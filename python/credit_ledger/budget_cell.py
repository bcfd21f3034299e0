"""
Budget Cell Module

Groups credits sharing the same budget classification into cells. A cell is
the unit a single commitment may span; credits in different cells are never
combined.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from .balance_calculator import BalanceCalculator
from .config import default_config_dir, load_config
from .fifo_allocator import AllocationProposal, FIFOAllocator
from .models import (
    CLASSIFICATION_LEVELS,
    Cancellation,
    Classification,
    Commitment,
    Credit,
    CreditBalance,
    Refund,
)
from .money import sum_money

logger = logging.getLogger(__name__)


@dataclass
class BudgetCell:
    """Credits sharing one classification, sorted oldest first."""

    classification: Classification
    members: list[CreditBalance] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, ...]:
        return self.classification.as_tuple()

    @property
    def total_available(self) -> Decimal:
        return sum_money(m.balance for m in self.members)

    @property
    def candidates(self) -> list[CreditBalance]:
        """Members eligible for FIFO allocation."""
        return FIFOAllocator.fifo_order(self.members)

    def contains(self, credit_id: str) -> bool:
        return any(m.id == credit_id for m in self.members)

    def member(self, credit_id: str) -> CreditBalance | None:
        for m in self.members:
            if m.id == credit_id:
                return m
        return None

    def to_dict(self) -> dict:
        return {
            "classification": self.classification.to_dict(),
            "total_available": float(self.total_available),
            "members": [m.to_dict() for m in self.members],
        }


class BudgetCellGrouper:
    """Builds budget cells and runs FIFO allocation inside a cell."""

    def __init__(
        self,
        config_dir: Path | str | None = None,
        calculator: BalanceCalculator | None = None,
        allocator: FIFOAllocator | None = None,
    ):
        """Initialize the grouper.

        Args:
            config_dir: Path to configuration directory
            calculator: Balance calculator
            allocator: Allocation strategy
        """
        self.config_dir = Path(config_dir) if config_dir else default_config_dir()
        self._load_config()
        self.calculator = calculator or BalanceCalculator()
        self.allocator = allocator or FIFOAllocator()

    def _load_config(self) -> None:
        """Load balance configuration."""
        self.config = load_config(self.config_dir, self._default_config())
        self.zero_threshold = Decimal(str(self.config["balance"]["zero_threshold"]))

    def _default_config(self) -> dict:
        """Get default configuration."""
        return {
            "balance": {"zero_threshold": "0.01"},
        }

    def group(
        self,
        credits: Iterable[Credit],
        commitments: Iterable[Commitment],
        refunds: Iterable[Refund],
        cancellations: Iterable[Cancellation],
        exclude_commitment_id: str | None = None,
    ) -> dict[Classification, BudgetCell]:
        """Compute balances and group credits into cells.

        Returns:
            Dictionary of classification to BudgetCell
        """
        balances = self.calculator.balances(
            credits, commitments, refunds, cancellations, exclude_commitment_id
        )
        return self.group_balances(balances.values())

    def group_balances(
        self,
        balances: Iterable[CreditBalance],
    ) -> dict[Classification, BudgetCell]:
        """Group already computed balances into cells."""
        members: dict[Classification, list[CreditBalance]] = defaultdict(list)
        for balance in balances:
            members[balance.credit.classification].append(balance)

        cells = {}
        for classification in sorted(members, key=lambda c: c.as_tuple()):
            cells[classification] = BudgetCell(
                classification=classification,
                members=sorted(members[classification], key=lambda b: b.fifo_key),
            )

        logger.debug(f"Grouped credits into {len(cells)} budget cells")
        return cells

    def propose(self, cell: BudgetCell, target: Decimal) -> AllocationProposal:
        """Run FIFO allocation over a cell's credits."""
        return self.allocator.allocate(target, cell.candidates)

    def options(
        self,
        balances: Iterable[CreditBalance],
        level: str,
        **prefix: str | None,
    ) -> list[str]:
        """Distinct values of a classification level among credits with balance.

        Used to drive cascading selectors: pick a managing unit, then an
        internal plan within it, then an expense nature.

        Args:
            balances: Credit balances
            level: Classification level to list
            **prefix: Already chosen levels

        Returns:
            Sorted list of distinct values
        """
        if level not in CLASSIFICATION_LEVELS:
            raise ValueError(f"Unknown classification level: {level}")

        values = {
            getattr(b.credit.classification, level)
            for b in balances
            if b.has_balance(self.zero_threshold) and b.credit.classification.matches(**prefix)
        }
        return sorted(values)
