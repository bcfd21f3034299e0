"""
Credit Ledger Module

Balance and FIFO allocation engine for budget credits, commitments, refunds
and cancellations.
"""

from .exceptions import (
    LedgerError,
    InvalidAmount,
    InsufficientBalance,
    OverCancellation,
    MalformedCommitment,
    InvalidClassificationSpan,
    UnknownRecord,
    StaleSnapshot,
)
from .money import Money, quantize_money, to_money, prorate, split_proportionally, sum_money
from .models import (
    Classification,
    Credit,
    Allocation,
    Commitment,
    Refund,
    Cancellation,
    CreditBalance,
)
from .snapshot import LedgerSnapshot
from .balance_calculator import BalanceCalculator
from .fifo_allocator import FIFOAllocator, AllocationProposal
from .cancellation_prorater import CancellationProrater
from .budget_cell import BudgetCell, BudgetCellGrouper
from .ledger_engine import LedgerEngine, ValidationResult
from .execution_report import (
    ExecutionReporter,
    ExecutionSummary,
    LedgerFilters,
    CreditAlert,
    UnitSummary,
    CommitmentStatus,
)
from .schemas import parse_snapshot

__all__ = [
    # Errors
    "LedgerError",
    "InvalidAmount",
    "InsufficientBalance",
    "OverCancellation",
    "MalformedCommitment",
    "InvalidClassificationSpan",
    "UnknownRecord",
    "StaleSnapshot",
    # Money
    "Money",
    "quantize_money",
    "to_money",
    "prorate",
    "split_proportionally",
    "sum_money",
    # Records
    "Classification",
    "Credit",
    "Allocation",
    "Commitment",
    "Refund",
    "Cancellation",
    "CreditBalance",
    "LedgerSnapshot",
    "parse_snapshot",
    # Engine
    "BalanceCalculator",
    "FIFOAllocator",
    "AllocationProposal",
    "CancellationProrater",
    "BudgetCell",
    "BudgetCellGrouper",
    "LedgerEngine",
    "ValidationResult",
    # Reporting
    "ExecutionReporter",
    "ExecutionSummary",
    "LedgerFilters",
    "CreditAlert",
    "UnitSummary",
    "CommitmentStatus",
]
