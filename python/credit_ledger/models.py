"""
Ledger Domain Models

Credits, commitments, refunds and cancellations as immutable records, plus the
derived per-credit balance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from .exceptions import MalformedCommitment
from .money import ZERO, sum_money

# Classification attributes, broadest first
CLASSIFICATION_LEVELS = (
    "managing_unit",
    "internal_plan",
    "expense_nature",
    "funding_source",
    "budget_program",
    "responsible_unit",
)


@dataclass(frozen=True)
class Classification:
    """Budget classification shared by all credits of one cell."""

    managing_unit: str
    internal_plan: str
    expense_nature: str
    funding_source: str = ""
    budget_program: str = ""
    responsible_unit: str = ""

    def as_tuple(self) -> tuple[str, ...]:
        return tuple(getattr(self, level) for level in CLASSIFICATION_LEVELS)

    def matches(self, **prefix: str | None) -> bool:
        """Check the classification against attribute filters (None = any)."""
        for level, expected in prefix.items():
            if level not in CLASSIFICATION_LEVELS:
                raise ValueError(f"Unknown classification level: {level}")
            if expected is not None and getattr(self, level) != expected:
                return False
        return True

    def to_dict(self) -> dict:
        return {level: getattr(self, level) for level in CLASSIFICATION_LEVELS}


@dataclass(frozen=True)
class Credit:
    """Budget credit received by the unit (NC)."""

    id: str
    classification: Classification
    value_received: Decimal
    created_at: datetime
    deadline: date | None = None
    credit_note: str = ""
    organ: str = ""
    section: str = ""
    description: str = ""

    def __post_init__(self):
        if self.value_received < 0:
            raise ValueError(f"Credit {self.id} has negative value_received {self.value_received}")

    @property
    def fifo_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)

    def days_to_deadline(self, today: date | None = None) -> int | None:
        if self.deadline is None:
            return None
        return (self.deadline - (today or date.today())).days

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            **self.classification.to_dict(),
            "value_received": float(self.value_received),
            "created_at": self.created_at.isoformat(),
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "credit_note": self.credit_note,
            "organ": self.organ,
            "section": self.section,
            "description": self.description,
        }


@dataclass(frozen=True)
class Allocation:
    """Portion of a commitment drawn from one credit."""

    credit_id: str
    value: Decimal

    def to_dict(self) -> dict:
        return {"credit_id": self.credit_id, "value": float(self.value)}


@dataclass(frozen=True)
class Commitment:
    """Commitment (NE) consuming one or more credits."""

    id: str
    allocations: tuple[Allocation, ...]
    value: Decimal
    date: date | None = None
    number: str = ""
    description: str = ""

    @classmethod
    def from_allocations(
        cls,
        id: str,
        allocations: list[Allocation] | tuple[Allocation, ...],
        date: date | None = None,
        number: str = "",
        description: str = "",
    ) -> "Commitment":
        """Build a commitment whose value is the sum of its allocations."""
        allocations = tuple(allocations)
        return cls(
            id=id,
            allocations=allocations,
            value=sum_money(a.value for a in allocations),
            date=date,
            number=number,
            description=description,
        )

    @classmethod
    def single(
        cls,
        id: str,
        credit_id: str,
        value: Decimal,
        date: date | None = None,
        number: str = "",
        description: str = "",
    ) -> "Commitment":
        """Build a commitment drawn from a single credit."""
        return cls(
            id=id,
            allocations=(Allocation(credit_id, value),),
            value=value,
            date=date,
            number=number,
            description=description,
        )

    @property
    def credit_ids(self) -> list[str]:
        return [a.credit_id for a in self.allocations]

    @property
    def allocated_total(self) -> Decimal:
        return sum_money(a.value for a in self.allocations)

    def allocation_for(self, credit_id: str) -> Allocation | None:
        for allocation in self.allocations:
            if allocation.credit_id == credit_id:
                return allocation
        return None

    def check(self) -> None:
        """Verify the allocations reconstruct the commitment value exactly.

        Raises:
            MalformedCommitment: If the commitment has no allocations, a
                non-positive or duplicated allocation, or a value that differs
                from the sum of its allocations
        """
        if not self.allocations:
            raise MalformedCommitment(self.id, "commitment has no allocations")

        seen: set[str] = set()
        for allocation in self.allocations:
            if allocation.value <= 0:
                raise MalformedCommitment(
                    self.id, f"allocation on credit {allocation.credit_id} is not positive"
                )
            if allocation.credit_id in seen:
                raise MalformedCommitment(
                    self.id, f"credit {allocation.credit_id} is allocated more than once"
                )
            seen.add(allocation.credit_id)

        if self.allocated_total != self.value:
            raise MalformedCommitment(
                self.id,
                f"allocations sum to {self.allocated_total}, commitment value is {self.value}",
            )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "value": float(self.value),
            "date": self.date.isoformat() if self.date else None,
            "description": self.description,
            "allocations": [a.to_dict() for a in self.allocations],
        }


@dataclass(frozen=True)
class Refund:
    """Amount returned directly against a credit."""

    id: str
    credit_id: str
    value: Decimal
    date: date | None = None
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "credit_id": self.credit_id,
            "value": float(self.value),
            "date": self.date.isoformat() if self.date else None,
            "description": self.description,
        }


@dataclass(frozen=True)
class Cancellation:
    """Partial or total reversal of a commitment (RO)."""

    id: str
    commitment_id: str
    value: Decimal
    date: date | None = None
    reference: str = ""
    bulletin: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "commitment_id": self.commitment_id,
            "value": float(self.value),
            "date": self.date.isoformat() if self.date else None,
            "reference": self.reference,
            "bulletin": self.bulletin,
        }


@dataclass
class CreditBalance:
    """Derived balance of a credit against the full history."""

    credit: Credit
    spent: Decimal = ZERO
    refunded: Decimal = ZERO
    restored: Decimal = ZERO
    balance: Decimal = ZERO
    consumed_percent: Decimal = ZERO
    commitment_ids: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.credit.id

    @property
    def fifo_key(self) -> tuple[datetime, str]:
        return self.credit.fifo_key

    @property
    def consumed(self) -> Decimal:
        """Net amount consumed (received minus balance)."""
        return self.credit.value_received - self.balance

    def has_balance(self, threshold: Decimal = Decimal("0.01")) -> bool:
        return self.balance >= threshold

    def to_dict(self) -> dict:
        return {
            "credit": self.credit.to_dict(),
            "spent": float(self.spent),
            "refunded": float(self.refunded),
            "restored": float(self.restored),
            "balance": float(self.balance),
            "consumed": float(self.consumed),
            "consumed_percent": float(self.consumed_percent),
            "commitment_ids": self.commitment_ids,
        }
