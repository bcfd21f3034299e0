"""
Ledger Errors

Typed business-rule and input errors raised by the ledger engine.
"""

from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """Base class for all ledger validation errors."""

    code = "ledger_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "details": {
                key: float(value) if isinstance(value, Decimal) else value
                for key, value in self.details.items()
            },
        }


class InvalidAmount(LedgerError):
    """Amount is non-numeric, non-finite, non-positive or finer than a cent."""

    code = "invalid_amount"

    def __init__(self, value: Any, reason: str, field: str = "value"):
        super().__init__(f"Invalid {field} {value!r}: {reason}", value=str(value), field=field)
        self.value = value
        self.field = field


class InsufficientBalance(LedgerError):
    """Requested amount exceeds the available balance."""

    code = "insufficient_balance"

    def __init__(self, requested: Decimal, available: Decimal, credit_id: str | None = None):
        target = f"credit {credit_id}" if credit_id else "budget cell"
        super().__init__(
            f"Insufficient balance in {target}: requested {requested}, available {available}",
            requested=requested,
            available=available,
            shortfall=requested - available,
            credit_id=credit_id,
        )
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        self.credit_id = credit_id


class OverCancellation(LedgerError):
    """Cancellation exceeds the commitment's remaining cancellable value."""

    code = "over_cancellation"

    def __init__(self, commitment_id: str, requested: Decimal, remaining: Decimal):
        super().__init__(
            f"Cancellation of {requested} exceeds remaining {remaining} on commitment {commitment_id}",
            commitment_id=commitment_id,
            requested=requested,
            remaining=remaining,
        )
        self.commitment_id = commitment_id
        self.requested = requested
        self.remaining = remaining


class MalformedCommitment(LedgerError):
    """Commitment allocations are inconsistent with its value."""

    code = "malformed_commitment"

    def __init__(self, commitment_id: str | None, reason: str):
        super().__init__(
            f"Malformed commitment {commitment_id}: {reason}",
            commitment_id=commitment_id,
            reason=reason,
        )
        self.commitment_id = commitment_id
        self.reason = reason


class InvalidClassificationSpan(LedgerError):
    """Allocation references a credit outside the commitment's budget cell."""

    code = "invalid_classification_span"

    def __init__(self, credit_id: str, cell_key: tuple | None = None):
        super().__init__(
            f"Credit {credit_id} is outside budget cell {cell_key}",
            credit_id=credit_id,
            cell_key=list(cell_key) if cell_key else None,
        )
        self.credit_id = credit_id
        self.cell_key = cell_key


class UnknownRecord(LedgerError):
    """Referenced credit or commitment is not present in the snapshot."""

    code = "unknown_record"

    def __init__(self, record_type: str, record_id: str):
        super().__init__(
            f"Unknown {record_type} {record_id}",
            record_type=record_type,
            record_id=record_id,
        )
        self.record_type = record_type
        self.record_id = record_id


class StaleSnapshot(LedgerError):
    """History changed between the caller's read and the write validation."""

    code = "stale_snapshot"

    def __init__(self, expected: str, actual: str):
        super().__init__(
            "Ledger history changed since it was read; reload and retry",
            expected=expected,
            actual=actual,
        )
        self.expected = expected
        self.actual = actual
