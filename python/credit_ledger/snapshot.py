"""
Ledger Snapshot Module

Immutable bundle of the ledger history handed to the engine by the data layer.
"""

import hashlib
import json
from dataclasses import dataclass, replace

from .models import Cancellation, Commitment, Credit, Refund


@dataclass(frozen=True)
class LedgerSnapshot:
    """Full history of credits, commitments, refunds and cancellations."""

    credits: tuple[Credit, ...] = ()
    commitments: tuple[Commitment, ...] = ()
    refunds: tuple[Refund, ...] = ()
    cancellations: tuple[Cancellation, ...] = ()

    @classmethod
    def of(
        cls,
        credits=(),
        commitments=(),
        refunds=(),
        cancellations=(),
    ) -> "LedgerSnapshot":
        return cls(tuple(credits), tuple(commitments), tuple(refunds), tuple(cancellations))

    @property
    def fingerprint(self) -> str:
        """SHA-256 over the canonical content of the history.

        Two snapshots with the same records, in any order, share a fingerprint.
        """
        canonical = {
            name: sorted(
                (r.to_dict() for r in getattr(self, name)),
                key=lambda d: d["id"],
            )
            for name in ("credits", "commitments", "refunds", "cancellations")
        }
        payload = json.dumps(canonical, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    def credit(self, credit_id: str) -> Credit | None:
        return next((c for c in self.credits if c.id == credit_id), None)

    def commitment(self, commitment_id: str) -> Commitment | None:
        return next((c for c in self.commitments if c.id == commitment_id), None)

    def cancellations_for(self, commitment_id: str) -> list[Cancellation]:
        return [c for c in self.cancellations if c.commitment_id == commitment_id]

    def with_commitment(self, commitment: Commitment) -> "LedgerSnapshot":
        """Copy with the commitment added, or replaced if its id exists."""
        others = tuple(c for c in self.commitments if c.id != commitment.id)
        return replace(self, commitments=others + (commitment,))

    def with_refund(self, refund: Refund) -> "LedgerSnapshot":
        others = tuple(r for r in self.refunds if r.id != refund.id)
        return replace(self, refunds=others + (refund,))

    def with_cancellation(self, cancellation: Cancellation) -> "LedgerSnapshot":
        others = tuple(c for c in self.cancellations if c.id != cancellation.id)
        return replace(self, cancellations=others + (cancellation,))
