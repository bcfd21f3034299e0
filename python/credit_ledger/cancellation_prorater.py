"""
Cancellation Prorater Module

Splits a cancellation back across the credits of the commitment it reverses.
"""

import logging
from decimal import Decimal
from typing import Iterable

from .exceptions import InvalidAmount, MalformedCommitment, OverCancellation
from .models import Allocation, Cancellation, Commitment
from .money import split_proportionally, sum_money

logger = logging.getLogger(__name__)


class CancellationProrater:
    """Prorates cancellations proportionally to a commitment's allocations."""

    def cancelled_total(
        self,
        commitment: Commitment,
        cancellations: Iterable[Cancellation],
    ) -> Decimal:
        """Sum of cancellations recorded against a commitment."""
        return sum_money(
            c.value for c in cancellations
            if c.commitment_id == commitment.id
        )

    def remaining_cancellable(
        self,
        commitment: Commitment,
        cancellations: Iterable[Cancellation],
    ) -> Decimal:
        """Commitment value not yet cancelled."""
        return commitment.value - self.cancelled_total(commitment, cancellations)

    def prorate(
        self,
        commitment: Commitment,
        value: Decimal,
        prior_cancellations: Iterable[Cancellation] = (),
    ) -> list[Allocation]:
        """Split a cancellation value across the commitment's allocations.

        Each share is value * allocation / commitment value on integer cents.
        Shares are floored and the leftover cents go to the largest
        remainders, so they add up to the cancellation value exactly and no
        share exceeds its allocation.

        Args:
            commitment: Commitment being cancelled
            value: Cancellation value
            prior_cancellations: Cancellations already recorded (any commitment)

        Returns:
            One Allocation per commitment allocation, holding the reversed value

        Raises:
            InvalidAmount: If value is not positive
            MalformedCommitment: If the commitment is zero-valued or unbalanced
            OverCancellation: If value exceeds the remaining cancellable value
        """
        if value <= 0:
            raise InvalidAmount(value, "cancellation must be positive")

        if commitment.value == 0:
            raise MalformedCommitment(commitment.id, "cannot prorate against a zero-value commitment")
        commitment.check()

        remaining = self.remaining_cancellable(commitment, prior_cancellations)
        if value > remaining:
            logger.warning(
                f"Rejected cancellation of {value} on commitment {commitment.id} "
                f"(remaining {remaining})"
            )
            raise OverCancellation(commitment.id, value, remaining)

        return self._split(commitment, value)

    def _split(self, commitment: Commitment, value: Decimal) -> list[Allocation]:
        parts = split_proportionally(value, [a.value for a in commitment.allocations])
        shares = [
            Allocation(allocation.credit_id, part)
            for allocation, part in zip(commitment.allocations, parts)
        ]

        logger.debug(
            f"Prorated {value} on commitment {commitment.id}: "
            + ", ".join(f"{s.credit_id}={s.value}" for s in shares)
        )
        return shares

    def restored_by_credit(
        self,
        commitment: Commitment,
        cancellations: Iterable[Cancellation],
    ) -> dict[str, Decimal]:
        """Amount restored to each credit by all cancellations of a commitment.

        The cumulative cancelled total is prorated once, so the restored
        amounts do not depend on how the cancellations were split.

        Raises:
            MalformedCommitment: If the commitment has cancellations but is
                zero-valued or unbalanced
        """
        total = self.cancelled_total(commitment, cancellations)
        if total == 0:
            return {}

        if commitment.value == 0:
            raise MalformedCommitment(commitment.id, "zero-value commitment has cancellations")
        commitment.check()

        if total > commitment.value:
            raise OverCancellation(commitment.id, total, commitment.value)

        return {s.credit_id: s.value for s in self._split(commitment, total)}
