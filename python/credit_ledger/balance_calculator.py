"""
Balance Calculator Module

Computes the available balance of credits against the full ledger history.

This is the single place where a credit balance is derived. Listings,
dashboards and write validation all go through it.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from .cancellation_prorater import CancellationProrater
from .models import Cancellation, Commitment, Credit, CreditBalance, Refund
from .money import ZERO, percent, quantize_money

logger = logging.getLogger(__name__)


class BalanceCalculator:
    """Derives credit balances from commitments, refunds and cancellations."""

    def __init__(self, prorater: CancellationProrater | None = None):
        """Initialize the calculator.

        Args:
            prorater: Prorater shared with the cancellation write path
        """
        self.prorater = prorater or CancellationProrater()

    def balance(
        self,
        credit: Credit,
        commitments: Iterable[Commitment],
        refunds: Iterable[Refund],
        cancellations: Iterable[Cancellation],
        exclude_commitment_id: str | None = None,
    ) -> Decimal:
        """Available balance of one credit.

        balance = value_received - spent - refunded + restored

        Args:
            credit: Credit to evaluate
            commitments: All commitments
            refunds: All refunds
            cancellations: All cancellations
            exclude_commitment_id: Commitment to leave out (when editing it)

        Returns:
            Balance as Money

        Raises:
            MalformedCommitment: If a cancelled commitment touching the credit
                is zero-valued or its allocations do not sum to its value
        """
        return self.breakdown(
            credit, commitments, refunds, cancellations, exclude_commitment_id
        ).balance

    def breakdown(
        self,
        credit: Credit,
        commitments: Iterable[Commitment],
        refunds: Iterable[Refund],
        cancellations: Iterable[Cancellation],
        exclude_commitment_id: str | None = None,
    ) -> CreditBalance:
        """Balance of one credit with its spent/refunded/restored components."""
        return self.balances(
            [credit], commitments, refunds, cancellations, exclude_commitment_id
        )[credit.id]

    def balances(
        self,
        credits: Iterable[Credit],
        commitments: Iterable[Commitment],
        refunds: Iterable[Refund],
        cancellations: Iterable[Cancellation],
        exclude_commitment_id: str | None = None,
    ) -> dict[str, CreditBalance]:
        """Balances of many credits in one pass over the history.

        Args:
            credits: Credits to evaluate
            commitments: All commitments
            refunds: All refunds
            cancellations: All cancellations
            exclude_commitment_id: Commitment to leave out (when editing it)

        Returns:
            Dictionary of credit id to CreditBalance, in input order
        """
        credits = list(credits)
        wanted = {c.id for c in credits}

        spent: dict[str, Decimal] = defaultdict(lambda: ZERO)
        refunded: dict[str, Decimal] = defaultdict(lambda: ZERO)
        restored: dict[str, Decimal] = defaultdict(lambda: ZERO)
        commitment_ids: dict[str, list[str]] = defaultdict(list)

        cancellations_by_commitment: dict[str, list[Cancellation]] = defaultdict(list)
        for cancellation in cancellations:
            cancellations_by_commitment[cancellation.commitment_id].append(cancellation)

        known_commitments = set()
        for commitment in commitments:
            known_commitments.add(commitment.id)
            if commitment.id == exclude_commitment_id:
                continue

            touched = [a for a in commitment.allocations if a.credit_id in wanted]
            if not touched:
                continue

            for allocation in touched:
                spent[allocation.credit_id] += allocation.value
                commitment_ids[allocation.credit_id].append(commitment.id)

            commitment_cancellations = cancellations_by_commitment.get(commitment.id)
            if commitment_cancellations:
                shares = self.prorater.restored_by_credit(commitment, commitment_cancellations)
                for credit_id, value in shares.items():
                    if credit_id in wanted:
                        restored[credit_id] += value

        orphans = set(cancellations_by_commitment) - known_commitments
        if orphans:
            logger.warning(f"Ignoring cancellations for unknown commitments: {sorted(orphans)}")

        for refund in refunds:
            if refund.credit_id in wanted:
                refunded[refund.credit_id] += refund.value

        result = {}
        for credit in credits:
            balance = quantize_money(
                credit.value_received
                - spent[credit.id]
                - refunded[credit.id]
                + restored[credit.id]
            )
            result[credit.id] = CreditBalance(
                credit=credit,
                spent=spent[credit.id],
                refunded=refunded[credit.id],
                restored=restored[credit.id],
                balance=balance,
                consumed_percent=percent(credit.value_received - balance, credit.value_received),
                commitment_ids=commitment_ids[credit.id],
            )

        logger.debug(f"Computed balances for {len(result)} credits")
        return result

    def commitment_remaining(
        self,
        commitment: Commitment,
        cancellations: Iterable[Cancellation],
    ) -> Decimal:
        """Commitment value still in effect after its cancellations."""
        return self.prorater.remaining_cancellable(commitment, cancellations)
