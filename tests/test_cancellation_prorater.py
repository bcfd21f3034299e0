"""
Tests for Cancellation Prorater
"""

from decimal import Decimal

import pytest

from credit_ledger import (
    Allocation,
    Cancellation,
    CancellationProrater,
    Commitment,
    InvalidAmount,
    MalformedCommitment,
    OverCancellation,
)


@pytest.fixture
def prorater():
    """Create prorater instance."""
    return CancellationProrater()


@pytest.fixture
def thirds():
    """Commitment of 100 split 33.33 / 33.33 / 33.34."""
    return Commitment.from_allocations("t", [
        Allocation("A", Decimal("33.33")),
        Allocation("B", Decimal("33.33")),
        Allocation("C", Decimal("33.34")),
    ])


class TestProrate:
    """Tests for splitting a cancellation across credits."""

    def test_proportional_shares(self, prorater, split_commitment):
        """Test 300 of 1200 splits 250 / 50."""
        shares = prorater.prorate(split_commitment, Decimal("300.00"))

        assert shares == [
            Allocation("X", Decimal("250.00")),
            Allocation("Y", Decimal("50.00")),
        ]

    def test_leftover_cent_to_largest_remainder(self, prorater, thirds):
        shares = prorater.prorate(thirds, Decimal("10.00"))

        assert [s.value for s in shares] == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]

    def test_one_cent(self, prorater, thirds):
        shares = prorater.prorate(thirds, Decimal("0.01"))

        assert [s.value for s in shares] == [Decimal("0.00"), Decimal("0.00"), Decimal("0.01")]

    @pytest.mark.parametrize("value", ["0.01", "0.05", "1.00", "33.33", "66.67", "99.99", "100.00"])
    def test_shares_sum_to_value(self, prorater, thirds, value):
        shares = prorater.prorate(thirds, Decimal(value))

        assert sum(s.value for s in shares) == Decimal(value)
        assert all(s.value >= 0 for s in shares)

    def test_single_allocation(self, prorater):
        commitment = Commitment.single("s", "X", Decimal("80.00"))

        assert prorater.prorate(commitment, Decimal("30.00")) == [Allocation("X", Decimal("30.00"))]


class TestLimits:
    """Tests for cancellation bounds."""

    def test_full_cancellation(self, prorater, split_commitment):
        shares = prorater.prorate(split_commitment, Decimal("1200.00"))

        assert shares == list(split_commitment.allocations)

    def test_over_cancellation(self, prorater, split_commitment):
        with pytest.raises(OverCancellation) as exc:
            prorater.prorate(split_commitment, Decimal("1200.01"))
        assert exc.value.remaining == Decimal("1200.00")

    def test_prior_cancellations_reduce_remaining(self, prorater, split_commitment, cancellation_300):
        prior = [cancellation_300, Cancellation("o1", "other", Decimal("999.00"))]

        assert prorater.remaining_cancellable(split_commitment, prior) == Decimal("900.00")
        prorater.prorate(split_commitment, Decimal("900.00"), prior)
        with pytest.raises(OverCancellation):
            prorater.prorate(split_commitment, Decimal("900.01"), prior)

    @pytest.mark.parametrize("value", [Decimal("0.00"), Decimal("-1.00")])
    def test_non_positive_value(self, prorater, split_commitment, value):
        with pytest.raises(InvalidAmount):
            prorater.prorate(split_commitment, value)

    def test_zero_value_commitment(self, prorater):
        commitment = Commitment("z", (Allocation("X", Decimal("0.00")),), Decimal("0.00"))

        with pytest.raises(MalformedCommitment):
            prorater.prorate(commitment, Decimal("1.00"))


class TestShareBounds:
    """Tests that every reversal stays within its allocation."""

    @pytest.fixture
    def skewed(self):
        """Uneven allocations ending in a one-cent credit."""
        values = ["3.50", "0.68", "0.80", "0.39", "2.97", "0.01"]
        return Commitment.from_allocations(
            "k", [Allocation(f"C{i}", Decimal(v)) for i, v in enumerate(values)]
        )

    def test_small_last_allocation_not_overdrawn(self, prorater, skewed):
        shares = prorater.prorate(skewed, Decimal("6.93"))

        assert [s.value for s in shares] == [
            Decimal("2.91"), Decimal("0.56"), Decimal("0.66"),
            Decimal("0.32"), Decimal("2.47"), Decimal("0.01"),
        ]

    def test_no_negative_reversal(self, prorater):
        commitment = Commitment.from_allocations("n", [
            Allocation("A", Decimal("1.00")),
            Allocation("B", Decimal("1.00")),
            Allocation("C", Decimal("1.00")),
            Allocation("D", Decimal("0.01")),
        ])

        shares = prorater.prorate(commitment, Decimal("0.02"))

        assert [(s.credit_id, s.value) for s in shares] == [
            ("A", Decimal("0.00")),
            ("B", Decimal("0.01")),
            ("C", Decimal("0.01")),
            ("D", Decimal("0.00")),
        ]

    def test_every_cent_within_bounds(self, prorater, skewed):
        """Test each cancellable amount splits inside 0 <= share <= allocation."""
        for cents in range(1, 836):
            value = Decimal(cents) / 100
            shares = prorater.prorate(skewed, value)

            assert sum(s.value for s in shares) == value
            for share, allocation in zip(shares, skewed.allocations):
                assert Decimal("0.00") <= share.value <= allocation.value


class TestRestoredByCredit:
    """Tests for cumulative restored amounts."""

    def test_nothing_cancelled(self, prorater, split_commitment):
        assert prorater.restored_by_credit(split_commitment, []) == {}

    def test_cumulative_total_prorated_once(self, prorater, thirds):
        """Test seven one-cent cancellations restore the same as one of 0.07."""
        cents = [Cancellation(f"c{i}", "t", Decimal("0.01")) for i in range(7)]

        restored = prorater.restored_by_credit(thirds, cents)

        assert restored == {"A": Decimal("0.02"), "B": Decimal("0.02"), "C": Decimal("0.03")}
        assert restored == {
            s.credit_id: s.value for s in prorater.prorate(thirds, Decimal("0.07"))
        }

    def test_stored_over_cancellation(self, prorater, split_commitment):
        cancellations = [Cancellation("c1", "m1", Decimal("1500.00"))]

        with pytest.raises(OverCancellation):
            prorater.restored_by_credit(split_commitment, cancellations)
