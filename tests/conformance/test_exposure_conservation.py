"""
Exposure Conservation Conformance Tests

INVARIANT: An exchange's exposure is exactly the liability of its open bets.

    ∀ exchange e, at all times:
        e.exposure = Σ_{b ∈ bets, b.exchange = e, b unsettled} b.liability

Placing a bet adds its liability; settling, cancelling or deleting removes
exactly that amount, and unsettling adds it back.
"""

from decimal import Decimal
from hypothesis import given, settings

from matchledger import BetStatus
from tests.conformance.strategies import bet_rows, commissions, overdraft_ledger, draft_from


def open_liability(ledger) -> Decimal:
    return sum((b.liability for b in ledger.list_bets(BetStatus.UNSETTLED)), Decimal("0.00"))


class TestExposureConservation:
    """Property-based exposure tests."""

    @given(bet_rows, commissions)
    @settings(max_examples=50, deadline=None)
    def test_exposure_equals_open_liability(self, rows, commission):
        """
        PROPERTY: After every placement and settlement, exposure matches open liability.
        """
        ledger = overdraft_ledger(commission)

        placed = []
        for row in rows:
            placed.append((ledger.place_bet(draft_from(row)), row[-1]))
            assert ledger.get_exchange("Smarkets").exposure == open_liability(ledger)

        for bet, outcome in placed:
            if outcome is not None:
                ledger.settle_bet(bet.id, outcome)
                assert ledger.get_exchange("Smarkets").exposure == open_liability(ledger)

    @given(bet_rows)
    @settings(max_examples=50, deadline=None)
    def test_exposure_returns_to_zero_when_all_settled(self, rows):
        """
        PROPERTY: Settling every bet releases all exposure.
        """
        ledger = overdraft_ledger()
        bets = [ledger.place_bet(draft_from(row)) for row in rows]
        for bet, row in zip(bets, rows):
            ledger.settle_bet(bet.id, row[-1] or "back_won")
        assert ledger.get_exchange("Smarkets").exposure == Decimal("0.00")

    @given(bet_rows)
    @settings(max_examples=50, deadline=None)
    def test_unsettle_and_delete_keep_exposure_exact(self, rows):
        """
        PROPERTY: Unsettling re-parks liability and deleting releases it.
        """
        ledger = overdraft_ledger()
        bets = [ledger.place_bet(draft_from(row)) for row in rows]

        for bet, row in zip(bets, rows):
            if row[-1] is not None:
                ledger.settle_bet(bet.id, row[-1])
                ledger.unsettle_bet(bet.id)
            assert ledger.get_exchange("Smarkets").exposure == open_liability(ledger)

        for bet in bets:
            ledger.delete_bet(bet.id)
        assert ledger.get_exchange("Smarkets").exposure == Decimal("0.00")
