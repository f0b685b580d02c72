"""
test_reporting.py - Unit tests for dashboard aggregates
"""

import pytest
from datetime import datetime
from decimal import Decimal

from matchledger import Bookmaker, Exchange, Seed, Transaction
from matchledger.reporting import (
    aggregates, cashflow_summary, current_float, net_position, seed_progress,
    settled_profit, total_commission, total_deposits, total_exposure, total_withdrawals,
)
from tests.builders import make_bet


SETTLED = "2025-01-02T00:00:00+00:00"


@pytest.fixture
def book():
    bookmakers = (
        Bookmaker(id="bm_1", name="Bet365", total_deposits=100, current_balance=0),
        Bookmaker(id="bm_2", name="Coral", total_deposits=50, current_balance=70),
    )
    exchanges = (
        Exchange(id="ex_1", name="Smarkets", total_deposits=200, current_balance="46.16", exposure="153.84"),
    )
    bets = (
        make_bet("bet_1"),
        make_bet("bet_2", status="back_won", net_profit="-3.84", settled_at=SETTLED),
        make_bet("bet_3", bet_type="free", status="lay_won", net_profit="38.46", settled_at=SETTLED,
                 commission_rate="0.05"),
    )
    return bookmakers, exchanges, bets


class TestTotals:

    def test_total_deposits(self, book):
        bookmakers, exchanges, _ = book
        assert total_deposits(bookmakers, exchanges) == Decimal("350.00")

    def test_total_exposure(self, book):
        assert total_exposure(book[1]) == Decimal("153.84")

    def test_current_float_counts_open_stakes_and_exposure(self, book):
        bookmakers, exchanges, bets = book
        # 0 + 70 + 46.16 balances, 100 open stake, 153.84 exposure
        assert current_float(bookmakers, exchanges, bets) == Decimal("370.00")

    def test_open_free_bet_stake_not_in_float(self, book):
        bookmakers, exchanges, _ = book
        bets = (make_bet("bet_9", bet_type="free"),)
        assert current_float(bookmakers, exchanges, bets) == Decimal("270.00")

    def test_settled_profit_ignores_unsettled(self, book):
        assert settled_profit(book[2]) == Decimal("34.62")

    def test_total_commission(self, book):
        # 96.15 x 0.05 on the one winning lay
        assert total_commission(book[2]) == Decimal("4.81")

    def test_net_position(self, book):
        assert net_position(book[0][1]) == Decimal("20.00")
        assert net_position(book[0][0]) == Decimal("-100.00")

    def test_total_withdrawals_excludes_transfers(self):
        transactions = [
            Transaction(id=f"tx_{i}", provider_id="bm_1", provider_name="Bet365",
                        provider_type="bookmaker", transaction_type=kind, amount=amount,
                        date=datetime(2025, 1, 1))
            for i, (kind, amount) in enumerate([("withdrawal", 40), ("transfer", 25),
                                                ("deposit", 100), ("withdrawal", "10.50")])
        ]
        assert total_withdrawals(transactions) == Decimal("50.50")

    def test_cashflow_summary(self, book):
        bookmakers, exchanges, bets = book
        summary = cashflow_summary(bookmakers, exchanges, bets, ())
        assert summary.total_balances == Decimal("116.16")
        assert summary.net_cash == Decimal("-80.00")


class TestSeedProgress:

    def test_profit_beyond_seed_caps_at_seed(self):
        progress = seed_progress(Seed(initial_seed=200), Decimal("250"))
        assert progress.repaid == Decimal("200.00")
        assert progress.remaining == Decimal("0.00")
        assert progress.percentage == Decimal("100.0")
        assert progress.is_repaid

    def test_partial(self):
        progress = seed_progress(Seed(initial_seed=200), Decimal("50"))
        assert progress.repaid == Decimal("50.00")
        assert progress.remaining == Decimal("150.00")
        assert progress.percentage == Decimal("25.0")

    def test_losses_do_not_go_below_zero(self):
        progress = seed_progress(Seed(initial_seed=200), Decimal("-40"))
        assert progress.repaid == Decimal("0.00")
        assert progress.remaining == Decimal("200.00")
        assert progress.percentage == Decimal("0.0")

    def test_no_seed(self):
        progress = seed_progress(Seed(), Decimal("75"))
        assert progress.repaid == Decimal("0.00")
        assert progress.percentage == Decimal("0.0")
        assert not progress.is_repaid

    def test_percentage_rounded_to_one_place(self):
        assert seed_progress(Seed(initial_seed=300), Decimal("100")).percentage == Decimal("33.3")


class TestAggregates:

    def test_snapshot(self, book):
        bookmakers, exchanges, bets = book
        agg = aggregates(bookmakers, exchanges, bets, Seed(initial_seed=100))
        assert agg.total_deposits == Decimal("350.00")
        assert agg.current_float == Decimal("370.00")
        assert agg.settled_profit == Decimal("34.62")
        assert agg.seed_progress.repaid == Decimal("34.62")
        assert agg.total_exposure == Decimal("153.84")
        assert agg.open_bets == 1
