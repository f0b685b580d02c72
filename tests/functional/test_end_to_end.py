"""
test_end_to_end.py - Functional scenarios through the Ledger facade

Walks complete user journeys against both stores:
- Deposit, place a qualifying bet, settle, check every balance
- A free-bet offer from unlock to profit
- Seed repayment across several bets
"""

import pytest
from datetime import date
from decimal import Decimal

from matchledger import BetDraft, BetStatus, JsonFileStore, MemoryStore, TransactionDraft
from tests.builders import make_ledger


@pytest.fixture(params=["memory", "json"])
def ledger(request, tmp_path):
    if request.param == "memory":
        return make_ledger(MemoryStore())
    return make_ledger(JsonFileStore(tmp_path / "matchledger.json"))


def deposit(ledger, provider, provider_type, amount):
    ledger.record_transaction(TransactionDraft(provider, provider_type, "deposit", amount))


class TestQualifyingBet:

    @pytest.fixture
    def placed(self, ledger):
        deposit(ledger, "A", "bookmaker", 100)
        ledger.add_exchange("X", commission=0)
        deposit(ledger, "X", "exchange", 200)
        bet = ledger.place_bet(BetDraft("A", "X", "Team 1 v Team 2", back_stake=100,
                                        back_odds=2.5, lay_odds=2.6))
        return ledger, bet

    def test_placement(self, placed):
        ledger, bet = placed
        assert bet.lay_stake == Decimal("96.15")
        assert bet.liability == Decimal("153.84")
        assert ledger.get_bookmaker("A").current_balance == Decimal("0.00")
        exchange = ledger.get_exchange("X")
        assert exchange.current_balance == Decimal("46.16")
        assert exchange.exposure == Decimal("153.84")
        assert ledger.get_aggregates().current_float == Decimal("300.00")

    def test_back_wins(self, placed):
        ledger, bet = placed
        settled = ledger.settle_bet(bet.id, "back_won")
        assert settled.net_profit == Decimal("-3.84")
        assert ledger.get_bookmaker("A").current_balance == Decimal("250.00")
        exchange = ledger.get_exchange("X")
        assert exchange.exposure == Decimal("0.00")
        assert exchange.current_balance == Decimal("46.16")
        agg = ledger.get_aggregates()
        assert agg.settled_profit == Decimal("-3.84")
        assert agg.current_float == Decimal("296.16")
        assert agg.open_bets == 0

    def test_lay_wins(self, placed):
        ledger, bet = placed
        settled = ledger.settle_bet(bet.id, "lay_won")
        assert settled.net_profit == Decimal("-3.85")
        assert ledger.get_bookmaker("A").current_balance == Decimal("0.00")
        assert ledger.get_exchange("X").current_balance == Decimal("296.15")
        assert ledger.get_aggregates().current_float == Decimal("296.15")


class TestFreeBetOffer:

    def test_unlock_then_convert(self, ledger):
        ledger.install_defaults()
        deposit(ledger, "Bet365", "bookmaker", 50)
        deposit(ledger, "Smarkets", "exchange", 400)
        ledger.set_seed_from_deposits()

        # Qualifying bet unlocks the offer
        qualifier = ledger.place_bet(BetDraft("Bet365", "Smarkets", "Qualifier", 50, 3.0, 3.1))
        ledger.settle_bet(qualifier.id, "lay_won")
        offer = ledger.add_free_bet("Bet365", 50, expiry_date=date(2025, 1, 8))

        draft = BetDraft("Bet365", "Smarkets", "Free bet", 50, 5.0, 5.2,
                         bet_type="free", free_bet_id=offer.id)
        quote = ledger.quote(draft)
        assert quote.lay_stake == Decimal("38.61")

        free = ledger.place_bet(draft)
        assert ledger.list_free_bets("used")[0].id == offer.id
        settled = ledger.settle_bet(free.id, "back_won")
        assert settled.net_profit == quote.profit_if_back_wins

        agg = ledger.get_aggregates()
        assert agg.settled_profit == qualifier_profit(ledger, qualifier.id) + settled.net_profit
        assert agg.seed_progress.initial_seed == Decimal("450.00")
        assert agg.total_exposure == Decimal("0.00")
        assert ledger.expire_free_bets(date(2025, 2, 1)) == []


def qualifier_profit(ledger, bet_id):
    return ledger.get_bet(bet_id).net_profit


class TestSeedRepayment:

    def test_profit_beyond_seed(self, ledger):
        deposit(ledger, "Bet365", "bookmaker", 200)
        ledger.add_exchange("Smarkets", commission=0)
        deposit(ledger, "Smarkets", "exchange", 1000)
        ledger.set_seed(200)

        # Two free-bet wins of 125.00 each
        for event in ("Match 1", "Match 2"):
            bet = ledger.place_bet(BetDraft("Bet365", "Smarkets", event, 125, 2.0, 2.0,
                                            bet_type="free", lay_stake=125))
            ledger.settle_bet(bet.id, "lay_won")

        progress = ledger.get_aggregates().seed_progress
        assert progress.repaid == Decimal("200.00")
        assert progress.remaining == Decimal("0.00")
        assert progress.percentage == Decimal("100.0")
        assert ledger.get_seed().repaid_so_far == Decimal("200.00")
        assert [b.status for b in ledger.list_bets()] == [BetStatus.LAY_WON, BetStatus.LAY_WON]
