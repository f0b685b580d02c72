"""
test_free_bets.py - Unit tests for free-bet tracking

Free bets are informational: they never move balances themselves, but a
free-type bet can consume one when it is placed.
"""

import pytest
from datetime import date
from decimal import Decimal

from matchledger import (
    BetDraft, FreeBetStatus,
    InvalidStateError, NotFoundError, ValidationError,
)
from tests.builders import FIXED_NOW


def free_draft(free_bet_id=None, bookmaker="Bet365"):
    return BetDraft(bookmaker, "Smarkets", "Chelsea v Leeds", back_stake=10, back_odds=5.0,
                    lay_odds=5.2, bet_type="free", free_bet_id=free_bet_id)


@pytest.fixture
def ledger_with_free_bet(funded_ledger):
    funded_ledger.add_free_bet("Bet365", 10, expiry_date="2025-01-10", notes="welcome offer")
    return funded_ledger


class TestAddAndList:

    def test_added_pending(self, ledger_with_free_bet):
        (fb,) = ledger_with_free_bet.list_free_bets()
        assert fb.id == "fb_1"
        assert fb.bookmaker == "Bet365"
        assert fb.status is FreeBetStatus.PENDING
        assert fb.expiry_date == date(2025, 1, 10)

    def test_does_not_touch_balances(self, ledger_with_free_bet):
        assert ledger_with_free_bet.get_bookmaker("Bet365").current_balance == Decimal("500.00")

    def test_unknown_bookmaker(self, funded_ledger):
        with pytest.raises(NotFoundError):
            funded_ledger.add_free_bet("Coral", 10)

    def test_filter_by_status(self, ledger_with_free_bet):
        ledger_with_free_bet.add_free_bet("Bet365", 5)
        ledger_with_free_bet.mark_free_bet_used("fb_2")
        assert [f.id for f in ledger_with_free_bet.list_free_bets("pending")] == ["fb_1"]
        assert [f.id for f in ledger_with_free_bet.list_free_bets(FreeBetStatus.USED)] == ["fb_2"]


class TestConsumption:

    def test_placing_consumes_free_bet(self, ledger_with_free_bet):
        bet = ledger_with_free_bet.place_bet(free_draft("fb_1"))
        (fb,) = ledger_with_free_bet.list_free_bets()
        assert bet.free_bet_id == "fb_1"
        assert fb.status is FreeBetStatus.USED
        assert fb.used_at == FIXED_NOW

    def test_used_free_bet_cannot_be_placed_again(self, ledger_with_free_bet):
        ledger_with_free_bet.place_bet(free_draft("fb_1"))
        with pytest.raises(InvalidStateError):
            ledger_with_free_bet.place_bet(free_draft("fb_1"))
        assert len(ledger_with_free_bet.list_bets()) == 1

    def test_free_bet_from_other_bookmaker_rejected(self, ledger_with_free_bet):
        ledger_with_free_bet.add_bookmaker("Coral")
        with pytest.raises(ValidationError):
            ledger_with_free_bet.place_bet(free_draft("fb_1", bookmaker="Coral"))
        assert ledger_with_free_bet.list_free_bets()[0].status is FreeBetStatus.PENDING

    def test_deleting_bet_returns_free_bet_to_pending(self, ledger_with_free_bet):
        bet = ledger_with_free_bet.place_bet(free_draft("fb_1"))
        ledger_with_free_bet.delete_bet(bet.id)
        (fb,) = ledger_with_free_bet.list_free_bets()
        assert fb.status is FreeBetStatus.PENDING
        assert fb.used_at is None

    def test_bet_holding_free_bet_must_stay_free(self, ledger_with_free_bet):
        bet = ledger_with_free_bet.place_bet(free_draft("fb_1"))
        with pytest.raises(ValidationError):
            ledger_with_free_bet.edit_bet(bet.id, bet_type="qualifying")

    def test_free_bet_in_use_cannot_be_deleted(self, ledger_with_free_bet):
        ledger_with_free_bet.place_bet(free_draft("fb_1"))
        with pytest.raises(InvalidStateError):
            ledger_with_free_bet.delete_free_bet("fb_1")

    def test_mark_used_twice_rejected(self, ledger_with_free_bet):
        ledger_with_free_bet.mark_free_bet_used("fb_1")
        with pytest.raises(InvalidStateError):
            ledger_with_free_bet.mark_free_bet_used("fb_1")


class TestExpiry:

    def test_expires_after_expiry_date(self, ledger_with_free_bet):
        ledger_with_free_bet.add_free_bet("Bet365", 5)
        assert ledger_with_free_bet.expire_free_bets(date(2025, 1, 10)) == []
        expired = ledger_with_free_bet.expire_free_bets(date(2025, 1, 11))
        assert [f.id for f in expired] == ["fb_1"]
        statuses = {f.id: f.status for f in ledger_with_free_bet.list_free_bets()}
        assert statuses == {"fb_1": FreeBetStatus.EXPIRED, "fb_2": FreeBetStatus.PENDING}

    def test_defaults_to_clock_date(self, ledger_with_free_bet):
        # clock is 2025-01-01, before the expiry date
        assert ledger_with_free_bet.expire_free_bets() == []

    def test_used_free_bets_do_not_expire(self, ledger_with_free_bet):
        ledger_with_free_bet.mark_free_bet_used("fb_1")
        assert ledger_with_free_bet.expire_free_bets(date(2026, 1, 1)) == []

    def test_delete(self, ledger_with_free_bet):
        ledger_with_free_bet.delete_free_bet("fb_1")
        assert ledger_with_free_bet.list_free_bets() == []
        with pytest.raises(NotFoundError):
            ledger_with_free_bet.delete_free_bet("fb_1")
