"""
calculator.py - Stake, Liability and Profit Formulas

Pure functions only: nothing here reads or writes ledger state.

1. liability() - what a lay bet can lose
2. lay_stake() - the exchange stake that balances a back bet, for qualifying
   and free bets, net of exchange commission
3. net_profit() - settled profit across both sides of a bet
4. quote() - lay stake, liability and both outcome profits in one preview

Every result is rounded to 2 decimal places before it is returned, and
every intermediate figure that is itself stored (lay stake, liability) is
rounded before the next formula uses it, so previews and stored bets agree
to the penny.

Formulas (S = back stake, bo = back odds, lo = lay odds, c = commission rate):

    liability             = lay_stake x (lo - 1)
    lay stake, qualifying = (S x bo) / (lo - c)
    lay stake, free (SNR) = (S x (bo - 1)) / (lo - c)
    lay stake, free (SR)  = (S x bo) / (lo - c)

    outcome    qualifying           free, SNR            free, SR
    back_won   S(bo-1) - liability  S(bo-1) - liability  S.bo - liability
    lay_won    lay_winnings - S     lay_winnings         lay_winnings

where lay_winnings = lay_stake - lay_stake x c (commission is charged only
on net winnings). A bookmaker that charges commission (rate b) takes
S(bo-1) x b from the back winnings, which lowers every back_won cell by that
amount. The lay stake formulas do not include it.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from .core import (
    Bet, BetStatus, BetType,
    ValidationError,
    MONEY_QUANTUM, MONEY_ROUNDING, ONE, ZERO,
    money, to_decimal, parse_enum,
)


def _round(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=MONEY_ROUNDING)


def _odds(value: Any, field_name: str) -> Decimal:
    odds = to_decimal(value, field_name)
    if odds <= ONE:
        raise ValidationError(f"{field_name} must be greater than 1, got {odds}")
    return odds


def _positive_stake(value: Any, field_name: str) -> Decimal:
    stake = money(value, field_name)
    if stake <= 0:
        raise ValidationError(f"{field_name} must be positive, got {stake}")
    return stake


def _commission_rate(value: Any) -> Decimal:
    if value is None:
        return ZERO
    rate = to_decimal(value, "commission_rate")
    if not (0 <= rate < ONE):
        raise ValidationError(f"commission_rate must be in [0, 1), got {rate}")
    return rate


# ============================================================================
# STAKE AND LIABILITY
# ============================================================================

def liability(stake: Any, odds: Any) -> Decimal:
    """
    Amount a lay bet pays out if the laid selection wins.

    Args:
        stake: Lay stake (non-negative)
        odds: Lay odds (> 1)

    Returns:
        stake x (odds - 1), rounded to 2dp

    Raises:
        ValidationError: If stake is negative or odds <= 1.
    """
    stake_d = money(stake, "stake")
    if stake_d < 0:
        raise ValidationError(f"stake cannot be negative, got {stake_d}")
    odds_d = _odds(odds, "odds")
    return _round(stake_d * (odds_d - ONE))


def lay_stake(
    back_stake: Any,
    back_odds: Any,
    lay_odds: Any,
    is_free_bet: bool = False,
    stake_returned: bool = False,
    commission_rate: Any = ZERO,
) -> Decimal:
    """
    Exchange stake that makes both outcomes of a back bet (nearly) equal.

    Args:
        back_stake: Bookmaker stake (> 0)
        back_odds: Bookmaker odds (> 1)
        lay_odds: Exchange odds (> 1)
        is_free_bet: True when the back stake is a promotional free bet
        stake_returned: For free bets, whether a winning bet returns the stake
        commission_rate: Exchange commission as a fraction in [0, 1)

    Returns:
        Lay stake rounded to 2dp.

        A free bet whose stake is not returned only has its winnings to
        cover, so the numerator is S x (bo - 1); otherwise it is S x bo.

    Raises:
        ValidationError: On any out-of-range input, including
            lay_odds <= commission_rate (which would give a negative stake).
    """
    stake = _positive_stake(back_stake, "back_stake")
    bo = _odds(back_odds, "back_odds")
    lo = _odds(lay_odds, "lay_odds")
    rate = _commission_rate(commission_rate)
    if lo <= rate:
        raise ValidationError(f"lay_odds ({lo}) must exceed commission_rate ({rate})")

    if is_free_bet and not stake_returned:
        numerator = stake * (bo - ONE)
    else:
        numerator = stake * bo
    return _round(numerator / (lo - rate))


def commission(amount: Any, rate: Any) -> Decimal:
    """Commission charged on a winning amount, rounded to 2dp."""
    amount_d = money(amount, "amount")
    return _round(amount_d * _commission_rate(rate))


# ============================================================================
# SETTLEMENT FIGURES
# ============================================================================

def back_commission(bet: Bet) -> Decimal:
    """Bookmaker commission on the back winnings S x (bo - 1)."""
    return commission(bet.back_stake * (bet.back_odds - ONE), bet.bookmaker_commission_rate)


def back_return(bet: Bet) -> Decimal:
    """
    What the bookmaker credits when the back bet wins.

    Stake plus winnings, except for a free bet whose stake is not returned,
    where only the winnings come back. Bookmaker commission is deducted.
    """
    if bet.is_free and not bet.stake_returned:
        gross = _round(bet.back_stake * (bet.back_odds - ONE))
    else:
        gross = _round(bet.back_stake * bet.back_odds)
    return _round(gross - back_commission(bet))


def lay_winnings(bet: Bet) -> Decimal:
    """Lay stake won on the exchange, net of commission."""
    return _round(bet.lay_stake - commission(bet.lay_stake, bet.commission_rate))


def lay_return(bet: Bet) -> Decimal:
    """
    What the exchange releases into the balance when the lay wins.

    The parked liability comes back together with the net lay winnings.
    """
    return _round(bet.liability + lay_winnings(bet))


def bet_commission(bet: Bet) -> Decimal:
    """Commission paid on a settled bet: by the winning side only."""
    if bet.status is BetStatus.LAY_WON:
        return commission(bet.lay_stake, bet.commission_rate)
    if bet.status is BetStatus.BACK_WON:
        return back_commission(bet)
    return ZERO


def _profit(
    bet_type: BetType,
    stake_returned: bool,
    back_stake: Decimal,
    back_odds: Decimal,
    lay_stake_: Decimal,
    liability_: Decimal,
    commission_rate: Decimal,
    outcome: BetStatus,
    bookmaker_rate: Decimal = ZERO,
) -> Decimal:
    is_free = bet_type is BetType.FREE
    if outcome is BetStatus.BACK_WON:
        winnings = _round(back_stake * (back_odds - ONE))
        winnings = _round(winnings - commission(winnings, bookmaker_rate))
        if is_free and stake_returned:
            return _round(winnings + back_stake - liability_)
        return _round(winnings - liability_)
    if outcome is BetStatus.LAY_WON:
        winnings = _round(lay_stake_ - _round(lay_stake_ * commission_rate))
        if is_free:
            return winnings
        return _round(winnings - back_stake)
    raise ValidationError(f"cannot compute profit for outcome {outcome.value}")


def net_profit(bet: Bet, outcome: Optional[Any] = None) -> Decimal:
    """
    Profit across both sides of a bet.

    Args:
        bet: The bet
        outcome: BACK_WON or LAY_WON to evaluate a hypothetical result;
                 defaults to the bet's own status

    Returns:
        Net profit rounded to 2dp; 0.00 for an unsettled bet evaluated
        without an explicit outcome.
    """
    status = bet.status if outcome is None else parse_enum(BetStatus, outcome, "outcome")
    if status is BetStatus.UNSETTLED:
        return ZERO
    return _profit(
        bet.bet_type, bet.stake_returned,
        bet.back_stake, bet.back_odds,
        bet.lay_stake, bet.liability,
        bet.commission_rate, status, bet.bookmaker_commission_rate,
    )


# ============================================================================
# QUOTES
# ============================================================================

@dataclass(frozen=True, slots=True)
class LayQuote:
    """
    Preview of a bet pair before it is placed.

    Attributes:
        lay_stake: Stake to place on the exchange
        liability: What the lay side can lose
        profit_if_back_wins: Net profit when the bookmaker bet wins
        profit_if_lay_wins: Net profit when the exchange bet wins
    """
    lay_stake: Decimal
    liability: Decimal
    profit_if_back_wins: Decimal
    profit_if_lay_wins: Decimal

    @property
    def worst_case(self) -> Decimal:
        return min(self.profit_if_back_wins, self.profit_if_lay_wins)


def quote(
    back_stake: Any,
    back_odds: Any,
    lay_odds: Any,
    is_free_bet: bool = False,
    stake_returned: bool = False,
    commission_rate: Any = ZERO,
    manual_lay_stake: Any = None,
    bookmaker_commission_rate: Any = ZERO,
) -> LayQuote:
    """
    Compute lay stake, liability and both outcome profits.

    Args:
        manual_lay_stake: Use this lay stake instead of the calculated one
                          (the user matched a different amount on the exchange).
        bookmaker_commission_rate: Bookmaker commission on back winnings,
                                   as a fraction.

    Example:
        q = quote(50, 5.0, 5.2, is_free_bet=True, commission_rate=0.02)
        # q.lay_stake == Decimal("38.61")
    """
    stake = _positive_stake(back_stake, "back_stake")
    bo = _odds(back_odds, "back_odds")
    lo = _odds(lay_odds, "lay_odds")
    rate = _commission_rate(commission_rate)
    bookmaker_rate = _commission_rate(bookmaker_commission_rate)

    if manual_lay_stake is None:
        ls = lay_stake(stake, bo, lo, is_free_bet, stake_returned, rate)
    else:
        ls = _positive_stake(manual_lay_stake, "lay_stake")
    liab = liability(ls, lo)

    bet_type = BetType.FREE if is_free_bet else BetType.QUALIFYING
    return LayQuote(
        lay_stake=ls,
        liability=liab,
        profit_if_back_wins=_profit(bet_type, stake_returned, stake, bo, ls, liab, rate,
                                    BetStatus.BACK_WON, bookmaker_rate),
        profit_if_lay_wins=_profit(bet_type, stake_returned, stake, bo, ls, liab, rate,
                                   BetStatus.LAY_WON, bookmaker_rate),
    )
