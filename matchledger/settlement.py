"""
settlement.py - Balance Propagation for Bet Placement and Settlement

This module moves money between bookmaker and exchange records as a bet
goes through its lifecycle:
1. place_bet() - debit the back stake, park the liability in exposure
2. settle_bet() - credit the winning side, release the exposure
3. unsettle_bet() - exact reversal of settle_bet
4. cancel_bet() - exact reversal of place_bet (for deletes and edits)
5. check_funds() - shortfall warnings before placing

All functions take tuples of immutable records and return new tuples. Inputs
are never mutated, and every new record is built before any is returned, so
an exception leaves the caller's snapshot exactly as it was.

Exposure model:

    place       bookmaker.balance -= back stake (qualifying only)
                exchange.balance  -= liability
                exchange.exposure += liability

    back_won    bookmaker.balance += back return
                exchange.exposure -= liability      (liability paid away)

    lay_won     exchange.exposure -= liability
                exchange.balance  += liability + lay winnings

Every placed bet therefore adds exactly its liability to exposure and every
settlement removes exactly that amount, so exposure returns to its starting
value once all bets are settled.

An overdraft under the clamp policy is recorded at its true negative value
and only floored when read through visible_balance. Refunds and payouts
always apply to the true value.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple, TypeVar
import logging

from .core import (
    Bet, BetStatus, Bookmaker, Exchange, OverdraftPolicy, ProviderType,
    InsufficientFunds, InvalidStateError, NotFoundError,
    MONEY_QUANTUM, MONEY_ROUNDING, ZERO,
    utcnow,
)
from .calculator import back_return, lay_return, net_profit

logger = logging.getLogger(__name__)

Bookmakers = Tuple[Bookmaker, ...]
Exchanges = Tuple[Exchange, ...]
Bets = Tuple[Bet, ...]

R = TypeVar("R")


# ============================================================================
# RECORD HELPERS
# ============================================================================

def find_by_id(records: Sequence[R], record_id: str, kind: str) -> R:
    """
    Return the record with the given id.

    Raises:
        NotFoundError: If no record has that id.
    """
    for record in records:
        if record.id == record_id:
            return record
    raise NotFoundError(f"{kind} {record_id!r} not found")


def replace_record(records: Sequence[R], updated: R) -> Tuple[R, ...]:
    """Return a new tuple with the record sharing updated.id swapped in."""
    return tuple(updated if r.id == updated.id else r for r in records)


def remove_record(records: Sequence[R], record_id: str) -> Tuple[R, ...]:
    return tuple(r for r in records if r.id != record_id)


# ============================================================================
# BALANCE ARITHMETIC
# ============================================================================

def _round(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=MONEY_ROUNDING)


def debit(balance: Decimal, amount: Decimal, policy: OverdraftPolicy, label: str) -> Decimal:
    """
    Subtract amount from balance under the given overdraft policy.

    Args:
        balance: Current balance
        amount: Amount to take out (non-negative)
        policy: CLAMP keeps the true balance and logs the shortfall (readers
            floor it through visible_balance), ALLOW overdraws silently,
            REJECT raises
        label: Account description used in log and error messages

    Returns:
        The new balance

    Raises:
        InsufficientFunds: Under REJECT when the result would be negative.
    """
    proposed = _round(balance - amount)
    if proposed >= 0:
        return proposed
    if policy is OverdraftPolicy.REJECT:
        raise InsufficientFunds(f"{label}: need {amount}, have {balance}")
    if policy is OverdraftPolicy.CLAMP:
        logger.warning("%s: debit of %s exceeds balance %s; shown as 0 (shortfall %s)",
                       label, amount, balance, -proposed)
    return proposed


def credit(balance: Decimal, amount: Decimal) -> Decimal:
    return _round(balance + amount)


def release_exposure(exposure: Decimal, amount: Decimal, label: str) -> Decimal:
    """Remove a bet's liability from exposure, never going below zero."""
    remaining = _round(exposure - amount)
    if remaining < 0:
        logger.warning("%s: releasing %s from exposure %s; floored at 0", label, amount, exposure)
        return ZERO
    return remaining


def _bookmaker_label(bookmaker: Bookmaker) -> str:
    return f"bookmaker {bookmaker.name}"


def _exchange_label(exchange: Exchange) -> str:
    return f"exchange {exchange.name}"


def _parse_outcome(result: Any) -> BetStatus:
    if isinstance(result, BetStatus):
        outcome = result
    else:
        try:
            outcome = BetStatus(result)
        except ValueError:
            raise InvalidStateError(f"Settlement result must be back_won or lay_won, got {result!r}") from None
    if outcome is BetStatus.UNSETTLED:
        raise InvalidStateError("Settlement result must be back_won or lay_won, got 'unsettled'")
    return outcome


# ============================================================================
# PLACEMENT
# ============================================================================

def place_bet(
    bet: Bet,
    bookmakers: Sequence[Bookmaker],
    exchanges: Sequence[Exchange],
    policy: OverdraftPolicy = OverdraftPolicy.CLAMP,
) -> Tuple[Bookmakers, Exchanges, Bet]:
    """
    Apply the financial effects of placing a bet.

    Args:
        bet: The bet to place; it is recorded as unsettled
        bookmakers: Current bookmaker snapshot
        exchanges: Current exchange snapshot
        policy: Overdraft policy for the stake and liability debits

    Returns:
        (bookmakers, exchanges, placed_bet). The caller appends placed_bet
        to its bet collection.

    Raises:
        NotFoundError: If the bet's bookmaker or exchange does not exist
        InsufficientFunds: Under REJECT when either debit overdraws
    """
    bookmaker = find_by_id(bookmakers, bet.bookmaker_id, "Bookmaker")
    exchange = find_by_id(exchanges, bet.exchange_id, "Exchange")

    placed = replace(bet, status=BetStatus.UNSETTLED, net_profit=ZERO, settled_at=None)

    new_bookmaker = bookmaker
    if not placed.is_free:
        new_bookmaker = replace(
            bookmaker,
            current_balance=debit(bookmaker.current_balance, placed.back_stake, policy,
                                  _bookmaker_label(bookmaker)),
        )
    new_exchange = replace(
        exchange,
        current_balance=debit(exchange.current_balance, placed.liability, policy,
                              _exchange_label(exchange)),
        exposure=credit(exchange.exposure, placed.liability),
    )

    return (
        replace_record(bookmakers, new_bookmaker),
        replace_record(exchanges, new_exchange),
        placed,
    )


# ============================================================================
# SETTLEMENT
# ============================================================================

def settle_bet(
    bet_id: str,
    result: Any,
    bookmakers: Sequence[Bookmaker],
    exchanges: Sequence[Exchange],
    bets: Sequence[Bet],
    settled_at: Optional[datetime] = None,
) -> Tuple[Bookmakers, Exchanges, Bet]:
    """
    Settle an unsettled bet as BACK_WON or LAY_WON.

    Settlement is one-way: a settled bet cannot be settled again, because a
    second pass would credit the winning side twice.

    Args:
        bet_id: Id of the bet to settle
        result: BetStatus.BACK_WON / LAY_WON or their string values
        bookmakers, exchanges, bets: Current snapshots
        settled_at: Settlement timestamp (default: now, UTC)

    Returns:
        (bookmakers, exchanges, settled_bet)

    Raises:
        NotFoundError: Unknown bet, bookmaker or exchange
        InvalidStateError: Bet already settled, or result not a settled outcome
    """
    outcome = _parse_outcome(result)
    bet = find_by_id(bets, bet_id, "Bet")
    if bet.is_settled:
        raise InvalidStateError(f"Bet {bet_id} is already settled as {bet.status.value}")

    bookmaker = find_by_id(bookmakers, bet.bookmaker_id, "Bookmaker")
    exchange = find_by_id(exchanges, bet.exchange_id, "Exchange")

    profit = net_profit(bet, outcome)
    exposure = release_exposure(exchange.exposure, bet.liability, _exchange_label(exchange))

    if outcome is BetStatus.BACK_WON:
        new_bookmaker = replace(bookmaker, current_balance=credit(bookmaker.current_balance, back_return(bet)))
        new_exchange = replace(exchange, exposure=exposure)
    else:
        new_bookmaker = bookmaker
        new_exchange = replace(
            exchange,
            exposure=exposure,
            current_balance=credit(exchange.current_balance, lay_return(bet)),
        )

    settled = replace(bet, status=outcome, net_profit=profit, settled_at=settled_at or utcnow())

    return (
        replace_record(bookmakers, new_bookmaker),
        replace_record(exchanges, new_exchange),
        settled,
    )


def unsettle_bet(
    bet_id: str,
    bookmakers: Sequence[Bookmaker],
    exchanges: Sequence[Exchange],
    bets: Sequence[Bet],
    policy: OverdraftPolicy = OverdraftPolicy.CLAMP,
) -> Tuple[Bookmakers, Exchanges, Bet]:
    """
    Reverse a settlement, returning the bet to UNSETTLED.

    The credit made at settlement is taken back and the liability is parked
    in exposure again, leaving balances as they were right after placement.

    Raises:
        NotFoundError: Unknown bet, bookmaker or exchange
        InvalidStateError: Bet is not settled
        InsufficientFunds: Under REJECT when the credit has already been spent
    """
    bet = find_by_id(bets, bet_id, "Bet")
    if not bet.is_settled:
        raise InvalidStateError(f"Bet {bet_id} is not settled")

    bookmaker = find_by_id(bookmakers, bet.bookmaker_id, "Bookmaker")
    exchange = find_by_id(exchanges, bet.exchange_id, "Exchange")
    exposure = credit(exchange.exposure, bet.liability)

    if bet.status is BetStatus.BACK_WON:
        new_bookmaker = replace(
            bookmaker,
            current_balance=debit(bookmaker.current_balance, back_return(bet), policy,
                                  _bookmaker_label(bookmaker)),
        )
        new_exchange = replace(exchange, exposure=exposure)
    else:
        new_bookmaker = bookmaker
        new_exchange = replace(
            exchange,
            exposure=exposure,
            current_balance=debit(exchange.current_balance, lay_return(bet), policy,
                                  _exchange_label(exchange)),
        )

    reopened = replace(bet, status=BetStatus.UNSETTLED, net_profit=ZERO, settled_at=None)

    return (
        replace_record(bookmakers, new_bookmaker),
        replace_record(exchanges, new_exchange),
        reopened,
    )


def cancel_bet(
    bet_id: str,
    bookmakers: Sequence[Bookmaker],
    exchanges: Sequence[Exchange],
    bets: Sequence[Bet],
) -> Tuple[Bookmakers, Exchanges, Bet]:
    """
    Reverse the placement of an unsettled bet.

    The back stake is refunded to the bookmaker and the liability moves from
    exposure back into the exchange balance. The bet record itself is
    returned unchanged; the caller decides whether to drop or re-place it.

    Raises:
        NotFoundError: Unknown bet, bookmaker or exchange
        InvalidStateError: Bet is settled (unsettle it first)
    """
    bet = find_by_id(bets, bet_id, "Bet")
    if bet.is_settled:
        raise InvalidStateError(f"Bet {bet_id} is settled; unsettle it before cancelling")

    bookmaker = find_by_id(bookmakers, bet.bookmaker_id, "Bookmaker")
    exchange = find_by_id(exchanges, bet.exchange_id, "Exchange")

    new_bookmaker = replace(bookmaker, current_balance=credit(bookmaker.current_balance, bet.stake_at_risk))
    new_exchange = replace(
        exchange,
        current_balance=credit(exchange.current_balance, bet.liability),
        exposure=release_exposure(exchange.exposure, bet.liability, _exchange_label(exchange)),
    )

    return (
        replace_record(bookmakers, new_bookmaker),
        replace_record(exchanges, new_exchange),
        bet,
    )


# ============================================================================
# FUNDS CHECK
# ============================================================================

@dataclass(frozen=True, slots=True)
class FundsWarning:
    """A provider whose tracked balance does not cover what a bet needs."""
    provider_type: ProviderType
    provider_name: str
    required: Decimal
    available: Decimal

    @property
    def shortfall(self) -> Decimal:
        return _round(self.required - self.available)


def check_funds(bet: Bet, bookmakers: Sequence[Bookmaker], exchanges: Sequence[Exchange]) -> List[FundsWarning]:
    """
    List the accounts that cannot cover a proposed bet.

    The bookmaker must hold the back stake (qualifying bets only) and the
    exchange must hold the liability. An empty list means both are covered.
    """
    bookmaker = find_by_id(bookmakers, bet.bookmaker_id, "Bookmaker")
    exchange = find_by_id(exchanges, bet.exchange_id, "Exchange")

    warnings: List[FundsWarning] = []
    if bet.stake_at_risk > bookmaker.current_balance:
        warnings.append(FundsWarning(ProviderType.BOOKMAKER, bookmaker.name,
                                     bet.stake_at_risk, bookmaker.current_balance))
    if bet.liability > exchange.current_balance:
        warnings.append(FundsWarning(ProviderType.EXCHANGE, exchange.name,
                                     bet.liability, exchange.current_balance))
    return warnings
