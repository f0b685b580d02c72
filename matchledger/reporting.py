"""
reporting.py - Dashboard Aggregates

Read-only figures derived from the current records. Nothing is cached:
every call recomputes from what it is given, so a report can never lag
behind the balances it describes.

1. total_deposits() - money put in from the bank, across all providers
2. current_float() - money the user still has in play
3. settled_profit() - cumulative net profit of settled bets
4. seed_progress() - how much of the initial seed has been repaid
5. aggregates() - all of the above in one snapshot
6. cashflow_summary() - deposits, withdrawals, balances and commission
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence, Union

from .core import (
    Bet, Bookmaker, Exchange, Seed, Transaction, TransactionType,
    HUNDRED, MONEY_QUANTUM, MONEY_ROUNDING, PERCENT_QUANTUM, ZERO,
)
from .calculator import bet_commission


def _round(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=MONEY_ROUNDING)


def _sum(values: Iterable[Decimal]) -> Decimal:
    return _round(sum(values, ZERO))


# ============================================================================
# PROVIDER TOTALS
# ============================================================================

def total_deposits(bookmakers: Sequence[Bookmaker], exchanges: Sequence[Exchange]) -> Decimal:
    return _sum(p.total_deposits for p in (*bookmakers, *exchanges))


def total_balances(bookmakers: Sequence[Bookmaker], exchanges: Sequence[Exchange]) -> Decimal:
    return _sum(p.current_balance for p in (*bookmakers, *exchanges))


def total_exposure(exchanges: Sequence[Exchange]) -> Decimal:
    return _sum(e.exposure for e in exchanges)


def net_position(provider: Union[Bookmaker, Exchange]) -> Decimal:
    """Balance minus deposits: what the account has made or lost so far."""
    return _round(provider.current_balance - provider.total_deposits)


def total_withdrawals(transactions: Iterable[Transaction]) -> Decimal:
    """Money taken back out to the bank (transfers between providers excluded)."""
    return _sum(t.amount for t in transactions if t.transaction_type is TransactionType.WITHDRAWAL)


def current_float(
    bookmakers: Sequence[Bookmaker],
    exchanges: Sequence[Exchange],
    bets: Iterable[Bet],
) -> Decimal:
    """
    Money the user has in play.

    Balances at every provider, plus back stakes and lay liabilities
    still tied up in unsettled bets. Placing a bet only moves money from
    balances into stakes and exposure, so placement leaves the float
    unchanged.

    Free-bet stakes are excluded: they were never debited from a balance.
    """
    open_stakes = _sum(b.stake_at_risk for b in bets if not b.is_settled)
    return _round(total_balances(bookmakers, exchanges) + open_stakes + total_exposure(exchanges))


# ============================================================================
# PROFIT AND SEED
# ============================================================================

def settled_profit(bets: Iterable[Bet]) -> Decimal:
    return _sum(b.net_profit for b in bets if b.is_settled)


def total_commission(bets: Iterable[Bet]) -> Decimal:
    """Bookmaker and exchange commission paid across all settled bets."""
    return _sum(bet_commission(b) for b in bets)


@dataclass(frozen=True, slots=True)
class SeedProgress:
    """
    Repayment of the initial seed out of settled profit.

    Attributes:
        repaid: Settled profit clamped to [0, initial_seed]
        remaining: initial_seed - repaid
        percentage: 100 x repaid / initial_seed, 1dp (0 when there is no seed)
    """
    initial_seed: Decimal
    repaid: Decimal
    remaining: Decimal
    percentage: Decimal

    @property
    def is_repaid(self) -> bool:
        return self.initial_seed > 0 and self.remaining == 0


def seed_progress(seed: Seed, profit: Decimal) -> SeedProgress:
    """
    Derive seed repayment from cumulative settled profit.

    Losses never push repaid below zero and profit beyond the seed does not
    count twice: repaid is capped at initial_seed.

    Example:
        seed_progress(Seed(initial_seed=200), Decimal("250"))
        # repaid 200.00, remaining 0.00, percentage 100.0
    """
    initial = seed.initial_seed
    repaid = _round(min(max(profit, ZERO), initial))
    remaining = _round(max(initial - repaid, ZERO))
    if initial > 0:
        percentage = (HUNDRED * repaid / initial).quantize(PERCENT_QUANTUM, rounding=MONEY_ROUNDING)
    else:
        percentage = Decimal("0.0")
    return SeedProgress(initial_seed=initial, repaid=repaid, remaining=remaining, percentage=percentage)


# ============================================================================
# SNAPSHOT
# ============================================================================

@dataclass(frozen=True, slots=True)
class CashflowSummary:
    """Money in, money out and where the rest currently sits."""
    total_deposits: Decimal
    total_withdrawals: Decimal
    total_balances: Decimal
    total_exposure: Decimal
    total_commission: Decimal

    @property
    def net_cash(self) -> Decimal:
        """Balances and exposure plus withdrawals, less deposits."""
        return _round(self.total_balances + self.total_exposure + self.total_withdrawals - self.total_deposits)


def cashflow_summary(
    bookmakers: Sequence[Bookmaker],
    exchanges: Sequence[Exchange],
    bets: Sequence[Bet],
    transactions: Sequence[Transaction],
) -> CashflowSummary:
    return CashflowSummary(
        total_deposits=total_deposits(bookmakers, exchanges),
        total_withdrawals=total_withdrawals(transactions),
        total_balances=total_balances(bookmakers, exchanges),
        total_exposure=total_exposure(exchanges),
        total_commission=total_commission(bets),
    )


@dataclass(frozen=True, slots=True)
class Aggregates:
    total_deposits: Decimal
    current_float: Decimal
    settled_profit: Decimal
    seed_progress: SeedProgress
    total_exposure: Decimal
    open_bets: int


def aggregates(
    bookmakers: Sequence[Bookmaker],
    exchanges: Sequence[Exchange],
    bets: Sequence[Bet],
    seed: Seed,
) -> Aggregates:
    profit = settled_profit(bets)
    return Aggregates(
        total_deposits=total_deposits(bookmakers, exchanges),
        current_float=current_float(bookmakers, exchanges, bets),
        settled_profit=profit,
        seed_progress=seed_progress(seed, profit),
        total_exposure=total_exposure(exchanges),
        open_bets=sum(1 for b in bets if not b.is_settled),
    )
