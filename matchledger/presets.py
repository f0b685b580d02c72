"""
Default UK providers installed into an empty ledger.

Ids are fixed so that reinstalling into a fresh store reproduces the same
references.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Tuple

from .core import Bookmaker, Exchange

DEFAULT_BOOKMAKERS: Tuple[Tuple[str, str], ...] = (
    ("bm_default_1", "Bet365"),
    ("bm_default_2", "William Hill"),
    ("bm_default_3", "Ladbrokes"),
    ("bm_default_4", "Coral"),
    ("bm_default_5", "Paddy Power"),
    ("bm_default_6", "Sky Bet"),
    ("bm_default_7", "Betfair Sportsbook"),
    ("bm_default_8", "Unibet"),
)

# (id, name, commission percent)
DEFAULT_EXCHANGES: Tuple[Tuple[str, str, str], ...] = (
    ("ex_default_1", "Betfair Exchange", "5.0"),
    ("ex_default_2", "Smarkets", "2.0"),
    ("ex_default_3", "Betdaq", "5.0"),
    ("ex_default_4", "Matchbook", "1.0"),
)


def default_bookmakers(created_at: datetime) -> Tuple[Bookmaker, ...]:
    return tuple(Bookmaker(id=i, name=name, created_at=created_at) for i, name in DEFAULT_BOOKMAKERS)


def default_exchanges(created_at: datetime) -> Tuple[Exchange, ...]:
    return tuple(
        Exchange(id=i, name=name, commission=Decimal(commission), created_at=created_at)
        for i, name, commission in DEFAULT_EXCHANGES
    )
