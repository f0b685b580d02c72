"""
matchledger - Matched-Betting Ledger and Settlement Engine

Tracks bookmaker and exchange balances, back/lay bet pairs, free bets,
cash movements and repayment of the initial seed.

Usage:
    from matchledger import Ledger, BetDraft, TransactionDraft

    ledger = Ledger()
    ledger.install_defaults()

    ledger.record_transaction(TransactionDraft("Bet365", "bookmaker", "deposit", 100))
    ledger.record_transaction(TransactionDraft("Smarkets", "exchange", "deposit", 200))

    # Preview, then place
    draft = BetDraft("Bet365", "Smarkets", "Arsenal v Spurs", back_stake=100, back_odds=2.5, lay_odds=2.6)
    print(ledger.quote(draft))
    bet = ledger.place_bet(draft)

    ledger.settle_bet(bet.id, "back_won")
    print(ledger.get_aggregates())
"""

# Core types
from .core import (
    Bet,
    BetDraft,
    BetStatus,
    BetType,
    Bookmaker,
    Exchange,
    FreeBet,
    FreeBetStatus,
    OverdraftPolicy,
    ProviderType,
    Seed,
    Transaction,
    TransactionDraft,
    TransactionType,
    LedgerError,
    ValidationError,
    NotFoundError,
    InvalidStateError,
    InsufficientFunds,
    to_decimal,
    money,
)

# Ledger
from .ledger import Ledger

# Formulas
from .calculator import (
    LayQuote,
    liability,
    lay_stake,
    commission,
    net_profit,
    quote,
)

# Balance propagation
from .settlement import (
    FundsWarning,
    place_bet,
    settle_bet,
    unsettle_bet,
    cancel_bet,
    check_funds,
)

# Cash movements
from .cashflow import apply_transaction

# Reporting
from .reporting import (
    Aggregates,
    CashflowSummary,
    SeedProgress,
    aggregates,
    current_float,
    seed_progress,
    settled_profit,
    total_deposits,
)

# Persistence
from .store import Store, MemoryStore, JsonFileStore, COLLECTIONS

# Configuration
from .config import Settings, settings
