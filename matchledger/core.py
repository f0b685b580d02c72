"""
Core types and pure helpers for the matched-betting ledger.

This module provides the foundational data structures for the ledger engine:
1. Money helpers: to_decimal, money (Decimal coercion and 2dp rounding)
2. Enums: BetType, BetStatus, FreeBetStatus, ProviderType, TransactionType, OverdraftPolicy
3. Exceptions: LedgerError and domain-specific error types
4. Immutable records: Bookmaker, Exchange, Bet, FreeBet, Seed, Transaction
5. Drafts: BetDraft, TransactionDraft (caller input before ids and timestamps exist)

Records are frozen. Every change produces a new record via dataclasses.replace,
and every record round-trips through a plain dict (to_dict / from_dict), which
is the only shape the persistence layer ever sees.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_HALF_UP, getcontext
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Type, TypeVar
import uuid


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Intermediate arithmetic runs at high precision; every stored amount is then
# quantized explicitly with MONEY_ROUNDING, so the context rounding mode never
# leaks into persisted values.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

MONEY_PLACES = 2
MONEY_QUANTUM = Decimal("0.01")
PERCENT_QUANTUM = Decimal("0.1")

# Half-up matches how amounts are shown to the user (1.005 -> 1.01).
MONEY_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")
ONE = Decimal("1")
HUNDRED = Decimal("100")


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class ValidationError(LedgerError, ValueError):
    """Raised when input is malformed: odds <= 1, negative stakes, non-finite amounts."""
    pass


class NotFoundError(LedgerError, LookupError):
    """Raised when a provider, bet, free bet or transaction reference does not resolve."""
    pass


class InvalidStateError(LedgerError):
    """Raised when an operation is not allowed in the record's current state."""
    pass


class InsufficientFunds(LedgerError):
    """Raised under the reject overdraft policy when a debit exceeds the tracked balance."""
    pass


# ============================================================================
# MONEY HELPERS
# ============================================================================

def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """
    Convert a user-supplied number to a finite Decimal.

    Floats go through str() so that 0.1 stays 0.1 rather than its binary
    expansion. Booleans are rejected even though they are ints.

    Raises:
        ValidationError: If the value is not numeric or not finite.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be a number, got {value!r}") from None
    else:
        raise ValidationError(f"{field_name} must be a number, got {type(value).__name__}")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return result


def money(value: Any, field_name: str = "amount") -> Decimal:
    """Convert to Decimal and round to 2 decimal places."""
    return to_decimal(value, field_name).quantize(MONEY_QUANTUM, rounding=MONEY_ROUNDING)


def generate_id(prefix: str) -> str:
    """Return a fresh record id such as 'bet_1f3a9c0d2b7e'."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")
    return value.strip()


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC so every stored time is comparable.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return _as_utc(datetime.fromisoformat(value))
        except ValueError:
            raise ValidationError(f"{field_name} is not an ISO-8601 timestamp: {value!r}") from None
    raise ValidationError(f"{field_name} must be a datetime, got {type(value).__name__}")


def _parse_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            raise ValidationError(f"{field_name} is not an ISO-8601 date: {value!r}") from None
    raise ValidationError(f"{field_name} must be a date, got {type(value).__name__}")


def _isoformat(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _required(data: Mapping[str, Any], key: str, record: str) -> Any:
    if key not in data or data[key] is None:
        raise ValidationError(f"{record} record is missing '{key}'")
    return data[key]


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """Coerce a string (or the enum itself) to an enum member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of {allowed}; got {value!r}") from None


# ============================================================================
# ENUMS
# ============================================================================

class BetType(Enum):
    """
    QUALIFYING: real-money back stake, normally a small guaranteed loss.
    FREE: promotional credit used as the back stake.
    """
    QUALIFYING = "qualifying"
    FREE = "free"


class BetStatus(Enum):
    UNSETTLED = "unsettled"
    BACK_WON = "back_won"
    LAY_WON = "lay_won"

    @property
    def is_settled(self) -> bool:
        return self is not BetStatus.UNSETTLED


class FreeBetStatus(Enum):
    PENDING = "pending"
    USED = "used"
    EXPIRED = "expired"


class ProviderType(Enum):
    BOOKMAKER = "bookmaker"
    EXCHANGE = "exchange"


class TransactionType(Enum):
    """
    DEPOSIT: money in from the bank; raises deposits and balance.
    WITHDRAWAL: money out to the bank; lowers balance only.
    TRANSFER: money out to another provider; lowers balance only.
    TRANSFER_IN: money in from another provider; raises balance only.
    BALANCE_UPDATE: absolute overwrite of the balance after reconciliation.
    """
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    TRANSFER_IN = "transfer_in"
    BALANCE_UPDATE = "balance_update"


class OverdraftPolicy(Enum):
    """
    What happens when a debit would take a tracked balance below zero.

    CLAMP: keep the true balance, log the shortfall and show it as zero
        (visible_balance). Later credits settle against the true value.
    ALLOW: keep the true negative balance without a warning.
    REJECT: raise InsufficientFunds before anything changes.
    """
    CLAMP = "clamp"
    ALLOW = "allow"
    REJECT = "reject"


# ============================================================================
# PROVIDERS
# ============================================================================

@dataclass(frozen=True, slots=True)
class _Provider:
    """
    Fields shared by bookmaker and exchange accounts.

    Attributes:
        id: Stable identifier used by every cross-record reference.
        name: Display name, unique within its collection.
        total_deposits: Cumulative money deposited from the bank.
        current_balance: Tracked account balance.
        commission: Commission charged on net winnings, in percent (5.0 = 5%).
        notes: Free text.
        created_at: When the account was added.
    """
    id: str
    name: str
    total_deposits: Decimal = ZERO
    current_balance: Decimal = ZERO
    commission: Decimal = ZERO
    notes: str = ""
    created_at: Optional[datetime] = None

    provider_type: ClassVar[ProviderType]

    def __post_init__(self):
        label = self.provider_type.value.capitalize()
        object.__setattr__(self, 'id', _require_text(self.id, f"{label} id"))
        object.__setattr__(self, 'name', _require_text(self.name, f"{label} name"))
        object.__setattr__(self, 'total_deposits', money(self.total_deposits, "total_deposits"))
        object.__setattr__(self, 'current_balance', money(self.current_balance, "current_balance"))
        object.__setattr__(self, 'commission', to_decimal(self.commission, "commission"))
        if self.total_deposits < 0:
            raise ValidationError(f"{label} {self.name}: total_deposits cannot be negative")
        if not (0 <= self.commission < HUNDRED):
            raise ValidationError(f"{label} {self.name}: commission must be in [0, 100), got {self.commission}")

    @property
    def commission_rate(self) -> Decimal:
        """Commission as a fraction (5% -> 0.05)."""
        return self.commission / HUNDRED

    @property
    def visible_balance(self) -> Decimal:
        """Balance as shown to the user: never below zero."""
        return max(self.current_balance, ZERO)

    def _base_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'total_deposits': str(self.total_deposits),
            'current_balance': str(self.current_balance),
            'commission': str(self.commission),
            'notes': self.notes,
            'created_at': _isoformat(self.created_at),
        }

    @staticmethod
    def _base_kwargs(data: Mapping[str, Any], record: str) -> Dict[str, Any]:
        return {
            'id': _required(data, 'id', record),
            'name': _required(data, 'name', record),
            'total_deposits': data.get('total_deposits') or ZERO,
            'current_balance': data.get('current_balance') or ZERO,
            'commission': data.get('commission') or ZERO,
            'notes': data.get('notes') or "",
            'created_at': _parse_datetime(data.get('created_at'), 'created_at'),
        }


@dataclass(frozen=True, slots=True)
class Bookmaker(_Provider):
    """A betting-site account where back bets are placed."""

    provider_type: ClassVar[ProviderType] = ProviderType.BOOKMAKER

    def to_dict(self) -> Dict[str, Any]:
        return self._base_dict()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Bookmaker:
        return cls(**cls._base_kwargs(data, "Bookmaker"))


@dataclass(frozen=True, slots=True)
class Exchange(_Provider):
    """
    A betting-exchange account where lay bets are placed.

    exposure is the liability parked for unsettled lay bets. Placing a bet
    moves its liability from current_balance into exposure; settling moves it
    back out (to the balance when the lay wins, away when the back wins).
    """
    exposure: Decimal = ZERO

    provider_type: ClassVar[ProviderType] = ProviderType.EXCHANGE

    def __post_init__(self):
        _Provider.__post_init__(self)
        object.__setattr__(self, 'exposure', money(self.exposure, "exposure"))
        if self.exposure < 0:
            raise ValidationError(f"Exchange {self.name}: exposure cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data['exposure'] = str(self.exposure)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Exchange:
        return cls(exposure=data.get('exposure') or ZERO, **cls._base_kwargs(data, "Exchange"))


# ============================================================================
# BETS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Bet:
    """
    A back/lay pair placed at one bookmaker and one exchange.

    Attributes:
        id: Stable bet identifier.
        bookmaker_id, exchange_id: References to the provider records.
        event: Free-text event description.
        bet_type: QUALIFYING or FREE.
        back_stake, back_odds: The bookmaker side.
        lay_stake, lay_odds: The exchange side.
        liability: lay_stake x (lay_odds - 1), what the lay side can lose.
        bookmaker, exchange: Provider names at placement time, for display only.
        stake_returned: For free bets, whether the bookmaker returns the stake on a win.
        commission_rate: Exchange commission (fraction) charged on lay winnings.
        bookmaker_commission_rate: Bookmaker commission (fraction) charged on
            back winnings.
        manual_lay_stake: The lay stake was entered by hand rather than calculated.
        status: UNSETTLED until settled exactly once as BACK_WON or LAY_WON.
        net_profit: Profit across both sides once settled; 0.00 while unsettled.
        free_bet_id: The FreeBet consumed by this bet, if any.
    """
    id: str
    bookmaker_id: str
    exchange_id: str
    event: str
    bet_type: BetType
    back_stake: Decimal
    back_odds: Decimal
    lay_stake: Decimal
    lay_odds: Decimal
    liability: Decimal
    bookmaker: str = ""
    exchange: str = ""
    stake_returned: bool = False
    commission_rate: Decimal = ZERO
    bookmaker_commission_rate: Decimal = ZERO
    manual_lay_stake: bool = False
    status: BetStatus = BetStatus.UNSETTLED
    net_profit: Decimal = ZERO
    free_bet_id: Optional[str] = None
    notes: str = ""
    created_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'id', _require_text(self.id, "Bet id"))
        object.__setattr__(self, 'bookmaker_id', _require_text(self.bookmaker_id, "Bet bookmaker_id"))
        object.__setattr__(self, 'exchange_id', _require_text(self.exchange_id, "Bet exchange_id"))
        object.__setattr__(self, 'event', _require_text(self.event, "Bet event"))
        object.__setattr__(self, 'bet_type', parse_enum(BetType, self.bet_type, "bet_type"))
        object.__setattr__(self, 'status', parse_enum(BetStatus, self.status, "status"))
        object.__setattr__(self, 'back_stake', money(self.back_stake, "back_stake"))
        object.__setattr__(self, 'lay_stake', money(self.lay_stake, "lay_stake"))
        object.__setattr__(self, 'liability', money(self.liability, "liability"))
        object.__setattr__(self, 'net_profit', money(self.net_profit, "net_profit"))
        object.__setattr__(self, 'back_odds', to_decimal(self.back_odds, "back_odds"))
        object.__setattr__(self, 'lay_odds', to_decimal(self.lay_odds, "lay_odds"))
        object.__setattr__(self, 'commission_rate', to_decimal(self.commission_rate, "commission_rate"))
        object.__setattr__(self, 'bookmaker_commission_rate',
                           to_decimal(self.bookmaker_commission_rate, "bookmaker_commission_rate"))
        object.__setattr__(self, 'manual_lay_stake', bool(self.manual_lay_stake))
        object.__setattr__(self, 'stake_returned', bool(self.stake_returned))
        object.__setattr__(self, 'created_at', _parse_datetime(self.created_at, "created_at"))
        object.__setattr__(self, 'settled_at', _parse_datetime(self.settled_at, "settled_at"))

        if self.back_stake <= 0:
            raise ValidationError(f"Bet {self.id}: back_stake must be positive, got {self.back_stake}")
        if self.lay_stake <= 0:
            raise ValidationError(f"Bet {self.id}: lay_stake must be positive, got {self.lay_stake}")
        if self.liability < 0:
            raise ValidationError(f"Bet {self.id}: liability cannot be negative")
        if self.back_odds <= ONE:
            raise ValidationError(f"Bet {self.id}: back_odds must be greater than 1, got {self.back_odds}")
        if self.lay_odds <= ONE:
            raise ValidationError(f"Bet {self.id}: lay_odds must be greater than 1, got {self.lay_odds}")
        if not (0 <= self.commission_rate < ONE):
            raise ValidationError(f"Bet {self.id}: commission_rate must be in [0, 1), got {self.commission_rate}")
        if not (0 <= self.bookmaker_commission_rate < ONE):
            raise ValidationError(
                f"Bet {self.id}: bookmaker_commission_rate must be in [0, 1), got {self.bookmaker_commission_rate}"
            )
        if self.status is BetStatus.UNSETTLED and self.settled_at is not None:
            raise ValidationError(f"Bet {self.id}: unsettled bet cannot carry settled_at")

    @property
    def is_settled(self) -> bool:
        return self.status.is_settled

    @property
    def is_free(self) -> bool:
        return self.bet_type is BetType.FREE

    @property
    def result(self) -> Optional[BetStatus]:
        """The settled outcome, or None while unsettled."""
        return self.status if self.status.is_settled else None

    @property
    def stake_at_risk(self) -> Decimal:
        """Back stake taken from the bookmaker balance (zero for free bets)."""
        return ZERO if self.is_free else self.back_stake

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'bookmaker_id': self.bookmaker_id,
            'exchange_id': self.exchange_id,
            'bookmaker': self.bookmaker,
            'exchange': self.exchange,
            'event': self.event,
            'type': self.bet_type.value,
            'stake_returned': self.stake_returned,
            'back_stake': str(self.back_stake),
            'back_odds': str(self.back_odds),
            'lay_stake': str(self.lay_stake),
            'lay_odds': str(self.lay_odds),
            'liability': str(self.liability),
            'commission_rate': str(self.commission_rate),
            'bookmaker_commission_rate': str(self.bookmaker_commission_rate),
            'manual_lay_stake': self.manual_lay_stake,
            'status': self.status.value,
            'result': self.result.value if self.result else None,
            'net_profit': str(self.net_profit),
            'free_bet_id': self.free_bet_id,
            'notes': self.notes,
            'created_at': _isoformat(self.created_at),
            'settled_at': _isoformat(self.settled_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Bet:
        return cls(
            id=_required(data, 'id', "Bet"),
            bookmaker_id=_required(data, 'bookmaker_id', "Bet"),
            exchange_id=_required(data, 'exchange_id', "Bet"),
            event=_required(data, 'event', "Bet"),
            bet_type=_required(data, 'type', "Bet"),
            back_stake=_required(data, 'back_stake', "Bet"),
            back_odds=_required(data, 'back_odds', "Bet"),
            lay_stake=_required(data, 'lay_stake', "Bet"),
            lay_odds=_required(data, 'lay_odds', "Bet"),
            liability=_required(data, 'liability', "Bet"),
            bookmaker=data.get('bookmaker') or "",
            exchange=data.get('exchange') or "",
            stake_returned=bool(data.get('stake_returned', False)),
            commission_rate=data.get('commission_rate') or ZERO,
            bookmaker_commission_rate=data.get('bookmaker_commission_rate') or ZERO,
            manual_lay_stake=bool(data.get('manual_lay_stake', False)),
            status=data.get('status') or BetStatus.UNSETTLED,
            net_profit=data.get('net_profit') or ZERO,
            free_bet_id=data.get('free_bet_id'),
            notes=data.get('notes') or "",
            created_at=_parse_datetime(data.get('created_at'), 'created_at'),
            settled_at=_parse_datetime(data.get('settled_at'), 'settled_at'),
        )


@dataclass(frozen=True, slots=True)
class BetDraft:
    """
    A proposed bet as collected from the user, before placement.

    bookmaker and exchange accept either a record id or a display name.
    lay_stake and liability are computed when omitted; supplying lay_stake
    keeps a manually entered figure. commission_rate and
    bookmaker_commission_rate default to the exchange's and the bookmaker's
    commission.
    """
    bookmaker: str
    exchange: str
    event: str
    back_stake: Any
    back_odds: Any
    lay_odds: Any
    bet_type: BetType = BetType.QUALIFYING
    stake_returned: bool = False
    lay_stake: Any = None
    liability: Any = None
    commission_rate: Any = None
    bookmaker_commission_rate: Any = None
    free_bet_id: Optional[str] = None
    notes: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'bookmaker', _require_text(self.bookmaker, "bookmaker"))
        object.__setattr__(self, 'exchange', _require_text(self.exchange, "exchange"))
        object.__setattr__(self, 'event', _require_text(self.event, "event"))
        object.__setattr__(self, 'bet_type', parse_enum(BetType, self.bet_type, "bet_type"))
        if self.free_bet_id and self.bet_type is not BetType.FREE:
            raise ValidationError("free_bet_id can only be used with a free bet")

    @property
    def is_free(self) -> bool:
        return self.bet_type is BetType.FREE


# ============================================================================
# FREE BETS
# ============================================================================

@dataclass(frozen=True, slots=True)
class FreeBet:
    """
    A promotional credit at a bookmaker.

    Informational only: free bets never touch balances. A pending free bet is
    marked USED when a free-type Bet consumes it, or EXPIRED once its expiry
    date has passed.
    """
    id: str
    bookmaker_id: str
    value: Decimal
    bookmaker: str = ""
    expiry_date: Optional[date] = None
    status: FreeBetStatus = FreeBetStatus.PENDING
    notes: str = ""
    created_at: Optional[datetime] = None
    used_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'id', _require_text(self.id, "FreeBet id"))
        object.__setattr__(self, 'bookmaker_id', _require_text(self.bookmaker_id, "FreeBet bookmaker_id"))
        object.__setattr__(self, 'value', money(self.value, "value"))
        object.__setattr__(self, 'status', parse_enum(FreeBetStatus, self.status, "status"))
        object.__setattr__(self, 'expiry_date', _parse_date(self.expiry_date, "expiry_date"))
        object.__setattr__(self, 'used_at', _parse_datetime(self.used_at, "used_at"))
        if self.value <= 0:
            raise ValidationError(f"FreeBet {self.id}: value must be positive, got {self.value}")

    def is_expired_at(self, as_of: date) -> bool:
        return self.expiry_date is not None and self.expiry_date < as_of

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'bookmaker_id': self.bookmaker_id,
            'bookmaker': self.bookmaker,
            'value': str(self.value),
            'expiry_date': _isoformat(self.expiry_date),
            'status': self.status.value,
            'notes': self.notes,
            'created_at': _isoformat(self.created_at),
            'used_at': _isoformat(self.used_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FreeBet:
        return cls(
            id=_required(data, 'id', "FreeBet"),
            bookmaker_id=_required(data, 'bookmaker_id', "FreeBet"),
            value=_required(data, 'value', "FreeBet"),
            bookmaker=data.get('bookmaker') or "",
            expiry_date=data.get('expiry_date'),
            status=data.get('status') or FreeBetStatus.PENDING,
            notes=data.get('notes') or "",
            created_at=_parse_datetime(data.get('created_at'), 'created_at'),
            used_at=_parse_datetime(data.get('used_at'), 'used_at'),
        )


# ============================================================================
# SEED
# ============================================================================

@dataclass(frozen=True, slots=True)
class Seed:
    """
    The user's original capital.

    repaid_so_far is derived from settled profit on every read; the stored
    value is only the last figure written and is never accumulated.
    """
    initial_seed: Decimal = ZERO
    repaid_so_far: Decimal = ZERO

    def __post_init__(self):
        object.__setattr__(self, 'initial_seed', money(self.initial_seed, "initial_seed"))
        object.__setattr__(self, 'repaid_so_far', money(self.repaid_so_far, "repaid_so_far"))
        if self.initial_seed < 0:
            raise ValidationError(f"initial_seed cannot be negative, got {self.initial_seed}")
        if self.repaid_so_far < 0:
            raise ValidationError(f"repaid_so_far cannot be negative, got {self.repaid_so_far}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'initial_seed': str(self.initial_seed),
            'repaid_so_far': str(self.repaid_so_far),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Seed:
        return cls(
            initial_seed=data.get('initial_seed') or ZERO,
            repaid_so_far=data.get('repaid_so_far') or ZERO,
        )


# ============================================================================
# TRANSACTIONS
# ============================================================================

# Transaction types that take money out of the provider's balance.
DEBIT_TRANSACTION_TYPES = frozenset({TransactionType.WITHDRAWAL, TransactionType.TRANSFER})


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Audit-trail entry for a cash movement on one provider account.

    The record is written in the same commit as the balance change it
    describes, so the trail and the balances never disagree.
    """
    id: str
    provider_id: str
    provider_name: str
    provider_type: ProviderType
    transaction_type: TransactionType
    amount: Decimal
    date: datetime
    notes: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'id', _require_text(self.id, "Transaction id"))
        object.__setattr__(self, 'provider_id', _require_text(self.provider_id, "Transaction provider_id"))
        object.__setattr__(self, 'provider_name', _require_text(self.provider_name, "Transaction provider_name"))
        object.__setattr__(self, 'provider_type', parse_enum(ProviderType, self.provider_type, "provider_type"))
        object.__setattr__(self, 'transaction_type',
                           parse_enum(TransactionType, self.transaction_type, "transaction_type"))
        object.__setattr__(self, 'amount', money(self.amount, "amount"))
        object.__setattr__(self, 'date', _parse_datetime(self.date, "date"))
        if self.date is None:
            raise ValidationError(f"Transaction {self.id}: date is required")
        if self.transaction_type is TransactionType.BALANCE_UPDATE:
            if self.amount < 0:
                raise ValidationError(f"Transaction {self.id}: balance_update amount cannot be negative")
        elif self.amount <= 0:
            raise ValidationError(
                f"Transaction {self.id}: {self.transaction_type.value} amount must be positive, got {self.amount}"
            )

    @property
    def signed_amount(self) -> Decimal:
        """Amount as it reads on a statement: negative for money leaving the account."""
        if self.transaction_type in DEBIT_TRANSACTION_TYPES:
            return -self.amount
        return self.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'provider_id': self.provider_id,
            'provider_name': self.provider_name,
            'provider_type': self.provider_type.value,
            'transaction_type': self.transaction_type.value,
            'amount': str(self.amount),
            'date': self.date.isoformat(),
            'notes': self.notes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Transaction:
        return cls(
            id=_required(data, 'id', "Transaction"),
            provider_id=_required(data, 'provider_id', "Transaction"),
            provider_name=_required(data, 'provider_name', "Transaction"),
            provider_type=_required(data, 'provider_type', "Transaction"),
            transaction_type=_required(data, 'transaction_type', "Transaction"),
            amount=_required(data, 'amount', "Transaction"),
            date=_required(data, 'date', "Transaction"),
            notes=data.get('notes') or "",
        )


@dataclass(frozen=True, slots=True)
class TransactionDraft:
    """
    A cash movement as entered by the user.

    provider accepts an id or a display name. A deposit naming a provider
    that does not exist yet creates it.
    """
    provider: str
    provider_type: ProviderType
    transaction_type: TransactionType
    amount: Any
    date: Optional[datetime] = None
    notes: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'provider', _require_text(self.provider, "provider"))
        object.__setattr__(self, 'provider_type', parse_enum(ProviderType, self.provider_type, "provider_type"))
        object.__setattr__(self, 'transaction_type',
                           parse_enum(TransactionType, self.transaction_type, "transaction_type"))
