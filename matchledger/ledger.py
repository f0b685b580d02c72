"""
ledger.py - Stateful Matched-Betting Ledger

The Ledger class is the only thing that writes to the store. Every mutating
operation follows the same three steps:

    1. load immutable snapshots of the collections it needs
    2. run pure functions (calculator, settlement, cashflow) to build the
       new records; nothing is written yet
    3. commit every changed collection with one store.save_collections()

An exception in step 1 or 2 therefore leaves the store exactly as it was,
and step 3 is all-or-nothing.

Provider references accept either the record id or its display name
(case-insensitive). Ids are tried first.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
import logging

from .core import (
    Bet, BetDraft, BetStatus, BetType, Bookmaker, Exchange, FreeBet, FreeBetStatus,
    OverdraftPolicy, ProviderType, Seed, Transaction, TransactionDraft, TransactionType,
    InvalidStateError, NotFoundError, ValidationError,
    ZERO,
    generate_id, money, parse_enum, utcnow,
)
from . import calculator, reporting, settlement
from .calculator import LayQuote
from .cashflow import apply_transaction
from .config import settings
from .presets import default_bookmakers, default_exchanges
from .reporting import Aggregates, CashflowSummary
from .settlement import FundsWarning, find_by_id, remove_record, replace_record
from .store import JsonFileStore, MemoryStore, Store

logger = logging.getLogger(__name__)

Provider = Union[Bookmaker, Exchange]

# Bet fields that change balances and can only be edited while unsettled.
SETTLEMENT_FIELDS = frozenset({
    "bookmaker", "exchange", "bet_type", "stake_returned",
    "back_stake", "back_odds", "lay_stake", "lay_odds", "liability",
    "commission_rate", "bookmaker_commission_rate",
})
FREE_TEXT_FIELDS = frozenset({"event", "notes"})


def _name_key(name: str) -> str:
    return name.strip().casefold()


def _resolve(records: Sequence[Any], ref: str, kind: str) -> Any:
    for record in records:
        if record.id == ref:
            return record
    key = _name_key(ref)
    for record in records:
        if _name_key(record.name) == key:
            return record
    raise NotFoundError(f"{kind} {ref!r} not found")


def _ensure_unique_name(records: Sequence[Provider], name: str, kind: str, exclude_id: Optional[str] = None) -> None:
    key = _name_key(name)
    for record in records:
        if record.id != exclude_id and _name_key(record.name) == key:
            raise ValidationError(f"{kind} named {record.name!r} already exists")


class Ledger:
    """
    Matched-betting ledger over an injected store.

    Args:
        store: Where collections live (default: a fresh MemoryStore)
        policy: Overdraft policy for debits (default: settings.OVERDRAFT_POLICY)
        clock: Zero-argument callable returning the current datetime
        id_factory: Callable taking a prefix ("bet", "bm", ...) and returning a new id

    Thread Safety:
        Not thread-safe. Calls are expected to be sequential.

    Example:
        ledger = Ledger()
        ledger.record_transaction(TransactionDraft("Bet365", "bookmaker", "deposit", 100))
        ledger.add_exchange("Smarkets", commission=2)
        bet = ledger.place_bet(BetDraft("Bet365", "Smarkets", "Arsenal v Spurs", 100, 2.5, 2.6))
        ledger.settle_bet(bet.id, "back_won")
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        policy: Union[OverdraftPolicy, str, None] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[str], str]] = None,
    ):
        self.store: Store = store if store is not None else MemoryStore()
        self.policy = parse_enum(
            OverdraftPolicy, policy if policy is not None else settings.OVERDRAFT_POLICY, "policy"
        )
        self._clock = clock or utcnow
        self._new_id = id_factory or generate_id
        self.default_commission = settings.DEFAULT_COMMISSION

    @classmethod
    def from_settings(cls) -> Ledger:
        """Ledger backed by the JSON file at settings.STORE_PATH."""
        return cls(JsonFileStore(settings.STORE_PATH))

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def _bookmakers(self) -> Tuple[Bookmaker, ...]:
        return tuple(Bookmaker.from_dict(r) for r in self.store.load_collection("bookmakers"))

    def _exchanges(self) -> Tuple[Exchange, ...]:
        return tuple(Exchange.from_dict(r) for r in self.store.load_collection("exchanges"))

    def _bets(self) -> Tuple[Bet, ...]:
        return tuple(Bet.from_dict(r) for r in self.store.load_collection("bets"))

    def _free_bets(self) -> Tuple[FreeBet, ...]:
        return tuple(FreeBet.from_dict(r) for r in self.store.load_collection("free_bets"))

    def _transactions(self) -> Tuple[Transaction, ...]:
        return tuple(Transaction.from_dict(r) for r in self.store.load_collection("transactions"))

    def _stored_seed(self) -> Seed:
        records = self.store.load_collection("seed")
        return Seed.from_dict(records[0]) if records else Seed()

    def _commit(self, **collections: Sequence[Any]) -> None:
        batch = {name: [record.to_dict() for record in records] for name, records in collections.items()}
        self.store.save_collections(batch)

    # ========================================================================
    # CALCULATOR
    # ========================================================================

    def compute_lay_stake(
        self,
        back_stake: Any,
        back_odds: Any,
        lay_odds: Any,
        is_free_bet: bool = False,
        stake_returned: bool = False,
        commission_rate: Any = ZERO,
    ) -> Decimal:
        return calculator.lay_stake(back_stake, back_odds, lay_odds, is_free_bet, stake_returned, commission_rate)

    def compute_liability(self, stake: Any, odds: Any) -> Decimal:
        return calculator.liability(stake, odds)

    def quote(self, draft: BetDraft) -> LayQuote:
        """Preview lay stake, liability and both outcome profits without placing anything."""
        bookmaker = _resolve(self._bookmakers(), draft.bookmaker, "Bookmaker")
        exchange = _resolve(self._exchanges(), draft.exchange, "Exchange")
        return calculator.quote(
            draft.back_stake, draft.back_odds, draft.lay_odds,
            is_free_bet=draft.is_free,
            stake_returned=draft.stake_returned,
            commission_rate=self._draft_rate(draft, exchange),
            manual_lay_stake=draft.lay_stake,
            bookmaker_commission_rate=self._draft_bookmaker_rate(draft, bookmaker),
        )

    # ========================================================================
    # PROVIDERS
    # ========================================================================

    def add_bookmaker(self, name: str, commission: Any = ZERO, notes: str = "") -> Bookmaker:
        bookmakers = self._bookmakers()
        bookmaker = Bookmaker(id=self._new_id("bm"), name=name, commission=commission,
                              notes=notes, created_at=self._clock())
        _ensure_unique_name(bookmakers, bookmaker.name, "Bookmaker")
        self._commit(bookmakers=bookmakers + (bookmaker,))
        logger.info("Added bookmaker %s (%s)", bookmaker.name, bookmaker.id)
        return bookmaker

    def add_exchange(self, name: str, commission: Any = None, notes: str = "") -> Exchange:
        exchanges = self._exchanges()
        exchange = Exchange(
            id=self._new_id("ex"), name=name,
            commission=self.default_commission if commission is None else commission,
            notes=notes, created_at=self._clock(),
        )
        _ensure_unique_name(exchanges, exchange.name, "Exchange")
        self._commit(exchanges=exchanges + (exchange,))
        logger.info("Added exchange %s (%s, commission %s%%)", exchange.name, exchange.id, exchange.commission)
        return exchange

    def get_bookmaker(self, ref: str) -> Bookmaker:
        return _resolve(self._bookmakers(), ref, "Bookmaker")

    def get_exchange(self, ref: str) -> Exchange:
        return _resolve(self._exchanges(), ref, "Exchange")

    def list_bookmakers(self) -> List[Bookmaker]:
        return list(self._bookmakers())

    def list_exchanges(self) -> List[Exchange]:
        return list(self._exchanges())

    def update_provider_details(
        self,
        ref: str,
        provider_type: Union[ProviderType, str],
        name: Optional[str] = None,
        commission: Any = None,
        notes: Optional[str] = None,
    ) -> Provider:
        """
        Change a provider's name, commission or notes.

        Balances, deposits and exposure are not editable here: they only move
        through bets and recorded transactions. Bets keep the display name
        they were placed under.
        """
        kind = parse_enum(ProviderType, provider_type, "provider_type")
        collection = "bookmakers" if kind is ProviderType.BOOKMAKER else "exchanges"
        records = self._bookmakers() if kind is ProviderType.BOOKMAKER else self._exchanges()
        label = kind.value.capitalize()

        provider = _resolve(records, ref, label)
        changes: Dict[str, Any] = {}
        if name is not None:
            _ensure_unique_name(records, name, label, exclude_id=provider.id)
            changes["name"] = name
        if commission is not None:
            changes["commission"] = commission
        if notes is not None:
            changes["notes"] = notes
        if not changes:
            return provider

        updated = replace(provider, **changes)
        self._commit(**{collection: replace_record(records, updated)})
        logger.info("Updated %s %s: %s", kind.value, updated.id, ", ".join(sorted(changes)))
        return updated

    def delete_bookmaker(self, ref: str) -> None:
        bookmakers = self._bookmakers()
        bookmaker = _resolve(bookmakers, ref, "Bookmaker")
        if any(b.bookmaker_id == bookmaker.id for b in self._bets()):
            raise InvalidStateError(f"Bookmaker {bookmaker.name} has bets; delete them first")
        if any(f.bookmaker_id == bookmaker.id for f in self._free_bets()):
            raise InvalidStateError(f"Bookmaker {bookmaker.name} has free bets; delete them first")
        self._commit(bookmakers=remove_record(bookmakers, bookmaker.id))
        logger.info("Deleted bookmaker %s (%s)", bookmaker.name, bookmaker.id)

    def delete_exchange(self, ref: str) -> None:
        exchanges = self._exchanges()
        exchange = _resolve(exchanges, ref, "Exchange")
        if any(b.exchange_id == exchange.id for b in self._bets()):
            raise InvalidStateError(f"Exchange {exchange.name} has bets; delete them first")
        self._commit(exchanges=remove_record(exchanges, exchange.id))
        logger.info("Deleted exchange %s (%s)", exchange.name, exchange.id)

    def install_defaults(self) -> Tuple[int, int]:
        """
        Add the default UK bookmakers and exchanges to empty collections.

        A collection that already holds any provider is left alone.

        Returns:
            (bookmakers added, exchanges added)
        """
        now = self._clock()
        changed: Dict[str, Sequence[Any]] = {}
        if not self._bookmakers():
            changed["bookmakers"] = default_bookmakers(now)
        if not self._exchanges():
            changed["exchanges"] = default_exchanges(now)
        if changed:
            self._commit(**changed)
        added = (len(changed.get("bookmakers", ())), len(changed.get("exchanges", ())))
        logger.info("Installed %d default bookmakers and %d default exchanges", *added)
        return added

    # ========================================================================
    # BETS
    # ========================================================================

    @staticmethod
    def _draft_rate(draft: BetDraft, exchange: Exchange) -> Any:
        return exchange.commission_rate if draft.commission_rate is None else draft.commission_rate

    @staticmethod
    def _draft_bookmaker_rate(draft: BetDraft, bookmaker: Bookmaker) -> Any:
        if draft.bookmaker_commission_rate is None:
            return bookmaker.commission_rate
        return draft.bookmaker_commission_rate

    def _build_bet(
        self,
        draft: BetDraft,
        bookmakers: Sequence[Bookmaker],
        exchanges: Sequence[Exchange],
        bet_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Bet:
        bookmaker = _resolve(bookmakers, draft.bookmaker, "Bookmaker")
        exchange = _resolve(exchanges, draft.exchange, "Exchange")
        rate = self._draft_rate(draft, exchange)

        if draft.lay_stake is None:
            lay_stake = calculator.lay_stake(
                draft.back_stake, draft.back_odds, draft.lay_odds,
                draft.is_free, draft.stake_returned, rate,
            )
        else:
            lay_stake = money(draft.lay_stake, "lay_stake")
        if draft.liability is None:
            liability = calculator.liability(lay_stake, draft.lay_odds)
        else:
            liability = money(draft.liability, "liability")

        return Bet(
            id=bet_id or self._new_id("bet"),
            bookmaker_id=bookmaker.id,
            exchange_id=exchange.id,
            bookmaker=bookmaker.name,
            exchange=exchange.name,
            event=draft.event,
            bet_type=draft.bet_type,
            stake_returned=draft.stake_returned,
            back_stake=draft.back_stake,
            back_odds=draft.back_odds,
            lay_stake=lay_stake,
            lay_odds=draft.lay_odds,
            liability=liability,
            commission_rate=rate,
            bookmaker_commission_rate=self._draft_bookmaker_rate(draft, bookmaker),
            manual_lay_stake=draft.lay_stake is not None,
            free_bet_id=draft.free_bet_id,
            notes=draft.notes,
            created_at=created_at or self._clock(),
        )

    def _consume_free_bet(self, free_bets: Sequence[FreeBet], free_bet_id: str, bookmaker_id: str) -> FreeBet:
        free_bet = find_by_id(free_bets, free_bet_id, "FreeBet")
        if free_bet.status is not FreeBetStatus.PENDING:
            raise InvalidStateError(f"FreeBet {free_bet_id} is {free_bet.status.value}, not pending")
        if free_bet.bookmaker_id != bookmaker_id:
            raise ValidationError(f"FreeBet {free_bet_id} belongs to another bookmaker")
        return replace(free_bet, status=FreeBetStatus.USED, used_at=self._clock())

    def place_bet(self, draft: BetDraft) -> Bet:
        """
        Record a new bet and move its stake and liability out of the balances.

        If the draft names a pending free bet, it is marked used in the same
        commit.

        Raises:
            NotFoundError: Unknown bookmaker, exchange or free bet
            ValidationError: Bad stakes or odds
            InvalidStateError: The free bet is not pending
            InsufficientFunds: Under the reject policy
        """
        bookmakers, exchanges, bets = self._bookmakers(), self._exchanges(), self._bets()
        bet = self._build_bet(draft, bookmakers, exchanges)

        changed: Dict[str, Sequence[Any]] = {}
        if bet.free_bet_id:
            free_bets = self._free_bets()
            used = self._consume_free_bet(free_bets, bet.free_bet_id, bet.bookmaker_id)
            changed["free_bets"] = replace_record(free_bets, used)

        bookmakers, exchanges, placed = settlement.place_bet(bet, bookmakers, exchanges, self.policy)
        self._commit(bookmakers=bookmakers, exchanges=exchanges, bets=bets + (placed,), **changed)
        logger.info("Placed %s bet %s: %s @ %s at %s, lay %s @ %s at %s (liability %s)",
                    placed.bet_type.value, placed.id, placed.back_stake, placed.back_odds, placed.bookmaker,
                    placed.lay_stake, placed.lay_odds, placed.exchange, placed.liability)
        return placed

    def get_bet(self, bet_id: str) -> Bet:
        return find_by_id(self._bets(), bet_id, "Bet")

    def list_bets(self, status: Union[BetStatus, str, None] = None) -> List[Bet]:
        """Bets newest first, optionally filtered by status."""
        bets = list(self._bets())
        if status is not None:
            wanted = parse_enum(BetStatus, status, "status")
            bets = [b for b in bets if b.status is wanted]
        return list(reversed(bets))

    def settle_bet(self, bet_id: str, result: Union[BetStatus, str]) -> Bet:
        """
        Settle a bet as back_won or lay_won and credit the winning side.

        Raises:
            NotFoundError: Unknown bet
            InvalidStateError: Already settled, or result is not back_won / lay_won
        """
        bookmakers, exchanges, bets = self._bookmakers(), self._exchanges(), self._bets()
        bookmakers, exchanges, settled = settlement.settle_bet(
            bet_id, result, bookmakers, exchanges, bets, settled_at=self._clock()
        )
        self._commit(bookmakers=bookmakers, exchanges=exchanges, bets=replace_record(bets, settled))
        logger.info("Settled bet %s as %s, net profit %s", settled.id, settled.status.value, settled.net_profit)
        return settled

    def unsettle_bet(self, bet_id: str) -> Bet:
        """Reverse a settlement so the bet can be edited or settled differently."""
        bookmakers, exchanges, bets = self._bookmakers(), self._exchanges(), self._bets()
        bookmakers, exchanges, reopened = settlement.unsettle_bet(
            bet_id, bookmakers, exchanges, bets, self.policy
        )
        self._commit(bookmakers=bookmakers, exchanges=exchanges, bets=replace_record(bets, reopened))
        logger.info("Unsettled bet %s", reopened.id)
        return reopened

    def edit_bet(self, bet_id: str, **changes: Any) -> Bet:
        """
        Edit a bet.

        event and notes can always be changed. Any other field listed in
        SETTLEMENT_FIELDS can only change while the bet is unsettled: the old
        placement is reversed and the edited bet placed again in one commit,
        keeping its id and created_at.

        A lay stake that was entered by hand is kept unless a new one is
        given; a calculated one is recomputed from the edited figures. Pass
        lay_stake=None to switch a manual lay stake back to the calculated
        value. Liability is always recomputed unless given.

        Raises:
            ValidationError: Unknown field, or a free bet's type changed while
                it still holds a FreeBet
            InvalidStateError: Settlement field changed on a settled bet
        """
        unknown = set(changes) - SETTLEMENT_FIELDS - FREE_TEXT_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit bet field(s): {', '.join(sorted(unknown))}")

        bookmakers, exchanges, bets = self._bookmakers(), self._exchanges(), self._bets()
        bet = find_by_id(bets, bet_id, "Bet")

        if not (set(changes) & SETTLEMENT_FIELDS):
            edited = replace(bet, **changes)
            self._commit(bets=replace_record(bets, edited))
            logger.info("Edited bet %s: %s", bet.id, ", ".join(sorted(changes)))
            return edited

        if bet.is_settled:
            raise InvalidStateError(f"Bet {bet_id} is settled; unsettle it before changing stakes or odds")

        bet_type = parse_enum(BetType, changes.get("bet_type", bet.bet_type), "bet_type")
        if bet.free_bet_id and bet_type is not BetType.FREE:
            raise ValidationError(f"Bet {bet_id} uses free bet {bet.free_bet_id}; it must stay a free bet")

        if "commission_rate" in changes:
            rate = changes["commission_rate"]
        elif "exchange" in changes:
            rate = None
        else:
            rate = bet.commission_rate

        if "bookmaker_commission_rate" in changes:
            bookmaker_rate = changes["bookmaker_commission_rate"]
        elif "bookmaker" in changes:
            bookmaker_rate = None
        else:
            bookmaker_rate = bet.bookmaker_commission_rate

        if "lay_stake" in changes:
            manual_lay_stake = changes["lay_stake"]
        elif bet.manual_lay_stake:
            manual_lay_stake = bet.lay_stake
        else:
            manual_lay_stake = None

        draft = BetDraft(
            bookmaker=changes.get("bookmaker", bet.bookmaker_id),
            exchange=changes.get("exchange", bet.exchange_id),
            event=changes.get("event", bet.event),
            back_stake=changes.get("back_stake", bet.back_stake),
            back_odds=changes.get("back_odds", bet.back_odds),
            lay_odds=changes.get("lay_odds", bet.lay_odds),
            bet_type=bet_type,
            stake_returned=changes.get("stake_returned", bet.stake_returned),
            lay_stake=manual_lay_stake,
            liability=changes.get("liability"),
            commission_rate=rate,
            bookmaker_commission_rate=bookmaker_rate,
            notes=changes.get("notes", bet.notes),
        )

        bookmakers, exchanges, _ = settlement.cancel_bet(bet_id, bookmakers, exchanges, bets)
        rebuilt = self._build_bet(draft, bookmakers, exchanges, bet_id=bet.id, created_at=bet.created_at)
        rebuilt = replace(rebuilt, free_bet_id=bet.free_bet_id)
        if rebuilt.free_bet_id:
            free_bet = find_by_id(self._free_bets(), rebuilt.free_bet_id, "FreeBet")
            if free_bet.bookmaker_id != rebuilt.bookmaker_id:
                raise ValidationError(f"FreeBet {free_bet.id} belongs to another bookmaker")
        bookmakers, exchanges, placed = settlement.place_bet(rebuilt, bookmakers, exchanges, self.policy)

        self._commit(bookmakers=bookmakers, exchanges=exchanges, bets=replace_record(bets, placed))
        logger.info("Edited bet %s: %s", bet.id, ", ".join(sorted(changes)))
        return placed

    def delete_bet(self, bet_id: str) -> None:
        """
        Remove an unsettled bet, refunding its stake and releasing its liability.

        A free bet it consumed goes back to pending.

        Raises:
            InvalidStateError: The bet is settled (unsettle it first)
        """
        bookmakers, exchanges, bets = self._bookmakers(), self._exchanges(), self._bets()
        bookmakers, exchanges, cancelled = settlement.cancel_bet(bet_id, bookmakers, exchanges, bets)

        changed: Dict[str, Sequence[Any]] = {}
        if cancelled.free_bet_id:
            free_bets = self._free_bets()
            for free_bet in free_bets:
                if free_bet.id == cancelled.free_bet_id and free_bet.status is FreeBetStatus.USED:
                    restored = replace(free_bet, status=FreeBetStatus.PENDING, used_at=None)
                    changed["free_bets"] = replace_record(free_bets, restored)

        self._commit(bookmakers=bookmakers, exchanges=exchanges, bets=remove_record(bets, bet_id), **changed)
        logger.info("Deleted bet %s", bet_id)

    def check_funds(self, draft: BetDraft) -> List[FundsWarning]:
        """Accounts that cannot cover the drafted bet; empty when both can."""
        bookmakers, exchanges = self._bookmakers(), self._exchanges()
        bet = self._build_bet(draft, bookmakers, exchanges)
        return settlement.check_funds(bet, bookmakers, exchanges)

    # ========================================================================
    # FREE BETS
    # ========================================================================

    def add_free_bet(
        self,
        bookmaker: str,
        value: Any,
        expiry_date: Union[date, str, None] = None,
        notes: str = "",
    ) -> FreeBet:
        bm = _resolve(self._bookmakers(), bookmaker, "Bookmaker")
        free_bets = self._free_bets()
        free_bet = FreeBet(
            id=self._new_id("fb"), bookmaker_id=bm.id, bookmaker=bm.name, value=value,
            expiry_date=expiry_date, notes=notes, created_at=self._clock(),
        )
        self._commit(free_bets=free_bets + (free_bet,))
        logger.info("Added free bet %s: %s at %s", free_bet.id, free_bet.value, bm.name)
        return free_bet

    def mark_free_bet_used(self, free_bet_id: str) -> FreeBet:
        free_bets = self._free_bets()
        free_bet = find_by_id(free_bets, free_bet_id, "FreeBet")
        used = self._consume_free_bet(free_bets, free_bet_id, free_bet.bookmaker_id)
        self._commit(free_bets=replace_record(free_bets, used))
        logger.info("Marked free bet %s used", free_bet_id)
        return used

    def expire_free_bets(self, as_of: Optional[date] = None) -> List[FreeBet]:
        """
        Mark pending free bets whose expiry date is before as_of as expired.

        Returns:
            The free bets that were expired by this call
        """
        as_of = as_of or self._clock().date()
        free_bets = self._free_bets()
        expired = [
            replace(f, status=FreeBetStatus.EXPIRED)
            for f in free_bets
            if f.status is FreeBetStatus.PENDING and f.is_expired_at(as_of)
        ]
        if expired:
            for record in expired:
                free_bets = replace_record(free_bets, record)
            self._commit(free_bets=free_bets)
            logger.info("Expired %d free bet(s) as of %s", len(expired), as_of.isoformat())
        return expired

    def delete_free_bet(self, free_bet_id: str) -> None:
        free_bets = self._free_bets()
        find_by_id(free_bets, free_bet_id, "FreeBet")
        if any(b.free_bet_id == free_bet_id for b in self._bets()):
            raise InvalidStateError(f"FreeBet {free_bet_id} is used by a bet; delete the bet first")
        self._commit(free_bets=remove_record(free_bets, free_bet_id))
        logger.info("Deleted free bet %s", free_bet_id)

    def list_free_bets(self, status: Union[FreeBetStatus, str, None] = None) -> List[FreeBet]:
        free_bets = list(self._free_bets())
        if status is None:
            return free_bets
        wanted = parse_enum(FreeBetStatus, status, "status")
        return [f for f in free_bets if f.status is wanted]

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    def _find_provider(
        self,
        ref: str,
        provider_type: ProviderType,
        bookmakers: Sequence[Bookmaker],
        exchanges: Sequence[Exchange],
    ) -> Provider:
        if provider_type is ProviderType.BOOKMAKER:
            return _resolve(bookmakers, ref, "Bookmaker")
        return _resolve(exchanges, ref, "Exchange")

    def _resolve_any(self, ref: str, bookmakers: Sequence[Bookmaker], exchanges: Sequence[Exchange]) -> Provider:
        for record in (*bookmakers, *exchanges):
            if record.id == ref:
                return record
        key = _name_key(ref)
        matches = [r for r in (*bookmakers, *exchanges) if _name_key(r.name) == key]
        if not matches:
            raise NotFoundError(f"Provider {ref!r} not found")
        if len(matches) > 1:
            raise ValidationError(f"Provider name {ref!r} matches both a bookmaker and an exchange; use the id")
        return matches[0]

    @staticmethod
    def _store_provider(
        provider: Provider,
        bookmakers: Tuple[Bookmaker, ...],
        exchanges: Tuple[Exchange, ...],
    ) -> Tuple[Tuple[Bookmaker, ...], Tuple[Exchange, ...]]:
        if isinstance(provider, Exchange):
            if any(e.id == provider.id for e in exchanges):
                return bookmakers, replace_record(exchanges, provider)
            return bookmakers, exchanges + (provider,)
        if any(b.id == provider.id for b in bookmakers):
            return replace_record(bookmakers, provider), exchanges
        return bookmakers + (provider,), exchanges

    def record_transaction(self, draft: TransactionDraft) -> Transaction:
        """
        Record a cash movement and apply it to the provider's balance.

        A deposit to a provider that does not exist yet creates it under the
        given name (exchanges get the default commission).

        Raises:
            NotFoundError: Unknown provider for anything other than a deposit
            ValidationError: Non-positive amount
            InsufficientFunds: Under the reject policy
        """
        bookmakers, exchanges, transactions = self._bookmakers(), self._exchanges(), self._transactions()
        try:
            provider = self._find_provider(draft.provider, draft.provider_type, bookmakers, exchanges)
        except NotFoundError:
            if draft.transaction_type is not TransactionType.DEPOSIT:
                raise
            provider = self._new_provider(draft.provider, draft.provider_type)
            logger.info("Created %s %s for first deposit", draft.provider_type.value, provider.name)

        transaction = Transaction(
            id=self._new_id("tx"),
            provider_id=provider.id,
            provider_name=provider.name,
            provider_type=draft.provider_type,
            transaction_type=draft.transaction_type,
            amount=draft.amount,
            date=draft.date or self._clock(),
            notes=draft.notes,
        )
        updated = apply_transaction(provider, transaction, self.policy)
        bookmakers, exchanges = self._store_provider(updated, bookmakers, exchanges)

        self._commit(bookmakers=bookmakers, exchanges=exchanges, transactions=transactions + (transaction,))
        logger.info("Recorded %s of %s on %s %s", transaction.transaction_type.value, transaction.amount,
                    transaction.provider_type.value, transaction.provider_name)
        return transaction

    def _new_provider(self, name: str, provider_type: ProviderType) -> Provider:
        if provider_type is ProviderType.BOOKMAKER:
            return Bookmaker(id=self._new_id("bm"), name=name, created_at=self._clock())
        return Exchange(id=self._new_id("ex"), name=name, commission=self.default_commission,
                        created_at=self._clock())

    def record_transfer(
        self,
        source: str,
        destination: str,
        amount: Any,
        date: Optional[datetime] = None,
        notes: str = "",
    ) -> Tuple[Transaction, Transaction]:
        """
        Move money between two providers.

        Writes a transfer on the source and a transfer_in on the destination,
        committed together with both balance changes.

        Returns:
            (outgoing transaction, incoming transaction)
        """
        bookmakers, exchanges, transactions = self._bookmakers(), self._exchanges(), self._transactions()
        src = self._resolve_any(source, bookmakers, exchanges)
        dst = self._resolve_any(destination, bookmakers, exchanges)
        if src.id == dst.id:
            raise ValidationError("Transfer source and destination must differ")

        when = date or self._clock()
        outgoing = Transaction(
            id=self._new_id("tx"), provider_id=src.id, provider_name=src.name,
            provider_type=src.provider_type, transaction_type=TransactionType.TRANSFER,
            amount=amount, date=when, notes=notes or f"Transfer to {dst.name}",
        )
        incoming = Transaction(
            id=self._new_id("tx"), provider_id=dst.id, provider_name=dst.name,
            provider_type=dst.provider_type, transaction_type=TransactionType.TRANSFER_IN,
            amount=amount, date=when, notes=notes or f"Transfer from {src.name}",
        )

        bookmakers, exchanges = self._store_provider(apply_transaction(src, outgoing, self.policy),
                                                     bookmakers, exchanges)
        bookmakers, exchanges = self._store_provider(apply_transaction(dst, incoming, self.policy),
                                                     bookmakers, exchanges)

        self._commit(bookmakers=bookmakers, exchanges=exchanges,
                     transactions=transactions + (outgoing, incoming))
        logger.info("Transferred %s from %s to %s", outgoing.amount, src.name, dst.name)
        return outgoing, incoming

    def list_transactions(self, provider: Optional[str] = None) -> List[Transaction]:
        """Transactions newest first, optionally for one provider (id or name)."""
        transactions = self._transactions()
        if provider is not None:
            key = _name_key(provider)
            transactions = tuple(
                t for t in transactions
                if t.provider_id == provider or _name_key(t.provider_name) == key
            )
        # Stable ascending sort then reverse, so same-timestamp entries list latest-recorded first.
        return list(reversed(sorted(transactions, key=lambda t: t.date)))

    # ========================================================================
    # SEED AND REPORTING
    # ========================================================================

    def get_seed(self) -> Seed:
        """The seed with repaid_so_far derived from current settled profit."""
        seed = self._stored_seed()
        progress = reporting.seed_progress(seed, reporting.settled_profit(self._bets()))
        return replace(seed, repaid_so_far=progress.repaid)

    def set_seed(self, amount: Any) -> Seed:
        seed = replace(self._stored_seed(), initial_seed=amount)
        progress = reporting.seed_progress(seed, reporting.settled_profit(self._bets()))
        seed = replace(seed, repaid_so_far=progress.repaid)
        self._commit(seed=(seed,))
        logger.info("Seed set to %s (repaid %s)", seed.initial_seed, seed.repaid_so_far)
        return seed

    def set_seed_from_deposits(self) -> Seed:
        """Use total deposits across all providers as the seed."""
        return self.set_seed(reporting.total_deposits(self._bookmakers(), self._exchanges()))

    def get_aggregates(self) -> Aggregates:
        return reporting.aggregates(self._bookmakers(), self._exchanges(), self._bets(), self._stored_seed())

    def get_cashflow_summary(self) -> CashflowSummary:
        return reporting.cashflow_summary(
            self._bookmakers(), self._exchanges(), self._bets(), self._transactions()
        )
