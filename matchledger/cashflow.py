"""
cashflow.py - Cash Movements on Provider Accounts

Applies a recorded Transaction to the provider it names. Pure: the provider
passed in is never modified; a new record is returned.

    deposit         total_deposits += amount, current_balance += amount
    withdrawal      current_balance -= amount   (overdraft policy applies)
    transfer        current_balance -= amount   (overdraft policy applies)
    transfer_in     current_balance += amount
    balance_update  current_balance  = amount   (absolute overwrite)

Only deposits count towards total_deposits. Withdrawals and transfers are
money leaving the account, not negative deposits, so the deposit total stays
a record of what came in from the bank.
"""

from __future__ import annotations
from dataclasses import replace
from typing import TypeVar

from .core import (
    Bookmaker, Exchange, OverdraftPolicy, Transaction, TransactionType,
    ValidationError,
)
from .settlement import credit, debit

P = TypeVar("P", Bookmaker, Exchange)


def apply_transaction(
    provider: P,
    transaction: Transaction,
    policy: OverdraftPolicy = OverdraftPolicy.CLAMP,
) -> P:
    """
    Return the provider with the transaction's effect applied.

    Args:
        provider: Bookmaker or Exchange the transaction belongs to
        transaction: The recorded cash movement
        policy: Overdraft policy for withdrawals and outgoing transfers

    Raises:
        ValidationError: If the transaction names a different provider
        InsufficientFunds: Under REJECT when a debit overdraws
    """
    if transaction.provider_id != provider.id:
        raise ValidationError(
            f"Transaction {transaction.id} belongs to {transaction.provider_id}, not {provider.id}"
        )
    if transaction.provider_type is not provider.provider_type:
        raise ValidationError(
            f"Transaction {transaction.id} is for a {transaction.provider_type.value}, "
            f"but {provider.name} is a {provider.provider_type.value}"
        )

    kind = transaction.transaction_type
    amount = transaction.amount
    label = f"{provider.provider_type.value} {provider.name}"

    if kind is TransactionType.DEPOSIT:
        return replace(
            provider,
            total_deposits=credit(provider.total_deposits, amount),
            current_balance=credit(provider.current_balance, amount),
        )
    if kind is TransactionType.TRANSFER_IN:
        return replace(provider, current_balance=credit(provider.current_balance, amount))
    if kind in (TransactionType.WITHDRAWAL, TransactionType.TRANSFER):
        return replace(provider, current_balance=debit(provider.current_balance, amount, policy, label))
    if kind is TransactionType.BALANCE_UPDATE:
        return replace(provider, current_balance=amount)
    raise ValidationError(f"Unsupported transaction type: {kind!r}")
