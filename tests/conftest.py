"""
conftest.py - Shared pytest fixtures for matchledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Deterministic ledgers (fixed clock, sequential ids, in-memory store)
- Funded ledgers with one bookmaker and one exchange
- Provider records for pure-function tests
"""

import pytest

from matchledger import Bookmaker, Exchange

from tests.builders import fund, make_ledger


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with nothing in it."""
    return make_ledger()


@pytest.fixture
def funded_ledger():
    """Bet365 holding 500.00 and a zero-commission Smarkets holding 1000.00."""
    ledger = make_ledger()
    fund(ledger)
    return ledger


# =============================================================================
# RECORD FIXTURES
# =============================================================================

@pytest.fixture
def providers():
    """Bookmaker with 500.00 and exchange with 1000.00, as record tuples."""
    bookmakers = (Bookmaker(id="bm_1", name="Bet365", total_deposits=500, current_balance=500),)
    exchanges = (Exchange(id="ex_1", name="Smarkets", total_deposits=1000, current_balance=1000),)
    return bookmakers, exchanges
