"""
fake_store.py - Test Helpers for the Store Protocol

Stores that misbehave on purpose, for checking that a failed operation
leaves persisted state untouched.
"""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Sequence

from matchledger import MemoryStore


class FailingStore(MemoryStore):
    """
    MemoryStore whose next save can be made to fail.

    Example:
        store = FailingStore()
        ledger = Ledger(store)
        store.fail_next_save = True
        ledger.settle_bet(bet_id, "back_won")   # raises IOError, nothing written
    """

    def __init__(self, initial=None):
        self.fail_next_save = False
        self.commits: List[List[str]] = []
        super().__init__(initial)

    def save_collections(self, batch: Mapping[str, Sequence[Mapping[str, Any]]]) -> None:
        if self.fail_next_save:
            self.fail_next_save = False
            raise IOError("simulated write failure")
        self.commits.append(sorted(batch))
        super().save_collections(batch)

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: self.load_collection(name) for name in self._data}
