"""
store.py - Persisted Collections

The ledger keeps its records in named collections of plain dicts. Anything
that implements the Store protocol can hold them; two implementations ship
here:

1. MemoryStore - dict-backed, for tests and short-lived sessions
2. JsonFileStore - one JSON document on disk

A ledger operation that touches several collections (a settlement changes
bookmakers, exchanges and bets) commits them with a single
save_collections() call, which both stores apply all-or-nothing.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union
import copy
import json
import logging
import os
import tempfile

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

COLLECTIONS = ("bookmakers", "exchanges", "bets", "free_bets", "transactions", "seed")


def _check_name(name: str) -> None:
    if name not in COLLECTIONS:
        raise ValueError(f"Unknown collection {name!r}; expected one of {', '.join(COLLECTIONS)}")


class Store(Protocol):
    """
    Persistence contract consumed by the Ledger.

    load_collection returns a list of records the caller may freely modify;
    it never aliases stored state. An unknown collection name raises
    ValueError.
    """

    def load_collection(self, name: str) -> List[Record]:
        ...

    def save_collection(self, name: str, records: Sequence[Mapping[str, Any]]) -> None:
        ...

    def save_collections(self, batch: Mapping[str, Sequence[Mapping[str, Any]]]) -> None:
        """Replace several collections at once; either all are written or none."""
        ...


class MemoryStore:
    """In-process store. Records are deep-copied on the way in and out."""

    def __init__(self, initial: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None):
        self._data: Dict[str, List[Record]] = {name: [] for name in COLLECTIONS}
        if initial:
            self.save_collections(initial)

    def load_collection(self, name: str) -> List[Record]:
        _check_name(name)
        return copy.deepcopy(self._data[name])

    def save_collection(self, name: str, records: Sequence[Mapping[str, Any]]) -> None:
        self.save_collections({name: records})

    def save_collections(self, batch: Mapping[str, Sequence[Mapping[str, Any]]]) -> None:
        for name in batch:
            _check_name(name)
        staged = {name: [dict(copy.deepcopy(r)) for r in records] for name, records in batch.items()}
        self._data.update(staged)
        logger.debug("MemoryStore saved %s", ", ".join(sorted(staged)))


class JsonFileStore:
    """
    All collections in one JSON file.

    Each save rewrites the whole document to a temporary file in the same
    directory and swaps it in with os.replace, so readers only ever see the
    previous document or the new one.

    Example:
        store = JsonFileStore("data/matchledger.json")
        ledger = Ledger(store)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, List[Record]]:
        data: Dict[str, List[Record]] = {name: [] for name in COLLECTIONS}
        if not self.path.exists():
            return data
        with open(self.path, 'r', encoding='utf-8') as f:
            stored = json.load(f)
        if not isinstance(stored, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        for name in COLLECTIONS:
            records = stored.get(name) or []
            if not isinstance(records, list):
                raise ValueError(f"{self.path}: collection {name!r} is not a list")
            data[name] = records
        return data

    def _write(self, data: Mapping[str, List[Record]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load_collection(self, name: str) -> List[Record]:
        _check_name(name)
        return self._read()[name]

    def save_collection(self, name: str, records: Sequence[Mapping[str, Any]]) -> None:
        self.save_collections({name: records})

    def save_collections(self, batch: Mapping[str, Sequence[Mapping[str, Any]]]) -> None:
        for name in batch:
            _check_name(name)
        data = self._read()
        for name, records in batch.items():
            data[name] = [dict(r) for r in records]
        self._write(data)
        logger.debug("JsonFileStore wrote %s to %s", ", ".join(sorted(batch)), self.path)
