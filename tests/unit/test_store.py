"""
test_store.py - Unit tests for MemoryStore and JsonFileStore
"""

import json
import pytest

from matchledger import COLLECTIONS, JsonFileStore, MemoryStore


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return JsonFileStore(tmp_path / "nested" / "ledger.json")


class TestStoreContract:
    """Behaviour both stores share."""

    def test_collections_start_empty(self, store):
        for name in COLLECTIONS:
            assert store.load_collection(name) == []

    def test_save_then_load(self, store):
        store.save_collection("bookmakers", [{"id": "bm_1", "name": "Bet365"}])
        assert store.load_collection("bookmakers") == [{"id": "bm_1", "name": "Bet365"}]

    def test_batch_replaces_each_named_collection(self, store):
        store.save_collection("bets", [{"id": "bet_1"}])
        store.save_collections({"bookmakers": [{"id": "bm_1"}], "exchanges": [{"id": "ex_1"}]})
        assert store.load_collection("bookmakers") == [{"id": "bm_1"}]
        assert store.load_collection("exchanges") == [{"id": "ex_1"}]
        assert store.load_collection("bets") == [{"id": "bet_1"}]

    def test_loaded_records_are_copies(self, store):
        store.save_collection("bookmakers", [{"id": "bm_1", "name": "Bet365"}])
        loaded = store.load_collection("bookmakers")
        loaded[0]["name"] = "changed"
        loaded.append({"id": "bm_2"})
        assert store.load_collection("bookmakers") == [{"id": "bm_1", "name": "Bet365"}]

    def test_unknown_collection_rejected(self, store):
        with pytest.raises(ValueError):
            store.load_collection("wallets")
        with pytest.raises(ValueError):
            store.save_collection("wallets", [])

    def test_unknown_collection_in_batch_writes_nothing(self, store):
        with pytest.raises(ValueError):
            store.save_collections({"bookmakers": [{"id": "bm_1"}], "wallets": []})
        assert store.load_collection("bookmakers") == []


class TestMemoryStore:

    def test_saved_records_not_aliased(self):
        store = MemoryStore()
        records = [{"id": "bm_1"}]
        store.save_collection("bookmakers", records)
        records[0]["id"] = "changed"
        assert store.load_collection("bookmakers") == [{"id": "bm_1"}]

    def test_initial_data(self):
        store = MemoryStore({"seed": [{"initial_seed": "200.00"}]})
        assert store.load_collection("seed") == [{"initial_seed": "200.00"}]


class TestJsonFileStore:

    def test_single_document_on_disk(self, tmp_path):
        path = tmp_path / "ledger.json"
        store = JsonFileStore(path)
        store.save_collection("bookmakers", [{"id": "bm_1"}])
        document = json.loads(path.read_text(encoding="utf-8"))
        assert set(document) == set(COLLECTIONS)
        assert document["bookmakers"] == [{"id": "bm_1"}]

    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "ledger.json"
        JsonFileStore(path).save_collection("exchanges", [{"id": "ex_1"}])
        assert JsonFileStore(path).load_collection("exchanges") == [{"id": "ex_1"}]

    def test_no_temp_files_left_behind(self, tmp_path):
        store = JsonFileStore(tmp_path / "ledger.json")
        store.save_collection("bets", [{"id": "bet_1"}])
        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]

    def test_corrupt_document_rejected(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ValueError):
            JsonFileStore(path).load_collection("bets")
