"""
Unit tests for the materialized store.

Both backends (in-memory and SQLite) must behave the same, so most tests
run against each of them.
"""

import sqlite3
import threading

import pytest

from equiclear.core.errors import StoreUnavailableError
from equiclear.core.events import AuctionStatus
from equiclear.core.storage import (
    AuctionRecord,
    BidAggregate,
    ClaimRecord,
    MemoryAdapter,
    SQLiteAdapter,
    StorageManager,
)


def make_auction(auction_id="a1", status=AuctionStatus.CREATED, created_at=100, **kwargs):
    values = dict(
        auction_id=auction_id,
        creator="aleo1creator",
        item_name="Item",
        total_supply=10,
        remaining_supply=10,
        start_price=1000,
        reserve_price=200,
        start_time=1000,
        end_time=2000,
        status=status,
        block_height=1,
        created_at=created_at,
        updated_at=created_at,
    )
    values.update(kwargs)
    return AuctionRecord(**values)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        manager = StorageManager.in_memory()
    else:
        manager = StorageManager(data_dir=tmp_path)
    yield manager
    manager.close()


# =============================================================================
# Auctions
# =============================================================================


class TestAuctionTable:
    """Tests for auction upserts and reads."""

    def test_get_missing(self, storage):
        assert storage.get_auction("nope") is None

    def test_upsert_and_get(self, storage):
        record = make_auction(item_description="A rare item", clearing_price=None)
        storage.upsert_auction(record)

        assert storage.get_auction("a1") == record

    def test_upsert_is_idempotent(self, storage):
        record = make_auction()
        storage.upsert_auction(record)
        storage.upsert_auction(record)

        assert storage.list_auctions() == [record]

    def test_upsert_overwrites(self, storage):
        storage.upsert_auction(make_auction())
        updated = make_auction(status=AuctionStatus.SETTLED, clearing_price=450, remaining_supply=2)
        storage.upsert_auction(updated)

        assert storage.get_auction("a1") == updated

    def test_list_filter_by_status(self, storage):
        storage.upsert_auction(make_auction("a1", AuctionStatus.ACTIVE, created_at=1))
        storage.upsert_auction(make_auction("a2", AuctionStatus.CANCELLED, created_at=2))
        storage.upsert_auction(make_auction("a3", AuctionStatus.ACTIVE, created_at=3))

        active = storage.list_auctions(AuctionStatus.ACTIVE)
        assert [a.auction_id for a in active] == ["a1", "a3"]
        assert storage.list_auctions(AuctionStatus.SETTLED) == []

    def test_list_pagination(self, storage):
        for i in range(5):
            storage.upsert_auction(make_auction(f"a{i}", created_at=i))

        page = storage.list_auctions(limit=2, offset=1)
        assert [a.auction_id for a in page] == ["a1", "a2"]
        assert len(storage.list_auctions(offset=4)) == 1


    def test_u64_amounts_round_trip(self, storage):
        u64_max = 2**64 - 1
        record = make_auction(
            total_supply=u64_max, remaining_supply=u64_max,
            start_price=u64_max, reserve_price=u64_max - 1, clearing_price=u64_max,
        )
        storage.upsert_auction(record)

        assert storage.get_auction("a1") == record
        assert storage.list_auctions() == [record]


# =============================================================================
# Bid Aggregates & Claims
# =============================================================================


class TestBidAggregateTable:
    """Tests for bid aggregate storage."""

    def test_upsert_and_get(self, storage):
        aggregate = BidAggregate("a1", bid_count=5, total_volume=500, block_height=3, updated_at=10)
        storage.upsert_bid_aggregate(aggregate)

        assert storage.get_bid_aggregate("a1") == aggregate
        assert storage.get_bid_aggregate("a2") is None

    def test_u64_volume_round_trip(self, storage):
        aggregate = BidAggregate("a1", bid_count=2**64 - 1, total_volume=2**64 - 1)
        storage.upsert_bid_aggregate(aggregate)

        assert storage.get_bid_aggregate("a1") == aggregate

    def test_list(self, storage):
        storage.upsert_bid_aggregate(BidAggregate("b", 1, 10))
        storage.upsert_bid_aggregate(BidAggregate("a", 2, 20))

        assert [a.auction_id for a in storage.list_bid_aggregates()] == ["a", "b"]


class TestClaimTable:
    """Tests for claim storage."""

    def test_keyed_by_auction_and_user(self, storage):
        c1 = ClaimRecord("a1", "alice", 2, 900, 100, block_height=5, claimed_at=50)
        c2 = ClaimRecord("a2", "alice", 1, 450, 0, block_height=6, claimed_at=60)
        c3 = ClaimRecord("a1", "bob", 3, 1350, 0, block_height=7, claimed_at=70)
        for claim in (c1, c2, c3):
            storage.upsert_claim(claim)

        assert storage.list_claims("alice") == [c1, c2]
        assert storage.list_claims("bob") == [c3]
        assert storage.list_claims("carol") == []
        assert storage.get_claim("a1", "bob") == c3
        assert storage.get_claim("a2", "bob") is None

    def test_u64_amounts_round_trip(self, storage):
        claim = ClaimRecord("a1", "alice", 2**64 - 1, 2**64 - 1, 2**64 - 1)
        storage.upsert_claim(claim)

        assert storage.get_claim("a1", "alice") == claim

    def test_upsert_same_key_replaces(self, storage):
        storage.upsert_claim(ClaimRecord("a1", "alice", 2, 900, 100))
        storage.upsert_claim(ClaimRecord("a1", "alice", 2, 900, 100))

        assert len(storage.list_claims("alice")) == 1


# =============================================================================
# Locking & Failures
# =============================================================================


class TestKeyLock:
    """Tests for per-key write serialization."""

    def test_same_key_serialized(self):
        storage = StorageManager.in_memory()
        counter = {"value": 0}

        def increment():
            for _ in range(200):
                with storage.key_lock("k"):
                    current = counter["value"]
                    counter["value"] = current + 1

        threads = [threading.Thread(target=increment) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter["value"] == 800

    def test_released_locks_are_evicted(self):
        storage = StorageManager.in_memory()
        for i in range(1000):
            with storage.key_lock(("bids", f"auction-{i}")):
                pass

        assert storage._key_locks == {}

    def test_lock_kept_while_contended(self):
        storage = StorageManager.in_memory()
        waiting = threading.Event()
        done = threading.Event()

        def contender():
            waiting.set()
            with storage.key_lock("k"):
                done.set()

        with storage.key_lock("k"):
            t = threading.Thread(target=contender)
            t.start()
            assert waiting.wait(timeout=2)
            assert "k" in storage._key_locks
        t.join(timeout=2)

        assert done.is_set()
        assert storage._key_locks == {}

    def test_lock_released_on_error(self):
        storage = StorageManager.in_memory()
        with pytest.raises(RuntimeError):
            with storage.key_lock("k"):
                raise RuntimeError("boom")

        assert storage._key_locks == {}
        with storage.key_lock("k"):
            pass

    def test_different_keys_do_not_block(self):
        storage = StorageManager.in_memory()
        acquired = threading.Event()

        def other_key():
            with storage.key_lock("b"):
                acquired.set()

        with storage.key_lock("a"):
            t = threading.Thread(target=other_key)
            t.start()
            assert acquired.wait(timeout=2)
            t.join()


class TestSQLiteFailures:
    """Backend errors surface as StoreUnavailableError."""

    def test_closed_connection_raises(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "db.sqlite")
        adapter._get_conn().close()

        with pytest.raises(StoreUnavailableError) as exc_info:
            adapter.get_auction("a1")
        assert isinstance(exc_info.value.original_exception, sqlite3.Error)

    def test_creates_parent_directory(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "nested" / "dir" / "db.sqlite")
        assert (tmp_path / "nested" / "dir").exists()
        adapter.close()


class TestStorageManagerSetup:
    """Tests for backend selection."""

    def test_default_is_memory(self):
        storage = StorageManager()
        assert isinstance(storage.adapter, MemoryAdapter)
        assert storage.db_path is None

    def test_data_dir_selects_sqlite(self, tmp_path):
        storage = StorageManager(data_dir=tmp_path, db_name="x.db")
        assert isinstance(storage.adapter, SQLiteAdapter)
        assert storage.db_path == tmp_path / "x.db"
        storage.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
