import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Hashable, Iterator, List, Optional, Union

from equiclear.core.events import AuctionStatus
from equiclear.core.storage.memory_adapter import MemoryAdapter
from equiclear.core.storage.records import AuctionRecord, BidAggregate, ClaimRecord
from equiclear.core.storage.sqlite_adapter import SQLiteAdapter
from equiclear.utils.logger import get_logger

logger = get_logger("storage.manager")

Adapter = Union[SQLiteAdapter, MemoryAdapter]


class _KeyLock:
    """A record lock plus the number of threads holding or waiting on it."""
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class StorageManager:
    """
    Materialized store for the indexer.

    Owns the three entity tables through a backend adapter and hands out
    per-key locks so that a read-modify-write on one record never
    interleaves with another on the same record. Writes on different
    keys proceed independently.

    Handles:
    - Auctions (keyed by auction_id)
    - Bid aggregates (keyed by auction_id)
    - Claims (keyed by auction_id + user_address)
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        db_name: str = "indexer.db",
        adapter: Optional[Adapter] = None,
    ):
        if adapter is not None:
            self.adapter = adapter
            self.db_path = getattr(adapter, "db_path", None)
        elif data_dir is not None:
            self.db_path = Path(data_dir) / db_name
            self.adapter = SQLiteAdapter(self.db_path)
        else:
            self.db_path = None
            self.adapter = MemoryAdapter()

        self._key_locks: Dict[Hashable, _KeyLock] = {}
        self._key_locks_guard = threading.Lock()

        logger.info(f"StorageManager initialized ({self.db_path or 'in-memory'})")

    @classmethod
    def in_memory(cls) -> "StorageManager":
        return cls(adapter=MemoryAdapter())

    # =========================================================================
    # Per-key serialization
    # =========================================================================

    @contextmanager
    def key_lock(self, key: Hashable) -> Iterator[None]:
        """
        Hold the write lock for a single record key.

        The lock entry lives only while some thread holds or waits on it,
        so the table stays bounded by the number of in-flight writes.
        """
        with self._key_locks_guard:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._key_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._key_locks[key]

    # =========================================================================
    # Auctions
    # =========================================================================

    def upsert_auction(self, record: AuctionRecord):
        """Insert or overwrite the auction keyed by record.auction_id."""
        self.adapter.save_auction(record)

    def get_auction(self, auction_id: str) -> Optional[AuctionRecord]:
        return self.adapter.get_auction(auction_id)

    def list_auctions(
        self,
        status_filter: Optional[AuctionStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[AuctionRecord]:
        return self.adapter.get_auctions(status_filter, limit, offset)

    # =========================================================================
    # Bid aggregates
    # =========================================================================

    def upsert_bid_aggregate(self, aggregate: BidAggregate):
        self.adapter.save_bid_aggregate(aggregate)

    def get_bid_aggregate(self, auction_id: str) -> Optional[BidAggregate]:
        return self.adapter.get_bid_aggregate(auction_id)

    def list_bid_aggregates(self) -> List[BidAggregate]:
        return self.adapter.get_bid_aggregates()

    # =========================================================================
    # Claims
    # =========================================================================

    def upsert_claim(self, claim: ClaimRecord):
        self.adapter.save_claim(claim)

    def get_claim(self, auction_id: str, user_address: str) -> Optional[ClaimRecord]:
        return self.adapter.get_claim(auction_id, user_address)

    def list_claims(self, user_address: str) -> List[ClaimRecord]:
        return self.adapter.get_claims_for_user(user_address)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self):
        self.adapter.close()
        logger.debug("StorageManager closed")
