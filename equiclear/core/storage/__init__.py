"""
Materialized Store Module.

Provides keyed storage for:
- Auctions
- Bid aggregates (public rollups only)
- Claims

Backed by SQLite for durability, or by an in-memory adapter.
"""

from equiclear.core.storage.records import AuctionRecord, BidAggregate, ClaimRecord
from equiclear.core.storage.memory_adapter import MemoryAdapter
from equiclear.core.storage.sqlite_adapter import SQLiteAdapter
from equiclear.core.storage.storage_manager import StorageManager

__all__ = [
    "AuctionRecord",
    "BidAggregate",
    "ClaimRecord",
    "MemoryAdapter",
    "SQLiteAdapter",
    "StorageManager",
]
