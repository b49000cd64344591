"""
Indexer core: event model, materialized store, sync engine, pricing and
query facade.
"""

from equiclear.core.errors import (
    ClaimConflictError,
    EquiClearError,
    InvalidEventError,
    StoreUnavailableError,
    UnknownStatusError,
)
from equiclear.core.events import (
    AuctionEvent,
    AuctionStatus,
    BidEvent,
    BidStatus,
    ClaimEvent,
    SettlementEvent,
    parse_event,
)
from equiclear.core.pricing import PricePoint, PriceView, current_price, price_view
from equiclear.core.query import AuctionQueryService, AuctionStats
from equiclear.core.storage import AuctionRecord, BidAggregate, ClaimRecord, StorageManager
from equiclear.core.sync import SyncEngine, SyncOutcome, SyncReport

__all__ = [
    # Errors
    "ClaimConflictError",
    "EquiClearError",
    "InvalidEventError",
    "StoreUnavailableError",
    "UnknownStatusError",
    # Events
    "AuctionEvent",
    "AuctionStatus",
    "BidEvent",
    "BidStatus",
    "ClaimEvent",
    "SettlementEvent",
    "parse_event",
    # Pricing
    "PricePoint",
    "PriceView",
    "current_price",
    "price_view",
    # Storage
    "AuctionRecord",
    "BidAggregate",
    "ClaimRecord",
    "StorageManager",
    # Sync / Query
    "AuctionQueryService",
    "AuctionStats",
    "SyncEngine",
    "SyncOutcome",
    "SyncReport",
]
