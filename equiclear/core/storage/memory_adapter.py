"""
In-memory backend with the same interface as SQLiteAdapter.

Records are frozen dataclasses, so a reader holding one never sees a
partially written update.
"""

import threading
from typing import Dict, List, Optional, Tuple

from equiclear.core.events import AuctionStatus
from equiclear.core.storage.records import AuctionRecord, BidAggregate, ClaimRecord


class MemoryAdapter:
    """Dict-per-table storage backend. Nothing survives the process."""

    def __init__(self):
        self._auctions: Dict[str, AuctionRecord] = {}
        self._aggregates: Dict[str, BidAggregate] = {}
        self._claims: Dict[Tuple[str, str], ClaimRecord] = {}
        self._lock = threading.Lock()

    # Auctions

    def save_auction(self, record: AuctionRecord):
        with self._lock:
            self._auctions[record.auction_id] = record

    def get_auction(self, auction_id: str) -> Optional[AuctionRecord]:
        return self._auctions.get(auction_id)

    def get_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[AuctionRecord]:
        with self._lock:
            records = list(self._auctions.values())
        if status is not None:
            records = [r for r in records if r.status == status]
        records.sort(key=lambda r: (r.created_at, r.auction_id))
        end = None if limit is None else offset + limit
        return records[offset:end]

    # Bid aggregates

    def save_bid_aggregate(self, aggregate: BidAggregate):
        with self._lock:
            self._aggregates[aggregate.auction_id] = aggregate

    def get_bid_aggregate(self, auction_id: str) -> Optional[BidAggregate]:
        return self._aggregates.get(auction_id)

    def get_bid_aggregates(self) -> List[BidAggregate]:
        with self._lock:
            aggregates = list(self._aggregates.values())
        return sorted(aggregates, key=lambda a: a.auction_id)

    # Claims

    def save_claim(self, claim: ClaimRecord):
        with self._lock:
            self._claims[claim.key] = claim

    def get_claim(self, auction_id: str, user_address: str) -> Optional[ClaimRecord]:
        return self._claims.get((auction_id, user_address))

    def get_claims_for_user(self, user_address: str) -> List[ClaimRecord]:
        with self._lock:
            claims = [c for c in self._claims.values() if c.user_address == user_address]
        return sorted(claims, key=lambda c: (c.claimed_at, c.auction_id))

    def close(self):
        pass
