"""
Auction Query Service - read-only access for transport layers.

Wraps the materialized store and the pricing functions. Missing data is
reported as None, an empty list or a zero-valued aggregate, never as an
exception.
"""

import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

from equiclear.core.events import AuctionStatus
from equiclear.core.pricing import PricePoint, PriceView, price_curve, price_view
from equiclear.core.storage.records import AuctionRecord, BidAggregate, ClaimRecord
from equiclear.core.storage.storage_manager import StorageManager
from equiclear.utils.logger import get_logger
from equiclear.utils.validation import validate_address, validate_auction_id, validate_pagination

logger = get_logger("query")


@dataclass(frozen=True)
class AuctionStats:
    """Platform-wide totals."""
    total_auctions: int
    active_auctions: int
    total_volume: int
    total_bids: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuctionQueryService:
    """Read-only facade over the materialized store."""

    def __init__(
        self,
        storage: StorageManager,
        clock: Callable[[], float] = time.time,
        default_curve_samples: int = 20,
    ):
        self.storage = storage
        self.clock = clock
        self.default_curve_samples = default_curve_samples

    def list_auctions(
        self,
        status: Any = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[AuctionRecord]:
        """
        List auctions, oldest first.

        Args:
            status: Optional AuctionStatus, status code or name
            limit: Max records (None = all)
            offset: Records to skip

        Raises:
            UnknownStatusError: status is not a known value
            ValueError: invalid limit/offset
        """
        valid, err = validate_pagination(limit, offset)
        if not valid:
            raise ValueError(err)

        status_filter = AuctionStatus.parse(status) if status is not None else None
        return self.storage.list_auctions(status_filter, limit, offset)

    def get_auction(self, auction_id: str) -> Optional[AuctionRecord]:
        valid, err = validate_auction_id(auction_id)
        if not valid:
            logger.debug(f"Ignoring auction lookup: {err}")
            return None
        return self.storage.get_auction(auction_id)

    def get_bid_aggregate(self, auction_id: str) -> BidAggregate:
        """Bid aggregate for an auction; zero-valued when no bids were seen."""
        aggregate = self.storage.get_bid_aggregate(auction_id)
        if aggregate is None:
            return BidAggregate.empty(auction_id)
        return aggregate

    def list_claims(self, user_address: str) -> List[ClaimRecord]:
        valid, err = validate_address(user_address)
        if not valid:
            logger.debug(f"Ignoring claims lookup: {err}")
            return []
        return self.storage.list_claims(user_address)

    def get_current_price(self, auction_id: str, now: Optional[float] = None) -> Optional[PriceView]:
        """Live price for an auction, or None if the auction is unknown."""
        auction = self.get_auction(auction_id)
        if auction is None:
            logger.debug(f"Price requested for unknown auction {auction_id}")
            return None
        return price_view(auction, self.clock() if now is None else now)

    def get_price_curve(self, auction_id: str, samples: Optional[int] = None) -> List[PricePoint]:
        auction = self.get_auction(auction_id)
        if auction is None:
            return []
        return price_curve(auction, samples or self.default_curve_samples)

    def get_stats(self) -> AuctionStats:
        auctions = self.storage.list_auctions()
        aggregates = self.storage.list_bid_aggregates()
        return AuctionStats(
            total_auctions=len(auctions),
            active_auctions=sum(1 for a in auctions if a.status == AuctionStatus.ACTIVE),
            total_volume=sum(a.total_volume for a in aggregates),
            total_bids=sum(a.bid_count for a in aggregates),
        )
