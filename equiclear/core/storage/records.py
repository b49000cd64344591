"""
Materialized records owned by the store.

Three entity tables:
- auctions        keyed by auction_id
- bid_aggregates  keyed by auction_id
- claims          keyed by (auction_id, user_address)

Each record keeps the ``block_height`` of the last event applied to it so
the sync engine can order updates by chain height.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Tuple

from equiclear.core.events import AuctionStatus


@dataclass(frozen=True)
class AuctionRecord:
    """
    Materialized state of one Dutch auction.

    Invariants:
        0 <= reserve_price <= start_price
        0 <= remaining_supply <= total_supply
        start_time <= end_time
    """
    auction_id: str
    creator: str
    item_name: str
    total_supply: int
    remaining_supply: int
    start_price: int
    reserve_price: int
    start_time: int
    end_time: int
    status: AuctionStatus = AuctionStatus.CREATED
    item_description: Optional[str] = None
    clearing_price: Optional[int] = None
    block_height: int = 0
    created_at: int = 0
    updated_at: int = 0

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.name.lower()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuctionRecord":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["status"] = AuctionStatus.parse(values.get("status", AuctionStatus.CREATED))
        return cls(**values)


@dataclass(frozen=True)
class BidAggregate:
    """Public bid rollup for one auction (count and volume only)."""
    auction_id: str
    bid_count: int = 0
    total_volume: int = 0
    block_height: int = 0
    updated_at: int = 0

    @classmethod
    def empty(cls, auction_id: str) -> "BidAggregate":
        return cls(auction_id=auction_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BidAggregate":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class ClaimRecord:
    """A user's claim against a settled auction. One per (auction, user)."""
    auction_id: str
    user_address: str
    items_claimed: int
    amount_paid: int
    refund_amount: int
    block_height: int = 0
    claimed_at: int = 0

    @property
    def key(self) -> Tuple[str, str]:
        return (self.auction_id, self.user_address)

    def same_terms(self, other: "ClaimRecord") -> bool:
        """Whether both claims settle the same items and amounts."""
        return (
            self.items_claimed == other.items_claimed
            and self.amount_paid == other.amount_paid
            and self.refund_amount == other.refund_amount
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClaimRecord":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
