"""
Dutch Auction Pricing - live price of an auction at a point in time.

The price starts at ``start_price`` and decays linearly to
``reserve_price`` over [start_time, end_time]:

    price(t) = start_price - (start_price - reserve_price) * (t - start) / (end - start)

Before the start the price is ``start_price``; from the end onward it is
``reserve_price``. A zero-duration auction (end == start) is treated as
already ended. Arithmetic is exact (Fraction) and the result is rounded
half-up to an integer price unit.

All functions are pure and safe to call from any thread.
"""

import math
from dataclasses import asdict, dataclass
from fractions import Fraction
from typing import Any, Dict, List, Union

from equiclear.core.storage.records import AuctionRecord

Timestamp = Union[int, float]


@dataclass(frozen=True)
class PriceView:
    """Live pricing snapshot for one auction."""
    auction_id: str
    current_price: int
    time_remaining: int
    progress_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PricePoint:
    """One sample of an auction's price curve."""
    auction_id: str
    price: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _has_ended(auction: AuctionRecord, now: Timestamp) -> bool:
    return auction.end_time <= auction.start_time or now >= auction.end_time


def _elapsed_fraction(auction: AuctionRecord, now: Timestamp) -> Fraction:
    """Share of the auction window elapsed at ``now``, clamped to [0, 1]."""
    if _has_ended(auction, now):
        return Fraction(1)
    if now <= auction.start_time:
        return Fraction(0)
    return Fraction(now - auction.start_time) / (auction.end_time - auction.start_time)


def _round_half_up(value: Fraction) -> int:
    return math.floor(value + Fraction(1, 2))


def current_price(auction: AuctionRecord, now: Timestamp) -> int:
    """
    Dutch-auction price at ``now``.

    Args:
        auction: Materialized auction
        now: Unix timestamp (seconds, int or float)

    Returns:
        Integer price, between reserve_price and start_price
    """
    if _has_ended(auction, now):
        return auction.reserve_price
    if now <= auction.start_time:
        return auction.start_price

    drop = auction.start_price - auction.reserve_price
    price = auction.start_price - drop * _elapsed_fraction(auction, now)
    return _round_half_up(price)


def progress_percent(auction: AuctionRecord, now: Timestamp) -> float:
    """Elapsed share of the auction window in percent, within [0, 100]."""
    return float(_elapsed_fraction(auction, now) * 100)


def time_remaining(auction: AuctionRecord, now: Timestamp) -> int:
    """Whole seconds until end_time, never negative."""
    return max(int(auction.end_time - now), 0)


def price_view(auction: AuctionRecord, now: Timestamp) -> PriceView:
    return PriceView(
        auction_id=auction.auction_id,
        current_price=current_price(auction, now),
        time_remaining=time_remaining(auction, now),
        progress_percent=progress_percent(auction, now),
    )


def price_curve(auction: AuctionRecord, samples: int = 20) -> List[PricePoint]:
    """
    Sample the price curve at evenly spaced times from start to end.

    Args:
        auction: Materialized auction
        samples: Number of points (>= 2 unless the auction has zero duration)

    Returns:
        PricePoints in time order; a single point for zero-duration auctions
    """
    if samples < 1:
        raise ValueError(f"samples must be >= 1, got {samples}")

    if auction.duration <= 0 or samples == 1:
        return [PricePoint(auction.auction_id, current_price(auction, auction.end_time), auction.end_time)]

    points = []
    for i in range(samples):
        ts = auction.start_time + (auction.duration * i) // (samples - 1)
        points.append(PricePoint(auction.auction_id, current_price(auction, ts), ts))
    return points
