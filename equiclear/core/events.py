"""
Chain Events - Typed auction events delivered by the chain feed.

The feed hands over already-decoded records. Each one is one of four
kinds, tagged by its ``type`` field:

1. auction     - auction created or updated (status, supply, prices, timing)
2. bid         - public bid aggregate for an auction (count, volume)
3. settlement  - auction settled at a clearing price
4. claim       - a user claimed items and/or a refund

Every event carries the ``block_height`` it was produced at and a Unix
``timestamp``. Ordering decisions are made on ``block_height`` only.
Individual bid amounts never appear here.
"""

from enum import IntEnum
from typing import Annotated, Any, Dict, FrozenSet, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from equiclear.core.errors import InvalidEventError, UnknownStatusError
from equiclear.utils.validation import MAX_AMOUNT, MAX_TIMESTAMP

# Amounts, supplies and counters are u64 on chain
U64 = Annotated[int, Field(ge=0, le=MAX_AMOUNT)]
# Block heights and Unix seconds
ChainTime = Annotated[int, Field(ge=0, le=MAX_TIMESTAMP)]


# =============================================================================
# Enums
# =============================================================================


class AuctionStatus(IntEnum):
    """Auction lifecycle state, matching the on-chain status codes."""
    CREATED = 0
    ACTIVE = 1
    SETTLED = 2
    CANCELLED = 3

    @classmethod
    def parse(cls, value: Any) -> "AuctionStatus":
        """
        Decode a status from an enum member, integer code or name.

        Raises:
            UnknownStatusError: value is outside the enumeration
        """
        return _parse_enum(cls, value)

    @property
    def is_terminal(self) -> bool:
        return self in (AuctionStatus.SETTLED, AuctionStatus.CANCELLED)

    def can_transition_to(self, target: "AuctionStatus") -> bool:
        """Whether moving from this status to ``target`` is a legal transition."""
        return (self, target) in LEGAL_TRANSITIONS


class BidStatus(IntEnum):
    """Individual bid outcome, as reported by the auction contract."""
    PENDING = 0
    WON = 1
    LOST = 2
    REFUNDED = 3

    @classmethod
    def parse(cls, value: Any) -> "BidStatus":
        return _parse_enum(cls, value)


LEGAL_TRANSITIONS: FrozenSet[Tuple[AuctionStatus, AuctionStatus]] = frozenset({
    (AuctionStatus.CREATED, AuctionStatus.ACTIVE),
    (AuctionStatus.CREATED, AuctionStatus.CANCELLED),
    (AuctionStatus.ACTIVE, AuctionStatus.SETTLED),
    (AuctionStatus.ACTIVE, AuctionStatus.CANCELLED),
})


def _parse_enum(enum_cls, value: Any):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, bool):
        raise UnknownStatusError(enum_cls.__name__, value)
    if isinstance(value, int):
        try:
            return enum_cls(value)
        except ValueError:
            raise UnknownStatusError(enum_cls.__name__, value)
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            return _parse_enum(enum_cls, int(text))
        try:
            return enum_cls[text.upper()]
        except KeyError:
            raise UnknownStatusError(enum_cls.__name__, value)
    raise UnknownStatusError(enum_cls.__name__, value)


# =============================================================================
# Event Models
# =============================================================================


class _ChainEventBase(BaseModel):
    """Fields shared by every chain event."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    auction_id: str = Field(min_length=1)
    block_height: ChainTime
    timestamp: ChainTime

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the feed record format."""
        return self.model_dump(mode="json")


class AuctionEvent(_ChainEventBase):
    """Auction created or updated on chain."""

    type: Literal["auction"] = "auction"
    creator: str
    item_name: str
    item_description: Optional[str] = None
    total_supply: U64
    start_price: U64
    reserve_price: U64
    start_time: ChainTime
    end_time: ChainTime
    status: AuctionStatus = AuctionStatus.CREATED

    @field_validator("status", mode="before")
    @classmethod
    def _decode_status(cls, value: Any) -> AuctionStatus:
        return AuctionStatus.parse(value)

    @model_validator(mode="after")
    def _check_invariants(self) -> "AuctionEvent":
        if self.reserve_price > self.start_price:
            raise ValueError(
                f"reserve_price {self.reserve_price} exceeds start_price {self.start_price}"
            )
        if self.end_time < self.start_time:
            raise ValueError(
                f"end_time {self.end_time} precedes start_time {self.start_time}"
            )
        return self


class BidEvent(_ChainEventBase):
    """Public bid aggregate update. No individual bid data."""

    type: Literal["bid"] = "bid"
    bid_count: U64
    total_volume: U64


class SettlementEvent(_ChainEventBase):
    """Auction settled at a uniform clearing price."""

    type: Literal["settlement"] = "settlement"
    clearing_price: U64
    total_sold: U64
    total_revenue: U64 = 0


class ClaimEvent(_ChainEventBase):
    """Items and/or refund claimed by a bidder after settlement."""

    type: Literal["claim"] = "claim"
    claimer: str = Field(min_length=1)
    items_claimed: U64
    amount_paid: U64 = 0
    refund_amount: U64 = 0


ChainEvent = Annotated[
    Union[AuctionEvent, BidEvent, SettlementEvent, ClaimEvent],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter = TypeAdapter(ChainEvent)


def parse_event(payload: Dict[str, Any]) -> Union[AuctionEvent, BidEvent, SettlementEvent, ClaimEvent]:
    """
    Decode one feed record into its typed event.

    Args:
        payload: Decoded record with a ``type`` tag

    Returns:
        The matching event model

    Raises:
        InvalidEventError: unknown type, missing/invalid fields, unknown status
    """
    if not isinstance(payload, dict):
        raise InvalidEventError(f"Event record must be an object, got {type(payload).__name__}")

    # Older feeds tag kinds with capitalized names ("Auction", "Bid", ...)
    event_type = payload.get("type")
    if isinstance(event_type, str) and event_type != event_type.lower():
        payload = {**payload, "type": event_type.lower()}

    try:
        return _event_adapter.validate_python(payload)
    except ValidationError as e:
        raise InvalidEventError(
            f"Invalid {payload.get('type', 'untyped')} event: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e
