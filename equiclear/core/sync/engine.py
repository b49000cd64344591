"""
Sync Engine - applies chain events to the materialized store.

Events can arrive out of order, so every mutation is decided by comparing
the event's ``block_height`` (or, for bid aggregates, its counters) with
what is already stored, never by arrival order:

1. Auction events     state machine + last-writer-wins by block height
2. Bid events         monotonic counters, lower values are stale
3. Settlement events  Active auctions settle; a Settled auction still
                      missing its clearing price takes it from here
4. Claim events       one claim per (auction, user); a differing repeat
                      is a conflict

Each event produces at most one upsert, taken under the record's key
lock, so an event is either fully applied or not applied at all and can
be retried after a StoreUnavailableError.
"""

from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Optional, Union

from equiclear.core.errors import ClaimConflictError, InvalidEventError
from equiclear.core.events import (
    AuctionEvent,
    AuctionStatus,
    BidEvent,
    ClaimEvent,
    SettlementEvent,
)
from equiclear.core.storage.records import AuctionRecord, BidAggregate, ClaimRecord
from equiclear.core.storage.storage_manager import StorageManager
from equiclear.utils.logger import get_logger
from equiclear.utils.validation import validate_auction_record

logger = get_logger("sync")

AnyEvent = Union[AuctionEvent, BidEvent, SettlementEvent, ClaimEvent]


class SyncOutcome(str, Enum):
    """Result of applying one event."""
    APPLIED = "applied"
    DISCARDED_STALE = "discarded_stale"
    REJECTED_INVALID_TRANSITION = "rejected_invalid_transition"
    CONFLICT = "conflict"


@dataclass
class SyncReport:
    """Outcome counts for a batch of events."""
    counts: Counter = field(default_factory=Counter)
    conflicts: List[ClaimEvent] = field(default_factory=list)

    def record(self, event: AnyEvent, outcome: SyncOutcome) -> None:
        self.counts[outcome] += 1
        if outcome == SyncOutcome.CONFLICT:
            self.conflicts.append(event)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def applied(self) -> int:
        return self.counts[SyncOutcome.APPLIED]

    def to_dict(self) -> dict:
        result = {outcome.value: self.counts[outcome] for outcome in SyncOutcome}
        result["total"] = self.total
        return result


class SyncEngine:
    """
    The only writer of the materialized store.

    Usage:
        engine = SyncEngine(storage)
        outcome = engine.sync_event(event)
    """

    def __init__(self, storage: StorageManager, raise_on_conflict: bool = False):
        """
        Args:
            storage: Store to write to
            raise_on_conflict: Raise ClaimConflictError instead of
                returning SyncOutcome.CONFLICT
        """
        self.storage = storage
        self.raise_on_conflict = raise_on_conflict

    # =========================================================================
    # Dispatch
    # =========================================================================

    def sync_event(self, event: AnyEvent) -> SyncOutcome:
        """
        Apply one event to the store.

        Returns:
            The SyncOutcome of the event

        Raises:
            StoreUnavailableError: backing store unreachable (retryable)
            ClaimConflictError: conflicting claim, if raise_on_conflict
            TypeError: not a chain event
        """
        if isinstance(event, AuctionEvent):
            return self._apply_auction(event)
        if isinstance(event, BidEvent):
            return self._apply_bid(event)
        if isinstance(event, SettlementEvent):
            return self._apply_settlement(event)
        if isinstance(event, ClaimEvent):
            return self._apply_claim(event)
        raise TypeError(f"Unsupported event type: {type(event).__name__}")

    def sync_events(self, events: Iterable[AnyEvent]) -> SyncReport:
        """Apply events in iteration order and count their outcomes."""
        report = SyncReport()
        for event in events:
            report.record(event, self.sync_event(event))

        logger.info(
            f"Synced {report.total} events: {report.applied} applied, "
            f"{report.counts[SyncOutcome.DISCARDED_STALE]} stale, "
            f"{report.counts[SyncOutcome.REJECTED_INVALID_TRANSITION]} rejected, "
            f"{report.counts[SyncOutcome.CONFLICT]} conflicts"
        )
        return report

    # =========================================================================
    # Auction events
    # =========================================================================

    def _apply_auction(self, event: AuctionEvent) -> SyncOutcome:
        with self.storage.key_lock(("auction", event.auction_id)):
            stored = self.storage.get_auction(event.auction_id)

            if stored is None:
                baseline = AuctionStatus.CREATED
                if event.status != baseline and not baseline.can_transition_to(event.status):
                    return self._reject_transition(event.auction_id, baseline, event.status)

                record = AuctionRecord(
                    auction_id=event.auction_id,
                    creator=event.creator,
                    item_name=event.item_name,
                    item_description=event.item_description,
                    total_supply=event.total_supply,
                    remaining_supply=event.total_supply,
                    start_price=event.start_price,
                    reserve_price=event.reserve_price,
                    start_time=event.start_time,
                    end_time=event.end_time,
                    status=event.status,
                    block_height=event.block_height,
                    created_at=event.timestamp,
                    updated_at=event.timestamp,
                )
                self._write_auction(record)
                logger.info(f"Auction {event.auction_id} indexed "
                            f"({event.status.name} @ block {event.block_height})")
                return SyncOutcome.APPLIED

            if event.block_height < stored.block_height:
                return self._discard_stale(
                    "auction", event.auction_id, event.block_height, stored.block_height
                )

            if event.status == stored.status:
                if stored.status.is_terminal:
                    # Terminal records are frozen; a repeat of their status changes nothing
                    return SyncOutcome.APPLIED
            elif not stored.status.can_transition_to(event.status):
                return self._reject_transition(event.auction_id, stored.status, event.status)

            record = replace(
                stored,
                creator=event.creator,
                item_name=event.item_name,
                item_description=event.item_description,
                total_supply=event.total_supply,
                remaining_supply=event.total_supply,
                start_price=event.start_price,
                reserve_price=event.reserve_price,
                start_time=event.start_time,
                end_time=event.end_time,
                status=event.status,
                block_height=event.block_height,
                updated_at=max(stored.updated_at, event.timestamp),
            )
            if record != stored:
                self._write_auction(record)
                if record.status != stored.status:
                    logger.info(f"Auction {event.auction_id}: "
                                f"{stored.status.name} -> {record.status.name}")
            return SyncOutcome.APPLIED

    def _apply_settlement(self, event: SettlementEvent) -> SyncOutcome:
        with self.storage.key_lock(("auction", event.auction_id)):
            stored = self.storage.get_auction(event.auction_id)

            if stored is None:
                logger.warning(f"Settlement for unknown auction {event.auction_id} "
                               f"at block {event.block_height} rejected")
                return SyncOutcome.REJECTED_INVALID_TRANSITION

            # An auction event may report Settled before the settlement itself lands.
            # The settlement still carries the clearing price, whatever its height.
            awaiting_price = stored.status == AuctionStatus.SETTLED and stored.clearing_price is None

            if event.block_height < stored.block_height and not awaiting_price:
                return self._discard_stale(
                    "settlement", event.auction_id, event.block_height, stored.block_height
                )

            if (
                stored.status == AuctionStatus.SETTLED
                and stored.block_height == event.block_height
                and stored.clearing_price == event.clearing_price
            ):
                return SyncOutcome.APPLIED

            if stored.status != AuctionStatus.ACTIVE and not awaiting_price:
                return self._reject_transition(event.auction_id, stored.status, AuctionStatus.SETTLED)

            record = replace(
                stored,
                status=AuctionStatus.SETTLED,
                clearing_price=event.clearing_price,
                remaining_supply=max(stored.remaining_supply - event.total_sold, 0),
                block_height=max(stored.block_height, event.block_height),
                updated_at=max(stored.updated_at, event.timestamp),
            )
            self._write_auction(record)
            logger.info(f"Auction {event.auction_id} settled at {event.clearing_price} "
                        f"({event.total_sold} sold, revenue {event.total_revenue})")
            return SyncOutcome.APPLIED

    def _write_auction(self, record: AuctionRecord) -> None:
        valid, err = validate_auction_record(record)
        if not valid:
            raise InvalidEventError(
                f"Auction {record.auction_id} violates invariants: {err}",
                details={"auction_id": record.auction_id},
            )
        self.storage.upsert_auction(record)

    # =========================================================================
    # Bid aggregates
    # =========================================================================

    def _apply_bid(self, event: BidEvent) -> SyncOutcome:
        with self.storage.key_lock(("bids", event.auction_id)):
            stored = self.storage.get_bid_aggregate(event.auction_id)

            if stored is not None and (
                event.bid_count < stored.bid_count
                or event.total_volume < stored.total_volume
            ):
                logger.debug(
                    f"Stale bid aggregate for {event.auction_id} discarded: "
                    f"({event.bid_count}, {event.total_volume}) behind "
                    f"({stored.bid_count}, {stored.total_volume})"
                )
                return SyncOutcome.DISCARDED_STALE

            aggregate = BidAggregate(
                auction_id=event.auction_id,
                bid_count=event.bid_count,
                total_volume=event.total_volume,
                block_height=max(event.block_height, stored.block_height if stored else 0),
                updated_at=max(event.timestamp, stored.updated_at if stored else 0),
            )
            if aggregate != stored:
                self.storage.upsert_bid_aggregate(aggregate)
            return SyncOutcome.APPLIED

    # =========================================================================
    # Claims
    # =========================================================================

    def _apply_claim(self, event: ClaimEvent) -> SyncOutcome:
        claim = ClaimRecord(
            auction_id=event.auction_id,
            user_address=event.claimer,
            items_claimed=event.items_claimed,
            amount_paid=event.amount_paid,
            refund_amount=event.refund_amount,
            block_height=event.block_height,
            claimed_at=event.timestamp,
        )

        with self.storage.key_lock(("claim",) + claim.key):
            stored = self.storage.get_claim(event.auction_id, event.claimer)

            if stored is None:
                self.storage.upsert_claim(claim)
                logger.debug(f"Claim indexed: {event.claimer} on {event.auction_id}")
                return SyncOutcome.APPLIED

            if stored.same_terms(claim):
                return SyncOutcome.APPLIED

        logger.error(
            f"Conflicting claim by {event.claimer} on {event.auction_id}: stored "
            f"(items={stored.items_claimed}, paid={stored.amount_paid}, "
            f"refund={stored.refund_amount}) vs incoming "
            f"(items={claim.items_claimed}, paid={claim.amount_paid}, "
            f"refund={claim.refund_amount}) at block {event.block_height}"
        )
        if self.raise_on_conflict:
            raise ClaimConflictError(event.auction_id, event.claimer, stored.to_dict(), claim.to_dict())
        return SyncOutcome.CONFLICT

    # =========================================================================
    # Helpers
    # =========================================================================

    def _discard_stale(self, kind: str, auction_id: str, height: int, stored_height: int) -> SyncOutcome:
        logger.debug(f"Stale {kind} event for {auction_id} discarded "
                     f"(block {height} < stored {stored_height})")
        return SyncOutcome.DISCARDED_STALE

    def _reject_transition(
        self,
        auction_id: str,
        current: AuctionStatus,
        attempted: AuctionStatus,
    ) -> SyncOutcome:
        logger.warning(f"Illegal status transition for auction {auction_id}: "
                       f"{current.name} -> {attempted.name}; event dropped")
        return SyncOutcome.REJECTED_INVALID_TRANSITION
