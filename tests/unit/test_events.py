"""
Tests for the chain event model.

Tests cover:
1. Status enum decoding (codes, names, unknown values)
2. State machine transitions
3. Event decoding from feed records
4. Event invariants
"""

import pytest

from equiclear.core.errors import InvalidEventError, UnknownStatusError
from equiclear.core.events import (
    AuctionEvent,
    AuctionStatus,
    BidEvent,
    BidStatus,
    ClaimEvent,
    SettlementEvent,
    parse_event,
)


def auction_payload(**overrides):
    payload = {
        "type": "auction",
        "auction_id": "auction-1",
        "creator": "aleo1creator",
        "item_name": "Genesis NFT",
        "total_supply": 100,
        "start_price": 1000,
        "reserve_price": 200,
        "start_time": 1_700_000_000,
        "end_time": 1_700_001_000,
        "status": 1,
        "block_height": 10,
        "timestamp": 1_700_000_000,
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Status Enums
# =============================================================================


class TestAuctionStatus:
    """Tests for explicit status decoding."""

    def test_parse_codes(self):
        assert AuctionStatus.parse(0) == AuctionStatus.CREATED
        assert AuctionStatus.parse(1) == AuctionStatus.ACTIVE
        assert AuctionStatus.parse(2) == AuctionStatus.SETTLED
        assert AuctionStatus.parse(3) == AuctionStatus.CANCELLED

    def test_parse_names(self):
        assert AuctionStatus.parse("active") == AuctionStatus.ACTIVE
        assert AuctionStatus.parse("Cancelled") == AuctionStatus.CANCELLED
        assert AuctionStatus.parse("2") == AuctionStatus.SETTLED

    def test_parse_member_passthrough(self):
        assert AuctionStatus.parse(AuctionStatus.SETTLED) is AuctionStatus.SETTLED

    @pytest.mark.parametrize("value", [4, -1, 255, "open", "", "\u00b2", None, True, 1.0])
    def test_unknown_status_rejected(self, value):
        """Out-of-range codes never fall back to a default."""
        with pytest.raises(UnknownStatusError):
            AuctionStatus.parse(value)

    def test_terminal_states(self):
        assert AuctionStatus.SETTLED.is_terminal
        assert AuctionStatus.CANCELLED.is_terminal
        assert not AuctionStatus.CREATED.is_terminal
        assert not AuctionStatus.ACTIVE.is_terminal

    def test_bid_status(self):
        assert BidStatus.parse(3) == BidStatus.REFUNDED
        assert BidStatus.parse("won") == BidStatus.WON
        with pytest.raises(UnknownStatusError):
            BidStatus.parse(9)


class TestTransitions:
    """Tests for the auction state machine."""

    LEGAL = {
        (AuctionStatus.CREATED, AuctionStatus.ACTIVE),
        (AuctionStatus.CREATED, AuctionStatus.CANCELLED),
        (AuctionStatus.ACTIVE, AuctionStatus.SETTLED),
        (AuctionStatus.ACTIVE, AuctionStatus.CANCELLED),
    }

    @pytest.mark.parametrize("current", list(AuctionStatus))
    @pytest.mark.parametrize("target", list(AuctionStatus))
    def test_transition_table(self, current, target):
        assert current.can_transition_to(target) == ((current, target) in self.LEGAL)

    def test_no_exit_from_terminal(self):
        for terminal in (AuctionStatus.SETTLED, AuctionStatus.CANCELLED):
            assert not any(terminal.can_transition_to(s) for s in AuctionStatus)


# =============================================================================
# Event Decoding
# =============================================================================


class TestParseEvent:
    """Tests for decoding feed records."""

    def test_parse_auction_event(self):
        event = parse_event(auction_payload())

        assert isinstance(event, AuctionEvent)
        assert event.status == AuctionStatus.ACTIVE
        assert event.item_description is None
        assert event.block_height == 10

    def test_parse_status_by_name(self):
        event = parse_event(auction_payload(status="created"))
        assert event.status == AuctionStatus.CREATED

    def test_parse_bid_event(self):
        event = parse_event({
            "type": "bid", "auction_id": "a", "bid_count": 5,
            "total_volume": 500, "block_height": 3, "timestamp": 100,
        })
        assert isinstance(event, BidEvent)
        assert (event.bid_count, event.total_volume) == (5, 500)

    def test_parse_settlement_event(self):
        event = parse_event({
            "type": "settlement", "auction_id": "a", "clearing_price": 450,
            "total_sold": 80, "total_revenue": 36000, "block_height": 30,
            "timestamp": 100,
        })
        assert isinstance(event, SettlementEvent)
        assert event.clearing_price == 450

    def test_parse_claim_event(self):
        event = parse_event({
            "type": "claim", "auction_id": "a", "claimer": "aleo1user",
            "items_claimed": 2, "amount_paid": 900, "refund_amount": 100,
            "block_height": 40, "timestamp": 100,
        })
        assert isinstance(event, ClaimEvent)
        assert event.claimer == "aleo1user"

    def test_capitalized_type_tag(self):
        event = parse_event({
            "type": "Bid", "auction_id": "a", "bid_count": 1,
            "total_volume": 10, "block_height": 1, "timestamp": 1,
        })
        assert isinstance(event, BidEvent)

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidEventError):
            parse_event({"type": "withdrawal", "auction_id": "a"})

    def test_missing_field_rejected(self):
        payload = auction_payload()
        del payload["start_price"]
        with pytest.raises(InvalidEventError):
            parse_event(payload)

    def test_unknown_status_code_rejected(self):
        with pytest.raises(InvalidEventError):
            parse_event(auction_payload(status=7))

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidEventError):
            parse_event(auction_payload(total_supply=-1))

    def test_u64_max_amount_accepted(self):
        event = parse_event(auction_payload(total_supply=2**64 - 1, start_price=2**64 - 1))
        assert event.start_price == 2**64 - 1

    @pytest.mark.parametrize("field", ["total_supply", "start_price", "reserve_price"])
    def test_amount_above_u64_rejected(self, field):
        with pytest.raises(InvalidEventError):
            parse_event(auction_payload(**{field: 2**64}))

    def test_bid_volume_above_u64_rejected(self):
        payload = {"type": "bid", "auction_id": "a", "bid_count": 1,
                   "total_volume": 2**64, "block_height": 1, "timestamp": 1}
        with pytest.raises(InvalidEventError):
            parse_event(payload)

    @pytest.mark.parametrize("field", ["block_height", "timestamp", "end_time"])
    def test_height_and_time_bounded(self, field):
        with pytest.raises(InvalidEventError):
            parse_event(auction_payload(**{field: 2**63}))

    def test_non_dict_rejected(self):
        with pytest.raises(InvalidEventError):
            parse_event(["auction"])

    def test_round_trip_through_dict(self):
        event = parse_event(auction_payload())
        data = event.to_dict()

        assert data["type"] == "auction"
        assert data["status"] == 1
        assert parse_event(data) == event


class TestEventInvariants:
    """Tests for invariants enforced at construction."""

    def test_reserve_above_start_rejected(self):
        with pytest.raises(InvalidEventError):
            parse_event(auction_payload(reserve_price=2000))

    def test_end_before_start_rejected(self):
        with pytest.raises(InvalidEventError):
            parse_event(auction_payload(end_time=1_699_999_999))

    def test_zero_duration_accepted(self):
        event = parse_event(auction_payload(end_time=1_700_000_000))
        assert event.end_time == event.start_time

    def test_events_are_frozen(self):
        event = parse_event(auction_payload())
        with pytest.raises(Exception):
            event.block_height = 99


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
