"""Tests for gov_ai/services/lifecycle.py — auction, bid and verification events."""

from gov_ai.services.lifecycle import MAX_RECORDED_EVENTS, LifecycleAggregator, event_name_of


class TestEventNameOf:

    def test_named_event_wins(self):
        assert event_name_of("auction", {"type": "other"}) == "auction"

    def test_payload_type(self):
        assert event_name_of("message", {"type": "bid.placed"}) == "bid.placed"
        assert event_name_of(None, {"event": "verification"}) == "verification"

    def test_completion_chunk(self):
        assert event_name_of("message", {"type": "x", "choices": []}) is None
        assert event_name_of(None, "text") is None


class TestLifecycleAggregator:

    def test_auction_status_from_name(self):
        agg = LifecycleAggregator()
        agg.observe_event("auction.started", {"auction_address": "0xauction"})
        assert agg.meta.auction.status == "started"
        assert agg.meta.auction.address == "0xauction"

    def test_auction_status_from_payload(self):
        agg = LifecycleAggregator()
        agg.observe_event("auction", {"status": "completed", "bids": {"placed": 3, "revealed": "2"}})
        assert agg.meta.auction.status == "completed"
        assert agg.meta.auction.bids.placed == 3
        assert agg.meta.auction.bids.revealed == 2

    def test_bid_events_counted(self):
        agg = LifecycleAggregator()
        agg.observe_event("bid.placed", {"bidder": "0xbidder"})
        agg.observe_event("bid.placed", {})
        agg.observe_event("bid.revealed", {})
        assert agg.meta.auction.bids.placed == 2
        assert agg.meta.auction.bids.revealed == 1
        assert agg.meta.bidder == "0xbidder"

    def test_bid_event_with_counts_not_incremented(self):
        agg = LifecycleAggregator()
        agg.observe_event("bids", {"bids_placed": 5})
        assert agg.meta.auction.bids.placed == 5

    def test_verification(self):
        agg = LifecycleAggregator()
        agg.observe_event(
            "verification.completed",
            {"data": {"validators": ["v1", "v2", "v3"], "merkleRoot": "0xroot"}},
        )
        assert agg.meta.verified is True
        assert agg.meta.verified_by_validators == 3
        assert agg.meta.merkle_root == "0xroot"

    def test_verification_failed(self):
        agg = LifecycleAggregator()
        agg.observe_event("verification_failed", {})
        assert agg.meta.verified is False

    def test_explicit_verified_flag(self):
        agg = LifecycleAggregator()
        agg.observe_event("verification.completed", {"verified": False})
        assert agg.meta.verified is False

    def test_events_recorded_and_capped(self):
        agg = LifecycleAggregator()
        for _ in range(MAX_RECORDED_EVENTS + 5):
            agg.observe_event("bid.placed", {})
        assert len(agg.meta.events) == MAX_RECORDED_EVENTS
        assert agg.meta.events[0] == {"event": "bid.placed", "data": {}}

    def test_events_not_recorded(self):
        agg = LifecycleAggregator(record_events=False)
        agg.observe_event("auction.started", {})
        assert agg.meta.events == []

    def test_unrecognized_event_still_applies_fields(self):
        agg = LifecycleAggregator()
        agg.observe_event("status", {"request_id": "req-9"})
        assert agg.meta.request_id == "req-9"


class TestObserveChunk:

    def test_id_and_model(self):
        agg = LifecycleAggregator()
        agg.observe_chunk({"id": "chatcmpl-1", "model": "m1", "choices": []})
        agg.observe_chunk({"id": "chatcmpl-2", "model": "m2", "choices": []})
        assert agg.meta.request_id == "chatcmpl-1"
        assert agg.meta.model == "m2"

    def test_embedded_keys(self):
        agg = LifecycleAggregator()
        agg.observe_chunk(
            {
                "id": "c1",
                "choices": [],
                "auction": {"status": "won", "address": "0xa"},
                "bidder": {"address": "0xbidder"},
                "verification": {"verified": True, "verified_by_validators": 4},
            }
        )
        assert agg.meta.auction.status == "won"
        assert agg.meta.auction.address == "0xa"
        assert agg.meta.bidder == "0xbidder"
        assert agg.meta.verified is True
        assert agg.meta.verified_by_validators == 4

    def test_plain_chunk_leaves_meta_mostly_empty(self):
        agg = LifecycleAggregator()
        agg.observe_chunk({"choices": [{"delta": {"content": "x"}}]})
        assert agg.meta.is_empty()
