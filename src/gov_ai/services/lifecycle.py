"""
Aggregation of provider lifecycle events into report metadata.

Ambient streams auction, bid and verification status alongside the chat
completion chunks. Events arrive either as named SSE events
(``event: auction``), as typed JSON payloads (``{"type": "bid.placed", ...}``)
or as extra keys on ordinary completion chunks. All three forms are folded
into a single :class:`AmbientMeta`.
"""

from typing import Any

import structlog

from gov_ai.models.report import AmbientMeta, AuctionInfo

logger = structlog.get_logger(__name__)

MAX_RECORDED_EVENTS = 200

# Keys that mark a chunk as carrying lifecycle information
LIFECYCLE_KEYS = {
    "auction",
    "bid",
    "bids",
    "bidder",
    "verification",
    "verified",
    "verified_by_validators",
    "merkle_root",
    "merkleRoot",
}


def _first(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def event_name_of(event: str | None, payload: Any) -> str | None:
    """
    Name of the lifecycle event, or None for an ordinary completion chunk.

    Named SSE events win over payload ``type``/``event`` fields.
    """
    if event and event != "message":
        return event
    if isinstance(payload, dict) and "choices" not in payload:
        name = _first(payload, "type", "event", "status_type")
        if isinstance(name, str) and name:
            return name
    return None


class LifecycleAggregator:
    """Folds lifecycle events into :class:`AmbientMeta`."""

    def __init__(self, record_events: bool = True):
        self.meta = AmbientMeta()
        self.record_events = record_events

    # =========================================================================
    # Entry Points
    # =========================================================================

    def observe_chunk(self, chunk: dict[str, Any]) -> None:
        """Pick up request id, model and any embedded lifecycle keys from a completion chunk."""
        if chunk.get("id") and not self.meta.request_id:
            self.meta.request_id = str(chunk["id"])
        if chunk.get("model"):
            self.meta.model = str(chunk["model"])

        embedded = {k: v for k, v in chunk.items() if k in LIFECYCLE_KEYS}
        if embedded:
            self._apply_fields(embedded)

    def observe_event(self, name: str, payload: Any) -> None:
        """Apply a named lifecycle event."""
        data = payload if isinstance(payload, dict) else {"value": payload}
        # {"type": "...", "data": {...}} envelopes
        inner = data.get("data")
        body = {**data, **inner} if isinstance(inner, dict) else data

        if self.record_events and len(self.meta.events) < MAX_RECORDED_EVENTS:
            self.meta.events.append({"event": name, "data": payload})

        lowered = name.lower()
        if "auction" in lowered:
            self._apply_auction(lowered, body)
        elif "bid" in lowered or "reveal" in lowered:
            self._apply_bid(lowered, body)
        elif "verif" in lowered:
            self._apply_verification(lowered, body)
        else:
            logger.debug("lifecycle_event_unrecognized", lifecycle_event=name)

        self._apply_fields(body)

    # =========================================================================
    # Event Kinds
    # =========================================================================

    def _auction(self) -> AuctionInfo:
        if self.meta.auction is None:
            self.meta.auction = AuctionInfo()
        return self.meta.auction

    def _apply_auction(self, name: str, body: dict[str, Any]) -> None:
        auction = self._auction()
        if _first(body, "status", "state") is None:
            status = None
            # "auction.started" / "auction_completed" style names carry the status
            for sep in (".", "_", ":"):
                if sep in name:
                    status = name.rsplit(sep, 1)[1]
                    break
            if status is not None:
                auction.status = str(status)
        self._apply_auction_fields(body)

    def _apply_bid(self, name: str, body: dict[str, Any]) -> None:
        auction = self._auction()
        has_counts = any(
            key in body for key in ("bids", "bids_placed", "bids_revealed", "placed", "revealed")
        )
        if has_counts:
            return

        if "reveal" in name:
            auction.bids.revealed = (auction.bids.revealed or 0) + 1
        else:
            auction.bids.placed = (auction.bids.placed or 0) + 1

    def _apply_verification(self, name: str, body: dict[str, Any]) -> None:
        verified = body.get("verified")
        if isinstance(verified, bool):
            self.meta.verified = verified
        elif name.endswith(("verified", "completed", "complete", "success", "succeeded")):
            self.meta.verified = True
        elif name.endswith(("failed", "rejected")):
            self.meta.verified = False

    # =========================================================================
    # Flat Fields
    # =========================================================================

    def _apply_fields(self, body: dict[str, Any]) -> None:
        request_id = _first(body, "request_id", "requestId")
        if request_id is not None:
            self.meta.request_id = str(request_id)

        merkle_root = _first(body, "merkle_root", "merkleRoot")
        if merkle_root is not None:
            self.meta.merkle_root = str(merkle_root)

        verified = body.get("verified")
        if isinstance(verified, bool):
            self.meta.verified = verified

        validators = _first(body, "verified_by_validators", "validators", "validator_count")
        if validators is not None:
            if isinstance(validators, list):
                validators = len(validators)
            self.meta.verified_by_validators = validators

        bidder = _first(body, "bidder", "winner", "winning_bidder")
        if isinstance(bidder, dict):
            bidder = _first(bidder, "address", "url", "id")
        if bidder is not None:
            self.meta.bidder = str(bidder)

        verification = body.get("verification")
        if isinstance(verification, dict):
            self._apply_fields(verification)

        auction_address = body.get("auction_address")
        if auction_address is not None:
            self._auction().address = str(auction_address)

        auction_data = body.get("auction")
        if isinstance(auction_data, dict):
            self._apply_auction_fields(auction_data)
        elif isinstance(auction_data, str):
            self._auction().address = auction_data

        self._apply_bid_counts(body)

    def _apply_auction_fields(self, data: dict[str, Any]) -> None:
        auction = self._auction()
        status = _first(data, "status", "state")
        if status is not None:
            auction.status = str(status)
        address = _first(data, "address", "auction_address", "url")
        if address is not None:
            auction.address = str(address)
        self._apply_bid_counts(data)
        bidder = _first(data, "bidder", "winner")
        if bidder is not None:
            self.meta.bidder = str(bidder)

    def _apply_bid_counts(self, data: dict[str, Any]) -> None:
        bids = data.get("bids")
        placed = _as_int(_first(data, "bids_placed", "placed"))
        revealed = _as_int(_first(data, "bids_revealed", "revealed"))
        if isinstance(bids, dict):
            placed = _as_int(bids.get("placed")) if bids.get("placed") is not None else placed
            revealed = (
                _as_int(bids.get("revealed")) if bids.get("revealed") is not None else revealed
            )
        elif isinstance(bids, list):
            placed = len(bids)

        if placed is None and revealed is None:
            return
        auction = self._auction()
        if placed is not None:
            auction.bids.placed = placed
        if revealed is not None:
            auction.bids.revealed = revealed
