"""
Metadata models attached to generated reports.
"""

from typing import Any

from pydantic import BaseModel, Field


class BidCounts(BaseModel):
    """Bid counters reported during an inference auction."""

    placed: int | None = None
    revealed: int | None = None


class AuctionInfo(BaseModel):
    """Auction lifecycle state for a single request."""

    status: str | None = None
    bids: BidCounts = Field(default_factory=BidCounts)
    address: str | None = None


class AmbientMeta(BaseModel):
    """
    Lifecycle and verification metadata reconstructed from a streamed response.

    Serialized into reports under the ``__ambient`` key.
    """

    request_id: str | None = None
    model: str | None = None
    auction: AuctionInfo | None = None
    bidder: str | None = None
    verified: bool | None = None
    verified_by_validators: int | str | None = None
    merkle_root: str | None = None
    events: list[dict[str, Any]] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            [
                self.request_id,
                self.model,
                self.auction,
                self.bidder,
                self.verified is not None,
                self.verified_by_validators is not None,
                self.merkle_root,
                self.events,
            ]
        )

    def to_report_dict(self, include_events: bool = True) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        if not include_events:
            data.pop("events", None)
        return data


class RefusalCheck(BaseModel):
    """Result of scanning model text for a refusal."""

    detected: bool = False
    matched: str | None = None
    field: str | None = None


class VerificationBoundary(BaseModel):
    """
    Split of report fields into deterministic and interpretive parts.

    Deterministic fields are traceable to the extracted proposal data;
    interpretive ones are model judgment.
    """

    deterministic: list[str] = Field(default_factory=list)
    interpretive: list[str] = Field(default_factory=list)
    unverified_quotes: list[str] = Field(default_factory=list)
