"""
Pydantic models for gov-ai.

- Proposal models for normalized source data
- Report metadata models (lifecycle, refusal, verification boundary)
- API models for the job server
"""

from gov_ai.models.proposal import ExtractedRecord, SourceType, utc_now_iso
from gov_ai.models.report import (
    AmbientMeta,
    AuctionInfo,
    BidCounts,
    RefusalCheck,
    VerificationBoundary,
)
from gov_ai.models.api import (
    AnalyzeRequest,
    AnalyzeResponse,
    ErrorResponse,
    JobStatusResponse,
)

__all__ = [
    # Proposal models
    "ExtractedRecord",
    "SourceType",
    "utc_now_iso",
    # Report models
    "AmbientMeta",
    "AuctionInfo",
    "BidCounts",
    "RefusalCheck",
    "VerificationBoundary",
    # API models
    "AnalyzeRequest",
    "AnalyzeResponse",
    "ErrorResponse",
    "JobStatusResponse",
]
