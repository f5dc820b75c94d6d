"""
API request and response models.
"""

from typing import Any

from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    """Body of ``POST /analyze``."""

    url: str = Field(..., description="Proposal URL to analyze")
    principles: dict[str, Any] | list[Any] | None = Field(
        default=None, description="Principles overriding principles.json"
    )


class AnalyzeResponse(BaseModel):
    """Response after a job was queued."""

    status: bool = True
    job_id: str
    queued: bool = True


class JobStatusResponse(BaseModel):
    """Job lookup result; ``report`` is set once the job has finished."""

    status: bool
    report: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Error body used by the job API."""

    status: bool = False
    error: str
