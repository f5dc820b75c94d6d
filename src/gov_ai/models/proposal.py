"""
Extracted proposal record shared by every source.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Where an extracted record came from."""

    SNAPSHOT = "snapshot"
    TALLY = "tally"
    DAODAO = "daodao"
    GENERIC = "generic"


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ExtractedRecord(BaseModel):
    """
    Normalized proposal data.

    Every source (Snapshot, Tally, HTML page) is reduced to this shape before
    it is handed to the prompt builder.
    """

    source_type: SourceType | None = None
    fetched_at: str = Field(default_factory=utc_now_iso)
    title: str = "UNKNOWN"
    body: str = ""
    options: list[str] = Field(default_factory=list)
    current_results: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"use_enum_values": True}

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
