"""Tests for gov_ai/models — extracted records, report metadata, API models."""

import pytest
from pydantic import ValidationError

from gov_ai.models import (
    AmbientMeta,
    AnalyzeRequest,
    AnalyzeResponse,
    AuctionInfo,
    ErrorResponse,
    ExtractedRecord,
    JobStatusResponse,
    SourceType,
    VerificationBoundary,
    utc_now_iso,
)


class TestSourceType:

    def test_values(self):
        assert [s.value for s in SourceType] == ["snapshot", "tally", "daodao", "generic"]


class TestExtractedRecord:

    def test_defaults(self):
        record = ExtractedRecord()
        assert record.title == "UNKNOWN"
        assert record.body == ""
        assert record.options == []
        assert record.current_results is None
        assert record.fetched_at.endswith("Z")

    def test_to_dict_uses_enum_values(self):
        data = ExtractedRecord(source_type=SourceType.TALLY, title="T").to_dict()
        assert data["source_type"] == "tally"
        assert set(data) == {"source_type", "fetched_at", "title", "body", "options", "current_results", "metadata"}

    def test_utc_now_iso_precision(self):
        stamp = utc_now_iso()
        assert len(stamp) == len("2025-01-31T12:00:00.000Z")


class TestAmbientMeta:

    def test_empty(self):
        assert AmbientMeta().is_empty()
        assert not AmbientMeta(verified=False).is_empty()
        assert not AmbientMeta(auction=AuctionInfo()).is_empty()

    def test_report_dict(self):
        meta = AmbientMeta(request_id="r", auction=AuctionInfo(status="open"), events=[{"event": "x"}])
        data = meta.to_report_dict()
        assert data["auction"] == {"status": "open", "bids": {}}
        assert data["events"] == [{"event": "x"}]
        assert "events" not in meta.to_report_dict(include_events=False)
        assert "bidder" not in data


class TestVerificationBoundary:

    def test_defaults(self):
        assert VerificationBoundary().model_dump() == {
            "deterministic": [],
            "interpretive": [],
            "unverified_quotes": [],
        }


class TestApiModels:

    def test_analyze_request(self):
        assert AnalyzeRequest(url="https://x").principles is None
        with pytest.raises(ValidationError):
            AnalyzeRequest()

    def test_analyze_response(self):
        assert AnalyzeResponse(job_id="j").model_dump() == {"status": True, "job_id": "j", "queued": True}

    def test_job_status(self):
        assert JobStatusResponse(status=False).model_dump(exclude_none=True) == {"status": False}

    def test_error(self):
        assert ErrorResponse(error="boom").model_dump() == {"status": False, "error": "boom"}
