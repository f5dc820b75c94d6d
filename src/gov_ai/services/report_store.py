"""
Report persistence on the local filesystem.
"""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from gov_ai.exceptions import InvalidReportNameError
from gov_ai.models.proposal import ExtractedRecord

logger = structlog.get_logger(__name__)

_UNSAFE_RE = re.compile(r"[^a-z0-9._-]+")
_DASHES_RE = re.compile(r"-+")


def sanitize(value: Any) -> str:
    """Filename-safe slug: lowercase, ``[a-z0-9._-]`` only, single dashes."""
    slug = _UNSAFE_RE.sub("-", str(value or "").lower())
    return _DASHES_RE.sub("-", slug).strip("-")


def timestamp_slug(moment: datetime | None = None) -> str:
    """UTC ISO timestamp with ``:`` and ``.`` replaced by dashes."""
    moment = moment or datetime.now(timezone.utc)
    iso = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


def build_report_filename(extracted: ExtractedRecord | dict[str, Any]) -> str:
    """
    Report filename derived from the proposal source.

    - Snapshot: ``report-snapshot-<proposal id>.json``
    - Tally: ``report-tally-<organization or governor>-<onchain id>.json``
    - Anything else: ``report-<timestamp>.json``
    """
    if isinstance(extracted, ExtractedRecord):
        extracted = extracted.to_dict()
    source_type = extracted.get("source_type")
    metadata = extracted.get("metadata") or {}

    if source_type == "snapshot" and metadata.get("proposal_id"):
        return f"report-snapshot-{sanitize(metadata['proposal_id'])}.json"

    if source_type == "tally":
        org = (
            sanitize(metadata.get("organization_slug"))
            or sanitize(metadata.get("governor_slug"))
            or "unknown"
        )
        onchain = sanitize(metadata.get("onchain_id")) or "unknown"
        return f"report-tally-{org}-{onchain}.json"

    return f"report-{timestamp_slug()}.json"


def is_safe_filename(name: str) -> bool:
    return bool(name) and ".." not in name and "/" not in name and "\\" not in name


class ReportStore:
    """JSON reports kept as files in one directory."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def path_for(self, filename: str) -> Path:
        if not is_safe_filename(filename):
            raise InvalidReportNameError(f"Invalid report name: {filename!r}")
        return self.directory / filename

    def save(self, filename: str, report: dict[str, Any]) -> Path:
        path = self.path_for(filename)
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("report_saved", path=str(path))
        return path

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def load(self, filename: str) -> dict[str, Any]:
        return json.loads(self.path_for(filename).read_text(encoding="utf-8"))

    def list(self) -> list[dict[str, Any]]:
        """``.json`` reports, newest modification first."""
        if not self.directory.is_dir():
            return []

        entries = []
        for path in self.directory.iterdir():
            if not path.is_file() or path.suffix != ".json":
                continue
            stat = path.stat()
            entries.append(
                {
                    "name": path.name,
                    "mtime": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    "size": stat.st_size,
                }
            )
        entries.sort(key=lambda e: e["mtime"], reverse=True)
        return entries
