"""
Analysis Pipeline

Fetches a proposal, asks the LLM for a report and post-processes it.
"""

import json
import shutil
from datetime import datetime
from enum import Enum
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Callable

import structlog

from gov_ai.config import get_settings
from gov_ai.exceptions import ConfigurationError
from gov_ai.models.proposal import ExtractedRecord
from gov_ai.services.fetcher import ProposalFetcher, get_proposal_fetcher
from gov_ai.services.llm_service import LLMService, get_llm_service
from gov_ai.services.postprocess import finalize_report
from gov_ai.services.report_store import ReportStore, build_report_filename

logger = structlog.get_logger(__name__)


def load_principles(path: Path | str | None = None) -> Any:
    """Read the user's principles file."""
    path = Path(path) if path is not None else get_settings().principles_path
    if not path.is_file():
        raise ConfigurationError(f"{path} not found. Run: gov-ai init")
    return json.loads(path.read_text(encoding="utf-8"))


def init_principles(path: Path | str | None = None) -> bool:
    """
    Create the principles file from the bundled example.

    Returns False when the file already exists.
    """
    path = Path(path) if path is not None else get_settings().principles_path
    if path.exists():
        return False

    example = resources.files("gov_ai.data").joinpath("principles.example.json")
    with resources.as_file(example) as source:
        shutil.copyfile(source, path)
    logger.info("principles_created", path=str(path))
    return True


class PipelineStatus(str, Enum):
    """Pipeline execution status."""
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineResult:
    """Result of a pipeline execution."""

    def __init__(
        self,
        url: str,
        status: PipelineStatus,
        report: dict[str, Any] | None = None,
        extracted: ExtractedRecord | None = None,
        error: str | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        path: Path | None = None,
    ):
        self.url = url
        self.status = status
        self.report = report
        self.extracted = extracted
        self.error = error
        self.started_at = started_at
        self.completed_at = completed_at
        self.path = path

    @property
    def ok(self) -> bool:
        return self.status == PipelineStatus.COMPLETED

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "status": self.status.value,
            "error": self.error,
            "path": str(self.path) if self.path else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


class AnalysisPipeline:
    """
    Orchestrates one proposal analysis.

    Coordinates:
    1. Fetching and extraction
    2. LLM report generation
    3. Post-processing (verification boundary, refusal, metadata)
    4. Optional persistence
    """

    def __init__(
        self,
        fetcher: ProposalFetcher | None = None,
        llm: LLMService | None = None,
    ):
        self.settings = get_settings()
        self._fetcher = fetcher
        self._llm = llm
        self._progress_callback: Callable[[PipelineStatus], None] | None = None

    @property
    def fetcher(self) -> ProposalFetcher:
        if self._fetcher is None:
            self._fetcher = get_proposal_fetcher()
        return self._fetcher

    @property
    def llm(self) -> LLMService:
        if self._llm is None:
            self._llm = get_llm_service()
        return self._llm

    def set_progress_callback(self, callback: Callable[[PipelineStatus], None]) -> None:
        """Set callback for progress updates."""
        self._progress_callback = callback

    def _report_progress(self, status: PipelineStatus) -> None:
        if self._progress_callback:
            self._progress_callback(status)

    # =========================================================================
    # Main Pipeline
    # =========================================================================

    def run(self, url: str, principles: Any) -> PipelineResult:
        """
        Produce a finished report for ``url``.

        Failures are returned as a FAILED result rather than raised.
        """
        started_at = datetime.now()
        logger.info("pipeline_started", url=url)
        extracted = None

        try:
            self._report_progress(PipelineStatus.FETCHING)
            extracted = self.fetcher.fetch_and_extract(url)
            logger.info(
                "proposal_extracted",
                url=url,
                source_type=extracted.source_type,
                options=len(extracted.options),
            )

            self._report_progress(PipelineStatus.ANALYZING)
            analysis = self.llm.analyze(url, extracted, principles)
            report = finalize_report(
                analysis.report,
                url=url,
                extracted=extracted,
                ambient=analysis.ambient,
            )

            completed_at = datetime.now()
            logger.info(
                "pipeline_completed",
                url=url,
                latency_ms=analysis.latency_ms,
                duration_seconds=(completed_at - started_at).total_seconds(),
            )
            self._report_progress(PipelineStatus.COMPLETED)

            return PipelineResult(
                url=url,
                status=PipelineStatus.COMPLETED,
                report=report,
                extracted=extracted,
                started_at=started_at,
                completed_at=completed_at,
            )

        except Exception as e:
            logger.error("pipeline_failed", url=url, error=str(e))
            self._report_progress(PipelineStatus.FAILED)
            return PipelineResult(
                url=url,
                status=PipelineStatus.FAILED,
                extracted=extracted,
                error=str(e),
                started_at=started_at,
                completed_at=datetime.now(),
            )

    def analyze_and_save(
        self,
        url: str,
        principles: Any,
        store: ReportStore | None = None,
    ) -> PipelineResult:
        """Run the pipeline and write the report under the reports directory."""
        result = self.run(url, principles)
        if not result.ok:
            return result

        store = store or ReportStore(self.settings.reports_dir)
        filename = build_report_filename(result.extracted)
        result.path = store.save(filename, result.report)
        return result


@lru_cache()
def get_analysis_pipeline() -> AnalysisPipeline:
    """Get cached analysis pipeline instance."""
    return AnalysisPipeline()
