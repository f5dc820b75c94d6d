"""
Business logic services for gov-ai.
"""

from gov_ai.services.fetcher import ProposalFetcher, get_proposal_fetcher
from gov_ai.services.html_extractor import extract_from_html
from gov_ai.services.lifecycle import LifecycleAggregator
from gov_ai.services.llm_service import (
    AnalysisResult,
    CompletionResult,
    LLMService,
    ProviderConfig,
    get_llm_service,
    parse_model_json,
)
from gov_ai.services.postprocess import (
    detect_refusal,
    finalize_report,
    label_verification_boundary,
)
from gov_ai.services.prompt_builder import build_prompt, load_report_schema
from gov_ai.services.report_store import ReportStore, build_report_filename, sanitize
from gov_ai.services.snapshot import SnapshotClient
from gov_ai.services.sse import PartialJSONAccumulator, iter_sse
from gov_ai.services.tally import TallyClient

__all__ = [
    "ProposalFetcher",
    "get_proposal_fetcher",
    "extract_from_html",
    "LifecycleAggregator",
    "AnalysisResult",
    "CompletionResult",
    "LLMService",
    "ProviderConfig",
    "get_llm_service",
    "parse_model_json",
    "detect_refusal",
    "finalize_report",
    "label_verification_boundary",
    "build_prompt",
    "load_report_schema",
    "ReportStore",
    "build_report_filename",
    "sanitize",
    "SnapshotClient",
    "PartialJSONAccumulator",
    "iter_sse",
    "TallyClient",
]
