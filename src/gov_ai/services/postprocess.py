"""
Heuristic post-processing of generated reports.

- Refusal detection on raw model text and on parsed report fields
- Verification boundary: which report fields are traceable to the extracted
  proposal data and which are model judgment
- Filling in input/extracted sections and attaching metadata
"""

import re
from typing import Any

import structlog

from gov_ai.models.proposal import ExtractedRecord
from gov_ai.models.report import AmbientMeta, RefusalCheck, VerificationBoundary

logger = structlog.get_logger(__name__)

REFUSAL_PHRASES = [
    "i can't help with",
    "i cannot help with",
    "i can't assist",
    "i cannot assist",
    "i can't provide",
    "i cannot provide",
    "i'm unable to",
    "i am unable to",
    "i'm not able to",
    "i am not able to",
    "i won't be able to",
    "i must decline",
    "i'm sorry, but",
    "i am sorry, but",
    "as an ai",
    "as a language model",
]

# Refusal phrases are matched in the opening of a reply only
REFUSAL_SCAN_CHARS = 400

INTERPRETIVE_FIELDS = [
    "analysis.summary",
    "analysis.key_changes",
    "analysis.risks",
    "analysis.benefits",
    "analysis.unknowns",
    "recommendation.confidence",
    "recommendation.reasoning",
    "recommendation.conflicts_with_user_principles",
    "limitations",
]

_WS_RE = re.compile(r"\s+")
_QUOTE_CHARS = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})


def normalize_text(text: Any) -> str:
    """Lowercase, unify curly quotes and collapse whitespace."""
    return _WS_RE.sub(" ", str(text or "").translate(_QUOTE_CHARS)).strip().lower()


def _get_path(data: dict[str, Any], path: str) -> Any:
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


# =============================================================================
# Refusal Detection
# =============================================================================


def detect_refusal(text: str | None, field: str | None = None) -> RefusalCheck:
    """Look for refusal phrasing at the start of ``text``."""
    head = normalize_text((text or "")[:REFUSAL_SCAN_CHARS])
    for phrase in REFUSAL_PHRASES:
        if phrase in head:
            return RefusalCheck(detected=True, matched=phrase, field=field)
    return RefusalCheck()


def detect_report_refusal(report: dict[str, Any]) -> RefusalCheck:
    """Refusal check over the free-text fields of a parsed report."""
    for path in ("analysis.summary", "recommendation.reasoning"):
        value = _get_path(report, path)
        if isinstance(value, str):
            check = detect_refusal(value, field=path)
            if check.detected:
                return check
    return RefusalCheck()


# =============================================================================
# Verification Boundary
# =============================================================================


def _extracted_dict(extracted: ExtractedRecord | dict[str, Any]) -> dict[str, Any]:
    return extracted.to_dict() if isinstance(extracted, ExtractedRecord) else dict(extracted)


def label_verification_boundary(
    report: dict[str, Any],
    extracted: ExtractedRecord | dict[str, Any],
) -> VerificationBoundary:
    """
    Label report fields as deterministic or interpretive.

    A field is deterministic when it can be checked against the extracted
    data: evidence quotes that occur in the proposal text, a suggested option
    that is one of the extracted options, and extracted title/options/results
    copied unchanged. Everything else the model wrote is interpretive. Quotes
    not found in the source are also listed in ``unverified_quotes``.

    The result is stored on the report under ``__verification``.
    """
    source = _extracted_dict(extracted)
    boundary = VerificationBoundary()
    haystack = normalize_text(f"{source.get('title') or ''}\n{source.get('body') or ''}")

    copied = report.get("extracted") if isinstance(report.get("extracted"), dict) else {}
    for key in ("title", "options", "current_results"):
        if key not in copied:
            continue
        path = f"extracted.{key}"
        value, original = copied[key], source.get(key)
        if key == "title":
            same = normalize_text(value) == normalize_text(original)
        else:
            same = value == original
        # UNKNOWN stands in for data the source does not have
        if not original and value == "UNKNOWN":
            same = True
        (boundary.deterministic if same else boundary.interpretive).append(path)

    quotes = _get_path(report, "analysis.evidence_quotes")
    for index, quote in enumerate(quotes if isinstance(quotes, list) else []):
        path = f"analysis.evidence_quotes[{index}]"
        needle = normalize_text(quote).strip("\"'")
        if needle and needle in haystack:
            boundary.deterministic.append(path)
        else:
            boundary.interpretive.append(path)
            boundary.unverified_quotes.append(str(quote))

    suggested = _get_path(report, "recommendation.suggested_option")
    if suggested is not None:
        options = {normalize_text(o) for o in source.get("options") or []}
        if normalize_text(suggested) in options:
            boundary.deterministic.append("recommendation.suggested_option")
        else:
            boundary.interpretive.append("recommendation.suggested_option")

    for path in INTERPRETIVE_FIELDS:
        if _get_path(report, path) is not None:
            boundary.interpretive.append(path)

    report["__verification"] = boundary.model_dump()
    if boundary.unverified_quotes:
        logger.info("unverified_evidence_quotes", count=len(boundary.unverified_quotes))
    return boundary


# =============================================================================
# Report Assembly
# =============================================================================


def finalize_report(
    report: dict[str, Any],
    url: str,
    extracted: ExtractedRecord | dict[str, Any],
    ambient: AmbientMeta | None = None,
    refusal: RefusalCheck | None = None,
) -> dict[str, Any]:
    """
    Complete a parsed model report in place and return it.

    Fills ``input`` and ``extracted`` from the source data when the model left
    them out, labels the verification boundary and attaches ``__ambient`` and
    ``__refusal`` metadata.
    """
    source = _extracted_dict(extracted)

    report_input = report.get("input")
    if not isinstance(report_input, dict):
        report_input = {}
        report["input"] = report_input
    report_input.setdefault("url", url)
    report_input.setdefault("fetched_at", source.get("fetched_at"))
    report_input.setdefault("source_type", source.get("source_type") or "UNKNOWN")

    if not isinstance(report.get("extracted"), dict):
        report["extracted"] = {
            "title": source.get("title") or "UNKNOWN",
            "body": source.get("body") or "UNKNOWN",
            "options": source.get("options") or "UNKNOWN",
            "current_results": source.get("current_results") or "UNKNOWN",
            "metadata": source.get("metadata") or {},
        }

    label_verification_boundary(report, source)

    if refusal is None:
        refusal = detect_report_refusal(report)
    report["__refusal"] = refusal.model_dump()
    if refusal.detected:
        logger.warning("report_contains_refusal", field=refusal.field, matched=refusal.matched)

    if ambient is not None and not ambient.is_empty():
        report["__ambient"] = ambient.to_report_dict()

    return report
