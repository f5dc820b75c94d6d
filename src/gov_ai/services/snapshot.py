"""
Snapshot proposal source (hub.snapshot.org GraphQL).

Snapshot pages are a single-page app, so the HTML carries no proposal data;
the proposal id is taken from the hash route and fetched over GraphQL.
"""

from typing import Any
from urllib.parse import urlparse

import requests
import structlog

from gov_ai.config import get_settings
from gov_ai.exceptions import FetchError, ProposalNotFoundError
from gov_ai.models.proposal import ExtractedRecord, SourceType

logger = structlog.get_logger(__name__)

PROPOSAL_QUERY = """
query Proposal($id: String!) {
  proposal(id: $id) {
    id
    title
    body
    choices
    start
    end
    state
    author
    type
    quorum
    scores
    scores_total
    scores_updated
    space { id name }
  }
}
"""


def is_snapshot_host(url: str) -> bool:
    return "snapshot.org" in (urlparse(url).hostname or "")


def parse_snapshot_url(url: str) -> tuple[str, str | None] | None:
    """
    Parse ``https://snapshot.org/#/<space>/proposal/<id>``.

    Returns (proposal_id, space) or None when the hash route has no proposal.
    """
    fragment = urlparse(url).fragment
    fragment = fragment[1:] if fragment.startswith("/") else fragment
    parts = [p for p in fragment.split("/") if p]

    if "proposal" not in parts:
        return None
    index = parts.index("proposal")
    if index + 1 >= len(parts):
        return None

    maybe_space = parts[0] if parts[0] != "proposal" else None
    return parts[index + 1], maybe_space


class SnapshotClient:
    """Client for the Snapshot hub GraphQL API."""

    def __init__(self, session: requests.Session | None = None):
        self.settings = get_settings()
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": self.settings.user_agent,
            }
        )

    def fetch_proposal(self, proposal_id: str) -> dict[str, Any]:
        """Fetch the raw proposal object."""
        response = self.session.post(
            self.settings.snapshot_graphql_url,
            json={"query": PROPOSAL_QUERY, "variables": {"id": proposal_id}},
            timeout=self.settings.http_timeout,
        )
        if not response.ok:
            raise FetchError(
                f"Snapshot GraphQL error: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json()
        proposal = (data.get("data") or {}).get("proposal")
        if not proposal:
            raise ProposalNotFoundError("Snapshot proposal not found (GraphQL returned null).")

        logger.info("snapshot_proposal_fetched", proposal_id=proposal_id)
        return proposal

    def fetch_extracted(self, url: str) -> ExtractedRecord | None:
        """Fetch and normalize the proposal behind ``url``; None if it is not a proposal URL."""
        parsed = parse_snapshot_url(url)
        if not parsed or not is_snapshot_host(url):
            return None
        proposal_id, _ = parsed
        return to_extracted(self.fetch_proposal(proposal_id))


def to_extracted(proposal: dict[str, Any]) -> ExtractedRecord:
    """Normalize a Snapshot proposal into an extracted record."""
    scores = proposal.get("scores")
    choices = proposal.get("choices")
    space = proposal.get("space") or {}

    current_results = None
    if isinstance(scores, list) and scores:
        current_results = {
            "scores": scores,
            "scores_total": proposal.get("scores_total"),
            "scores_updated": proposal.get("scores_updated"),
            "state": proposal.get("state"),
        }

    return ExtractedRecord(
        source_type=SourceType.SNAPSHOT,
        title=proposal.get("title") or "UNKNOWN",
        body=proposal.get("body") or "",
        options=[str(c) for c in choices] if isinstance(choices, list) else [],
        current_results=current_results,
        metadata={
            "proposal_id": proposal.get("id"),
            "space_id": space.get("id"),
            "space_name": space.get("name"),
            "author": proposal.get("author"),
            "start": proposal.get("start"),
            "end": proposal.get("end"),
            "state": proposal.get("state"),
            "type": proposal.get("type"),
            "quorum": proposal.get("quorum"),
        },
    )
