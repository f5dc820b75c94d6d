"""
Tally proposal source (api.tally.xyz GraphQL).

URLs look like ``https://www.tally.xyz/gov/<slug>/proposal/<onchainId>``.
The slug is usually a governor slug but for multi-governor DAOs it names the
organization, in which case the organization's primary governor is used.
"""

from typing import Any
from urllib.parse import urlparse

import requests
import structlog

from gov_ai.config import get_settings
from gov_ai.exceptions import ConfigurationError, FetchError, GraphQLError, ProposalNotFoundError
from gov_ai.models.proposal import ExtractedRecord, SourceType

logger = structlog.get_logger(__name__)

TALLY_HOSTS = {"www.tally.xyz", "tally.xyz"}

VOTE_TYPE_ORDER = ["FOR", "AGAINST", "ABSTAIN"]

GOVERNOR_QUERY = """
query Governor($input: GovernorInput!) {
  governor(input: $input) {
    id
    slug
    name
    chainId
    organization { id slug name }
  }
}
"""

ORGANIZATION_QUERY = """
query Organization($input: OrganizationInput!) {
  organization(input: $input) {
    id
    slug
    name
  }
}
"""

GOVERNORS_QUERY = """
query Governors($input: GovernorsInput!) {
  governors(input: $input) {
    nodes {
      ... on Governor {
        id
        slug
        name
        chainId
        isPrimary
        organization { id slug name }
      }
    }
  }
}
"""

PROPOSAL_QUERY = """
query Proposal($input: ProposalInput!) {
  proposal(input: $input) {
    id
    onchainId
    status
    quorum
    metadata { title description discourseURL snapshotURL txHash ipfsHash }
    start { ... on Block { number timestamp } ... on BlocklessTimestamp { timestamp } }
    end   { ... on Block { number timestamp } ... on BlocklessTimestamp { timestamp } }
    governor { id slug name chainId }
    organization { id slug name }
    voteStats { type votesCount votersCount percent }
    executableCalls { target signature calldata value }
  }
}
"""


def parse_tally_url(url: str) -> tuple[str, str] | None:
    """Return (slug, onchain_id) for a Tally proposal URL, else None."""
    parsed = urlparse(url)
    if parsed.hostname not in TALLY_HOSTS:
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 4 or parts[0] != "gov" or parts[2] != "proposal":
        return None

    slug, onchain_id = parts[1], parts[3]
    if not slug or not onchain_id:
        return None
    return slug, onchain_id


def normalize_vote_type(vote_type: Any) -> str | None:
    """Map Tally vote-stat types onto FOR/AGAINST/ABSTAIN; other types are not options."""
    value = str(vote_type or "").lower()
    if value in ("for", "against", "abstain"):
        return value.upper()
    return None


def _is_not_found(error: FetchError) -> bool:
    return isinstance(error, ProposalNotFoundError) or "not found" in str(error).lower()


class TallyClient:
    """Client for the Tally GraphQL API."""

    def __init__(self, api_key: str | None = None, session: requests.Session | None = None):
        self.settings = get_settings()
        self.api_key = api_key if api_key is not None else self.settings.tally_api_key
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object."""
        if not self.api_key:
            raise ConfigurationError("Tally client not configured. Set TALLY_API_KEY.")

        response = self.session.post(
            self.settings.tally_graphql_url,
            json={"query": query, "variables": variables},
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": self.settings.user_agent,
                "Api-Key": self.api_key,
            },
            timeout=self.settings.http_timeout,
        )

        if not response.ok:
            detail = response.text[:200] if response.text else ""
            raise FetchError(
                f"Tally GraphQL error: HTTP {response.status_code}"
                + (f" - {detail}" if detail else ""),
                status_code=response.status_code,
            )

        payload = response.json()
        errors = payload.get("errors") or []
        if errors:
            message = (errors[0] or {}).get("message") or "unknown"
            raise GraphQLError(f"Tally GraphQL returned errors: {message}")

        return payload.get("data") or {}

    # =========================================================================
    # Governor Resolution
    # =========================================================================

    def fetch_governor_by_slug(self, slug: str) -> dict[str, Any]:
        data = self.query(GOVERNOR_QUERY, {"input": {"slug": slug}})
        governor = data.get("governor") or {}
        if not governor.get("id"):
            raise ProposalNotFoundError(f"Tally governor not found for slug: {slug}")
        return governor

    def fetch_organization_by_slug(self, slug: str) -> dict[str, Any]:
        data = self.query(ORGANIZATION_QUERY, {"input": {"slug": slug}})
        organization = data.get("organization") or {}
        if not organization.get("id"):
            raise ProposalNotFoundError(f"Tally organization not found for slug: {slug}")
        return organization

    def fetch_primary_governor(self, organization_id: str) -> dict[str, Any]:
        """Return the organization's primary governor, or its first one."""
        data = self.query(
            GOVERNORS_QUERY,
            {
                "input": {
                    "filters": {
                        "organizationId": organization_id,
                        "includeInactive": True,
                        "excludeSecondary": True,
                    },
                    "page": {"limit": 50},
                }
            },
        )

        nodes = (data.get("governors") or {}).get("nodes")
        governors = [
            n for n in (nodes if isinstance(nodes, list) else [])
            if isinstance(n, dict) and n.get("id") and n.get("slug")
        ]
        if not governors:
            raise ProposalNotFoundError(
                f"Tally governors not found for organizationId: {organization_id}"
            )

        return next((g for g in governors if g.get("isPrimary")), governors[0])

    def resolve_governor(self, path_slug: str) -> dict[str, Any]:
        """Treat ``/gov/<slug>/`` as a governor slug, falling back to an organization slug."""
        try:
            return self.fetch_governor_by_slug(path_slug)
        except FetchError as e:
            if not _is_not_found(e):
                raise
            logger.debug("tally_governor_slug_not_found", slug=path_slug)

        organization = self.fetch_organization_by_slug(path_slug)
        return self.fetch_primary_governor(organization["id"])

    # =========================================================================
    # Proposals
    # =========================================================================

    def fetch_proposal(self, governor_id: str, onchain_id: str) -> dict[str, Any]:
        data = self.query(
            PROPOSAL_QUERY,
            {"input": {"governorId": governor_id, "onchainId": str(onchain_id)}},
        )
        proposal = data.get("proposal") or {}
        if not proposal.get("id"):
            raise ProposalNotFoundError("Tally proposal not found for governorId+onchainId")
        return proposal

    def fetch_extracted(self, url: str) -> ExtractedRecord | None:
        """Fetch and normalize the proposal behind ``url``; None if not applicable."""
        parsed = parse_tally_url(url)
        if not parsed or not self.configured:
            return None

        slug, onchain_id = parsed
        governor = self.resolve_governor(slug)
        proposal = self.fetch_proposal(governor["id"], onchain_id)

        logger.info(
            "tally_proposal_fetched",
            governor=governor.get("slug"),
            onchain_id=onchain_id,
        )
        return to_extracted(governor, proposal)


def to_extracted(governor: dict[str, Any], proposal: dict[str, Any]) -> ExtractedRecord:
    """Normalize a Tally governor + proposal pair into an extracted record."""
    metadata = proposal.get("metadata") or {}
    vote_stats = proposal.get("voteStats")
    vote_stats = vote_stats if isinstance(vote_stats, list) else []

    present = {normalize_vote_type((v or {}).get("type")) for v in vote_stats}
    options = [o for o in VOTE_TYPE_ORDER if o in present]

    governor_org = governor.get("organization") or {}
    proposal_org = proposal.get("organization") or {}
    proposal_governor = proposal.get("governor") or {}
    calls = proposal.get("executableCalls")

    def first_set(*values: Any) -> Any:
        return next((v for v in values if v is not None), None)

    return ExtractedRecord(
        source_type=SourceType.TALLY,
        title=metadata.get("title") or "UNKNOWN",
        body=metadata.get("description") or "",
        options=options,
        current_results={"voteStats": vote_stats} if vote_stats else None,
        metadata={
            "governor_id": governor.get("id"),
            "governor_slug": governor.get("slug"),
            "governor_name": governor.get("name"),
            "chain_id": first_set(governor.get("chainId"), proposal_governor.get("chainId")),
            "organization_slug": first_set(governor_org.get("slug"), proposal_org.get("slug")),
            "organization_name": first_set(governor_org.get("name"), proposal_org.get("name")),
            "proposal_id": proposal.get("id"),
            "onchain_id": proposal.get("onchainId"),
            "status": proposal.get("status"),
            "quorum": proposal.get("quorum"),
            "discourse_url": metadata.get("discourseURL"),
            "snapshot_url": metadata.get("snapshotURL"),
            "tx_hash": metadata.get("txHash"),
            "ipfs_hash": metadata.get("ipfsHash"),
            "executable_calls_count": len(calls) if isinstance(calls, list) else 0,
        },
    )
