"""
Proposal fetching service.

Tries the source-specific GraphQL fast paths first and falls back to a plain
HTML fetch for everything else.
"""

from functools import lru_cache
from urllib.parse import urlparse

import requests
import structlog

from gov_ai.config import get_settings
from gov_ai.exceptions import FetchError, GovAIError
from gov_ai.models.proposal import ExtractedRecord, SourceType
from gov_ai.services.html_extractor import extract_from_html
from gov_ai.services.snapshot import SnapshotClient
from gov_ai.services.tally import TallyClient

logger = structlog.get_logger(__name__)


def is_daodao_host(url: str) -> bool:
    host = urlparse(url).hostname or ""
    return host == "daodao.zone" or host.endswith(".daodao.zone")


class ProposalFetcher:
    """
    Service producing an extracted record for any proposal URL.

    Order:
    1. Snapshot GraphQL (hash-routed SPA pages)
    2. Tally GraphQL (needs TALLY_API_KEY)
    3. Generic HTML, including Next.js hydration data
    """

    def __init__(
        self,
        snapshot: SnapshotClient | None = None,
        tally: TallyClient | None = None,
        session: requests.Session | None = None,
    ):
        self.settings = get_settings()
        self.snapshot = snapshot or SnapshotClient()
        self.tally = tally or TallyClient()
        self.session = session or requests.Session()

    def fetch_and_extract(self, url: str) -> ExtractedRecord:
        """Fetch ``url`` and return the normalized proposal."""
        try:
            record = self.snapshot.fetch_extracted(url)
            if record is not None:
                return record
        except (GovAIError, requests.RequestException, ValueError) as e:
            logger.debug("snapshot_fast_path_failed", url=url, error=str(e))

        try:
            record = self.tally.fetch_extracted(url)
            if record is not None:
                return record
        except (GovAIError, requests.RequestException, ValueError) as e:
            logger.error("tally_fast_path_failed", url=url, error=str(e))

        return self.fetch_generic(url)

    def fetch_generic(self, url: str) -> ExtractedRecord:
        """Download the page and scrape it."""
        try:
            response = self.session.get(
                url,
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.http_timeout,
            )
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch URL: {e}") from e
        if not response.ok:
            raise FetchError(
                f"Failed to fetch URL: {response.status_code}",
                status_code=response.status_code,
            )

        extracted = extract_from_html(response.content)
        source_type = SourceType.DAODAO if is_daodao_host(url) else SourceType.GENERIC

        logger.info(
            "generic_page_extracted",
            url=url,
            source_type=source_type.value,
            nextjs=bool(extracted["metadata"].get("nextjs")),
        )
        return ExtractedRecord(source_type=source_type, **extracted)


@lru_cache()
def get_proposal_fetcher() -> ProposalFetcher:
    """Get cached proposal fetcher instance."""
    return ProposalFetcher()
