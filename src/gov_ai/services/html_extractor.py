"""
Extraction of proposal data from arbitrary governance pages.

Pages built with Next.js embed their hydration state in a
``<script id="__NEXT_DATA__">`` tag; when present it is far more reliable
than scraping the rendered text, so it is tried first.
"""

import json
import re
from collections import deque
from typing import Any

import structlog
from bs4 import BeautifulSoup

logger = structlog.get_logger(__name__)

BODY_TEXT_LIMIT = 5000

_WHITESPACE_RE = re.compile(r"\s+")
_MISSING = object()


def extract_from_html(html: str | bytes) -> dict[str, Any]:
    """
    Extract title/body/options/results from a page.

    Returns a dict with ``title``, ``body``, ``options``, ``current_results``
    and ``metadata`` keys.
    """
    soup = BeautifulSoup(html, "html.parser")

    next_data = _try_extract_from_next_data(soup)
    if next_data:
        return next_data

    for tag in soup(["script", "style"]):
        tag.decompose()

    text = _WHITESPACE_RE.sub(" ", soup.get_text(" ")).strip()

    title = "UNKNOWN"
    if soup.title and soup.title.string and soup.title.string.strip():
        title = soup.title.string.strip()

    return {
        "title": title,
        "body": text[:BODY_TEXT_LIMIT],
        "options": [],
        "current_results": None,
        "metadata": {},
    }


def _try_extract_from_next_data(soup: BeautifulSoup) -> dict[str, Any] | None:
    script = soup.find("script", id="__NEXT_DATA__")
    if script is None:
        return None

    json_text = script.get_text().strip()
    if not json_text:
        return None

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError:
        logger.debug("next_data_invalid_json")
        return None

    page_props = _dig(data, "props", "pageProps")
    if not isinstance(page_props, dict) or not page_props:
        return None

    proposal_info = page_props.get("proposalInfo")
    if not isinstance(proposal_info, dict):
        proposal_info = {}

    title = as_string(proposal_info.get("title")) or as_string(
        find_first_deep(page_props, ["proposal", "title"])
    )

    body = (
        as_string(proposal_info.get("description"))
        or as_string(find_first_deep(page_props, ["proposal", "description"]))
        or as_string(find_first_deep(page_props, ["proposal", "body"]))
    )

    options = (
        as_string_list(proposal_info.get("choices"))
        or as_string_list(find_first_deep(page_props, ["proposal", "choices"]))
        or as_string_list(find_first_deep(page_props, ["proposal", "options"]))
        or []
    )

    # daodao.zone proposals usually spell the options out in the description
    if not options and proposal_info.get("description"):
        options = infer_options_from_description(str(proposal_info["description"]))

    votes = find_first_deep(page_props, ["proposal", "votes"])
    if votes is None:
        votes = find_first_deep(page_props, ["votes"])
    status = as_string(find_first_deep(page_props, ["proposal", "status"])) or as_string(
        proposal_info.get("status")
    )

    if not title and not body:
        return None

    has_results = votes is not None or status is not None
    return {
        "title": title or "UNKNOWN",
        "body": body or "",
        "options": options,
        "current_results": {"votes": votes, "status": status} if has_results else None,
        "metadata": {"nextjs": True},
    }


def infer_options_from_description(description: str) -> list[str]:
    """Guess YES/NO(/ABSTAIN) options from "Vote YES / Vote NO" wording."""
    text = description.upper()
    if "VOTE YES" in text and "VOTE NO" in text:
        if "ABSTAIN" in text:
            return ["YES", "NO", "ABSTAIN"]
        return ["YES", "NO"]
    return []


def as_string(value: Any) -> str | None:
    """Return the stripped string, or None for non-strings and blanks."""
    if isinstance(value, str):
        return value.strip() or None
    return None


def as_string_list(value: Any) -> list[str] | None:
    """Return non-empty stripped strings from a list, or None if there are none."""
    if not isinstance(value, list):
        return None
    items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return items or None


def find_first_deep(root: Any, path: list[str]) -> Any:
    """
    Breadth-first search for the first node from which ``path`` can be followed.

    Works on arbitrarily nested dicts and lists; each container is visited once.
    Returns None when no node matches.
    """
    if root is None or not path:
        return None

    queue: deque[Any] = deque([root])
    seen: set[int] = set()

    while queue:
        current = queue.popleft()
        if not isinstance(current, (dict, list)):
            continue
        if id(current) in seen:
            continue
        seen.add(id(current))

        node = _dig(current, *path)
        if node is not _MISSING:
            return node

        if isinstance(current, list):
            queue.extend(current)
        else:
            queue.extend(current.values())

    return None


def _dig(node: Any, *keys: str) -> Any:
    for key in keys:
        if isinstance(node, dict) and key in node:
            node = node[key]
        else:
            return _MISSING
    return node
