"""Shared pytest fixtures and mocks for the gov-ai test suite."""

import json

import pytest
from unittest.mock import MagicMock

from gov_ai.models.proposal import ExtractedRecord, SourceType


# ---------------------------------------------------------------------------
# Environment isolation (autouse)
# ---------------------------------------------------------------------------

ENV_VARS = [
    "AMBIENT_API_KEY",
    "AMBIENT_MODEL",
    "AMBIENT_TIER",
    "NOUS_API_KEY",
    "TALLY_API_KEY",
    "PROPOSAL_URL",
    "LLM_STREAM",
    "BENCH_RUNS",
    "BENCH_RETRIES",
    "LOG_LEVEL",
    "DEBUG",
]


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run every test in an empty directory with no provider keys set."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield tmp_path


@pytest.fixture(autouse=True)
def clear_singletons():
    """Clear all @lru_cache singletons between tests."""
    from gov_ai.config import get_settings
    from gov_ai.pipeline.orchestrator import get_analysis_pipeline
    from gov_ai.services.fetcher import get_proposal_fetcher
    from gov_ai.services.llm_service import get_llm_service

    get_settings.cache_clear()
    get_proposal_fetcher.cache_clear()
    get_llm_service.cache_clear()
    get_analysis_pipeline.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ambient_key(monkeypatch):
    """Configure an Ambient API key for the test."""
    from gov_ai.config import get_settings

    monkeypatch.setenv("AMBIENT_API_KEY", "test-ambient-key")
    get_settings.cache_clear()
    return "test-ambient-key"


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

def make_response(status_code=200, json_data=None, text=None, lines=None):
    """requests.Response stand-in."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    if json_data is not None:
        response.json.return_value = json_data
        response.text = json.dumps(json_data)
    else:
        response.json.side_effect = ValueError("no json")
        response.text = text or ""
    response.content = response.text.encode("utf-8")
    if lines is not None:
        response.iter_lines.return_value = iter(lines)
    response.__enter__ = MagicMock(return_value=response)
    response.__exit__ = MagicMock(return_value=False)
    return response


@pytest.fixture
def mock_session():
    return MagicMock()


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def snapshot_proposal():
    """Raw Snapshot GraphQL proposal."""
    return {
        "id": "0xabc123",
        "title": "Increase treasury diversification",
        "body": "This proposal moves 10% of the treasury into stablecoins.\n\nVote YES to approve.",
        "choices": ["For", "Against", "Abstain"],
        "start": 1700000000,
        "end": 1700600000,
        "state": "active",
        "author": "0xauthor",
        "type": "single-choice",
        "quorum": 0,
        "scores": [1200.5, 300.0, 10.0],
        "scores_total": 1510.5,
        "scores_updated": 1700100000,
        "space": {"id": "example.eth", "name": "Example DAO"},
    }


@pytest.fixture
def tally_governor():
    return {
        "id": "eip155:1:0xgov",
        "slug": "uniswap",
        "name": "Uniswap",
        "chainId": "eip155:1",
        "organization": {"id": "org-1", "slug": "uniswap", "name": "Uniswap"},
    }


@pytest.fixture
def tally_proposal():
    return {
        "id": "prop-1",
        "onchainId": "83",
        "status": "active",
        "quorum": "40000000",
        "metadata": {
            "title": "Deploy Uniswap v4 on a new chain",
            "description": "Deploy the protocol to a new L2.",
            "discourseURL": "https://gov.uniswap.org/t/1",
            "snapshotURL": None,
            "txHash": "0xtx",
            "ipfsHash": None,
        },
        "governor": {"id": "eip155:1:0xgov", "slug": "uniswap", "name": "Uniswap", "chainId": "eip155:1"},
        "organization": {"id": "org-1", "slug": "uniswap", "name": "Uniswap"},
        "voteStats": [
            {"type": "for", "votesCount": "45000000", "votersCount": 120, "percent": 90.0},
            {"type": "against", "votesCount": "5000000", "votersCount": 30, "percent": 10.0},
            {"type": "pendingfor", "votesCount": "0", "votersCount": 0, "percent": 0},
        ],
        "executableCalls": [{"target": "0x1", "signature": "", "calldata": "0x", "value": "0"}],
    }


@pytest.fixture
def sample_extracted():
    """Extracted record from a Snapshot proposal."""
    return ExtractedRecord(
        source_type=SourceType.SNAPSHOT,
        fetched_at="2025-01-31T12:00:00.000Z",
        title="Increase treasury diversification",
        body="This proposal moves 10% of the treasury into stablecoins. Vote YES to approve.",
        options=["For", "Against", "Abstain"],
        current_results={"scores": [1200.5, 300.0, 10.0], "state": "active"},
        metadata={"proposal_id": "0xabc123", "space_id": "example.eth"},
    )


@pytest.fixture
def sample_report():
    """Model report following the bundled schema."""
    return {
        "input": {
            "url": "https://snapshot.org/#/example.eth/proposal/0xabc123",
            "fetched_at": "2025-01-31T12:00:00.000Z",
            "source_type": "snapshot",
        },
        "extracted": {
            "title": "Increase treasury diversification",
            "body": "This proposal moves 10% of the treasury into stablecoins.",
            "options": ["For", "Against", "Abstain"],
            "current_results": {"scores": [1200.5, 300.0, 10.0], "state": "active"},
        },
        "analysis": {
            "summary": "Moves **10%** of the treasury into stablecoins.",
            "key_changes": ["Treasury allocation changes"],
            "risks": ["Stablecoin depeg"],
            "benefits": ["Lower volatility"],
            "unknowns": ["Execution timeline"],
            "evidence_quotes": [
                "moves 10% of the treasury into stablecoins",
                "the council may veto any transfer",
            ],
        },
        "recommendation": {
            "suggested_option": "For",
            "confidence": "medium",
            "reasoning": "Aligns with the conservative treasury principle.",
            "conflicts_with_user_principles": [],
        },
        "limitations": ["Results may change before the vote closes"],
    }


@pytest.fixture
def next_data_html():
    """Next.js page with proposal hydration data."""
    data = {
        "props": {
            "pageProps": {
                "proposalInfo": {
                    "title": "Fund the community pool",
                    "description": "Send 1000 tokens. Vote YES to fund, Vote NO to reject.",
                },
                "state": {"proposal": {"votes": {"yes": "100", "no": "25"}, "status": "open"}},
            }
        }
    }
    return (
        "<html><head><title>DAO DAO</title></head><body>"
        f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(data)}</script>'
        "</body></html>"
    )
