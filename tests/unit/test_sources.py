"""Tests for the Snapshot and Tally GraphQL sources."""

import pytest
from unittest.mock import MagicMock

from conftest import make_response
from gov_ai.exceptions import ConfigurationError, FetchError, GraphQLError, ProposalNotFoundError
from gov_ai.services import snapshot, tally
from gov_ai.services.snapshot import SnapshotClient, parse_snapshot_url
from gov_ai.services.tally import TallyClient, normalize_vote_type, parse_tally_url


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

class TestParseSnapshotUrl:

    def test_space_and_id(self):
        url = "https://snapshot.org/#/example.eth/proposal/0xabc"
        assert parse_snapshot_url(url) == ("0xabc", "example.eth")

    def test_without_space(self):
        assert parse_snapshot_url("https://snapshot.org/#/proposal/0xabc") == ("0xabc", None)

    def test_no_proposal_segment(self):
        assert parse_snapshot_url("https://snapshot.org/#/example.eth") is None
        assert parse_snapshot_url("https://snapshot.org/#/example.eth/proposal") is None


class TestSnapshotClient:

    def test_fetch_extracted(self, mock_session, snapshot_proposal):
        mock_session.post.return_value = make_response(json_data={"data": {"proposal": snapshot_proposal}})
        client = SnapshotClient(session=mock_session)

        record = client.fetch_extracted("https://snapshot.org/#/example.eth/proposal/0xabc123")

        assert record.source_type == "snapshot"
        assert record.title == "Increase treasury diversification"
        assert record.options == ["For", "Against", "Abstain"]
        assert record.current_results["scores_total"] == 1510.5
        assert record.metadata["proposal_id"] == "0xabc123"
        assert record.metadata["space_name"] == "Example DAO"

        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["variables"] == {"id": "0xabc123"}

    def test_not_a_snapshot_url(self, mock_session):
        client = SnapshotClient(session=mock_session)
        assert client.fetch_extracted("https://example.com/#/x/proposal/1") is None
        mock_session.post.assert_not_called()

    def test_http_error(self, mock_session):
        mock_session.post.return_value = make_response(status_code=502, text="bad gateway")
        client = SnapshotClient(session=mock_session)
        with pytest.raises(FetchError) as exc:
            client.fetch_proposal("0x1")
        assert exc.value.status_code == 502

    def test_null_proposal(self, mock_session):
        mock_session.post.return_value = make_response(json_data={"data": {"proposal": None}})
        client = SnapshotClient(session=mock_session)
        with pytest.raises(ProposalNotFoundError):
            client.fetch_proposal("0x1")

    def test_no_scores_means_no_results(self, snapshot_proposal):
        snapshot_proposal["scores"] = []
        record = snapshot.to_extracted(snapshot_proposal)
        assert record.current_results is None


# ---------------------------------------------------------------------------
# Tally
# ---------------------------------------------------------------------------

class TestParseTallyUrl:

    def test_valid(self):
        assert parse_tally_url("https://www.tally.xyz/gov/uniswap/proposal/83") == ("uniswap", "83")

    def test_other_host(self):
        assert parse_tally_url("https://example.com/gov/uniswap/proposal/83") is None

    def test_wrong_shape(self):
        assert parse_tally_url("https://www.tally.xyz/gov/uniswap") is None
        assert parse_tally_url("https://www.tally.xyz/dao/uniswap/proposal/83") is None


class TestNormalizeVoteType:

    def test_known(self):
        assert normalize_vote_type("for") == "FOR"
        assert normalize_vote_type("Against") == "AGAINST"
        assert normalize_vote_type("ABSTAIN") == "ABSTAIN"

    def test_unknown(self):
        assert normalize_vote_type("pendingfor") is None
        assert normalize_vote_type(None) is None


@pytest.fixture
def tally_client(mock_session):
    return TallyClient(api_key="tally-key", session=mock_session)


class TestTallyClient:

    def test_query_requires_key(self, mock_session):
        client = TallyClient(api_key="", session=mock_session)
        assert not client.configured
        with pytest.raises(ConfigurationError):
            client.query("query {}", {})

    def test_query_sends_api_key(self, tally_client, mock_session):
        mock_session.post.return_value = make_response(json_data={"data": {"ok": 1}})
        assert tally_client.query("query {}", {"a": 1}) == {"ok": 1}
        headers = mock_session.post.call_args.kwargs["headers"]
        assert headers["Api-Key"] == "tally-key"

    def test_query_http_error_includes_detail(self, tally_client, mock_session):
        mock_session.post.return_value = make_response(status_code=401, text="unauthorized" * 50)
        with pytest.raises(FetchError) as exc:
            tally_client.query("query {}", {})
        assert "HTTP 401" in str(exc.value)
        assert len(str(exc.value)) < 260

    def test_query_graphql_errors(self, tally_client, mock_session):
        mock_session.post.return_value = make_response(json_data={"errors": [{"message": "boom"}]})
        with pytest.raises(GraphQLError, match="boom"):
            tally_client.query("query {}", {})

    def test_resolve_governor_direct(self, tally_client, tally_governor, monkeypatch):
        monkeypatch.setattr(tally_client, "fetch_governor_by_slug", lambda slug: tally_governor)
        assert tally_client.resolve_governor("uniswap") is tally_governor

    def test_resolve_governor_via_organization(self, tally_client, tally_governor, monkeypatch):
        def not_found(slug):
            raise ProposalNotFoundError(f"Tally governor not found for slug: {slug}")

        monkeypatch.setattr(tally_client, "fetch_governor_by_slug", not_found)
        monkeypatch.setattr(tally_client, "fetch_organization_by_slug", lambda slug: {"id": "org-1"})
        primary = MagicMock(return_value=tally_governor)
        monkeypatch.setattr(tally_client, "fetch_primary_governor", primary)

        assert tally_client.resolve_governor("arbitrum") is tally_governor
        primary.assert_called_once_with("org-1")

    def test_resolve_governor_other_errors_propagate(self, tally_client, monkeypatch):
        def unavailable(slug):
            raise FetchError("Tally GraphQL error: HTTP 500", status_code=500)

        monkeypatch.setattr(tally_client, "fetch_governor_by_slug", unavailable)
        with pytest.raises(FetchError, match="HTTP 500"):
            tally_client.resolve_governor("uniswap")

    def test_primary_governor_preferred(self, tally_client, mock_session):
        nodes = [
            {"id": "g1", "slug": "first", "isPrimary": False},
            {"id": "g2", "slug": "second", "isPrimary": True},
            {"name": "incomplete"},
        ]
        mock_session.post.return_value = make_response(json_data={"data": {"governors": {"nodes": nodes}}})
        assert tally_client.fetch_primary_governor("org-1")["id"] == "g2"

    def test_primary_governor_falls_back_to_first(self, tally_client, mock_session):
        nodes = [{"id": "g1", "slug": "first"}, {"id": "g2", "slug": "second"}]
        mock_session.post.return_value = make_response(json_data={"data": {"governors": {"nodes": nodes}}})
        assert tally_client.fetch_primary_governor("org-1")["id"] == "g1"

    def test_no_governors(self, tally_client, mock_session):
        mock_session.post.return_value = make_response(json_data={"data": {"governors": {"nodes": []}}})
        with pytest.raises(ProposalNotFoundError):
            tally_client.fetch_primary_governor("org-1")

    def test_fetch_extracted_unconfigured_skips(self, mock_session):
        client = TallyClient(api_key="", session=mock_session)
        assert client.fetch_extracted("https://www.tally.xyz/gov/uniswap/proposal/83") is None
        mock_session.post.assert_not_called()


class TestTallyToExtracted:

    def test_options_in_canonical_order(self, tally_governor, tally_proposal):
        tally_proposal["voteStats"].reverse()
        record = tally.to_extracted(tally_governor, tally_proposal)
        assert record.options == ["FOR", "AGAINST"]

    def test_record_fields(self, tally_governor, tally_proposal):
        record = tally.to_extracted(tally_governor, tally_proposal)
        assert record.source_type == "tally"
        assert record.title == "Deploy Uniswap v4 on a new chain"
        assert record.current_results == {"voteStats": tally_proposal["voteStats"]}
        assert record.metadata["organization_slug"] == "uniswap"
        assert record.metadata["onchain_id"] == "83"
        assert record.metadata["executable_calls_count"] == 1

    def test_metadata_falls_back_to_proposal(self, tally_proposal):
        governor = {"id": "g", "slug": "gov-slug", "name": "Gov"}
        record = tally.to_extracted(governor, tally_proposal)
        assert record.metadata["organization_slug"] == "uniswap"
        assert record.metadata["chain_id"] == "eip155:1"

    def test_missing_vote_stats(self, tally_governor, tally_proposal):
        tally_proposal["voteStats"] = None
        record = tally.to_extracted(tally_governor, tally_proposal)
        assert record.options == []
        assert record.current_results is None
