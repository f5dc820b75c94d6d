"""Tests for gov_ai/services/html_extractor.py — generic and Next.js extraction."""

import json

from gov_ai.services.html_extractor import (
    BODY_TEXT_LIMIT,
    as_string,
    as_string_list,
    extract_from_html,
    find_first_deep,
    infer_options_from_description,
)


class TestGenericExtraction:

    def test_title_and_body(self):
        html = (
            "<html><head><title> Proposal 12 </title><style>.x{}</style></head>"
            "<body><h1>Hello</h1><script>var a = 1;</script><p>Some   text\n here</p></body></html>"
        )
        result = extract_from_html(html)
        assert result["title"] == "Proposal 12"
        assert "var a" not in result["body"]
        assert ".x{}" not in result["body"]
        assert "Some text here" in result["body"]
        assert result["options"] == []
        assert result["current_results"] is None
        assert result["metadata"] == {}

    def test_missing_title_is_unknown(self):
        result = extract_from_html("<html><body><p>Only body</p></body></html>")
        assert result["title"] == "UNKNOWN"

    def test_body_truncated(self):
        html = "<html><body><p>" + "a " * 6000 + "</p></body></html>"
        result = extract_from_html(html)
        assert len(result["body"]) == BODY_TEXT_LIMIT


class TestNextData:

    def test_extracts_proposal(self, next_data_html):
        result = extract_from_html(next_data_html)
        assert result["title"] == "Fund the community pool"
        assert result["body"].startswith("Send 1000 tokens")
        assert result["options"] == ["YES", "NO"]
        assert result["current_results"] == {"votes": {"yes": "100", "no": "25"}, "status": "open"}
        assert result["metadata"] == {"nextjs": True}

    def test_choices_take_precedence(self):
        data = {
            "props": {
                "pageProps": {
                    "proposalInfo": {
                        "title": "T",
                        "description": "Vote YES or Vote NO",
                        "choices": ["Option A", " ", "Option B"],
                    }
                }
            }
        }
        html = f'<script id="__NEXT_DATA__">{json.dumps(data)}</script>'
        result = extract_from_html(html)
        assert result["options"] == ["Option A", "Option B"]
        assert result["current_results"] is None

    def test_empty_votes_still_reported(self):
        data = {"props": {"pageProps": {"proposal": {"title": "T", "votes": {}}}}}
        html = f'<script id="__NEXT_DATA__">{json.dumps(data)}</script>'
        result = extract_from_html(html)
        assert result["current_results"] == {"votes": {}, "status": None}

    def test_invalid_json_falls_back(self):
        html = '<html><head><title>Page</title></head><script id="__NEXT_DATA__">{oops</script><p>Body</p></html>'
        result = extract_from_html(html)
        assert result["title"] == "Page"
        assert result["metadata"] == {}

    def test_no_title_or_body_falls_back(self):
        data = {"props": {"pageProps": {"something": {"else": 1}}}}
        html = f'<title>Fallback</title><script id="__NEXT_DATA__">{json.dumps(data)}</script>'
        result = extract_from_html(html)
        assert result["title"] == "Fallback"
        assert "nextjs" not in result["metadata"]


class TestHelpers:

    def test_infer_options(self):
        assert infer_options_from_description("Vote yes to fund; vote no to reject") == ["YES", "NO"]
        assert infer_options_from_description("VOTE YES, VOTE NO or ABSTAIN") == ["YES", "NO", "ABSTAIN"]
        assert infer_options_from_description("Vote YES") == []

    def test_as_string(self):
        assert as_string("  x ") == "x"
        assert as_string("   ") is None
        assert as_string(5) is None

    def test_as_string_list(self):
        assert as_string_list(["a", 1, " b "]) == ["a", "b"]
        assert as_string_list([1, 2]) is None
        assert as_string_list("a") is None

    def test_find_first_deep_breadth_first(self):
        root = {
            "deep": {"deeper": {"proposal": {"title": "far"}}},
            "proposal": {"title": "near"},
        }
        assert find_first_deep(root, ["proposal", "title"]) == "near"

    def test_find_first_deep_through_lists(self):
        root = {"items": [{"x": 1}, {"proposal": {"votes": [1, 2]}}]}
        assert find_first_deep(root, ["proposal", "votes"]) == [1, 2]

    def test_find_first_deep_missing(self):
        assert find_first_deep({"a": {"b": 1}}, ["proposal", "title"]) is None
        assert find_first_deep(None, ["a"]) is None

    def test_find_first_deep_handles_shared_nodes(self):
        shared = {"x": 1}
        root = {"a": shared, "b": shared, "c": [shared]}
        assert find_first_deep(root, ["missing"]) is None
