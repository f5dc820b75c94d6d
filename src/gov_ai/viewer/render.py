"""
HTML rendering for the report viewer.

Reports are model output and page text, so every value is escaped before it
is placed into markup.
"""

import json
import re
from datetime import datetime
from html import escape
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlsplit

from gov_ai.viewer.i18n import get_strings

_SAFE_HREF_RE = re.compile(r"^(https?://|mailto:|/|#)", re.IGNORECASE)


def _e(value: Any) -> str:
    return escape(str(value), quote=True)


def safe_href(value: Any) -> str | None:
    """Escaped href for http(s)/mailto/relative links; None for anything else."""
    text = str(value or "").strip()
    if not text or not _SAFE_HREF_RE.match(text):
        return None
    return _e(text)


def _link(value: Any) -> str:
    href = safe_href(value)
    if href is None:
        return _e(value)
    return f'<a href="{href}" rel="noreferrer" target="_blank">{_e(value)}</a>'


# =============================================================================
# Text Formatting
# =============================================================================


def _markdown_link(match: re.Match) -> str:
    label, target = match.group(1), match.group(2)
    # target is already escaped; undo &amp; only for the scheme check
    if not _SAFE_HREF_RE.match(target.replace("&amp;", "&")):
        return label
    return f'<a href="{target}" target="_blank">{label}</a>'


def format_markdown(text: Any) -> str:
    """Minimal markdown: headers, bold, italic, links, code and paragraphs."""
    if not text:
        return ""
    html = escape(str(text), quote=True)

    html = re.sub(r"```([^`]+)```", r"<pre><code>\1</code></pre>", html)
    html = re.sub(r"`([^`]+)`", r"<code>\1</code>", html)

    html = re.sub(r"^### (.*)$", r"<h3>\1</h3>", html, flags=re.MULTILINE)
    html = re.sub(r"^## (.*)$", r"<h2>\1</h2>", html, flags=re.MULTILINE)
    html = re.sub(r"^# (.*)$", r"<h1>\1</h1>", html, flags=re.MULTILINE)

    html = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", html)
    html = re.sub(r"\*(.+?)\*", r"<em>\1</em>", html)
    html = re.sub(r"\[([^\]]+)\]\(([^)]+)\)", _markdown_link, html)

    html = html.replace("\n\n", "</p><p>").replace("\n", "<br>")
    if not html.startswith(("<h", "<p>")):
        html = f"<p>{html}</p>"
    return html


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _plain_number(number: float) -> str:
    if number.is_integer():
        return f"{int(number):,}".replace(",", " ")
    return f"{number:,.3f}".rstrip("0").rstrip(".").replace(",", " ")


def format_number(value: Any) -> str:
    """Abbreviate large numbers (K/M/B/T); non-numbers are returned as text."""
    number = _to_float(value)
    if number is None:
        return str(value)

    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if number >= threshold:
            return f"{number / threshold:.2f}{suffix}"
    return _plain_number(number)


def format_datetime(value: Any) -> str:
    """``DD.MM.YYYY, HH:MM:SS`` for ISO timestamps and datetimes; text otherwise."""
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return str(value)
    return moment.strftime("%d.%m.%Y, %H:%M:%S")


# =============================================================================
# Report Sections
# =============================================================================


def _list_block(items: Any, css_class: str, heading: str, ordered: bool = False) -> str:
    if not isinstance(items, list) or not items:
        return ""
    tag = "ol" if ordered else "ul"
    rows = "".join(f"<li>{format_markdown(item)}</li>" for item in items)
    return f'<div class="{css_class}"><h3>{heading}</h3><{tag}>{rows}</{tag}></div>'


def format_vote_results(results: Any, t: dict[str, str]) -> str:
    if not isinstance(results, dict) or not results:
        return f"<p>{t['no_results']}</p>"

    html = '<div class="vote-results">'

    votes = results.get("votes")
    if isinstance(votes, dict) and votes:
        html += f"<h3>{t['vote_results']}</h3>"
        status = results.get("status")
        if status:
            html += f'<div class="badge badge-{_e(status)}">{_e(status)}</div>'

        counts = {option: _to_float(count) or 0.0 for option, count in votes.items()}
        total = sum(counts.values())

        html += '<table class="votes-table">'
        html += f"<thead><tr><th>{t['option']}</th><th>{t['votes']}</th><th>{t['percent']}</th></tr></thead><tbody>"
        for option, count in votes.items():
            percent = f"{counts[option] / total * 100:.2f}" if total > 0 else "0"
            html += (
                f'<tr><td><span class="vote-type vote-type-{_e(option).lower()}">{_e(option)}</span></td>'
                f"<td>{_e(format_number(count))}</td>"
                f'<td><div class="progress-bar"><div class="progress-fill" style="width: {percent}%">'
                f"{percent}%</div></div></td></tr>"
            )
        html += "</tbody></table>"

    stats = results.get("voteStats")
    if isinstance(stats, list):
        html += f"<h3>{t['vote_stats']}</h3>"
        html += '<table class="votes-table">'
        html += (
            f"<thead><tr><th>{t['type']}</th><th>{t['votes']}</th>"
            f"<th>{t['voters']}</th><th>{t['percent']}</th></tr></thead><tbody>"
        )
        for stat in stats:
            stat = stat if isinstance(stat, dict) else {}
            vote_type = _e(stat.get("type", ""))
            percent_value = _to_float(stat.get("percent"))
            percent = f"{percent_value:.2f}%" if percent_value else "N/A"
            voters_value = _to_float(stat.get("votersCount"))
            voters = _plain_number(voters_value) if voters_value else "N/A"
            html += (
                f'<tr><td><span class="vote-type vote-type-{vote_type.lower()}">{vote_type}</span></td>'
                f"<td>{_e(format_number(stat.get('votesCount')))}</td>"
                f"<td>{voters}</td>"
                f'<td><div class="progress-bar"><div class="progress-fill" '
                f'style="width: {percent_value or 0}%">{percent}</div></div></td></tr>'
            )
        html += "</tbody></table>"

    html += "</div>"
    return html


def format_input(data: Any, t: dict[str, str]) -> str:
    if not isinstance(data, dict):
        return ""
    html = f'<div class="section input-section"><h2>{t["source_info"]}</h2>'
    if data.get("url"):
        html += f"<p><strong>{t['url']}:</strong> {_link(data['url'])}</p>"
    if data.get("fetched_at"):
        html += f"<p><strong>{t['fetched_at']}:</strong> {_e(format_datetime(data['fetched_at']))}</p>"
    if data.get("source_type"):
        html += f'<p><strong>{t["source_type"]}:</strong> <span class="badge">{_e(data["source_type"])}</span></p>'
    return html + "</div>"


def format_extracted(data: Any, t: dict[str, str]) -> str:
    if not isinstance(data, dict):
        return ""
    html = f'<div class="section extracted-section"><h2>{t["extracted_data"]}</h2>'
    if data.get("title"):
        html += f"<h3>{_e(data['title'])}</h3>"
    if data.get("body"):
        html += f'<div class="proposal-body">{format_markdown(data["body"])}</div>'

    options = data.get("options")
    if isinstance(options, list):
        rows = "".join(f"<li>{_e(option)}</li>" for option in options)
        html += f'<h3>{t["voting_options"]}</h3><ul class="options-list">{rows}</ul>'

    if data.get("current_results"):
        html += format_vote_results(data["current_results"], t)

    if data.get("metadata"):
        dumped = json.dumps(data["metadata"], indent=2, ensure_ascii=False)
        html += f'<details class="metadata"><summary>{t["metadata"]}</summary><pre>{_e(dumped)}</pre></details>'
    return html + "</div>"


def format_analysis(data: Any, t: dict[str, str]) -> str:
    if not isinstance(data, dict):
        return ""
    html = f'<div class="section analysis-section"><h2>{t["analysis"]}</h2>'
    if data.get("summary"):
        html += f'<div class="summary"><h3>{t["summary"]}</h3>{format_markdown(data["summary"])}</div>'
    html += _list_block(data.get("key_changes"), "key-changes", t["key_changes"], ordered=True)
    html += _list_block(data.get("risks"), "risks", f"⚠️ {t['risks']}")
    html += _list_block(data.get("benefits"), "benefits", f"✅ {t['benefits']}")
    html += _list_block(data.get("unknowns"), "unknowns", f"❓ {t['unknowns']}")

    quotes = data.get("evidence_quotes")
    if isinstance(quotes, list) and quotes:
        html += f'<div class="evidence"><h3>{t["evidence_quotes"]}</h3>'
        html += "".join(f"<blockquote>{format_markdown(q)}</blockquote>" for q in quotes)
        html += "</div>"
    return html + "</div>"


def format_recommendation(data: Any, t: dict[str, str]) -> str:
    if not isinstance(data, dict):
        return ""
    html = f'<div class="section recommendation-section"><h2>{t["recommendation"]}</h2>'
    if data.get("suggested_option"):
        html += (
            f'<div class="suggested-option"><strong>{t["suggested_option"]}:</strong> '
            f'<span class="highlight">{_e(data["suggested_option"])}</span></div>'
        )
    if data.get("confidence"):
        confidence = _e(data["confidence"])
        html += (
            f'<div class="confidence confidence-{confidence}"><strong>{t["confidence"]}:</strong> '
            f'<span class="badge">{confidence}</span></div>'
        )
    if data.get("reasoning"):
        html += f'<div class="reasoning"><h3>{t["reasoning"]}</h3>{format_markdown(data["reasoning"])}</div>'
    html += _list_block(
        data.get("conflicts_with_user_principles"), "conflicts", f"⚠️ {t['conflicts']}"
    )
    return html + "</div>"


def format_limitations(items: Any, t: dict[str, str]) -> str:
    if not isinstance(items, list) or not items:
        return ""
    rows = "".join(f"<li>{format_markdown(item)}</li>" for item in items)
    return (
        f'<div class="section limitations-section"><h2>⚠️ {t["limitations"]}</h2>'
        f'<ul class="limitations-list">{rows}</ul></div>'
    )


def format_verification(report: dict[str, Any], t: dict[str, str]) -> str:
    """Ambient verification metadata plus refusal and unverified-quote warnings."""
    ambient = report.get("__ambient")
    refusal = report.get("__refusal")
    boundary = report.get("__verification")
    unverified = boundary.get("unverified_quotes") if isinstance(boundary, dict) else None
    refused = isinstance(refusal, dict) and refusal.get("detected")

    if not isinstance(ambient, dict) and not refused and not unverified:
        return ""

    html = f'<div class="section verification"><h2>{t["verification"]}</h2>'
    if refused:
        html += f'<p class="warning"><strong>{t["refusal_detected"]}:</strong> {_e(refusal.get("matched") or "")}</p>'

    if isinstance(ambient, dict):
        if ambient.get("verified") is not None:
            ok = bool(ambient["verified"])
            html += (
                f'<p><strong>{t["verified"]}:</strong> '
                f'<span class="verified-badge {"" if ok else "false"}">{t["yes"] if ok else t["no"]}</span></p>'
            )
        if ambient.get("verified_by_validators"):
            html += f"<p><strong>{t['validators']}:</strong> {_e(ambient['verified_by_validators'])}</p>"
        if ambient.get("model"):
            html += f"<p><strong>{t['model']}:</strong> {_e(ambient['model'])}</p>"
        if ambient.get("merkle_root"):
            html += f"<p><strong>{t['merkle_root']}:</strong> <code>{_e(ambient['merkle_root'])}</code></p>"
        if ambient.get("request_id"):
            html += f"<p><strong>{t['request_id']}:</strong> <code>{_e(ambient['request_id'])}</code></p>"

        auction = ambient.get("auction")
        if isinstance(auction, dict):
            html += f"<h3>{t['auction']}</h3>"
            if auction.get("status"):
                html += f"<p><strong>{t['status']}:</strong> {_e(auction['status'])}</p>"
            bids = auction.get("bids")
            if isinstance(bids, dict):
                if bids.get("placed") is not None:
                    html += f"<p><strong>{t['bids_placed']}:</strong> {_e(bids['placed'])}</p>"
                if bids.get("revealed") is not None:
                    html += f"<p><strong>{t['bids_revealed']}:</strong> {_e(bids['revealed'])}</p>"
            if auction.get("address"):
                html += f"<p><strong>{t['auction_address']}:</strong> {_link(auction['address'])}</p>"

        if ambient.get("bidder"):
            html += f"<p><strong>{t['bidder']}:</strong> {_link(ambient['bidder'])}</p>"

    if unverified:
        rows = "".join(f"<li>{_e(q)}</li>" for q in unverified)
        html += f'<h3>{t["unverified_quotes"]}</h3><ul class="unverified-quotes">{rows}</ul>'

    return html + "</div>"


# =============================================================================
# Pages
# =============================================================================

STYLES = """
* { margin: 0; padding: 0; box-sizing: border-box; }
body {
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
  line-height: 1.6; color: #333; background: #f5f5f5; padding: 20px;
}
.container {
  max-width: 1200px; margin: 0 auto; background: white; padding: 30px;
  border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1);
}
header { border-bottom: 3px solid #007bff; padding-bottom: 20px; margin-bottom: 30px; }
.lang-switcher { float: right; margin-top: 10px; }
.lang-switcher a {
  display: inline-block; padding: 6px 12px; margin-left: 8px; background: #007bff;
  color: white; text-decoration: none; border-radius: 4px; font-weight: 600;
}
.lang-switcher a.active, .lang-switcher a:hover { background: #0056b3; }
h1 { color: #007bff; font-size: 2.2em; margin-bottom: 10px; }
h2 {
  color: #0056b3; font-size: 1.6em; margin: 30px 0 15px;
  border-bottom: 2px solid #e9ecef; padding-bottom: 10px;
}
h3 { color: #495057; font-size: 1.25em; margin: 20px 0 10px; }
ul, ol { margin-left: 24px; }
.report-list { list-style: none; margin-left: 0; }
.report-list li {
  background: #f8f9fa; margin-bottom: 15px; padding: 20px;
  border-radius: 6px; border-left: 4px solid #007bff;
}
.report-list a { color: #007bff; text-decoration: none; font-size: 1.2em; }
.report-meta { color: #6c757d; font-size: 0.9em; margin-top: 5px; }
.section { margin-bottom: 40px; padding: 20px; background: #f8f9fa; border-radius: 6px; }
.badge {
  display: inline-block; padding: 4px 12px; border-radius: 12px; font-size: 0.85em;
  font-weight: 600; background: #007bff; color: white;
}
.badge-open, .badge-active { background: #28a745; }
.badge-closed { background: #dc3545; }
.badge-executed { background: #6c757d; }
.votes-table { width: 100%; border-collapse: collapse; margin-top: 15px; background: white; }
.votes-table th, .votes-table td { padding: 12px; text-align: left; border-bottom: 1px solid #dee2e6; }
.votes-table th { background: #007bff; color: white; }
.vote-type { padding: 4px 10px; border-radius: 4px; font-weight: 600; text-transform: uppercase; }
.vote-type-for { background: #d4edda; color: #155724; }
.vote-type-against { background: #f8d7da; color: #721c24; }
.vote-type-abstain { background: #fff3cd; color: #856404; }
.progress-bar { background: #e9ecef; border-radius: 4px; overflow: hidden; min-width: 120px; }
.progress-fill { background: #007bff; color: white; font-size: 0.8em; padding: 2px 6px; white-space: nowrap; }
blockquote { border-left: 4px solid #adb5bd; padding: 8px 16px; margin: 10px 0; background: white; }
pre { background: #272822; color: #f8f8f2; padding: 12px; border-radius: 4px; overflow-x: auto; }
.highlight { background: #fff3cd; padding: 2px 8px; border-radius: 4px; font-weight: 600; }
.verified-badge { color: #155724; font-weight: 600; }
.verified-badge.false { color: #721c24; }
.warning { color: #721c24; }
.back-link { color: #007bff; text-decoration: none; display: inline-block; margin-bottom: 20px; }
.error-page { text-align: center; }
"""


def build_lang_switcher(path: str, query: str, lang: str) -> str:
    """EN/RU links to the current page with only ``lang`` replaced."""
    params = [(k, v) for k, v in parse_qsl(query, keep_blank_values=True) if k != "lang"]
    links = []
    for code in ("en", "ru"):
        href = f"{path}?{urlencode(params + [('lang', code)])}"
        active = "active" if code == lang else ""
        links.append(f'<a href="{_e(href)}" class="{active}">{code.upper()}</a>')
    return f'<div class="lang-switcher">{"".join(links)}</div>'


def _page(lang: str, title: str, body: str, container_class: str = "container") -> str:
    return (
        f'<!DOCTYPE html><html lang="{lang}"><head><meta charset="UTF-8">'
        f'<meta name="viewport" content="width=device-width, initial-scale=1.0">'
        f"<title>{title}</title><style>{STYLES}</style></head>"
        f'<body><div class="{container_class}">{body}</div></body></html>'
    )


def render_index_page(files: list[dict[str, Any]], lang: str, current_url: str) -> str:
    t = get_strings(lang)
    parts = urlsplit(current_url)

    items = []
    for entry in files:
        name = entry["name"]
        meta = []
        if entry.get("mtime"):
            meta.append(f"{t['modified']}: {_e(format_datetime(entry['mtime']))}")
        if entry.get("size") is not None:
            meta.append(f"{t['size']}: {entry['size'] / 1024:.2f} KB")
        items.append(
            f'<li><a href="/report/{quote(name)}?lang={lang}">{_e(name)}</a>'
            f'<div class="report-meta">{" | ".join(meta)}</div></li>'
        )

    main = f'<ul class="report-list">{"".join(items)}</ul>' if items else f"<p>{t['no_reports']}</p>"
    body = (
        f"<header>{build_lang_switcher(parts.path or '/', parts.query, lang)}"
        f"<h1>📊 {t['page_title']}</h1><p>{t['reports_count']}: {len(files)}</p></header>"
        f"<main>{main}</main>"
    )
    return _page(lang, t["page_title"], body)


def render_report_page(report: dict[str, Any], filename: str, lang: str, current_url: str) -> str:
    t = get_strings(lang)
    parts = urlsplit(current_url)
    extracted = report.get("extracted") if isinstance(report.get("extracted"), dict) else {}
    title = _e(extracted.get("title") or t["report_title"])

    body = (
        f'<a href="/?lang={lang}" class="back-link">← {t["back_to_list"]}</a>'
        f"<header>{build_lang_switcher(parts.path, parts.query, lang)}"
        f'<h1>{title}</h1><p class="report-meta">{t["file"]}: {_e(filename)}</p></header>'
        "<article>"
        + format_input(report.get("input"), t)
        + format_extracted(report.get("extracted"), t)
        + format_analysis(report.get("analysis"), t)
        + format_recommendation(report.get("recommendation"), t)
        + format_limitations(report.get("limitations"), t)
        + format_verification(report, t)
        + "</article>"
    )
    return _page(lang, f"{title} - {t['report_title']}", body)


def render_not_found_page(lang: str, current_url: str) -> str:
    t = get_strings(lang)
    parts = urlsplit(current_url)
    body = (
        f"{build_lang_switcher(parts.path or '/', parts.query, lang)}"
        f"<h1>404</h1><p>{t['not_found']}</p>"
        f'<a href="/?lang={lang}" class="back-link">← {t["back_to_home"]}</a>'
    )
    return _page(lang, f"404 - {t['not_found']}", body, container_class="container error-page")
