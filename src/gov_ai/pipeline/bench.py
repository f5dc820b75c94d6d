"""
Provider benchmark: latency, reliability and cost per provider.

The proposal is fetched and the prompt built once; every provider then gets
the identical prompt ``runs`` times, each run retried with a linear backoff.
"""

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import structlog
from tenacity import RetryError, Retrying, stop_after_attempt, wait_incrementing

from gov_ai.config import Settings, get_settings
from gov_ai.exceptions import LLMError
from gov_ai.services.fetcher import ProposalFetcher, get_proposal_fetcher
from gov_ai.services.llm_service import (
    CompletionResult,
    LLMService,
    ProviderConfig,
    ambient_provider,
    nous_provider,
    parse_model_json,
)
from gov_ai.services.prompt_builder import SYSTEM_PROMPT, build_messages, build_prompt, load_report_schema
from gov_ai.services.report_store import timestamp_slug

logger = structlog.get_logger(__name__)

BENCH_VERSION = 2

SUMMARY_HEADLINE = "Web2 Micro-Challenge #4 - cost + latency reality check"

BENCH_NOTES = [
    "Same proposal URL, same extracted data, same prompt structure for both providers.",
    "Cost is estimated from usage.prompt_tokens/completion_tokens when provided by the API. "
    "If usage is missing, cost is reported as null.",
]


# =============================================================================
# Pricing
# =============================================================================


def get_provider_pricing(provider: str, settings: Settings | None = None) -> dict[str, Any]:
    """USD per 1M input/output tokens for a provider."""
    settings = settings or get_settings()
    if provider == "ambient":
        if settings.ambient_tier == "mini":
            return {
                "tier": "mini",
                "in_per_m": settings.ambient_mini_in_per_m,
                "out_per_m": settings.ambient_mini_out_per_m,
            }
        return {
            "tier": "standard",
            "in_per_m": settings.ambient_standard_in_per_m,
            "out_per_m": settings.ambient_standard_out_per_m,
        }
    if provider == "nous":
        return {
            "tier": "standard",
            "in_per_m": settings.nous_in_per_m,
            "out_per_m": settings.nous_out_per_m,
        }
    return {"tier": "unknown", "in_per_m": None, "out_per_m": None}


def estimate_cost(usage: dict[str, Any] | None, pricing: dict[str, Any]) -> dict[str, Any] | None:
    """Cost of one call from token usage; None without usage or pricing."""
    if not usage:
        return None
    in_per_m, out_per_m = pricing.get("in_per_m"), pricing.get("out_per_m")
    if in_per_m is None or out_per_m is None:
        return None

    prompt = int(usage.get("prompt_tokens") or 0)
    completion = int(usage.get("completion_tokens") or 0)
    if prompt == 0 and completion == 0:
        return None

    input_usd = prompt / 1_000_000 * in_per_m
    output_usd = completion / 1_000_000 * out_per_m
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "input_usd": input_usd,
        "output_usd": output_usd,
        "total_usd": input_usd + output_usd,
    }


# =============================================================================
# Retries
# =============================================================================


def run_with_retries(
    fn: Callable[[], Any],
    retries: int,
    base_delay_ms: int = 800,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """
    Call ``fn`` up to ``retries + 1`` times, waiting ``base_delay * attempt``
    between attempts.

    Returns ``{"ok": True, "res": ..., "attempts": [...]}`` or
    ``{"ok": False, "err": ..., "attempts": [...]}``.
    """
    attempts: list[dict[str, Any]] = []
    base = base_delay_ms / 1000

    def attempt():
        number = len(attempts) + 1
        try:
            result = fn()
        except Exception as e:
            meta = None
            if isinstance(e, LLMError):
                meta = {"status": e.status_code, "raw": e.raw}
            attempts.append({"attempt": number, "ok": False, "error": str(e), "meta": meta})
            raise
        attempts.append({"attempt": number, "ok": True})
        return result

    retrying = Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_incrementing(start=base, increment=base),
        sleep=sleep,
    )
    try:
        return {"ok": True, "res": retrying(attempt), "attempts": attempts}
    except RetryError as e:
        return {"ok": False, "err": e.last_attempt.exception(), "attempts": attempts}


def summarize_runs(provider: str, runs: list[dict[str, Any]]) -> dict[str, Any]:
    """Aggregate one provider's runs."""
    ok_runs = [r for r in runs if r.get("ok")]
    latencies = [r["latency_ms"] for r in ok_runs]
    avg_latency = round(sum(latencies) / len(latencies)) if latencies else None

    attempt_counts = [len(r.get("attempts") or []) for r in runs]

    usage_total = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
    has_usage = False
    for r in ok_runs:
        usage = r.get("usage")
        if usage and any(usage.get(k) for k in usage_total):
            has_usage = True
            for key in usage_total:
                usage_total[key] += int(usage.get(key) or 0)

    cost_total = {"total_usd": 0.0, "input_usd": 0.0, "output_usd": 0.0}
    has_cost = False
    for r in ok_runs:
        cost = r.get("cost_estimate")
        if cost and cost.get("total_usd") is not None:
            has_cost = True
            for key in cost_total:
                cost_total[key] += cost.get(key) or 0

    cost_aggregate = None
    if has_cost:
        cost_aggregate = {
            **cost_total,
            "avg_usd_per_ok_run": cost_total["total_usd"] / len(ok_runs),
        }

    return {
        "provider": provider,
        "runs_total": len(runs),
        "runs_ok": len(ok_runs),
        "runs_fail": len(runs) - len(ok_runs),
        "avg_latency_ms_ok": avg_latency,
        "total_attempts": sum(attempt_counts),
        "total_retries": sum(max(0, n - 1) for n in attempt_counts),
        "usage_aggregate": usage_total if has_usage else None,
        "cost_aggregate_usd": cost_aggregate,
    }


def _fmt(value: Any) -> str:
    return "n/a" if value is None else str(value)


def _fmt_usd(value: float | None) -> str:
    return "n/a" if value is None else f"${value:.6f}"


def format_summary(
    url: str,
    summary: list[dict[str, Any]],
    settings: Settings,
    json_path: Path | str,
) -> str:
    """Plain-text summary, suitable for pasting into chat."""
    lines = [
        SUMMARY_HEADLINE,
        f"URL: {url}",
        f"Runs per provider: {settings.bench_runs}, retries: {settings.bench_retries}, "
        f"timeout: {settings.bench_timeout_ms}ms",
        "",
    ]

    for s in summary:
        pricing = get_provider_pricing(s["provider"], settings)
        lines.append(f"{s['provider']}:")
        lines.append(f"- ok/fail: {s['runs_ok']}/{s['runs_fail']}")
        lines.append(f"- avg latency (ok): {_fmt(s['avg_latency_ms_ok'])} ms")
        lines.append(f"- total retries: {s['total_retries']}")

        usage = s["usage_aggregate"]
        if usage:
            lines.append(
                f"- usage total_tokens: {usage['total_tokens']} "
                f"(prompt {usage['prompt_tokens']}, completion {usage['completion_tokens']})"
            )
        else:
            lines.append("- usage: n/a (provider did not return token usage)")

        cost = s["cost_aggregate_usd"]
        if cost:
            lines.append(
                f"- pricing: {pricing['tier']} "
                f"(in ${pricing['in_per_m']}/1M, out ${pricing['out_per_m']}/1M)"
            )
            lines.append(
                f"- estimated cost (ok runs): total {_fmt_usd(cost['total_usd'])}, "
                f"avg {_fmt_usd(cost['avg_usd_per_ok_run'])} per ok run"
            )
        else:
            lines.append("- estimated cost: n/a (missing usage or pricing)")
        lines.append("")

    lines.append(f"Full JSON saved: {json_path}")
    return "\n".join(lines)


class BenchRunner:
    """Runs the provider benchmark for one proposal URL."""

    def __init__(
        self,
        providers: list[ProviderConfig] | None = None,
        fetcher: ProposalFetcher | None = None,
        service_factory: Callable[[ProviderConfig], LLMService] = LLMService,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = get_settings()
        self.providers = providers or [
            ambient_provider(self.settings),
            nous_provider(self.settings),
        ]
        self._fetcher = fetcher
        self.service_factory = service_factory
        self.sleep = sleep

    @property
    def fetcher(self) -> ProposalFetcher:
        if self._fetcher is None:
            self._fetcher = get_proposal_fetcher()
        return self._fetcher

    def run_provider(self, provider: ProviderConfig, user_prompt: str) -> list[dict[str, Any]]:
        service = self.service_factory(provider)
        pricing = get_provider_pricing(provider.name, self.settings)
        messages = build_messages(user_prompt)
        timeout = self.settings.bench_timeout_ms / 1000
        runs = []

        for i in range(self.settings.bench_runs):
            logger.info("bench_run", provider=provider.name, run=i + 1, total=self.settings.bench_runs)
            outcome = run_with_retries(
                lambda: service.complete_once(messages, stream=False, timeout=timeout),
                retries=self.settings.bench_retries,
                base_delay_ms=self.settings.bench_base_delay_ms,
                sleep=self.sleep,
            )

            if not outcome["ok"]:
                runs.append(
                    {
                        "ok": False,
                        "latency_ms": None,
                        "usage": None,
                        "cost_estimate": None,
                        "attempts": outcome["attempts"],
                        "json_valid": False,
                    }
                )
                continue

            result: CompletionResult = outcome["res"]
            runs.append(
                {
                    "ok": True,
                    "latency_ms": result.latency_ms,
                    "usage": result.usage,
                    "cost_estimate": estimate_cost(result.usage, pricing),
                    "attempts": outcome["attempts"],
                    "json_valid": parse_model_json(result.content) is not None,
                }
            )

        return runs

    def run(self, url: str, principles: Any) -> dict[str, Any]:
        """
        Benchmark every provider and write the JSON and text results.

        Returns the JSON document plus ``json_path``/``txt_path``/``summary_text``.
        """
        settings = self.settings
        logger.info("bench_started", url=url, providers=[p.name for p in self.providers])

        extracted = self.fetcher.fetch_and_extract(url)
        schema_text = load_report_schema(settings.report_schema_path)
        user_prompt = build_prompt(url, extracted, principles, schema_text=schema_text)

        started_at = datetime.now(timezone.utc).isoformat()
        results = {p.name: self.run_provider(p, user_prompt) for p in self.providers}
        finished_at = datetime.now(timezone.utc).isoformat()
        summary = [summarize_runs(name, runs) for name, runs in results.items()]

        models = {p.name: p.model or "not_set" for p in self.providers}
        document = {
            "bench_version": BENCH_VERSION,
            "created_at": finished_at,
            "started_at": started_at,
            "finished_at": finished_at,
            "url": url,
            "pricing": {
                "ambient": {
                    "tier": settings.ambient_tier,
                    "standard": {
                        "input_per_1m": settings.ambient_standard_in_per_m,
                        "output_per_1m": settings.ambient_standard_out_per_m,
                    },
                    "mini": {
                        "input_per_1m": settings.ambient_mini_in_per_m,
                        "output_per_1m": settings.ambient_mini_out_per_m,
                    },
                },
                "nous": {
                    "input_per_1m": settings.nous_in_per_m,
                    "output_per_1m": settings.nous_out_per_m,
                },
            },
            "constraints": {
                "runs": settings.bench_runs,
                "retries": settings.bench_retries,
                "timeout_ms": settings.bench_timeout_ms,
                "system_prompt": SYSTEM_PROMPT,
                "max_tokens": {p.name: p.max_tokens for p in self.providers},
                "models": models,
            },
            "extracted_meta": {"source_type": extracted.source_type or "unknown"},
            "results": results,
            "summary": summary,
            "notes": BENCH_NOTES,
        }

        out_dir = Path(settings.bench_results_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        stamp = timestamp_slug()
        json_path = out_dir / f"bench-result-{stamp}.json"
        txt_path = out_dir / f"bench-summary-{stamp}.txt"

        json_path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        summary_text = format_summary(url, summary, settings, json_path)
        txt_path.write_text(summary_text, encoding="utf-8")

        logger.info("bench_completed", json_path=str(json_path), txt_path=str(txt_path))
        return {
            **document,
            "json_path": json_path,
            "txt_path": txt_path,
            "summary_text": summary_text,
        }
