"""
LLM service for governance report generation.

Talks to OpenAI-compatible chat completion endpoints (Ambient, Nous).
Non-streaming calls go through the OpenAI SDK; streaming calls read the
server-sent event stream directly so that Ambient's auction and verification
events can be captured next to the completion chunks.
"""

import json
import re
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import openai
import requests
import structlog
from openai import NOT_GIVEN, OpenAI
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from gov_ai.config import Settings, get_settings
from gov_ai.exceptions import (
    ConfigurationError,
    InvalidModelOutputError,
    LLMError,
    ModelRefusalError,
)
from gov_ai.models.proposal import ExtractedRecord
from gov_ai.models.report import AmbientMeta
from gov_ai.services.lifecycle import LifecycleAggregator, event_name_of
from gov_ai.services.postprocess import detect_refusal
from gov_ai.services.prompt_builder import build_messages, build_prompt, load_report_schema
from gov_ai.services.sse import PartialJSONAccumulator, iter_sse

logger = structlog.get_logger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


# =============================================================================
# Providers
# =============================================================================


@dataclass
class ProviderConfig:
    """Endpoint and credentials of one OpenAI-compatible provider."""

    name: str
    api_url: str
    api_key: str
    key_env: str
    model: str = ""
    max_tokens: int | None = None

    @property
    def base_url(self) -> str:
        """SDK base URL: the endpoint without its ``/chat/completions`` suffix."""
        url = self.api_url.rstrip("/")
        suffix = "/chat/completions"
        return url[: -len(suffix)] if url.endswith(suffix) else url


def ambient_provider(settings: Settings | None = None) -> ProviderConfig:
    settings = settings or get_settings()
    return ProviderConfig(
        name="ambient",
        api_url=settings.ambient_api_url,
        api_key=settings.ambient_api_key,
        key_env="AMBIENT_API_KEY",
        model=settings.ambient_model,
        max_tokens=settings.ambient_max_tokens,
    )


def nous_provider(settings: Settings | None = None) -> ProviderConfig:
    settings = settings or get_settings()
    return ProviderConfig(
        name="nous",
        api_url=settings.nous_api_url,
        api_key=settings.nous_api_key,
        key_env="NOUS_API_KEY",
        model=settings.nous_model,
        max_tokens=settings.nous_max_tokens,
    )


# =============================================================================
# Results
# =============================================================================


@dataclass
class CompletionResult:
    """Raw outcome of one chat completion call."""

    content: str
    latency_ms: int
    usage: dict[str, Any] | None = None
    status_code: int | None = None
    streamed: bool = False
    json_complete: bool | None = None
    ambient: AmbientMeta = field(default_factory=AmbientMeta)


@dataclass
class AnalysisResult:
    """Parsed report plus the call metadata it came from."""

    report: dict[str, Any]
    content: str
    latency_ms: int
    usage: dict[str, Any] | None = None
    ambient: AmbientMeta = field(default_factory=AmbientMeta)


def is_retryable_error(error: BaseException) -> bool:
    """Transport failures, 5xx and 429 are worth another attempt."""
    if not isinstance(error, LLMError) or isinstance(error, InvalidModelOutputError):
        return False
    if error.status_code is None:
        return error.raw is None
    return error.status_code == 429 or error.status_code >= 500


def parse_model_json(text: str | None) -> Any:
    """
    Parse JSON out of a model reply.

    Accepts a bare JSON document, a fenced ```json block or, failing both,
    the outermost ``{...}`` span. Returns None when nothing parses.
    """
    if not text:
        return None
    stripped = text.strip()

    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    match = _FENCED_JSON_RE.search(stripped)
    if match:
        try:
            return json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            pass

    start = stripped.find("{")
    end = stripped.rfind("}") + 1
    if start != -1 and end > start:
        try:
            return json.loads(stripped[start:end])
        except json.JSONDecodeError:
            return None
    return None


class LLMService:
    """
    Chat completion client for one provider.

    Defaults to Ambient. Streaming is controlled by ``LLM_STREAM``.
    """

    def __init__(
        self,
        provider: ProviderConfig | None = None,
        session: requests.Session | None = None,
    ):
        settings = get_settings()
        self.settings = settings
        self.provider = provider or ambient_provider(settings)

        if not self.provider.api_key:
            raise ConfigurationError(
                f"{self.provider.name} client not configured. Set {self.provider.key_env}."
            )

        self.session = session or requests.Session()
        self._openai: OpenAI | None = None
        self._schema_text: str | None = None

        self.max_attempts = settings.llm_max_retries
        self.retry_wait = wait_exponential(multiplier=1, min=2, max=10)

    @property
    def openai(self) -> OpenAI:
        if self._openai is None:
            self._openai = OpenAI(
                api_key=self.provider.api_key,
                base_url=self.provider.base_url,
                timeout=self.settings.llm_timeout,
                max_retries=0,
            )
        return self._openai

    @property
    def schema_text(self) -> str:
        if self._schema_text is None:
            self._schema_text = load_report_schema(self.settings.report_schema_path)
        return self._schema_text

    # =========================================================================
    # Core LLM Calls
    # =========================================================================

    def complete_once(
        self,
        messages: list[dict[str, str]],
        stream: bool = False,
        timeout: float | None = None,
    ) -> CompletionResult:
        """Single attempt without retries."""
        if stream:
            return self._stream_completion(messages, timeout)
        return self._call_openai(messages, timeout)

    def complete(
        self,
        messages: list[dict[str, str]],
        stream: bool | None = None,
        timeout: float | None = None,
    ) -> CompletionResult:
        """Chat completion with retries on transient failures."""
        if stream is None:
            stream = self.settings.llm_stream

        retrying = Retrying(
            stop=stop_after_attempt(max(1, self.max_attempts)),
            wait=self.retry_wait,
            retry=retry_if_exception(is_retryable_error),
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retrying(self.complete_once, messages, stream=stream, timeout=timeout)

    def _log_retry(self, retry_state) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "llm_call_retry",
            provider=self.provider.name,
            attempt=retry_state.attempt_number,
            error=str(error),
        )

    def _call_openai(
        self, messages: list[dict[str, str]], timeout: float | None
    ) -> CompletionResult:
        """Non-streaming completion through the OpenAI SDK."""
        name = self.provider.name
        started = time.perf_counter()
        try:
            response = self.openai.chat.completions.create(
                model=self.provider.model or NOT_GIVEN,
                messages=messages,
                max_tokens=self.provider.max_tokens or NOT_GIVEN,
                stream=False,
                timeout=timeout or NOT_GIVEN,
            )
        except openai.APIStatusError as e:
            raise LLMError(
                f"{name}: HTTP {e.status_code}",
                status_code=e.status_code,
                raw=e.response.text[:500] if e.response is not None else None,
            ) from e
        except openai.APIConnectionError as e:
            raise LLMError(f"{name}: request failed: {e}") from e
        latency_ms = round((time.perf_counter() - started) * 1000)

        aggregator = LifecycleAggregator()
        aggregator.observe_chunk(response.model_dump())

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(f"{name}: Empty content", status_code=200, raw="")

        usage = response.usage.model_dump() if response.usage else None
        logger.info(
            "llm_completion_received",
            provider=name,
            latency_ms=latency_ms,
            content_chars=len(content),
        )
        return CompletionResult(
            content=content,
            latency_ms=latency_ms,
            usage=usage,
            status_code=200,
            ambient=aggregator.meta,
        )

    def _stream_completion(
        self, messages: list[dict[str, str]], timeout: float | None
    ) -> CompletionResult:
        """Streaming completion; collects content, usage and lifecycle events."""
        name = self.provider.name
        body: dict[str, Any] = {"messages": messages, "stream": True}
        if self.provider.model:
            body["model"] = self.provider.model
        if self.provider.max_tokens:
            body["max_tokens"] = self.provider.max_tokens

        started = time.perf_counter()
        try:
            response = self.session.post(
                self.provider.api_url,
                json=body,
                headers={
                    "Authorization": f"Bearer {self.provider.api_key}",
                    "Content-Type": "application/json",
                    "Accept": "text/event-stream",
                },
                stream=True,
                timeout=timeout or self.settings.llm_timeout,
            )
        except requests.RequestException as e:
            raise LLMError(f"{name}: request failed: {e}") from e

        with response:
            if not response.ok:
                raise LLMError(
                    f"{name}: HTTP {response.status_code}",
                    status_code=response.status_code,
                    raw=response.text[:500],
                )

            aggregator = LifecycleAggregator()
            accumulator = PartialJSONAccumulator()
            parts: list[str] = []
            usage: dict[str, Any] | None = None

            try:
                for sse in iter_sse(response.iter_lines()):
                    if sse.is_done:
                        break
                    try:
                        payload = sse.json()
                    except ValueError:
                        logger.debug("sse_payload_not_json", sse_event=sse.event)
                        continue

                    event_name = event_name_of(sse.event, payload)
                    if event_name:
                        aggregator.observe_event(event_name, payload)
                        continue
                    if not isinstance(payload, dict):
                        continue

                    if payload.get("error") and not payload.get("choices"):
                        raise LLMError(
                            f"{name}: stream error: {payload['error']}",
                            status_code=response.status_code,
                            raw=json.dumps(payload)[:500],
                        )

                    aggregator.observe_chunk(payload)
                    if isinstance(payload.get("usage"), dict):
                        usage = payload["usage"]

                    for choice in payload.get("choices") or []:
                        delta = choice.get("delta") or choice.get("message") or {}
                        text = delta.get("content")
                        if text:
                            parts.append(text)
                            accumulator.feed(text)
            except requests.RequestException as e:
                raise LLMError(f"{name}: stream interrupted: {e}") from e

        latency_ms = round((time.perf_counter() - started) * 1000)
        content = "".join(parts)
        if not content:
            raise LLMError(f"{name}: Empty content", status_code=response.status_code, raw="")

        if accumulator.started and not accumulator.complete:
            partial = accumulator.snapshot()
            logger.warning(
                "llm_stream_json_incomplete",
                provider=name,
                depth=accumulator.depth,
                partial_keys=sorted(partial) if isinstance(partial, dict) else None,
            )

        logger.info(
            "llm_stream_completed",
            provider=name,
            latency_ms=latency_ms,
            content_chars=len(content),
            json_complete=accumulator.complete,
            lifecycle_events=len(aggregator.meta.events),
        )
        return CompletionResult(
            content=content,
            latency_ms=latency_ms,
            usage=usage,
            status_code=response.status_code,
            streamed=True,
            json_complete=accumulator.complete,
            ambient=aggregator.meta,
        )

    # =========================================================================
    # Report Analysis
    # =========================================================================

    def analyze(
        self,
        url: str,
        extracted: ExtractedRecord | dict[str, Any],
        principles: Any,
        stream: bool | None = None,
    ) -> AnalysisResult:
        """
        Generate a report for one proposal.

        Raises ModelRefusalError when the model declines, and
        InvalidModelOutputError when the reply is not a JSON object.
        """
        prompt = build_prompt(url, extracted, principles, schema_text=self.schema_text)
        result = self.complete(build_messages(prompt), stream=stream)

        report = parse_model_json(result.content)
        if not isinstance(report, dict):
            refusal = detect_refusal(result.content)
            if refusal.detected:
                logger.warning("model_refused", provider=self.provider.name, matched=refusal.matched)
                raise ModelRefusalError(
                    f"Model refused to produce a report: {refusal.matched}",
                    raw=result.content[:500],
                )
            logger.error("model_returned_non_json", raw=result.content[:500])
            raise InvalidModelOutputError("Invalid JSON from model", raw=result.content[:500])

        return AnalysisResult(
            report=report,
            content=result.content,
            latency_ms=result.latency_ms,
            usage=result.usage,
            ambient=result.ambient,
        )


@lru_cache()
def get_llm_service() -> LLMService:
    """Get cached LLM service instance."""
    return LLMService()
