"""
Prompt construction for the governance report.
"""

import json
from importlib import resources
from pathlib import Path
from typing import Any

from gov_ai.models.proposal import ExtractedRecord

SYSTEM_PROMPT = "You are a governance analysis assistant. You must output ONLY valid JSON."

PROMPT_TEMPLATE = """
You are given:

URL:
{url}

EXTRACTED_DATA (may be incomplete):
{extracted}

USER_PRINCIPLES:
{principles}

TASK:
Produce a JSON report with the following rules:

- If some fields (options, results, execution details) are missing or uncertain, you MUST explicitly say "UNKNOWN".
- Do NOT guess voting options or results.
- Base your analysis ONLY on provided data.
- Be conservative and honest.
- Output ONLY valid JSON, no comments, no markdown.

Follow this JSON structure exactly:
{schema}
"""


def load_report_schema(path: Path | str | None = None) -> str:
    """Return the report schema text; the bundled schema unless ``path`` is given."""
    if path is not None:
        return Path(path).read_text(encoding="utf-8")
    return resources.files("gov_ai.data").joinpath("report.schema.json").read_text(encoding="utf-8")


def build_prompt(
    url: str,
    extracted: ExtractedRecord | dict[str, Any],
    principles: Any,
    schema_text: str | None = None,
) -> str:
    """Serialize proposal data, user principles and the report schema into one prompt."""
    if isinstance(extracted, ExtractedRecord):
        extracted = extracted.to_dict()

    return PROMPT_TEMPLATE.format(
        url=url,
        extracted=json.dumps(extracted, indent=2, ensure_ascii=False),
        principles=json.dumps(principles, indent=2, ensure_ascii=False),
        schema=schema_text if schema_text is not None else load_report_schema(),
    )


def build_messages(user_prompt: str, system_prompt: str = SYSTEM_PROMPT) -> list[dict[str, str]]:
    """Chat messages for an OpenAI-style completion request."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
