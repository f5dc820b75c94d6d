"""
gov-ai: LLM risk reports for DAO governance proposals

Fetches proposals from Snapshot, Tally or plain web pages, asks an
OpenAI-compatible model (Ambient by default) for a structured JSON report
measured against the user's principles, and serves the results over a small
job API and an HTML viewer.
"""

__version__ = "0.1.0"

from gov_ai.config import get_settings

__all__ = ["get_settings", "__version__"]
