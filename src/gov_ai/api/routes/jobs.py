"""
Analysis job routes.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from gov_ai.exceptions import InvalidReportNameError
from gov_ai.models.api import AnalyzeRequest, AnalyzeResponse, ErrorResponse, JobStatusResponse
from gov_ai.pipeline.job_queue import JobQueue

logger = structlog.get_logger(__name__)
router = APIRouter()


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue


@router.post("/analyze")
async def analyze(request: Request) -> Any:
    """
    Queue a proposal for analysis.

    Body: ``{"url": "...", "principles": {...}}``; principles are optional and
    default to principles.json.
    """
    raw = await request.body()
    try:
        body = await request.json() if raw.strip() else {}
    except ValueError:
        return error_response(400, "Invalid JSON body")

    url = body.get("url") if isinstance(body, dict) else None
    if not url or not isinstance(url, str):
        return error_response(400, "Missing or invalid 'url' field")

    principles = body.get("principles")
    payload = AnalyzeRequest(
        url=url,
        principles=principles if isinstance(principles, (dict, list)) else None,
    )

    job = get_job_queue(request).enqueue(payload.url, payload.principles)
    return AnalyzeResponse(job_id=job.job_id).model_dump()


@router.get("/job/")
async def missing_job_id() -> JSONResponse:
    return error_response(400, "Missing job id")


@router.get("/job/{job_id}")
async def get_job(job_id: str, request: Request) -> Any:
    """Report of a finished job; ``{"status": false}`` while it is still pending."""
    job_id = job_id.strip()
    if not job_id:
        return error_response(400, "Missing job id")

    try:
        report = get_job_queue(request).get_report(job_id)
    except InvalidReportNameError:
        return error_response(400, "Invalid job id")

    if report is None:
        return JobStatusResponse(status=False).model_dump(exclude_none=True)
    return JobStatusResponse(status=True, report=report).model_dump()
