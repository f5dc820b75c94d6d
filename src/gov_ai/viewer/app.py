"""
Report viewer application.

Serves the JSON reports in ``REPORTS_DIR`` as HTML pages, newest first.
"""

import json
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gov_ai import __version__
from gov_ai.config import get_settings
from gov_ai.services.report_store import ReportStore, is_safe_filename
from gov_ai.viewer.i18n import resolve_lang
from gov_ai.viewer.render import render_index_page, render_not_found_page, render_report_page

logger = structlog.get_logger(__name__)


def _current_url(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def create_viewer_app(reports_dir: Path | str | None = None) -> FastAPI:
    """Create the viewer application for one reports directory."""
    settings = get_settings()
    store = ReportStore(reports_dir or settings.reports_dir)

    app = FastAPI(
        title="gov-ai report viewer",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.store = store

    def not_found(request: Request, status_code: int = 404) -> HTMLResponse:
        lang = resolve_lang(request.query_params.get("lang"))
        return HTMLResponse(render_not_found_page(lang, _current_url(request)), status_code=status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> HTMLResponse:
        return not_found(request)

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        lang = resolve_lang(request.query_params.get("lang"))
        files = store.list()
        return HTMLResponse(render_index_page(files, lang, _current_url(request)))

    @app.get("/report/{filename:path}", response_class=HTMLResponse)
    async def report(filename: str, request: Request) -> HTMLResponse:
        if not is_safe_filename(filename):
            logger.warning("report_path_rejected", filename=filename)
            return not_found(request, status_code=400)

        try:
            data = store.load(filename)
        except (OSError, json.JSONDecodeError) as e:
            logger.info("report_unavailable", filename=filename, error=str(e))
            return not_found(request)

        if not isinstance(data, dict):
            return not_found(request)

        lang = resolve_lang(request.query_params.get("lang"))
        return HTMLResponse(render_report_page(data, filename, lang, _current_url(request)))

    logger.info("viewer_created", reports_dir=str(store.directory))
    return app
