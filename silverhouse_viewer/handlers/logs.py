from __future__ import annotations

import asyncio
import csv
import logging

from aiohttp import web

from .. import view
from ..logs import resolve_period
from ..mirror import LocalMirrorError
from .common import error_response, get_state, guard_api, guard_page

logger = logging.getLogger(__name__)

_XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _period(request: web.Request) -> tuple[int, int]:
    """Year/month from ``?year=&month=`` or ``?period=YYYY-MM``; today by default."""
    year = request.query.get("year")
    month = request.query.get("month")
    period = request.query.get("period", "")
    if not (year or month) and "-" in period:
        year, month = period.split("-", 1)
    return resolve_period(year, month)


@guard_api
async def api_logs(request: web.Request) -> web.StreamResponse:
    try:
        year, month = _period(request)
    except ValueError as exc:
        return error_response(str(exc), 400)

    state = get_state(request.app)
    try:
        rows = await state.log_store.rows(year, month)
    except csv.Error:
        logger.exception("Error parsing log CSV for %04d-%02d", year, month)
        return error_response("Error reading CSV file", 500)
    return web.json_response(rows)


@guard_api
async def api_download(request: web.Request) -> web.StreamResponse:
    try:
        year, month = _period(request)
    except ValueError as exc:
        return web.Response(text=str(exc), status=400)

    state = get_state(request.app)
    text = await state.log_store.get(year, month)
    if not text:
        return web.Response(text="CSV file not found.", status=404)

    try:
        rows = view.parse_csv_rows(text)
        body = await asyncio.to_thread(view.render_workbook, rows)
    except csv.Error:
        logger.exception("Excel export error for %04d-%02d", year, month)
        return web.Response(text="Error generating Excel file.", status=500)

    filename = view.workbook_filename(year, month)
    return web.Response(
        body=body,
        content_type=_XLSX_CONTENT_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _int_query(request: web.Request, name: str, default: int) -> int:
    raw = request.query.get(name, "")
    return int(raw) if raw.isdigit() else default


@guard_page
async def dashboard(request: web.Request) -> web.StreamResponse:
    try:
        year, month = _period(request)
    except ValueError:
        year, month = resolve_period(None, None)

    state = get_state(request.app)
    rows = await state.log_store.rows(year, month)
    try:
        ids = await state.machine_ids.list_ids()
    except LocalMirrorError:
        logger.exception("Dashboard could not read machine IDs")
        return web.Response(text="Failed to read machine IDs.", status=500)

    per_page = _int_query(request, "per_page", view.DEFAULT_PAGE_SIZE)
    if per_page not in view.PAGE_SIZES:
        per_page = view.DEFAULT_PAGE_SIZE
    filters = {
        key: request.query.get(key, "")
        for key in ("search", "user", "date", "location")
    }
    page_html = view.render_dashboard(
        year,
        month,
        rows,
        filters=filters,
        page=_int_query(request, "page", 1),
        per_page=per_page,
        machine_ids=ids,
    )
    return web.Response(text=page_html, content_type="text/html")
