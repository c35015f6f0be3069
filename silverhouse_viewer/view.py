"""View layer: CSV parsing, table filtering and HTML/xlsx rendering."""

from __future__ import annotations

import csv
import html
import io
import math
from urllib.parse import urlencode

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

PAGE_SIZES = (10, 25, 50)
DEFAULT_PAGE_SIZE = PAGE_SIZES[0]
_XLSX_COLUMN_WIDTH = 20


def parse_csv_rows(text: str | None) -> list[dict[str, str]]:
    """Parse CSV text with a header line into a list of row dicts."""
    if not text or not text.strip():
        return []
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    rows: list[dict[str, str]] = []
    for row in reader:
        # Short rows yield None values, long rows a None key.
        rows.append({k: (v or "") for k, v in row.items() if k is not None})
    return rows


def _find_column(keys: list[str], needles: tuple[str, ...]) -> str | None:
    for key in keys:
        lowered = key.lower()
        if any(n in lowered for n in needles):
            return key
    return None


def detect_columns(rows: list[dict[str, str]]) -> dict[str, str]:
    """Guess which columns hold the user, the timestamp and the location."""
    if not rows:
        return {"user": "", "date": "", "location": ""}
    keys = list(rows[0].keys())
    user = _find_column(keys, ("user", "name")) or keys[0]
    date = _find_column(keys, ("date", "time")) or (keys[1] if len(keys) > 1 else "")
    location = _find_column(keys, ("loc",)) or ""
    return {"user": user, "date": date, "location": location}


def _date_part(value: str | None) -> str:
    return str(value or "").split(" ")[0]


def filter_options(rows: list[dict[str, str]]) -> dict[str, list[str]]:
    """Distinct values for the user/date/location dropdowns, in first-seen order."""
    cols = detect_columns(rows)
    users = [r.get(cols["user"], "") for r in rows] if cols["user"] else []
    dates = []
    if cols["date"]:
        for r in rows:
            d = _date_part(r.get(cols["date"]))
            if "/" in d or "-" in d:
                dates.append(d)
    locations = [r.get(cols["location"], "") for r in rows] if cols["location"] else []
    return {
        "user": [v for v in dict.fromkeys(users) if v],
        "date": [v for v in dict.fromkeys(dates) if v],
        "location": [v for v in dict.fromkeys(locations) if v],
    }


def filter_rows(
    rows: list[dict[str, str]],
    search: str | None = None,
    user: str | None = None,
    date: str | None = None,
    location: str | None = None,
) -> list[dict[str, str]]:
    """Apply the dashboard filters.

    `search` is a case-insensitive substring match on any cell; the other
    filters are exact matches, with `date` compared against the date part of
    the timestamp column.
    """
    cols = detect_columns(rows)
    needle = (search or "").lower()
    out = []
    for row in rows:
        if needle and not any(needle in str(v).lower() for v in row.values()):
            continue
        if user and row.get(cols["user"]) != user:
            continue
        if date and _date_part(row.get(cols["date"])) != date:
            continue
        if location and (not cols["location"] or row.get(cols["location"]) != location):
            continue
        out.append(row)
    return out


def normalize_page(total_items: int, page: int, per_page: int) -> tuple[int, int]:
    """Clamp a 1-based page number; returns (page, total_pages)."""
    total_pages = max(1, math.ceil(total_items / per_page))
    page = max(1, min(page, total_pages))
    return page, total_pages


def paginate(
    rows: list[dict[str, str]], page: int, per_page: int = DEFAULT_PAGE_SIZE
) -> tuple[list[dict[str, str]], int, int]:
    page, total_pages = normalize_page(len(rows), page, per_page)
    start = (page - 1) * per_page
    return rows[start : start + per_page], page, total_pages


def render_workbook(rows: list[dict[str, str]]) -> bytes:
    """Render rows as an xlsx workbook with a single "Logs" sheet."""
    wb = Workbook()
    sheet = wb.active
    sheet.title = "Logs"
    if rows:
        headers = list(rows[0].keys())
        sheet.append(headers)
        for idx in range(1, len(headers) + 1):
            sheet.column_dimensions[get_column_letter(idx)].width = _XLSX_COLUMN_WIDTH
        for row in rows:
            sheet.append([row.get(h, "") for h in headers])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def workbook_filename(year: int, month: int) -> str:
    return f"login_log_{year:04d}-{month:02d}.xlsx"


# -- HTML -------------------------------------------------------------------

_PAGE = """<!doctype html>
<html lang="en"><head><meta charset="utf-8"><title>{title}</title>
<style>
body{{font-family:sans-serif;margin:2rem;background:#0f172a;color:#e2e8f0}}
table{{border-collapse:collapse;width:100%}}
th,td{{border:1px solid #334155;padding:.3rem .5rem;text-align:left}}
a{{color:#38bdf8}}
</style></head><body>
{body}
</body></html>"""


def _page(title: str, body: str) -> str:
    return _PAGE.format(title=html.escape(title), body=body)


def render_login_page(error: str | None = None) -> str:
    err = f"<p>&#10060; {html.escape(error)}</p>" if error else ""
    body = f"""<h2>SilverHouse login</h2>{err}
<form method="post" action="/login">
<input name="username" placeholder="Username" autocomplete="username">
<input name="password" type="password" placeholder="Password" autocomplete="current-password">
<button type="submit">Login</button>
</form>"""
    return _page("Login", body)


def _select(name: str, label: str, values: list[str], current: str) -> str:
    opts = [f'<option value="">Filter by {html.escape(label)}</option>']
    for v in values:
        sel = " selected" if v == current else ""
        opts.append(f'<option value="{html.escape(v)}"{sel}>{html.escape(v)}</option>')
    return f'<select name="{name}">{"".join(opts)}</select>'


def render_dashboard(
    year: int,
    month: int,
    rows: list[dict[str, str]],
    filters: dict[str, str],
    page: int,
    per_page: int,
    machine_ids: list[str],
) -> str:
    """Server-rendered log table with filters, pagination and machine IDs."""
    options = filter_options(rows)
    filtered = filter_rows(rows, **filters)
    page_rows, page, total_pages = paginate(filtered, page, per_page)

    period = f"{year:04d}-{month:02d}"
    form = (
        '<form method="get" action="/dashboard">'
        f'<input type="month" name="period" value="{period}">'
        f'<input name="search" placeholder="Search" value="{html.escape(filters.get("search") or "")}">'
        + _select("user", "User", options["user"], filters.get("user") or "")
        + _select("date", "Date", options["date"], filters.get("date") or "")
        + _select("location", "Location", options["location"], filters.get("location") or "")
        + '<select name="per_page">'
        + "".join(
            f'<option value="{n}"{" selected" if n == per_page else ""}>{n}</option>'
            for n in PAGE_SIZES
        )
        + "</select><button type=\"submit\">Apply</button></form>"
    )

    if page_rows:
        headers = list(page_rows[0].keys())
        head = "".join(f"<th>{html.escape(h)}</th>" for h in headers)
        body_rows = "".join(
            "<tr>" + "".join(f"<td>{html.escape(r.get(h, ''))}</td>" for h in headers) + "</tr>"
            for r in page_rows
        )
        table = f"<table><thead><tr>{head}</tr></thead><tbody>{body_rows}</tbody></table>"
    else:
        table = "<p>No records found.</p>"

    def _link(target: int, label: str) -> str:
        if target == page or target < 1 or target > total_pages:
            return f"<span>{label}</span>"
        query = {k: v for k, v in filters.items() if v}
        query.update({"period": period, "page": target, "per_page": per_page})
        return f'<a href="/dashboard?{html.escape(urlencode(query))}">{label}</a>'

    pager = ""
    if total_pages > 1:
        pager = " ".join(
            [
                _link(1, "First"),
                _link(page - 1, "Prev"),
                f"<span>Page {page} of {total_pages}</span>",
                _link(page + 1, "Next"),
                _link(total_pages, "Last"),
            ]
        )

    ids_html = "".join(f"<li><code>{html.escape(m)}</code></li>" for m in machine_ids)
    body = f"""<h2>Login logs {period}</h2>
<p><a href="/api/download?year={year:04d}&amp;month={month:02d}">Download .xlsx</a> | <a href="/logout">Logout</a></p>
{form}
<p>{len(filtered)} of {len(rows)} records</p>
{table}
<p>{pager}</p>
<h3>Machine IDs ({len(machine_ids)})</h3>
<ul>{ids_html}</ul>"""
    return _page(f"Logs {period}", body)
