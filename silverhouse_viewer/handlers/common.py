"""Shared handler helpers: state lookup, login guards, request payloads."""

from __future__ import annotations

import functools
import logging
from typing import Awaitable, Callable

from aiohttp import web

from ..state import APP_STATE_KEY, AppState

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sid"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def get_state(app: web.Application) -> AppState:
    """Retrieve the AppState installed by `main.build_application`."""
    return app[APP_STATE_KEY]


def session_token(request: web.Request) -> str | None:
    return request.cookies.get(SESSION_COOKIE)


def authenticated(request: web.Request) -> bool:
    """True if the request carries a live session cookie."""
    return get_state(request.app).session_valid(session_token(request))


def guard_api(func: Handler) -> Handler:
    """Reject API calls without a session with a 401 JSON body."""

    @functools.wraps(func)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        if not authenticated(request):
            return web.json_response({"error": "Unauthorized"}, status=401)
        return await func(request)

    return wrapper


def guard_page(func: Handler) -> Handler:
    """Redirect page requests without a session to the login form."""

    @functools.wraps(func)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        if not authenticated(request):
            raise web.HTTPFound("/login")
        return await func(request)

    return wrapper


async def read_payload(request: web.Request) -> dict[str, str]:
    """Return the request body as a flat dict (JSON object or form data)."""
    if request.content_type == "application/json":
        try:
            data = await request.json()
        except ValueError:
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): "" if v is None else str(v) for k, v in data.items()}
    form = await request.post()
    return {k: str(v) for k, v in form.items()}


def error_response(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)
