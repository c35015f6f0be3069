from __future__ import annotations

import logging
import secrets

from aiohttp import web

from .. import config, view
from .common import SESSION_COOKIE, get_state, read_payload, session_token

logger = logging.getLogger(__name__)


def _credentials_ok(username: str, password: str) -> bool:
    user_ok = secrets.compare_digest(username.encode(), config.DASHBOARD_USER.encode())
    pass_ok = secrets.compare_digest(password.encode(), config.DASHBOARD_PASS.encode())
    return user_ok and pass_ok


def _redirect(location: str) -> web.Response:
    # Returned rather than raised so cookie changes reach the client.
    return web.Response(status=302, headers={"Location": location})


async def index(request: web.Request) -> web.StreamResponse:
    raise web.HTTPFound("/login")


async def login_page(request: web.Request) -> web.StreamResponse:
    return web.Response(text=view.render_login_page(), content_type="text/html")


async def login_submit(request: web.Request) -> web.StreamResponse:
    payload = await read_payload(request)
    username = payload.get("username", "")
    password = payload.get("password", "")
    if not _credentials_ok(username, password):
        logger.warning("Failed login for user %r from %s", username, request.remote)
        return web.Response(
            text=view.render_login_page("Invalid credentials."),
            content_type="text/html",
            status=401,
        )

    state = get_state(request.app)
    token = state.new_session()
    logger.info("User %s logged in from %s", username, request.remote)
    response = _redirect("/dashboard")
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=int(state.session_ttl_s),
        httponly=True,
        samesite="Lax",
    )
    return response


async def logout(request: web.Request) -> web.StreamResponse:
    get_state(request.app).end_session(session_token(request))
    response = _redirect("/login")
    response.del_cookie(SESSION_COOKIE)
    return response
