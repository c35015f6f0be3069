"""Entrypoint for running the log viewer web server.

This module wires up the aiohttp Application, registers routes and starts
the machine-ID sync in the background.
"""

from __future__ import annotations

import asyncio
import logging

from aiohttp import web

from . import config
from .handlers import auth, logs, machines
from .logger import setup_logging
from .mirror import LocalMirrorError
from .state import APP_STATE_KEY, AppState

logger = logging.getLogger(__name__)

_TASK_STARTUP_SYNC = "startup_sync"


async def _startup_sync(state: AppState) -> None:
    try:
        await state.machine_ids.startup_sync()
    except asyncio.CancelledError:
        raise
    except LocalMirrorError:
        logger.exception("Startup machine ID sync could not use the local mirror")
    except Exception:
        logger.exception("Startup machine ID sync failed")


async def _on_startup(app: web.Application) -> None:
    state = app[APP_STATE_KEY]
    task = state.tasks.get(_TASK_STARTUP_SYNC)
    if isinstance(task, asyncio.Task) and not task.done():
        return
    state.tasks[_TASK_STARTUP_SYNC] = asyncio.create_task(_startup_sync(state))


async def _on_cleanup(app: web.Application) -> None:
    state = app[APP_STATE_KEY]
    task = state.tasks.get(_TASK_STARTUP_SYNC)
    if isinstance(task, asyncio.Task) and not task.done():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
    await state.machine_ids.aclose()


def build_application(state: AppState | None = None) -> web.Application:
    app = web.Application()
    app[APP_STATE_KEY] = state or AppState.from_settings(config.settings)

    app.router.add_get("/", auth.index)
    app.router.add_get("/login", auth.login_page)
    app.router.add_post("/login", auth.login_submit)
    app.router.add_get("/logout", auth.logout)
    app.router.add_get("/dashboard", logs.dashboard)

    app.router.add_get("/api/logs", logs.api_logs)
    app.router.add_get("/api/download", logs.api_download)

    app.router.add_get("/api/machines", machines.list_machines)
    app.router.add_post("/api/machines", machines.add_machine)
    app.router.add_post("/api/machines/edit", machines.edit_machine)
    app.router.add_post("/api/machines/delete", machines.delete_machine)

    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


def run() -> None:
    setup_logging()
    config.validate_settings()
    logger.info("Starting silverhouse_viewer")
    app = build_application()
    logger.info(
        "Serving on http://%s:%s", config.settings.HTTP_HOST, config.settings.HTTP_PORT
    )
    web.run_app(
        app,
        host=config.settings.HTTP_HOST,
        port=config.settings.HTTP_PORT,
        print=None,
    )


if __name__ == "__main__":
    run()
