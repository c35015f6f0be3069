"""Machine-ID endpoints.

Local mirror failures are the only hard errors here; FTP problems are
handled in the background by `MachineIdStore`.
"""

from __future__ import annotations

import logging

from aiohttp import web

from ..mirror import LocalMirrorError
from ..models.machine_ids import MachineIdOutcome
from .common import error_response, get_state, guard_api, read_payload

logger = logging.getLogger(__name__)

_OUTCOME_ERRORS: dict[MachineIdOutcome, tuple[str, int]] = {
    MachineIdOutcome.DUPLICATE: ("ID already exists", 400),
    MachineIdOutcome.ENTRY_NOT_FOUND: ("ID not found", 404),
    MachineIdOutcome.INVALID: ("Invalid ID", 400),
}


def _outcome_response(outcome: MachineIdOutcome) -> web.Response:
    if outcome.ok:
        return web.json_response({"success": True})
    message, status = _OUTCOME_ERRORS[outcome]
    return error_response(message, status)


@guard_api
async def list_machines(request: web.Request) -> web.StreamResponse:
    try:
        ids = await get_state(request.app).machine_ids.list_ids()
    except LocalMirrorError:
        logger.exception("Get machines error")
        return web.json_response([], status=500)
    return web.json_response(ids)


@guard_api
async def add_machine(request: web.Request) -> web.StreamResponse:
    payload = await read_payload(request)
    machine_id = payload.get("id", "")
    if not machine_id.strip():
        return error_response("Missing ID", 400)
    try:
        outcome = await get_state(request.app).machine_ids.add(machine_id)
    except LocalMirrorError:
        logger.exception("Add machine error")
        return error_response("Failed to add ID", 500)
    return _outcome_response(outcome)


@guard_api
async def edit_machine(request: web.Request) -> web.StreamResponse:
    payload = await read_payload(request)
    old_id = payload.get("oldID", "")
    new_id = payload.get("newID", "")
    if not old_id.strip() or not new_id.strip():
        return error_response("Missing parameters", 400)
    try:
        outcome = await get_state(request.app).machine_ids.edit(old_id, new_id)
    except LocalMirrorError:
        logger.exception("Edit machine error")
        return error_response("Failed to edit ID", 500)
    if outcome is MachineIdOutcome.DUPLICATE:
        return error_response("New ID already exists", 400)
    return _outcome_response(outcome)


@guard_api
async def delete_machine(request: web.Request) -> web.StreamResponse:
    payload = await read_payload(request)
    machine_id = payload.get("id", "")
    if not machine_id.strip():
        return error_response("Missing ID", 400)
    try:
        outcome = await get_state(request.app).machine_ids.delete(machine_id)
    except LocalMirrorError:
        logger.exception("Delete machine error")
        return error_response("Failed to delete ID", 500)
    return _outcome_response(outcome)
