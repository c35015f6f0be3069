"""Machine-ID allowlist kept in sync between memory, a local file and FTP.

Reads are served from memory or the local mirror and never wait on FTP; a
stale read schedules a background refresh from the remote copy. Writes go to
the local mirror before returning and are uploaded in the background.

Race policy: a local write cancels any refresh that is still in flight and
bumps a write generation, so remote content fetched before the write is
dropped instead of overwriting it. No refresh starts while the startup sync
or an upload is pending. After a failed upload the remote copy is treated as
behind: the next stale read re-uploads the local list instead of fetching.
"""

from __future__ import annotations

import asyncio
import logging

from .caching import ResourceCache
from .mirror import LocalMirror, LocalMirrorError, format_ids, parse_ids
from .models.machine_ids import MachineIdOutcome
from .remote import RemoteErrorKind, RemoteStore

logger = logging.getLogger(__name__)

CACHE_KEY = "machine-ids"
_TASK_REFRESH = "machine_ids_refresh"
_TASK_UPLOAD = "machine_ids_upload"
_SHUTDOWN_UPLOAD_WAIT_S = 30.0


def _dedupe(ids: list[str]) -> list[str]:
    """Drop repeated IDs, keeping the first occurrence."""
    return list(dict.fromkeys(ids))


def _clean(machine_id: str | None) -> str | None:
    value = (machine_id or "").strip()
    if not value or "\n" in value or "\r" in value:
        return None
    return value


class MachineIdStore:
    """Owns the machine-ID cache and its local/remote synchronization."""

    def __init__(
        self,
        mirror: LocalMirror,
        remote: RemoteStore,
        remote_path: str = "/MachineIds.txt",
        ttl_s: float = 60.0,
    ) -> None:
        self.mirror = mirror
        self.remote = remote
        self.remote_path = remote_path
        self.cache: ResourceCache[tuple[str, ...]] = ResourceCache(ttl_s)
        self.tasks: dict[str, asyncio.Task] = {}
        self._generation = 0
        self._pending_upload: str | None = None
        self._startup_running = False
        # Set when the last upload failed; the local list is ahead of FTP
        self.remote_behind = False

    # -- reads -------------------------------------------------------------

    async def startup_sync(self) -> bool:
        """Pull the remote list once at boot.

        Remote content replaces the local mirror. When the remote file is
        missing or unreachable, or local changes have not reached FTP yet, the
        local mirror is kept. Returns True if the remote copy was applied.
        """
        generation = self._generation
        self._startup_running = True
        try:
            result = await self.remote.fetch(self.remote_path)
        finally:
            self._startup_running = False
        self.cache.record_fetch(result.ok)
        if result.ok and generation == self._generation and not self.remote_behind:
            ids = _dedupe(parse_ids(result.text))
            self.mirror.write_all(ids)
            self.cache.invalidate_and_set(CACHE_KEY, tuple(ids))
            logger.info("Machine IDs synced from FTP -> local (%d entries)", len(ids))
            return True

        if result.ok:
            logger.info("Startup machine ID sync superseded by local changes")
            return False
        ids = self._load_local()
        if result.error is RemoteErrorKind.NOT_FOUND:
            logger.info(
                "No %s on FTP, using local file (%d entries)", self.remote_path, len(ids)
            )
        else:
            logger.warning(
                "Could not sync machine IDs from FTP, using local file: %s",
                result.detail,
            )
        return False

    async def list_ids(self) -> list[str]:
        """Current machine IDs, without waiting on the remote store."""
        entry = self.cache.get_fresh(CACHE_KEY)
        if entry is not None:
            return list(entry.value)
        ids = self._load_local()
        self._schedule_refresh(ids)
        return ids

    def _load_local(self) -> list[str]:
        ids = _dedupe(self.mirror.read_all())
        self.cache.invalidate_and_set(CACHE_KEY, tuple(ids))
        return ids

    def _current_ids(self) -> list[str]:
        entry = self.cache.peek(CACHE_KEY)
        if entry is not None and entry.is_fresh(self.cache.clock()):
            return list(entry.value)
        return self._load_local()

    # -- writes ------------------------------------------------------------

    async def add(self, machine_id: str) -> MachineIdOutcome:
        value = _clean(machine_id)
        if value is None:
            return MachineIdOutcome.INVALID
        ids = self._current_ids()
        if value in ids:
            return MachineIdOutcome.DUPLICATE
        self._persist([*ids, value])
        logger.info("Added machine ID %s", value)
        return MachineIdOutcome.OK

    async def edit(self, old_id: str, new_id: str) -> MachineIdOutcome:
        old_value = _clean(old_id)
        new_value = _clean(new_id)
        if old_value is None or new_value is None:
            return MachineIdOutcome.INVALID
        ids = self._current_ids()
        if old_value not in ids:
            return MachineIdOutcome.ENTRY_NOT_FOUND
        if new_value != old_value and new_value in ids:
            return MachineIdOutcome.DUPLICATE
        updated = list(ids)
        updated[updated.index(old_value)] = new_value
        self._persist(updated)
        logger.info("Renamed machine ID %s -> %s", old_value, new_value)
        return MachineIdOutcome.OK

    async def delete(self, machine_id: str) -> MachineIdOutcome:
        value = _clean(machine_id)
        if value is None:
            return MachineIdOutcome.INVALID
        ids = self._current_ids()
        self._persist([x for x in ids if x != value])
        logger.info("Deleted machine ID %s", value)
        return MachineIdOutcome.OK

    def _persist(self, ids: list[str]) -> None:
        # Raises LocalMirrorError before anything else changes.
        self.mirror.write_all(ids)
        self._generation += 1
        self._cancel(_TASK_REFRESH)
        self.cache.invalidate_and_set(CACHE_KEY, tuple(ids))
        self._schedule_upload(format_ids(ids))

    # -- background tasks --------------------------------------------------

    def _running(self, name: str) -> bool:
        task = self.tasks.get(name)
        return isinstance(task, asyncio.Task) and not task.done()

    def _cancel(self, name: str) -> None:
        task = self.tasks.get(name)
        if isinstance(task, asyncio.Task) and not task.done():
            task.cancel()
            logger.debug("Cancelled %s", name)

    def _schedule_refresh(self, ids: list[str]) -> None:
        if self._startup_running:
            return
        if self._running(_TASK_REFRESH) or self._running(_TASK_UPLOAD):
            return
        if self.remote_behind:
            logger.info("FTP machine IDs are behind the local file; re-uploading")
            self._schedule_upload(format_ids(ids))
            return
        self.tasks[_TASK_REFRESH] = asyncio.create_task(self._refresh_from_remote())

    def _schedule_upload(self, content: str) -> None:
        self._pending_upload = content
        if self._running(_TASK_UPLOAD):
            return
        self.tasks[_TASK_UPLOAD] = asyncio.create_task(self._upload_loop())

    async def _refresh_from_remote(self) -> None:
        generation = self._generation
        try:
            result = await self.remote.fetch(self.remote_path)
            self.cache.record_fetch(result.ok)
            if not result.ok:
                logger.debug("Background machine ID refresh got nothing: %s", result.detail)
                return
            if generation != self._generation or self.remote_behind:
                logger.info("Dropping machine ID refresh superseded by a local write")
                return
            ids = _dedupe(parse_ids(result.text))
            self.mirror.write_all(ids)
            self.cache.invalidate_and_set(CACHE_KEY, tuple(ids))
            logger.debug("Machine IDs refreshed from FTP in background")
        except asyncio.CancelledError:
            raise
        except LocalMirrorError:
            logger.exception("Background refresh could not update the local mirror")
        except Exception:
            logger.exception("Background machine ID refresh failed")

    async def _upload_loop(self) -> None:
        # Uploads run one at a time; only the newest pending content is sent.
        while self._pending_upload is not None:
            content = self._pending_upload
            self._pending_upload = None
            try:
                ok = await self.remote.write_file(self.remote_path, content)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Machine ID upload crashed")
                ok = False
            self.remote_behind = not ok
            if ok:
                logger.debug("Machine IDs uploaded to FTP")
            else:
                logger.warning(
                    "Failed to upload machine IDs to FTP (will keep local copy)"
                )

    async def wait_idle(self) -> None:
        """Wait until no background refresh or upload is running."""
        while True:
            pending = [t for t in self.tasks.values() if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Stop the refresh and give a pending upload a chance to finish."""
        self._cancel(_TASK_REFRESH)
        upload = self.tasks.get(_TASK_UPLOAD)
        if isinstance(upload, asyncio.Task) and not upload.done():
            try:
                await asyncio.wait_for(upload, timeout=_SHUTDOWN_UPLOAD_WAIT_S)
            except asyncio.TimeoutError:
                logger.warning("Machine ID upload did not finish before shutdown")
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()
