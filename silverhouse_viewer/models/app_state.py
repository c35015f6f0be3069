"""Application runtime state (stores, login sessions, background tasks)."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field

from aiohttp import web

from ..logs import LogStore
from ..machine_ids import MachineIdStore
from ..mirror import LocalMirror
from ..models.settings import Settings
from ..remote import RemoteStore

logger = logging.getLogger(__name__)

_DEFAULT_SESSION_TTL_S = 24 * 60 * 60


@dataclass
class AppState:
    """Everything a request handler needs, owned by one web.Application."""

    log_store: LogStore
    machine_ids: MachineIdStore
    session_ttl_s: float = _DEFAULT_SESSION_TTL_S

    # Login sessions (token -> monotonic expiry timestamp)
    sessions: dict[str, float] = field(default_factory=dict)
    tasks: dict[str, object] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppState":
        remote = RemoteStore(
            host=settings.FTP_HOST,
            port=settings.FTP_PORT,
            username=settings.FTP_USER,
            password=settings.FTP_PASS,
            timeout_s=settings.FTP_TIMEOUT_S,
        )
        return cls(
            log_store=LogStore(
                remote,
                logs_folder=settings.FTP_LOGS_FOLDER,
                ttl_s=settings.LOG_CACHE_TTL_S,
            ),
            machine_ids=MachineIdStore(
                LocalMirror(settings.LOCAL_MACHINE_FILE),
                remote,
                remote_path=settings.FTP_MACHINE_IDS_PATH,
                ttl_s=settings.MACHINE_IDS_CACHE_TTL_S,
            ),
            session_ttl_s=settings.SESSION_TTL_S,
        )

    def new_session(self) -> str:
        self._prune_sessions()
        token = secrets.token_urlsafe(24)
        self.sessions[token] = time.monotonic() + self.session_ttl_s
        return token

    def session_valid(self, token: str | None) -> bool:
        if not token:
            return False
        expiry = self.sessions.get(token)
        if not expiry or expiry <= time.monotonic():
            self.sessions.pop(token, None)
            return False
        return True

    def end_session(self, token: str | None) -> None:
        if token:
            self.sessions.pop(token, None)

    def _prune_sessions(self) -> None:
        now = time.monotonic()
        stale = [t for t, expiry in self.sessions.items() if expiry <= now]
        for token in stale:
            self.sessions.pop(token, None)


APP_STATE_KEY = web.AppKey("state", AppState)
