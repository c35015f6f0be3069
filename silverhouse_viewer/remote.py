"""FTP remote store helpers.

This module exposes a small `RemoteStore` wrapper around `ftplib.FTP` used by
the log cache and the machine-ID synchronizer. Connection settings default to
the environment-driven values in `config.settings`:

- `FTP_HOST` / `FTP_PORT`
- `FTP_USER` / `FTP_PASS`
- `FTP_TIMEOUT_S` (applies to connect and every transfer)

Every operation opens its own connection and always closes it before
returning. Failures are never raised: reads return `None` and writes return
`False`. `fetch` keeps the failure kind for callers that want to tell a
missing file apart from a network problem.
"""

from __future__ import annotations

import asyncio
import contextlib
import ftplib
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from .config import settings

logger = logging.getLogger(__name__)


class RemoteErrorKind(Enum):
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class RemoteResult:
    text: str | None = None
    error: RemoteErrorKind | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None


def _classify(exc: BaseException) -> RemoteErrorKind:
    # 550: requested action not taken (file unavailable / not found)
    if isinstance(exc, ftplib.error_perm) and str(exc).startswith("550"):
        return RemoteErrorKind.NOT_FOUND
    return RemoteErrorKind.TRANSIENT


def _parent_dir(remote_path: str) -> str:
    parent = remote_path.rsplit("/", 1)[0] if "/" in remote_path else ""
    return parent or "/"


class RemoteStore:
    """Minimal wrapper around `ftplib.FTP`.

    The store keeps no connection between calls: create an instance once and
    call `read_file` / `write_file` as often as needed.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout_s: Optional[float] = None,
        encoding: str = "utf-8",
    ) -> None:
        self.host = host or settings.FTP_HOST
        self.port = port or settings.FTP_PORT
        self.username = username or settings.FTP_USER
        self.password = password if password is not None else settings.FTP_PASS
        self.timeout_s = timeout_s or settings.FTP_TIMEOUT_S
        self.encoding = encoding

    def __repr__(self) -> str:
        return f"RemoteStore(ftp://{self.username}@{self.host}:{self.port})"

    @contextlib.contextmanager
    def _session(self) -> Iterator[ftplib.FTP]:
        """Open a logged-in FTP session scoped to one operation."""
        with ftplib.FTP(timeout=self.timeout_s, encoding=self.encoding) as ftp:
            ftp.connect(self.host, self.port)
            ftp.login(self.username, self.password)
            yield ftp

    def _ensure_dir(self, ftp: ftplib.FTP, remote_dir: str) -> None:
        """Create `remote_dir` and any missing parents."""
        if remote_dir in ("", "/"):
            return
        current = ""
        for part in remote_dir.strip("/").split("/"):
            current = f"{current}/{part}"
            try:
                ftp.cwd(current)
            except ftplib.error_perm:
                ftp.mkd(current)
        ftp.cwd("/")

    def fetch_sync(self, remote_path: str) -> RemoteResult:
        buf = io.BytesIO()
        try:
            with self._session() as ftp:
                ftp.retrbinary(f"RETR {remote_path}", buf.write)
        except ftplib.all_errors as exc:
            kind = _classify(exc)
            logger.debug("FTP read %s failed (%s): %s", remote_path, kind.value, exc)
            return RemoteResult(error=kind, detail=str(exc))
        try:
            text = buf.getvalue().decode(self.encoding)
        except UnicodeDecodeError as exc:
            logger.warning("FTP read %s returned undecodable data: %s", remote_path, exc)
            return RemoteResult(error=RemoteErrorKind.TRANSIENT, detail=str(exc))
        return RemoteResult(text=text)

    def write_sync(self, remote_path: str, text: str) -> bool:
        payload = io.BytesIO(text.encode(self.encoding))
        try:
            with self._session() as ftp:
                self._ensure_dir(ftp, _parent_dir(remote_path))
                ftp.storbinary(f"STOR {remote_path}", payload)
        except ftplib.all_errors as exc:
            logger.error("FTP write %s failed: %s", remote_path, exc)
            return False
        return True

    def list_sync(self, remote_dir: str = "/") -> list[str] | None:
        try:
            with self._session() as ftp:
                return ftp.nlst(remote_dir)
        except ftplib.all_errors as exc:
            logger.debug("FTP list %s failed: %s", remote_dir, exc)
            return None

    async def fetch(self, remote_path: str) -> RemoteResult:
        """Download `remote_path`, keeping the failure kind."""
        return await asyncio.to_thread(self.fetch_sync, remote_path)

    async def read_file(self, remote_path: str) -> str | None:
        """Download `remote_path` as text, or None if it could not be read.

        A missing file and an unreachable server look the same here.
        """
        result = await self.fetch(remote_path)
        return result.text if result.ok else None

    async def write_file(self, remote_path: str, text: str) -> bool:
        """Upload `text` to `remote_path`, creating parent directories."""
        return await asyncio.to_thread(self.write_sync, remote_path, text)

    async def list_dir(self, remote_dir: str = "/") -> list[str] | None:
        return await asyncio.to_thread(self.list_sync, remote_dir)
