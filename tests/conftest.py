"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import asyncio

import pytest

from silverhouse_viewer.mirror import LocalMirror
from silverhouse_viewer.remote import RemoteErrorKind, RemoteResult


class DummyRemote:
    """In-memory stand-in for RemoteStore.

    Set `reachable = False` to simulate an outage, or assign an
    asyncio.Event to `read_gate` / `write_gate` to hold operations until the
    test releases them.
    """

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.reachable = True
        self.reads: list[str] = []
        self.writes: list[tuple[str, str]] = []
        self.failed_writes = 0
        self.read_gate: asyncio.Event | None = None
        self.write_gate: asyncio.Event | None = None

    async def fetch(self, remote_path: str) -> RemoteResult:
        self.reads.append(remote_path)
        if self.read_gate is not None:
            await self.read_gate.wait()
        if not self.reachable:
            return RemoteResult(error=RemoteErrorKind.TRANSIENT, detail="unreachable")
        if remote_path not in self.files:
            return RemoteResult(error=RemoteErrorKind.NOT_FOUND, detail="550 not found")
        return RemoteResult(text=self.files[remote_path])

    async def read_file(self, remote_path: str) -> str | None:
        result = await self.fetch(remote_path)
        return result.text if result.ok else None

    async def write_file(self, remote_path: str, text: str) -> bool:
        if self.write_gate is not None:
            await self.write_gate.wait()
        if not self.reachable:
            self.failed_writes += 1
            return False
        self.files[remote_path] = text
        self.writes.append((remote_path, text))
        return True


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def remote() -> DummyRemote:
    return DummyRemote()


@pytest.fixture
def mirror(tmp_path) -> LocalMirror:
    return LocalMirror(tmp_path / "machine-ids.txt")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
