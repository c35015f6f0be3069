import asyncio

import pytest

from silverhouse_viewer.machine_ids import MachineIdStore
from silverhouse_viewer.mirror import LocalMirrorError
from silverhouse_viewer.models.machine_ids import MachineIdOutcome

_REMOTE = "/MachineIds.txt"


def _store(mirror, remote, clock=None, ttl_s: float = 60.0) -> MachineIdStore:
    store = MachineIdStore(mirror, remote, remote_path=_REMOTE, ttl_s=ttl_s)
    if clock is not None:
        store.cache.clock = clock
    return store


@pytest.mark.asyncio
async def test_startup_remote_wins(mirror, remote) -> None:
    mirror.write_all(["LOCAL-1"])
    remote.files[_REMOTE] = "MID-1\nMID-2\n"
    store = _store(mirror, remote)

    assert await store.startup_sync() is True
    assert mirror.read_all() == ["MID-1", "MID-2"]
    assert await store.list_ids() == ["MID-1", "MID-2"]


@pytest.mark.asyncio
async def test_startup_unreachable_keeps_local(mirror, remote) -> None:
    mirror.write_all(["MID-1", "MID-2"])
    remote.reachable = False
    store = _store(mirror, remote)

    assert await store.startup_sync() is False
    assert await store.list_ids() == ["MID-1", "MID-2"]


@pytest.mark.asyncio
async def test_startup_missing_remote_file_keeps_local(mirror, remote) -> None:
    mirror.write_all(["MID-1"])
    store = _store(mirror, remote)

    assert await store.startup_sync() is False
    assert mirror.read_all() == ["MID-1"]


@pytest.mark.asyncio
async def test_add_then_list_contains_id_once(mirror, remote) -> None:
    store = _store(mirror, remote)
    await store.startup_sync()

    assert await store.add("  MID-7 ") is MachineIdOutcome.OK
    ids = await store.list_ids()
    assert ids.count("MID-7") == 1
    assert mirror.read_all() == ["MID-7"]


@pytest.mark.asyncio
async def test_add_twice_is_duplicate(mirror, remote) -> None:
    store = _store(mirror, remote)
    assert await store.add("MID-1") is MachineIdOutcome.OK
    assert await store.add("MID-1") is MachineIdOutcome.DUPLICATE
    assert await store.list_ids() == ["MID-1"]


@pytest.mark.asyncio
async def test_add_is_case_sensitive(mirror, remote) -> None:
    store = _store(mirror, remote)
    await store.add("mid-1")
    assert await store.add("MID-1") is MachineIdOutcome.OK
    assert await store.list_ids() == ["mid-1", "MID-1"]


@pytest.mark.asyncio
async def test_add_rejects_blank_and_multiline(mirror, remote) -> None:
    store = _store(mirror, remote)
    assert await store.add("   ") is MachineIdOutcome.INVALID
    assert await store.add("a\nb") is MachineIdOutcome.INVALID
    assert mirror.read_all() == []


@pytest.mark.asyncio
async def test_add_with_remote_unreachable(mirror, remote) -> None:
    mirror.write_all(["MID-1", "MID-2"])
    remote.reachable = False
    store = _store(mirror, remote)
    await store.startup_sync()

    assert await store.add("MID-3") is MachineIdOutcome.OK
    assert mirror.read_all() == ["MID-1", "MID-2", "MID-3"]
    await store.wait_idle()
    assert remote.failed_writes == 1
    assert await store.list_ids() == ["MID-1", "MID-2", "MID-3"]


@pytest.mark.asyncio
async def test_edit_missing_entry(mirror, remote) -> None:
    mirror.write_all(["MID-1"])
    store = _store(mirror, remote)

    assert await store.edit("MID-9", "MID-2") is MachineIdOutcome.ENTRY_NOT_FOUND
    assert mirror.read_all() == ["MID-1"]
    assert remote.writes == []


@pytest.mark.asyncio
async def test_edit_to_existing_id_is_duplicate(mirror, remote) -> None:
    mirror.write_all(["MID-1", "MID-2"])
    store = _store(mirror, remote)

    assert await store.edit("MID-1", "MID-2") is MachineIdOutcome.DUPLICATE
    assert mirror.read_all() == ["MID-1", "MID-2"]


@pytest.mark.asyncio
async def test_edit_keeps_position(mirror, remote) -> None:
    mirror.write_all(["MID-1", "MID-2", "MID-3"])
    store = _store(mirror, remote)

    assert await store.edit("MID-2", "MID-20") is MachineIdOutcome.OK
    assert mirror.read_all() == ["MID-1", "MID-20", "MID-3"]
    # Renaming to itself is allowed
    assert await store.edit("MID-1", "MID-1") is MachineIdOutcome.OK


@pytest.mark.asyncio
async def test_delete_absent_is_idempotent(mirror, remote) -> None:
    mirror.write_all(["MID-1", "MID-2"])
    store = _store(mirror, remote)

    assert await store.delete("MID-9") is MachineIdOutcome.OK
    assert await store.list_ids() == ["MID-1", "MID-2"]
    assert await store.delete("MID-1") is MachineIdOutcome.OK
    assert mirror.read_all() == ["MID-2"]


@pytest.mark.asyncio
async def test_writes_are_uploaded_in_background(mirror, remote) -> None:
    store = _store(mirror, remote)
    remote.write_gate = asyncio.Event()

    await store.add("MID-1")
    # The call returned before the upload finished
    assert remote.files.get(_REMOTE) is None
    remote.write_gate.set()
    await store.wait_idle()

    assert remote.files[_REMOTE] == "MID-1"


@pytest.mark.asyncio
async def test_uploads_are_coalesced_to_latest(mirror, remote) -> None:
    store = _store(mirror, remote)
    remote.write_gate = asyncio.Event()

    await store.add("MID-1")
    await asyncio.sleep(0)
    await store.add("MID-2")
    await store.add("MID-3")
    remote.write_gate.set()
    await store.wait_idle()

    assert [text for _, text in remote.writes] == ["MID-1", "MID-1\nMID-2\nMID-3"]
    assert remote.files[_REMOTE] == "MID-1\nMID-2\nMID-3"


@pytest.mark.asyncio
async def test_list_within_ttl_does_not_touch_remote(mirror, remote, clock) -> None:
    mirror.write_all(["MID-1"])
    store = _store(mirror, remote, clock)

    await store.list_ids()
    await store.wait_idle()
    reads = len(remote.reads)
    clock.advance(30.0)
    await store.list_ids()
    await store.wait_idle()

    assert reads == 1
    assert len(remote.reads) == 1


@pytest.mark.asyncio
async def test_stale_list_returns_local_and_refreshes(mirror, remote, clock) -> None:
    mirror.write_all(["MID-1"])
    remote.files[_REMOTE] = "MID-1\nMID-REMOTE"
    remote.read_gate = asyncio.Event()
    store = _store(mirror, remote, clock)

    # Returns the local copy without waiting on the gated remote read
    assert await store.list_ids() == ["MID-1"]
    remote.read_gate.set()
    await store.wait_idle()

    assert mirror.read_all() == ["MID-1", "MID-REMOTE"]
    assert await store.list_ids() == ["MID-1", "MID-REMOTE"]

    clock.advance(60.0)
    await store.list_ids()
    await store.wait_idle()
    assert len(remote.reads) == 2


@pytest.mark.asyncio
async def test_only_one_refresh_in_flight(mirror, remote, clock) -> None:
    remote.read_gate = asyncio.Event()
    store = _store(mirror, remote, clock, ttl_s=1.0)

    await store.list_ids()
    await asyncio.sleep(0)
    clock.advance(5.0)
    await store.list_ids()
    await asyncio.sleep(0)
    remote.read_gate.set()
    await store.wait_idle()

    assert len(remote.reads) == 1


@pytest.mark.asyncio
async def test_local_write_beats_in_flight_refresh(mirror, remote) -> None:
    mirror.write_all(["MID-1"])
    remote.files[_REMOTE] = "MID-1\nMID-STALE"
    remote.read_gate = asyncio.Event()
    store = _store(mirror, remote)

    await store.list_ids()
    await asyncio.sleep(0)
    assert await store.add("MID-NEW") is MachineIdOutcome.OK
    remote.read_gate.set()
    await store.wait_idle()

    assert await store.list_ids() == ["MID-1", "MID-NEW"]
    assert mirror.read_all() == ["MID-1", "MID-NEW"]
    assert remote.files[_REMOTE] == "MID-1\nMID-NEW"


@pytest.mark.asyncio
async def test_startup_result_dropped_after_local_write(mirror, remote) -> None:
    remote.files[_REMOTE] = "MID-OLD"
    remote.read_gate = asyncio.Event()
    store = _store(mirror, remote)

    startup = asyncio.create_task(store.startup_sync())
    await asyncio.sleep(0)
    await store.add("MID-NEW")
    remote.read_gate.set()

    assert await startup is False
    assert mirror.read_all() == ["MID-NEW"]


@pytest.mark.asyncio
async def test_remote_duplicates_are_dropped(mirror, remote) -> None:
    remote.files[_REMOTE] = "A\nB\nA\n"
    store = _store(mirror, remote)
    await store.startup_sync()

    assert await store.list_ids() == ["A", "B"]


@pytest.mark.asyncio
async def test_local_write_failure_is_raised(mirror, remote, monkeypatch) -> None:
    store = _store(mirror, remote)
    await store.startup_sync()

    def broken(ids):
        raise LocalMirrorError("disk full")

    monkeypatch.setattr(mirror, "write_all", broken)
    with pytest.raises(LocalMirrorError):
        await store.add("MID-1")
    assert await store.list_ids() == []
    assert remote.writes == []


@pytest.mark.asyncio
async def test_aclose_waits_for_pending_upload(mirror, remote) -> None:
    store = _store(mirror, remote)
    remote.write_gate = asyncio.Event()
    await store.add("MID-1")

    closing = asyncio.create_task(store.aclose())
    await asyncio.sleep(0)
    remote.write_gate.set()
    await closing

    assert remote.files[_REMOTE] == "MID-1"
    assert store.tasks == {}


@pytest.mark.asyncio
async def test_failed_upload_is_retried_instead_of_refreshing(mirror, remote, clock) -> None:
    remote.files[_REMOTE] = "MID-1\nMID-2"
    store = _store(mirror, remote, clock)
    await store.startup_sync()

    remote.reachable = False
    assert await store.add("MID-3") is MachineIdOutcome.OK
    await store.wait_idle()
    assert store.remote_behind

    remote.reachable = True
    clock.advance(61.0)
    assert await store.list_ids() == ["MID-1", "MID-2", "MID-3"]
    await store.wait_idle()

    assert mirror.read_all() == ["MID-1", "MID-2", "MID-3"]
    assert remote.files[_REMOTE] == "MID-1\nMID-2\nMID-3"
    assert remote.reads == [_REMOTE]
    assert not store.remote_behind

    # Once FTP has caught up, stale reads refresh from it again
    clock.advance(61.0)
    await store.list_ids()
    await store.wait_idle()
    assert len(remote.reads) == 2


@pytest.mark.asyncio
async def test_list_during_startup_does_not_fetch_again(mirror, remote) -> None:
    remote.files[_REMOTE] = "MID-1"
    remote.read_gate = asyncio.Event()
    store = _store(mirror, remote)

    startup = asyncio.create_task(store.startup_sync())
    await asyncio.sleep(0)
    assert await store.list_ids() == []
    remote.read_gate.set()
    assert await startup is True
    await store.wait_idle()

    assert remote.reads == [_REMOTE]
    assert await store.list_ids() == ["MID-1"]
