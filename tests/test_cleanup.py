"""Tests for the compensation log."""

import asyncio

import pytest

from vhicli.api.exceptions import APIError, CleanupWarning
from vhicli.workflows.cleanup import CleanupLog


def _recorder(ran, name, error=None):
    async def action():
        ran.append(name)
        if error is not None:
            raise error

    return action


def test_unwind_runs_newest_first():
    ran = []
    log = CleanupLog()
    log.add("first", _recorder(ran, "first"))
    log.add("second", _recorder(ran, "second"))
    log.add("third", _recorder(ran, "third"))

    failed = asyncio.run(log.unwind())

    assert ran == ["third", "second", "first"]
    assert failed == []
    assert log.pending == []


def test_released_entries_are_skipped():
    ran = []
    log = CleanupLog()
    log.add("image", _recorder(ran, "image"))
    volume = log.add("volume", _recorder(ran, "volume"))
    log.release(volume)

    asyncio.run(log.unwind())

    assert ran == ["image"]


def test_action_runs_at_most_once():
    ran = []
    log = CleanupLog()
    entry = log.add("image", _recorder(ran, "image", APIError("busy")))

    with pytest.raises(APIError):
        asyncio.run(log.execute(entry))
    asyncio.run(log.unwind())
    asyncio.run(log.execute(entry))

    assert ran == ["image"]
    assert entry.attempted and not entry.done


def test_failure_warns_and_continues():
    ran = []
    log = CleanupLog()
    log.add("port", _recorder(ran, "port"))
    bad = log.add("volume", _recorder(ran, "volume", APIError("in-use")))

    with pytest.warns(CleanupWarning, match="volume"):
        failed = asyncio.run(log.unwind())

    assert ran == ["volume", "port"]
    assert failed == [bad]


def test_repr_shows_state():
    log = CleanupLog()
    entry = log.add("delete image x", _recorder([], "x"))
    assert "pending" in repr(entry)

    asyncio.run(log.execute(entry))
    assert "done" in repr(entry)
