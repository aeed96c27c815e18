import asyncio
import logging

import pytest

from ioc_intel.errors import StateLoadError
from ioc_intel.state_manager import Debouncer, StateManager


class Recorder:
    """Saver that records (loop time, snapshot) per call."""

    def __init__(self, delay=0.0):
        self.calls = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, snapshot):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.calls.append((asyncio.get_running_loop().time(), snapshot))
        finally:
            self.in_flight -= 1


@pytest.mark.asyncio
async def test_load_merges_a_copy_into_live_state():
    loaded = {"ip": {"urls": ["a.example.com/{ip}"]}}
    initial = {"hash": {"urls": []}}
    sm = StateManager(lambda: loaded, initial_state=initial)

    state = await sm.load()

    assert state is initial
    assert set(state) == {"ip", "hash"}
    loaded["ip"]["urls"].append("b.example.com/{ip}")
    assert state["ip"]["urls"] == ["a.example.com/{ip}"]


@pytest.mark.asyncio
async def test_async_loader():
    async def loader():
        await asyncio.sleep(0)
        return {"n": 1}

    sm = StateManager(loader)
    assert await sm.load() == {"n": 1}


@pytest.mark.asyncio
async def test_loader_errors_propagate():
    async def loader():
        raise OSError("storage gone")

    sm = StateManager(loader, initial_state={"n": 0})
    with pytest.raises(OSError):
        await sm.load()
    assert sm.state == {"n": 0}


@pytest.mark.asyncio
async def test_loader_must_return_mapping():
    sm = StateManager(lambda: ["not", "a", "mapping"])
    with pytest.raises(StateLoadError):
        await sm.load()


@pytest.mark.asyncio
async def test_burst_coalesces_into_one_save_within_max_wait():
    saver = Recorder()
    sm = StateManager(lambda: {}, saver, delay_s=0.5, max_wait_s=1.0, initial_state={"n": 0})
    loop = asyncio.get_running_loop()

    start = loop.time()
    for i in range(10):
        sm.state["n"] = i
        sm.save()
        await asyncio.sleep(0.05)
    await asyncio.sleep(0.8)

    assert len(saver.calls) == 1
    saved_at, snapshot = saver.calls[0]
    assert snapshot == {"n": 9}
    assert saved_at - start <= 1.0 + 0.1
    assert not sm.save_pending


@pytest.mark.asyncio
async def test_max_wait_forces_a_save_during_a_long_burst():
    saver = Recorder()
    sm = StateManager(lambda: {}, saver, delay_s=0.2, max_wait_s=0.3, initial_state={"n": 0})
    loop = asyncio.get_running_loop()

    start = loop.time()
    for i in range(12):
        sm.state["n"] = i
        sm.save()
        await asyncio.sleep(0.05)

    # Still calling every 50ms, so only the deadline could have fired.
    assert len(saver.calls) >= 1
    first_at, _ = saver.calls[0]
    assert 0.25 <= first_at - start <= 0.45

    await sm.flush()
    assert saver.calls[-1][1] == {"n": 11}


@pytest.mark.asyncio
async def test_zero_delay_still_defers_to_the_loop():
    saver = Recorder()
    sm = StateManager(lambda: {}, saver, initial_state={"n": 1})

    sm.save()
    assert saver.calls == []
    await asyncio.sleep(0.01)
    assert len(saver.calls) == 1


@pytest.mark.asyncio
async def test_snapshot_is_isolated_from_later_mutation():
    saver = Recorder()
    sm = StateManager(lambda: {}, saver, initial_state={"urls": ["a"]})

    await sm.save_now()
    sm.state["urls"].append("b")

    assert saver.calls[0][1] == {"urls": ["a"]}


@pytest.mark.asyncio
async def test_saves_never_overlap_and_latest_state_wins():
    saver = Recorder(delay=0.1)
    sm = StateManager(lambda: {}, saver, initial_state={"n": 0})

    sm.save()
    await asyncio.sleep(0.02)
    assert saver.in_flight == 1

    sm.state["n"] = 1
    sm.save()
    await sm.flush()

    assert saver.max_in_flight == 1
    assert [snap for _, snap in saver.calls] == [{"n": 0}, {"n": 1}]


@pytest.mark.asyncio
async def test_flush_runs_pending_save_immediately():
    saver = Recorder()
    sm = StateManager(lambda: {}, saver, delay_s=10, max_wait_s=20, initial_state={"n": 3})

    sm.save()
    assert sm.save_pending
    await sm.flush()

    assert len(saver.calls) == 1
    assert not sm.save_pending


@pytest.mark.asyncio
async def test_flush_without_pending_save_does_nothing():
    saver = Recorder()
    sm = StateManager(lambda: {}, saver)
    await sm.flush()
    assert saver.calls == []


@pytest.mark.asyncio
async def test_debounced_save_error_is_logged_not_raised(caplog):
    async def saver(snapshot):
        raise OSError("disk full")

    sm = StateManager(lambda: {}, saver, initial_state={"n": 1})
    with caplog.at_level(logging.ERROR, logger="IOC-Intel"):
        sm.save()
        await sm.flush()

    assert isinstance(sm.last_save_error, OSError)
    assert "State save failed" in caplog.text


@pytest.mark.asyncio
async def test_successful_save_clears_last_error():
    attempts = []

    def saver(snapshot):
        attempts.append(snapshot)
        if len(attempts) == 1:
            raise OSError("once")

    sm = StateManager(lambda: {}, saver)
    sm.save()
    await sm.flush()
    assert sm.last_save_error is not None

    sm.save()
    await sm.flush()
    assert sm.last_save_error is None


@pytest.mark.asyncio
async def test_save_now_propagates_errors():
    def saver(snapshot):
        raise OSError("read-only")

    sm = StateManager(lambda: {}, saver)
    with pytest.raises(OSError):
        await sm.save_now()


@pytest.mark.asyncio
async def test_save_now_cancels_pending_window():
    saver = Recorder()
    sm = StateManager(lambda: {}, saver, delay_s=0.05)

    sm.save()
    await sm.save_now()
    await asyncio.sleep(0.1)

    assert len(saver.calls) == 1


@pytest.mark.asyncio
async def test_save_without_saver_is_a_noop():
    sm = StateManager(lambda: {})
    sm.save()
    await sm.save_now()
    await sm.flush()
    assert not sm.save_pending


def test_save_outside_event_loop_raises():
    sm = StateManager(lambda: {}, lambda snapshot: None, delay_s=0.1)
    with pytest.raises(RuntimeError):
        sm.save()


@pytest.mark.asyncio
async def test_debouncer_cancel_drops_pending_call():
    calls = []

    async def func():
        calls.append(1)

    debounced = Debouncer(func, delay_s=0.02, max_wait_s=0.05)
    debounced()
    assert debounced.burst_started is not None
    debounced.cancel()
    await asyncio.sleep(0.1)

    assert calls == []
    assert debounced.burst_started is None


@pytest.mark.asyncio
async def test_snapshot_save_without_saver_returns_quietly():
    sm = StateManager(lambda: {}, initial_state={"n": 1})
    await sm._save_snapshot()
    assert sm.last_save_error is None
