"""
Tests for workspace.scheduler - virtual clock, asyncio adapter and debouncing.
"""

import asyncio

import pytest

from workspace.scheduler import AsyncioScheduler, Debouncer, ManualScheduler


class TestManualScheduler:
    def test_fires_when_due(self):
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(100, lambda: calls.append("a"))
        assert scheduler.advance(99) == 0
        assert scheduler.advance(1) == 1
        assert calls == ["a"]

    def test_same_instant_fires_in_order(self):
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(10, lambda: calls.append(1))
        scheduler.call_later(10, lambda: calls.append(2))
        scheduler.advance(10)
        assert calls == [1, 2]

    def test_cancelled_task_does_not_fire(self):
        scheduler = ManualScheduler()
        calls = []
        task = scheduler.call_later(10, lambda: calls.append(1))
        task.cancel()
        assert scheduler.pending() == 0
        assert scheduler.advance(20) == 0
        assert calls == []

    def test_callback_may_schedule(self):
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(10, lambda: scheduler.call_later(10, lambda: calls.append("inner")))
        scheduler.advance(25)
        assert calls == ["inner"]
        assert scheduler.now == 25


class TestAsyncioScheduler:
    def test_runs_on_loop(self):
        loop = asyncio.new_event_loop()
        try:
            calls = []
            scheduler = AsyncioScheduler(loop)
            scheduler.call_later(1, lambda: calls.append(1))
            loop.run_until_complete(asyncio.sleep(0.05))
            assert calls == [1]
        finally:
            loop.close()

    def test_picks_up_running_loop(self):
        calls = []

        async def main():
            scheduler = AsyncioScheduler()
            scheduler.call_later(1, lambda: calls.append(1))
            await asyncio.sleep(0.05)
            return scheduler.loop is asyncio.get_running_loop()

        assert asyncio.run(main()) is True
        assert calls == [1]

    def test_no_running_loop(self):
        with pytest.raises(RuntimeError):
            AsyncioScheduler().call_later(1, lambda: None)


class TestDebouncer:
    def test_retrigger_restarts_quiet_period(self):
        scheduler = ManualScheduler()
        debouncer = Debouncer(scheduler)
        calls = []
        debouncer.trigger("k", 300, lambda: calls.append(1))
        scheduler.advance(200)
        debouncer.trigger("k", 300, lambda: calls.append(2))
        scheduler.advance(200)
        assert calls == []
        scheduler.advance(100)
        assert calls == [2]
        assert not debouncer.is_pending("k")

    def test_keys_are_independent(self):
        scheduler = ManualScheduler()
        debouncer = Debouncer(scheduler)
        calls = []
        debouncer.trigger((1, "a"), 10, lambda: calls.append("a"))
        debouncer.trigger((1, "b"), 10, lambda: calls.append("b"))
        scheduler.advance(10)
        assert sorted(calls) == ["a", "b"]

    def test_cancel(self):
        scheduler = ManualScheduler()
        debouncer = Debouncer(scheduler)
        calls = []
        debouncer.trigger("k", 10, lambda: calls.append(1))
        assert debouncer.cancel("k") is True
        assert debouncer.cancel("k") is False
        scheduler.advance(50)
        assert calls == []

    def test_cancel_matching(self):
        scheduler = ManualScheduler()
        debouncer = Debouncer(scheduler)
        debouncer.trigger((1, "history"), 10, lambda: None)
        debouncer.trigger((1, "redraw"), 10, lambda: None)
        debouncer.trigger((2, "redraw"), 10, lambda: None)
        assert debouncer.cancel_matching(lambda key: key[0] == 1) == 2
        assert debouncer.keys() == [(2, "redraw")]
