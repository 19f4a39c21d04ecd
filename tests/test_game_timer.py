"""
Unit tests for the asyncio timers that drive game sessions.
Covers ticking, predicate-based stopping, cancellation and lifecycle logging.
"""
import asyncio
import unittest
from unittest.mock import AsyncMock, patch

from learnplay.game_timer import DelayedCallback, GameTimer, TimerLifecycleLogger
from tests.test_fixtures import AsyncTestHelpers


class TestGameTimer(unittest.IsolatedAsyncioTestCase):
    """Test cases for the periodic ticker."""

    async def test_ticks_until_predicate_fails(self):
        timer = GameTimer("session-1", interval=0.01)
        calls = []

        async def on_tick():
            calls.append(timer.ticks)

        timer.start(on_tick, should_continue=lambda: len(calls) < 3)
        await AsyncTestHelpers.run_with_timeout(timer.wait_closed())

        self.assertEqual(calls, [1, 2, 3])
        self.assertEqual(timer.ticks, 3)
        self.assertFalse(timer.is_running)
        self.assertFalse(timer.is_cancelled)

    async def test_cancel_stops_ticking(self):
        timer = GameTimer("session-2", interval=0.01)
        on_tick = AsyncMock()

        timer.start(on_tick)
        await asyncio.sleep(0.05)
        timer.cancel()
        await AsyncTestHelpers.run_with_timeout(timer.wait_closed())
        ticks_at_cancel = on_tick.await_count

        await asyncio.sleep(0.05)
        self.assertEqual(on_tick.await_count, ticks_at_cancel)
        self.assertTrue(timer.is_cancelled)
        self.assertFalse(timer.is_running)

    async def test_cancel_before_first_tick(self):
        timer = GameTimer("session-3", interval=0.5)
        on_tick = AsyncMock()

        timer.start(on_tick)
        timer.cancel()
        await AsyncTestHelpers.run_with_timeout(timer.wait_closed())

        on_tick.assert_not_awaited()

    async def test_double_start_rejected(self):
        timer = GameTimer("session-4", interval=0.5)
        timer.start(AsyncMock())
        try:
            with self.assertRaises(RuntimeError):
                timer.start(AsyncMock())
        finally:
            timer.cancel()
            await timer.wait_closed()

    async def test_cancel_from_inside_tick(self):
        """Cancelling from the tick callback ends the loop without cancelling the running task."""
        timer = GameTimer("session-5", interval=0.01)

        async def on_tick():
            timer.cancel()

        timer.start(on_tick)
        await AsyncTestHelpers.run_with_timeout(timer.wait_closed())

        self.assertEqual(timer.ticks, 1)
        self.assertTrue(timer.is_cancelled)

    async def test_tick_error_is_logged_and_raised(self):
        timer = GameTimer("session-6", interval=0.01)

        async def on_tick():
            raise ValueError("boom")

        with patch.object(TimerLifecycleLogger, 'log_timer_error') as log_error:
            task = timer.start(on_tick)
            with self.assertRaises(ValueError):
                await AsyncTestHelpers.run_with_timeout(task)

        log_error.assert_called_once_with("session-6", "ticker", "tick_error", "boom")

    async def test_wait_closed_without_start(self):
        timer = GameTimer("session-7")
        await timer.wait_closed()
        self.assertFalse(timer.is_running)


class TestDelayedCallback(unittest.IsolatedAsyncioTestCase):
    """Test cases for the one-shot delayed callback."""

    async def test_fires_once_after_delay(self):
        delayed = DelayedCallback("session-1", delay=0.01)
        callback = AsyncMock()

        delayed.schedule(callback)
        self.assertTrue(delayed.is_pending)
        await AsyncTestHelpers.run_with_timeout(delayed.wait_closed())

        callback.assert_awaited_once()
        self.assertFalse(delayed.is_pending)

    async def test_cancel_prevents_callback(self):
        delayed = DelayedCallback("session-2", delay=0.05)
        callback = AsyncMock()

        delayed.schedule(callback)
        delayed.cancel()
        await AsyncTestHelpers.run_with_timeout(delayed.wait_closed())
        await asyncio.sleep(0.1)

        callback.assert_not_awaited()
        self.assertFalse(delayed.is_pending)

    async def test_reschedule_replaces_pending_callback(self):
        delayed = DelayedCallback("session-3", delay=0.02)
        first = AsyncMock()
        second = AsyncMock()

        delayed.schedule(first)
        delayed.schedule(second)
        await AsyncTestHelpers.run_with_timeout(delayed.wait_closed())
        await asyncio.sleep(0.05)

        first.assert_not_awaited()
        second.assert_awaited_once()


class TestTimerLifecycleLogger(unittest.TestCase):
    """Test cases for structured timer logging."""

    def test_start_event_fields(self):
        with self.assertLogs('learnplay.game_timer', level='DEBUG') as captured:
            TimerLifecycleLogger.log_timer_start("channel:game", "ticker", 1.0)

        record = captured.records[0]
        self.assertEqual(record.event_type, 'timer_start')
        self.assertEqual(record.session_id, "channel:game")
        self.assertEqual(record.timer_kind, "ticker")
        self.assertIn("START", record.getMessage())

    def test_error_event_logged_at_error_level(self):
        with self.assertLogs('learnplay.game_timer', level='ERROR') as captured:
            TimerLifecycleLogger.log_timer_error("channel:game", "delayed", "callback_error", "oops")

        record = captured.records[0]
        self.assertEqual(record.event_type, 'timer_error')
        self.assertEqual(record.error_message, "oops")


if __name__ == '__main__':
    unittest.main()
