"""
Timers that drive the game engines from the asyncio event loop.
A periodic ticker feeds engine ticks; a one-shot callback hides mismatched cards.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(session_id: str, kind: str, interval: float) -> None:
        """Log a timer being scheduled."""
        logger.debug(
            f"Timer lifecycle: START - Session {session_id}, Kind {kind}, Interval {interval:.2f}s",
            extra={
                'event_type': 'timer_start',
                'session_id': session_id,
                'timer_kind': kind,
                'interval': interval,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_completion(session_id: str, kind: str, completion_type: str, ticks: int) -> None:
        """Log timer completion (natural end or cancellation)."""
        logger.debug(
            f"Timer lifecycle: COMPLETED - Session {session_id}, Kind {kind}, Type {completion_type}, Ticks {ticks}",
            extra={
                'event_type': 'timer_completed',
                'session_id': session_id,
                'timer_kind': kind,
                'completion_type': completion_type,
                'ticks': ticks,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_cancel(session_id: str, kind: str, had_task: bool) -> None:
        """Log a cancellation request."""
        logger.debug(
            f"Timer lifecycle: CANCEL - Session {session_id}, Kind {kind}, Active task {had_task}",
            extra={
                'event_type': 'timer_cancel',
                'session_id': session_id,
                'timer_kind': kind,
                'had_task': had_task,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(session_id: str, kind: str, error_type: str, error_message: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Session {session_id}, Kind {kind}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'session_id': session_id,
                'timer_kind': kind,
                'error_type': error_type,
                'error_message': error_message,
                'timestamp': time.time()
            }
        )


class GameTimer:
    """Periodic ticker that calls back once per interval until stopped."""

    def __init__(self, session_id: str, interval: float = 1.0):
        """
        Initialize the timer.

        Args:
            session_id: Identifier used in log records
            interval: Seconds between ticks
        """
        self._session_id = session_id
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._is_cancelled = False
        self._ticks = 0

    def start(
        self,
        on_tick: Callable[[], Awaitable[Any]],
        should_continue: Callable[[], bool] = lambda: True
    ) -> asyncio.Task:
        """
        Start ticking as a background task.

        Args:
            on_tick: Awaited once per interval
            should_continue: Checked before each tick; False ends the timer

        Returns:
            The background task

        Raises:
            RuntimeError: If the timer is already running
        """
        if self.is_running:
            raise RuntimeError(f"Timer for session {self._session_id} is already running")

        self._is_cancelled = False
        self._ticks = 0
        TimerLifecycleLogger.log_timer_start(self._session_id, "ticker", self._interval)
        self._task = asyncio.create_task(self._run(on_tick, should_continue))
        return self._task

    async def _run(self, on_tick: Callable[[], Awaitable[Any]], should_continue: Callable[[], bool]) -> None:
        try:
            while not self._is_cancelled and should_continue():
                await asyncio.sleep(self._interval)
                if self._is_cancelled or not should_continue():
                    break
                self._ticks += 1
                await on_tick()

            completion_type = "cancelled" if self._is_cancelled else "finished"
            TimerLifecycleLogger.log_timer_completion(self._session_id, "ticker", completion_type, self._ticks)

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._session_id, "ticker", "asyncio_cancelled", self._ticks)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(self._session_id, "ticker", "tick_error", str(e))
            raise

    def cancel(self) -> None:
        """Stop the ticker; a tick already in progress is interrupted."""
        had_task = self._task is not None and not self._task.done()
        TimerLifecycleLogger.log_timer_cancel(self._session_id, "ticker", had_task)
        self._is_cancelled = True
        if had_task and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the background task has finished after a cancel."""
        if self._task is None or self._task is asyncio.current_task():
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def ticks(self) -> int:
        return self._ticks


class DelayedCallback:
    """One-shot callback run after a delay unless cancelled first."""

    def __init__(self, session_id: str, delay: float):
        self._session_id = session_id
        self._delay = delay
        self._task: Optional[asyncio.Task] = None

    def schedule(self, callback: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """Run the callback once the delay has passed."""
        self.cancel()
        TimerLifecycleLogger.log_timer_start(self._session_id, "delayed", self._delay)
        self._task = asyncio.create_task(self._run(callback))
        return self._task

    async def _run(self, callback: Callable[[], Awaitable[Any]]) -> None:
        await asyncio.sleep(self._delay)
        try:
            await callback()
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(self._session_id, "delayed", "callback_error", str(e))
            raise
        TimerLifecycleLogger.log_timer_completion(self._session_id, "delayed", "fired", 1)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            TimerLifecycleLogger.log_timer_cancel(self._session_id, "delayed", True)
            if self._task is not asyncio.current_task():
                self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is None or self._task is asyncio.current_task():
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    @property
    def is_pending(self) -> bool:
        return self._task is not None and not self._task.done()
