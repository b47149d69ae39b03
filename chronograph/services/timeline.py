"""
Timeline playback over a user's graph history.

The controller owns one viewing session's cursor and drives snapshot
fetches at a bounded rate:
- playback frames advance the cursor by real elapsed time x speed, skipping
  frames that arrive faster than the tick throttle
- snapshot fetches are throttled; requests inside the window collapse into
  one trailing fetch for the latest requested time
- each fetch carries a sequence number and only the newest may apply
- a failed fetch keeps the last good snapshot and the playback position

Timing goes through an explicit Scheduler so tests can drive it
deterministically.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from chronograph.config import TimelineConfig
from chronograph.models.event import GraphEvent
from chronograph.models.node import Session
from chronograph.models.snapshot import GraphSnapshot
from chronograph.models.timeline import TimelineState, TimeRange
from chronograph.utils.exceptions import StoreError, ValidationError
from chronograph.utils.logger import get_logger
from chronograph.utils.timestamps import ensure_utc, utc_now
from chronograph.utils.validation import format_errors, require_user_id

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════
# SCHEDULING
# ═══════════════════════════════════════════════════════════


class ScheduledCall(Protocol):
    def cancel(self) -> None: ...


class Scheduler(ABC):
    """Monotonic clock plus cancelable delayed callbacks."""

    @abstractmethod
    def now_ms(self) -> float:
        """Monotonic time in milliseconds."""
        pass

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        """Run `callback` after `delay_ms`; the returned handle cancels it."""
        pass


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self.loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay_ms, 0.0) / 1000.0, callback)


class SnapshotThrottle:
    """
    Bounds how often snapshot fetches start.

    A request after the interval has elapsed fires immediately. A request
    inside the interval schedules a single trailing call at the end of the
    window; further requests before it fires only replace the time it will
    use.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        interval_ms: float,
        fire: Callable[[datetime], None],
    ):
        self.scheduler = scheduler
        self.interval_ms = interval_ms
        self._fire = fire
        self._last_fired_ms: float | None = None
        self._pending_time: datetime | None = None
        self._trailing: ScheduledCall | None = None

    @property
    def has_pending(self) -> bool:
        return self._trailing is not None

    def request(self, timestamp: datetime) -> None:
        self._pending_time = timestamp
        if self._trailing is not None:
            return

        now = self.scheduler.now_ms()
        if self._last_fired_ms is None or now - self._last_fired_ms >= self.interval_ms:
            self._flush(now)
            return

        delay = self.interval_ms - (now - self._last_fired_ms)
        self._trailing = self.scheduler.call_later(delay, self._on_trailing)

    def cancel(self) -> None:
        if self._trailing is not None:
            self._trailing.cancel()
            self._trailing = None
        self._pending_time = None

    def _on_trailing(self) -> None:
        self._trailing = None
        self._flush(self.scheduler.now_ms())

    def _flush(self, now: float) -> None:
        timestamp = self._pending_time
        self._pending_time = None
        if timestamp is None:
            return
        self._last_fired_ms = now
        self._fire(timestamp)


# ═══════════════════════════════════════════════════════════
# CONTROLLER
# ═══════════════════════════════════════════════════════════


class TimelineDataSource(Protocol):
    """What the controller reads; implemented by TemporalGraphEngine."""

    async def get_snapshot(self, user_id: str, timestamp: datetime) -> GraphSnapshot: ...

    async def list_sessions(self, user_id: str) -> list[Session]: ...

    async def get_events_between(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[GraphEvent]: ...


TimelineListener = Callable[["TimelineController"], None]


class TimelineController:
    """
    Playback state and snapshot driving for one viewer of one user's graph.

    All throttle and scheduling state lives on the instance; controllers
    never share timers or caches.
    """

    def __init__(
        self,
        source: TimelineDataSource,
        user_id: str,
        config: TimelineConfig | None = None,
        scheduler: Scheduler | None = None,
        time_range: TimeRange | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize timeline controller.

        Args:
            source: Snapshot/session/event provider
            user_id: User whose graph is shown
            config: Timeline settings
            scheduler: Timing source (defaults to the asyncio loop)
            time_range: Playback bounds (defaults to the last
                `default_window_days` up to now)
            clock: Wall clock used for the default time range
        """
        self.source = source
        self.user_id = require_user_id(user_id)
        self.config = config or TimelineConfig()
        self.scheduler = scheduler or AsyncioScheduler()

        if time_range is None:
            end = clock()
            time_range = TimeRange(
                start=end - timedelta(days=self.config.default_window_days), end=end
            )
        self.state = TimelineState(
            current_time=time_range.start,
            is_playing=False,
            playback_speed=self.config.initial_speed,
            time_range=time_range,
        )

        self.sessions: list[Session] = []
        self.events: list[GraphEvent] = []
        self.snapshot: GraphSnapshot | None = None
        self.last_error: Exception | None = None

        self._throttle = SnapshotThrottle(
            self.scheduler, self.config.snapshot_throttle_ms, self._start_fetch
        )
        self._frame: ScheduledCall | None = None
        self._last_tick_ms: float | None = None
        self._issued_seq = 0
        self._applied_seq = 0
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[TimelineListener] = []
        self._closed = False

    # ═══════════════════════════════════════════════════════════
    # STATE ACCESSORS
    # ═══════════════════════════════════════════════════════════

    @property
    def current_time(self) -> datetime:
        return self.state.current_time

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    @property
    def playback_speed(self) -> float:
        return self.state.playback_speed

    @property
    def time_range(self) -> TimeRange:
        return self.state.time_range

    @property
    def selected_session(self) -> Session | None:
        return self.state.selected_session

    @property
    def error(self) -> str | None:
        """Message of the last failed fetch, cleared by the next success."""
        return str(self.last_error) if self.last_error else None

    @property
    def current_session(self) -> Session | None:
        """Latest session created at or before the cursor."""
        current = None
        for session in self.sessions:
            if session.created_at <= self.state.current_time:
                current = session
        return current

    @property
    def next_session(self) -> Session | None:
        """First session created after the cursor."""
        for session in self.sessions:
            if session.created_at > self.state.current_time:
                return session
        return None

    def subscribe(self, listener: TimelineListener) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ═══════════════════════════════════════════════════════════
    # LOADING
    # ═══════════════════════════════════════════════════════════

    async def load(self) -> None:
        """
        Load sessions, events in the time range and the snapshot at the cursor.

        Raises:
            StoreError: If sessions or events cannot be read
        """
        self.sessions = await self.source.list_sessions(self.user_id)
        self.events = await self.source.get_events_between(
            self.user_id,
            self.state.time_range.start,
            self.state.time_range.end,
            limit=self.config.event_limit,
        )
        logger.info(
            f"Timeline loaded: {len(self.sessions)} sessions, {len(self.events)} events",
            extra={"user_id": self.user_id},
        )
        self._request_snapshot()
        await self.wait_idle()

    def get_node_events(self, node_id: str) -> list[GraphEvent]:
        """Loaded events referencing a node, oldest first."""
        return [event for event in self.events if event.node_id == node_id]

    # ═══════════════════════════════════════════════════════════
    # CONTROLS
    # ═══════════════════════════════════════════════════════════

    def play(self) -> None:
        """Start playback. Does nothing once the cursor is at or past the end of the range."""
        if self.state.is_playing or self._closed:
            return
        if self.state.current_time >= self.state.time_range.end:
            return
        self.state.is_playing = True
        self._last_tick_ms = self.scheduler.now_ms()
        self._schedule_frame()
        self._notify()

    def pause(self) -> None:
        if not self.state.is_playing:
            return
        self.state.is_playing = False
        self._cancel_frame()
        self._notify()

    def toggle_play_pause(self) -> None:
        if self.state.is_playing:
            self.pause()
        else:
            self.play()

    def set_playback_speed(self, speed: float) -> None:
        """Change the multiplier; the next frame uses it."""
        if speed is None or not speed > 0:
            raise ValidationError("playback speed must be positive", context={"speed": speed})
        self.state.playback_speed = float(speed)
        self._notify()

    def set_current_time(self, timestamp: datetime) -> None:
        """Seek. The time is not clamped to the time range."""
        self.state.current_time = ensure_utc(timestamp)
        self._request_snapshot()
        self._notify()

    def select_session(self, session: Session | None) -> None:
        """Jump to a session's creation time and mark it selected."""
        self.state.selected_session = session
        if session is not None:
            self.state.current_time = ensure_utc(session.created_at)
            self._request_snapshot()
        self._notify()

    def set_time_range(self, start: datetime, end: datetime) -> None:
        """
        Replace the playback bounds. The cursor is left where it is.

        Raises:
            ValidationError: If end precedes start
        """
        try:
            self.state.time_range = TimeRange(start=ensure_utc(start), end=ensure_utc(end))
        except PydanticValidationError as e:
            errors = format_errors(e)
            raise ValidationError(
                f"Invalid time range: {'; '.join(errors)}", context={"errors": errors}
            ) from e
        self._notify()

    async def wait_idle(self) -> None:
        """Wait for in-flight snapshot fetches to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Stop playback and cancel pending frame and trailing fetch work."""
        self._closed = True
        self.state.is_playing = False
        self._cancel_frame()
        self._throttle.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._listeners.clear()
        logger.debug("Timeline controller closed", extra={"user_id": self.user_id})

    # ═══════════════════════════════════════════════════════════
    # PLAYBACK FRAMES
    # ═══════════════════════════════════════════════════════════

    def _schedule_frame(self) -> None:
        self._cancel_frame()
        self._frame = self.scheduler.call_later(self.config.frame_interval_ms, self._on_frame)

    def _cancel_frame(self) -> None:
        if self._frame is not None:
            self._frame.cancel()
            self._frame = None

    def _on_frame(self) -> None:
        self._frame = None
        if not self.state.is_playing or self._closed:
            return

        now = self.scheduler.now_ms()
        delta_ms = now - (self._last_tick_ms if self._last_tick_ms is not None else now)
        if delta_ms < self.config.tick_throttle_ms:
            self._schedule_frame()
            return
        self._last_tick_ms = now

        advanced = self.state.current_time + timedelta(
            milliseconds=delta_ms * self.state.playback_speed
        )
        end = self.state.time_range.end
        if advanced >= end:
            # Never overshoot the range end
            self.state.current_time = end
            self.state.is_playing = False
        else:
            self.state.current_time = advanced
            self._schedule_frame()

        self._request_snapshot()
        self._notify()

    # ═══════════════════════════════════════════════════════════
    # SNAPSHOT FETCHING
    # ═══════════════════════════════════════════════════════════

    def _request_snapshot(self) -> None:
        if self._closed:
            return
        self._throttle.request(self.state.current_time)

    def _start_fetch(self, timestamp: datetime) -> None:
        self._issued_seq += 1
        task = asyncio.ensure_future(self._fetch(self._issued_seq, timestamp))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch(self, seq: int, timestamp: datetime) -> None:
        try:
            snapshot = await self.source.get_snapshot(self.user_id, timestamp)
        except Exception as e:
            if seq != self._issued_seq:
                return
            self.last_error = e
            message = f"Snapshot fetch failed at {timestamp.isoformat()}: {e}"
            if isinstance(e, StoreError):
                logger.warning(message, extra={"user_id": self.user_id})
            else:
                logger.opt(exception=e).error(message, extra={"user_id": self.user_id})
            self._notify()
            return

        if seq != self._issued_seq or seq <= self._applied_seq:
            logger.debug(f"Discarding stale snapshot #{seq} (latest #{self._issued_seq})")
            return

        self._applied_seq = seq
        self.snapshot = snapshot
        self.last_error = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def to_dict(self) -> dict[str, Any]:
        """Serializable view of the controller for display layers."""
        return {
            "state": self.state.model_dump(mode="json"),
            "sessions": [session.model_dump(mode="json") for session in self.sessions],
            "event_count": len(self.events),
            "snapshot": self.snapshot.model_dump(mode="json") if self.snapshot else None,
            "error": self.error,
        }
