"""
Activity recorder: bounded, non-blocking audit trail writer.

record() buffers an event and returns; a background worker persists
buffered events in batches. Rules:

- Events leave the buffer in the order they entered it, and batches are
  written one at a time, so events of one request keep their order.
- The buffer holds at most buffer_size events. When a non-auth event
  arrives at a full buffer the oldest non-auth event is dropped and
  lost_events is incremented. Non-auth callers never wait.
- Auth events (login success/failure, lock, logout, password change/reset)
  are never dropped. If the buffer is full of auth events an auth caller
  waits until the worker frees space.
- If the primary sink fails a batch goes to the fallback sink (an
  append-only JSON lines file) instead.
- stop() drains within a bounded time; whatever is left, including a batch
  interrupted mid-write, is appended to the fallback sink.
"""

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core import clock
from src.models.enums import AUTH_ACTIONS
from src.repositories.activity_repository import ActivityRepository

logger = logging.getLogger(__name__)

# Never persisted in request_payload
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "current_password",
        "new_password",
        "confirm_password",
        "token",
        "refresh_token",
        "authorization",
    }
)

_AUTH_ACTION_CODES = frozenset(action.value for action in AUTH_ACTIONS)


def scrub_payload(payload: Any) -> Any:
    """Recursively replace values of sensitive keys with "***"."""
    if isinstance(payload, dict):
        return {
            key: "***" if str(key).lower() in SENSITIVE_KEYS else scrub_payload(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [scrub_payload(item) for item in payload]
    return payload


@dataclass(frozen=True)
class ActivityEvent:
    """
    One activity to record.

    created_at is taken when the event is built, not when it is written,
    so the persisted time reflects when the action happened.
    """

    action: str
    user_id: int | None = None
    session_id: int | None = None
    target_type: str | None = None
    target_id: str | None = None
    menu_name: str | None = None
    description: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    request_payload: dict[str, Any] | None = None
    response_status: int | None = None
    created_at: datetime = field(default_factory=lambda: clock.utc_now())

    @property
    def is_auth(self) -> bool:
        return self.action in _AUTH_ACTION_CODES

    def to_row(self) -> dict[str, Any]:
        """Column values for users_activity_logs."""
        row = asdict(self)
        row["request_payload"] = scrub_payload(self.request_payload)
        if row["user_agent"]:
            row["user_agent"] = row["user_agent"][:500]
        return row


class ActivitySink(Protocol):
    async def write(self, rows: list[dict[str, Any]]) -> None: ...


class DatabaseActivitySink:
    """Writes batches to users_activity_logs in their own transaction."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def write(self, rows: list[dict[str, Any]]) -> None:
        async with self.sessionmaker() as session:
            await ActivityRepository(session).add_many(rows)
            await session.commit()


class FileActivitySink:
    """Appends batches to a JSON lines file, one event per line."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _append(self, rows: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            for row in rows:
                fh.write(json.dumps(row, default=str) + "\n")

    async def write(self, rows: list[dict[str, Any]]) -> None:
        await asyncio.to_thread(self._append, rows)


class ActivityRecorder:
    """
    Bounded buffer in front of an activity sink.

    Args:
        sink: Primary sink (the database)
        fallback: Sink used when the primary fails and on shutdown
        buffer_size: Maximum buffered events
        batch_size: Maximum events per sink write
        flush_interval: Seconds the worker waits for events before flushing

    Example:
        recorder = ActivityRecorder(DatabaseActivitySink(sm), FileActivitySink(path))
        recorder.start()
        await recorder.record(ActivityEvent(action="LOGOUT", user_id=1))
        await recorder.stop(drain_timeout=5)
    """

    def __init__(
        self,
        sink: ActivitySink,
        fallback: ActivitySink,
        buffer_size: int = 1000,
        batch_size: int = 100,
        flush_interval: float = 0.5,
    ):
        if buffer_size < 1 or batch_size < 1:
            raise ValueError("buffer_size and batch_size must be positive")
        self.sink = sink
        self.fallback = fallback
        self.buffer_size = buffer_size
        self.batch_size = batch_size
        self.flush_interval = flush_interval

        self.lost_events = 0
        self._buffer: deque[ActivityEvent] = deque()
        self._cond = asyncio.Condition()
        self._flush_lock = asyncio.Lock()
        self._in_flight: list[ActivityEvent] = []
        self._task: asyncio.Task | None = None
        self._stopping = False
        self._closed = False

    @property
    def pending(self) -> int:
        """Events currently buffered."""
        return len(self._buffer)

    # -------------------------------------------------------------------------
    # Producer side
    # -------------------------------------------------------------------------

    def _drop_oldest_non_auth(self) -> bool:
        for index, event in enumerate(self._buffer):
            if not event.is_auth:
                del self._buffer[index]
                self.lost_events += 1
                return True
        return False

    async def record(self, event: ActivityEvent) -> None:
        """
        Buffer an event for persistence.

        Returns at once for non-auth events. For auth events it waits while
        the buffer is full of other auth events.
        """
        async with self._cond:
            if event.is_auth:
                while len(self._buffer) >= self.buffer_size and not self._closed:
                    if self._drop_oldest_non_auth():
                        break
                    await self._cond.wait()
            elif len(self._buffer) >= self.buffer_size and not self._drop_oldest_non_auth():
                # Full of auth events: the incoming event is the one dropped
                self.lost_events += 1
                logger.warning(f"Activity buffer full, dropped {event.action} event")
                return

            if not self._closed:
                self._buffer.append(event)
                self._cond.notify_all()
                return

        # Recorded after shutdown
        await self._write_fallback([event])

    # -------------------------------------------------------------------------
    # Consumer side
    # -------------------------------------------------------------------------

    async def _take_batch(self) -> list[ActivityEvent]:
        async with self._cond:
            count = min(self.batch_size, len(self._buffer))
            batch = [self._buffer.popleft() for _ in range(count)]
            if batch:
                self._cond.notify_all()
            return batch

    async def _write_fallback(self, events: list[ActivityEvent]) -> None:
        try:
            await self.fallback.write([event.to_row() for event in events])
        except OSError as e:
            self.lost_events += len(events)
            logger.error(f"Activity fallback sink failed, {len(events)} events lost: {e}")

    async def _write(self, batch: list[ActivityEvent]) -> None:
        self._in_flight = batch
        try:
            await self.sink.write([event.to_row() for event in batch])
        except Exception as e:
            logger.error(
                f"Activity sink failed for {len(batch)} events, using fallback: {e}",
                exc_info=True,
            )
            await self._write_fallback(batch)
        self._in_flight = []

    async def flush(self) -> int:
        """
        Write every buffered event, batch by batch.

        Returns:
            Number of events handed to a sink
        """
        written = 0
        async with self._flush_lock:
            while batch := await self._take_batch():
                await self._write(batch)
                written += len(batch)
        return written

    async def _run(self) -> None:
        logger.info("Activity recorder started")
        while True:
            async with self._cond:
                try:
                    await asyncio.wait_for(
                        self._cond.wait_for(lambda: bool(self._buffer) or self._stopping),
                        timeout=self.flush_interval,
                    )
                except TimeoutError:
                    pass
            await self.flush()
            if self._stopping:
                break

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the background worker on the running loop."""
        if self._task is not None:
            logger.warning("Activity recorder already running")
            return
        self._task = asyncio.create_task(self._run(), name="activity-recorder")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """
        Drain the buffer within drain_timeout seconds, then close.

        Events still buffered (or being written) when the time is up are
        appended to the fallback sink.
        """
        self._stopping = True
        async with self._cond:
            self._cond.notify_all()

        try:
            if self._task is not None:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=drain_timeout)
            else:
                await asyncio.wait_for(self.flush(), timeout=drain_timeout)
        except TimeoutError:
            logger.warning("Activity recorder drain timed out")
            if self._task is not None:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass

        self._task = None
        async with self._cond:
            self._closed = True
            leftover = self._in_flight + list(self._buffer)
            self._in_flight = []
            self._buffer.clear()
            self._cond.notify_all()
        if leftover:
            logger.warning(f"Writing {len(leftover)} undrained activity events to fallback")
            await self._write_fallback(leftover)

        logger.info(f"Activity recorder stopped (lost events: {self.lost_events})")
