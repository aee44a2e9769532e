"""
Unit tests for the activity recorder.

Sinks are in-memory lists; the background worker is only started where a
test needs it.
"""

import asyncio
import json

import pytest

from src.models.enums import ActivityAction
from src.services.activity_recorder import (
    ActivityEvent,
    ActivityRecorder,
    FileActivitySink,
    scrub_payload,
)


class ListSink:
    def __init__(self, fail: bool = False):
        self.rows: list[dict] = []
        self.fail = fail

    async def write(self, rows: list[dict]) -> None:
        if self.fail:
            raise RuntimeError("sink down")
        self.rows.extend(rows)

    @property
    def actions(self) -> list[str]:
        return [row["action"] for row in self.rows]


class SlowSink(ListSink):
    async def write(self, rows: list[dict]) -> None:
        await asyncio.sleep(10)
        await super().write(rows)


def event(action: ActivityAction, **fields) -> ActivityEvent:  # type: ignore[no-untyped-def]
    return ActivityEvent(action=action.value, **fields)


class TestScrubPayload:
    def test_sensitive_keys_are_masked_recursively(self):
        payload = {
            "username": "alice",
            "Password": "secret",
            "nested": {"refresh_token": "abc", "items": [{"new_password": "x"}]},
        }

        assert scrub_payload(payload) == {
            "username": "alice",
            "Password": "***",
            "nested": {"refresh_token": "***", "items": [{"new_password": "***"}]},
        }

    def test_event_row_is_scrubbed(self):
        row = event(ActivityAction.LOGIN_FAILED, request_payload={"password": "p"}).to_row()

        assert row["request_payload"] == {"password": "***"}


class TestBuffering:
    @pytest.mark.asyncio
    async def test_flush_preserves_order(self):
        sink = ListSink()
        recorder = ActivityRecorder(sink, ListSink(), buffer_size=10, batch_size=2)

        for action in (ActivityAction.CREATE, ActivityAction.UPDATE, ActivityAction.DELETE):
            await recorder.record(event(action))
        written = await recorder.flush()

        assert written == 3
        assert sink.actions == ["CREATE", "UPDATE", "DELETE"]
        assert recorder.pending == 0

    @pytest.mark.asyncio
    async def test_full_buffer_drops_oldest_non_auth(self):
        sink = ListSink()
        recorder = ActivityRecorder(sink, ListSink(), buffer_size=2)

        await recorder.record(event(ActivityAction.API_REQUEST, description="first"))
        await recorder.record(event(ActivityAction.LOGIN_SUCCESS))
        await recorder.record(event(ActivityAction.API_REQUEST, description="third"))
        await recorder.flush()

        assert recorder.lost_events == 1
        assert sink.actions == ["LOGIN_SUCCESS", "API_REQUEST"]
        assert sink.rows[1]["description"] == "third"

    @pytest.mark.asyncio
    async def test_non_auth_event_dropped_when_buffer_holds_only_auth(self):
        sink = ListSink()
        recorder = ActivityRecorder(sink, ListSink(), buffer_size=1)

        await recorder.record(event(ActivityAction.LOGOUT))
        await recorder.record(event(ActivityAction.API_REQUEST))
        await recorder.flush()

        assert recorder.lost_events == 1
        assert sink.actions == ["LOGOUT"]

    @pytest.mark.asyncio
    async def test_auth_event_waits_for_space(self):
        sink = ListSink()
        recorder = ActivityRecorder(sink, ListSink(), buffer_size=1)
        await recorder.record(event(ActivityAction.LOGIN_SUCCESS))

        waiting = asyncio.create_task(recorder.record(event(ActivityAction.LOGOUT)))
        await asyncio.sleep(0.05)
        assert not waiting.done()

        await recorder.flush()
        await asyncio.wait_for(waiting, timeout=1)
        await recorder.flush()

        assert recorder.lost_events == 0
        assert sink.actions == ["LOGIN_SUCCESS", "LOGOUT"]


class TestFailureHandling:
    @pytest.mark.asyncio
    async def test_failed_sink_writes_to_fallback(self):
        fallback = ListSink()
        recorder = ActivityRecorder(ListSink(fail=True), fallback)

        await recorder.record(event(ActivityAction.PASSWORD_CHANGE, user_id=3))
        await recorder.flush()

        assert fallback.actions == ["PASSWORD_CHANGE"]
        assert fallback.rows[0]["user_id"] == 3
        assert recorder.lost_events == 0

    @pytest.mark.asyncio
    async def test_background_worker_persists_events(self):
        sink = ListSink()
        recorder = ActivityRecorder(sink, ListSink(), flush_interval=0.01)
        recorder.start()

        await recorder.record(event(ActivityAction.CREATE))
        for _ in range(100):
            if sink.rows:
                break
            await asyncio.sleep(0.01)
        await recorder.stop(drain_timeout=1)

        assert sink.actions == ["CREATE"]

    @pytest.mark.asyncio
    async def test_stop_drains_buffer(self):
        sink = ListSink()
        recorder = ActivityRecorder(sink, ListSink())

        await recorder.record(event(ActivityAction.UPDATE))
        await recorder.stop(drain_timeout=1)

        assert sink.actions == ["UPDATE"]

    @pytest.mark.asyncio
    async def test_record_after_stop_goes_to_fallback(self):
        sink, fallback = ListSink(), ListSink()
        recorder = ActivityRecorder(sink, fallback)
        await recorder.stop(drain_timeout=1)

        await recorder.record(event(ActivityAction.LOGOUT))

        assert sink.rows == []
        assert fallback.actions == ["LOGOUT"]

    @pytest.mark.asyncio
    async def test_drain_timeout_sends_unwritten_events_to_fallback(self):
        fallback = ListSink()
        recorder = ActivityRecorder(SlowSink(), fallback, batch_size=2, flush_interval=0.01)
        recorder.start()

        for index in range(5):
            await recorder.record(event(ActivityAction.UPDATE, description=str(index)))
        await asyncio.sleep(0.05)
        await recorder.stop(drain_timeout=0.2)

        # The batch stuck in the sink and the rest of the buffer both land in the fallback
        assert sorted(row["description"] for row in fallback.rows) == ["0", "1", "2", "3", "4"]
        assert recorder.pending == 0
        assert recorder.lost_events == 0


class TestSustainedOverload:
    @pytest.mark.asyncio
    async def test_auth_events_survive_and_losses_are_counted(self):
        sink, fallback = ListSink(), ListSink()
        recorder = ActivityRecorder(sink, fallback, buffer_size=10, batch_size=3, flush_interval=0.01)
        recorder.start()

        for index in range(600):
            action = ActivityAction.LOGIN_FAILED if index % 3 == 0 else ActivityAction.API_REQUEST
            await recorder.record(event(action))
        await recorder.stop(drain_timeout=5)

        persisted = sink.actions + fallback.actions
        assert persisted.count("LOGIN_FAILED") == 200
        assert persisted.count("API_REQUEST") + recorder.lost_events == 400


class TestFileActivitySink:
    @pytest.mark.asyncio
    async def test_appends_json_lines(self, tmp_path):
        path = tmp_path / "nested" / "activity.jsonl"
        sink = FileActivitySink(path)

        await sink.write([event(ActivityAction.LOGOUT, user_id=1).to_row()])
        await sink.write([event(ActivityAction.CREATE, user_id=2).to_row()])

        lines = path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["action"] for line in lines] == ["LOGOUT", "CREATE"]
