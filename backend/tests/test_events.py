import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock

from barbershop.models.tables import AppointmentStatus
from barbershop.schemas.appointments import AppointmentRead
from barbershop.services.events import (
    P2P_QUEUE,
    ChangeEvent,
    ChangeFeed,
    ChangeFilter,
    ChangeKind,
    RedisChangeBridge,
    RedisEventNotifier,
    emit_event,
    parse_change_event,
)

MONDAY = date(2024, 6, 10)

RAW_RECORD = {
    "id": 3,
    "client_name": "João Silva",
    "phone": "5511999990000",
    "service_name": "Barba",
    "date": "2024-06-10",
    "start_time": "14:00",
    "status": "confirmed",
    "email": "joao@example.com",
}


def make_event(kind=ChangeKind.INSERT, origin=None, **overrides):
    fields = {**RAW_RECORD, **overrides}
    return ChangeEvent(kind=kind, record=AppointmentRead(**fields), origin=origin)


class TestParseChangeEvent:

    def test_insert(self):
        event = parse_change_event(json.dumps({"event": "INSERT", "new_record": RAW_RECORD}))
        assert event.kind == ChangeKind.INSERT
        assert event.record.id == 3
        assert event.record.date == MONDAY
        assert event.origin is None

    def test_delete_reads_old_record(self):
        event = parse_change_event({"event": "delete", "old_record": RAW_RECORD, "origin": "abc"})
        assert event.kind == ChangeKind.DELETE
        assert event.record.start_time == "14:00"
        assert event.origin == "abc"

    def test_bytes_payload(self):
        raw = json.dumps({"event": "UPDATE", "new_record": RAW_RECORD}).encode()
        assert parse_change_event(raw).kind == ChangeKind.UPDATE

    def test_invalid_json_is_dropped(self, caplog):
        assert parse_change_event("{not json") is None
        assert "invalid JSON" in caplog.text

    def test_unknown_event_type_is_dropped(self):
        assert parse_change_event({"event": "TRUNCATE", "new_record": RAW_RECORD}) is None

    def test_missing_record_is_dropped(self):
        assert parse_change_event({"event": "INSERT"}) is None

    def test_malformed_record_is_dropped(self):
        bad = {**RAW_RECORD, "status": "maybe"}
        assert parse_change_event({"event": "INSERT", "new_record": bad}) is None

    def test_non_object_is_dropped(self):
        assert parse_change_event("[1, 2]") is None


class TestChangeFilter:

    def test_empty_filter_matches_everything(self):
        assert ChangeFilter().matches(make_event().record)

    def test_date_filter(self):
        record = make_event().record
        assert ChangeFilter(date=MONDAY).matches(record)
        assert not ChangeFilter(date=date(2024, 6, 11)).matches(record)

    def test_status_and_email(self):
        record = make_event().record
        assert ChangeFilter(status=AppointmentStatus.CONFIRMED, email="joao@example.com").matches(record)
        assert not ChangeFilter(email="outro@example.com").matches(record)


class TestChangeFeed:

    async def test_sync_and_async_subscribers(self):
        feed = ChangeFeed()
        seen = []

        async def on_async(event):
            seen.append(("async", event.record.id))

        feed.subscribe(lambda event: seen.append(("sync", event.record.id)))
        feed.subscribe(on_async)

        await feed.publish(make_event())

        assert seen == [("sync", 3), ("async", 3)]

    async def test_filtered_subscriber(self):
        feed = ChangeFeed()
        seen = []
        feed.subscribe(seen.append, ChangeFilter(date=date(2024, 6, 11)))

        await feed.publish(make_event())
        await feed.publish(make_event(date="2024-06-11"))

        assert [e.record.date for e in seen] == [date(2024, 6, 11)]

    async def test_unsubscribe(self):
        feed = ChangeFeed()
        seen = []
        unsubscribe = feed.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        await feed.publish(make_event())

        assert seen == []
        assert feed.subscriber_count == 0

    async def test_failing_subscriber_does_not_stop_others(self, caplog):
        feed = ChangeFeed()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(seen.append)

        await feed.publish(make_event())

        assert len(seen) == 1
        assert "Change subscriber failed" in caplog.text


class TestRedisChangeBridge:

    async def test_forward_publishes_local_event(self):
        redis = MagicMock()
        redis.publish = AsyncMock()
        bridge = RedisChangeBridge(redis, ChangeFeed(), channel="changes")

        await bridge.forward(make_event())

        channel, payload = redis.publish.await_args.args
        message = json.loads(payload)
        assert channel == "changes"
        assert message["event"] == "INSERT"
        assert message["new_record"]["id"] == 3
        assert message["origin"] == bridge.origin

    async def test_forward_uses_old_record_for_delete(self):
        redis = MagicMock()
        redis.publish = AsyncMock()
        bridge = RedisChangeBridge(redis, ChangeFeed())

        await bridge.forward(make_event(kind=ChangeKind.DELETE))

        message = json.loads(redis.publish.await_args.args[1])
        assert "old_record" in message
        assert "new_record" not in message

    async def test_forward_skips_remote_event(self):
        redis = MagicMock()
        redis.publish = AsyncMock()
        bridge = RedisChangeBridge(redis, ChangeFeed())

        await bridge.forward(make_event(origin="another-process"))

        redis.publish.assert_not_awaited()

    async def test_forward_logs_publish_error(self, caplog):
        redis = MagicMock()
        redis.publish = AsyncMock(side_effect=ConnectionError("redis down"))
        bridge = RedisChangeBridge(redis, ChangeFeed())

        await bridge.forward(make_event())

        assert "Failed to publish change event" in caplog.text

    async def test_handle_message_publishes_remote_event(self):
        feed = ChangeFeed()
        seen = []
        feed.subscribe(seen.append)
        bridge = RedisChangeBridge(MagicMock(), feed)

        await bridge.handle_message(json.dumps({"event": "INSERT", "new_record": RAW_RECORD, "origin": "other"}))

        assert len(seen) == 1
        assert seen[0].origin == "other"

    async def test_handle_message_skips_own_origin(self):
        feed = ChangeFeed()
        seen = []
        feed.subscribe(seen.append)
        bridge = RedisChangeBridge(MagicMock(), feed)

        await bridge.handle_message(json.dumps({"event": "INSERT", "new_record": RAW_RECORD, "origin": bridge.origin}))
        await bridge.handle_message("garbage")

        assert seen == []

    async def test_relayed_event_is_not_forwarded_again(self):
        redis = MagicMock()
        redis.publish = AsyncMock()
        feed = ChangeFeed()
        bridge = RedisChangeBridge(redis, feed)
        feed.subscribe(bridge.forward)

        await bridge.handle_message(json.dumps({"event": "INSERT", "new_record": RAW_RECORD, "origin": "other"}))

        redis.publish.assert_not_awaited()


class TestNotifications:

    async def test_emit_event_pushes_to_queue(self):
        redis = MagicMock()
        redis.rpush = AsyncMock()

        await emit_event(redis, "appointment_cancelled", {"appointment_id": 3})

        queue, payload = redis.rpush.await_args.args
        event = json.loads(payload)
        assert queue == P2P_QUEUE
        assert event["type"] == "appointment_cancelled"
        assert event["appointment_id"] == 3
        assert isinstance(event["ts"], int)

    async def test_emit_event_failure_is_logged(self, caplog):
        redis = MagicMock()
        redis.rpush = AsyncMock(side_effect=ConnectionError("redis down"))

        await emit_event(redis, "appointment_cancelled", {})

        assert "Failed to emit event appointment_cancelled" in caplog.text

    async def test_cancellation_payload(self):
        redis = MagicMock()
        redis.rpush = AsyncMock()
        notifier = RedisEventNotifier(redis)

        await notifier.notify_cancellation(make_event(status="cancelled").record)

        event = json.loads(redis.rpush.await_args.args[1])
        assert event == {
            "type": "appointment_cancelled",
            "appointment_id": 3,
            "client_name": "João Silva",
            "service_name": "Barba",
            "date": "2024-06-10",
            "start_time": "14:00",
            "ts": event["ts"],
        }
