"""
backend/barbershop/services/events.py

Appointment change events and outbound notifications.

- ChangeFeed: in-process subscribe/publish of appointment changes
  (insert / update / delete). Used for cache invalidation and UI refresh.
- RedisChangeBridge: relays ChangeFeed events between processes over
  Redis pub/sub. Losing it costs freshness, never correctness.
- emit_event / RedisEventNotifier: fire-and-forget queue push to
  `events:p2p` for the messaging side (cancellation notices).
"""

import asyncio
import datetime as dt
import inspect
import json
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis

from ..models.tables import AppointmentStatus
from ..schemas.appointments import AppointmentRead

logger = logging.getLogger(__name__)

CHANGES_CHANNEL = "appointments:changes"
P2P_QUEUE = "events:p2p"


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """Strict {insert, update, delete} × Appointment variant."""
    kind: ChangeKind
    record: AppointmentRead
    origin: Optional[str] = None

    model_config = {"frozen": True}


class ChangeFilter(BaseModel):
    date: Optional[dt.date] = None
    status: Optional[AppointmentStatus] = None
    email: Optional[str] = None

    def matches(self, record: AppointmentRead) -> bool:
        if self.date is not None and record.date != self.date:
            return False
        if self.status is not None and record.status != self.status:
            return False
        if self.email is not None and record.email != self.email:
            return False
        return True


def parse_change_event(raw: Union[str, bytes, dict]) -> ChangeEvent | None:
    """
    Parse a loosely structured change payload.

    Accepted shape:
        {"event": "INSERT" | "UPDATE" | "DELETE",
         "new_record": {...}, "old_record": {...}, "origin": "..."}

    DELETE reads old_record, the others read new_record.
    Anything else is logged and dropped (returns None).
    """
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except json.JSONDecodeError:
        logger.warning(f"Dropping change event with invalid JSON: {raw!r}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Dropping change event that is not an object: {raw!r}")
        return None

    kind_raw = data.get("event")
    try:
        kind = ChangeKind(str(kind_raw).upper())
    except ValueError:
        logger.warning(f"Dropping change event with unknown type: {kind_raw!r}")
        return None

    record_raw = data.get("old_record") if kind == ChangeKind.DELETE else data.get("new_record")
    try:
        return ChangeEvent(kind=kind, record=record_raw, origin=data.get("origin"))
    except ValidationError as e:
        logger.warning(f"Dropping malformed {kind.value} change event: {e.error_count()} errors")
        return None


ChangeHandler = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


class ChangeFeed:
    """
    In-process change subscription.

    subscribe() returns an unsubscribe callable. A failing subscriber is
    logged and does not affect the publisher or other subscribers.
    """

    def __init__(self):
        self._subscribers: dict[int, tuple[ChangeHandler, Optional[ChangeFilter]]] = {}
        self._next_id = 0

    def subscribe(
        self,
        on_change: ChangeHandler,
        filter: ChangeFilter | None = None,
    ) -> Callable[[], None]:
        sub_id = self._next_id
        self._next_id += 1
        self._subscribers[sub_id] = (on_change, filter)

        def unsubscribe() -> None:
            self._subscribers.pop(sub_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: ChangeEvent) -> None:
        for handler, flt in list(self._subscribers.values()):
            if flt is not None and not flt.matches(event.record):
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Change subscriber failed on {event.kind.value} #{event.record.id}")


# ── Cross-process bridge ─────────────────────────────────────────────────


class RedisChangeBridge:
    """
    Relays local ChangeFeed events to Redis and remote ones back in.

    Local events (origin=None) are stamped with this process's origin and
    published; incoming messages with our own origin are skipped.
    """

    def __init__(self, redis: Redis, feed: ChangeFeed, channel: str = CHANGES_CHANNEL):
        self.redis = redis
        self.feed = feed
        self.channel = channel
        self.origin = uuid4().hex

    async def forward(self, event: ChangeEvent) -> None:
        if event.origin is not None:
            return

        record_field = "old_record" if event.kind == ChangeKind.DELETE else "new_record"
        message = {
            "event": event.kind.value,
            record_field: event.record.model_dump(mode="json"),
            "origin": self.origin,
        }
        try:
            await self.redis.publish(self.channel, json.dumps(message))
        except Exception as e:
            logger.error(f"Failed to publish change event #{event.record.id}: {e}")

    async def handle_message(self, raw: Any) -> None:
        event = parse_change_event(raw)
        if event is None or event.origin == self.origin:
            return
        await self.feed.publish(event)

    async def listen_loop(self) -> None:
        """Subscribe to the changes channel; reconnect after errors."""
        logger.info("change_bridge_loop started")

        while True:
            pubsub = self.redis.pubsub()
            try:
                await pubsub.subscribe(self.channel)
                async for message in pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    await self.handle_message(message.get("data"))
            except asyncio.CancelledError:
                logger.info("change_bridge_loop cancelled")
                raise
            except Exception:
                logger.exception("change_bridge_loop error, retrying in 5s")
                await asyncio.sleep(5)
            finally:
                await pubsub.aclose()


# ── Outbound notifications ───────────────────────────────────────────────


async def emit_event(redis: Redis, event_type: str, payload: dict) -> None:
    """
    Emit a p2p event (instant delivery).

    Pushed to Redis list `events:p2p` for the messaging consumer.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        await redis.rpush(P2P_QUEUE, json.dumps(event))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")


class RedisEventNotifier:
    """Cancellation notices for the barber, via the p2p queue."""

    def __init__(self, redis: Redis):
        self.redis = redis

    async def notify_cancellation(self, appointment: AppointmentRead) -> None:
        await emit_event(self.redis, "appointment_cancelled", {
            "appointment_id": appointment.id,
            "client_name": appointment.client_name,
            "service_name": appointment.service_name,
            "date": appointment.date.isoformat(),
            "start_time": appointment.start_time,
        })
