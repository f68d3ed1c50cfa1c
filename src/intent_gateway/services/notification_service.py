"""Caller notifications and realtime request events.

Everything here is best effort: failures are logged and returned as a
failed SideEffectOutcome.
"""

import json
import logging
import time
from typing import Any

from pydantic import ValidationError

from intent_gateway.entities import SideEffectOutcome
from intent_gateway.models import Notification
from intent_gateway.protocols import KeyValueStore

logger = logging.getLogger(__name__)

NOTIFICATION_PREFIX = "notifications"
CHANNEL_PREFIX = "channel:request"
NOTIFICATION_TTL = 86400  # 24 hours
STREAM_MAX_LENGTH = 100
HISTORY_LENGTH = 50


def stream_key(caller_id: str) -> str:
    return f"{NOTIFICATION_PREFIX}:stream:{caller_id}"


def history_key(caller_id: str) -> str:
    return f"{NOTIFICATION_PREFIX}:{caller_id}"


class NotificationService:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def notify(
        self,
        caller_id: str,
        kind: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> SideEffectOutcome:
        """Append a notification to the caller's stream and history."""
        notification = Notification(
            type=kind,
            message=message,
            timestamp=int(time.time() * 1000),
            details=details,
        )
        try:
            await self._store.xadd(
                stream_key(caller_id),
                {
                    "type": notification.type,
                    "message": notification.message,
                    "timestamp": str(notification.timestamp),
                    "details": json.dumps(details) if details else "",
                },
                maxlen=STREAM_MAX_LENGTH,
            )
            await self._store.expire(stream_key(caller_id), NOTIFICATION_TTL)

            await self._store.rpush(history_key(caller_id), notification.model_dump_json())
            await self._store.ltrim(history_key(caller_id), -HISTORY_LENGTH, -1)
            await self._store.expire(history_key(caller_id), NOTIFICATION_TTL)
        except Exception as e:
            logger.exception("Failed to add notification for user %s", caller_id)
            return SideEffectOutcome.failure(e)

        logger.info("Added %s notification for user %s: %s", kind, caller_id, message[:50])
        return SideEffectOutcome.success()

    async def publish(self, event: str, data: dict[str, Any]) -> SideEffectOutcome:
        """Publish a realtime event on ``channel:request:{event}``."""
        channel = f"{CHANNEL_PREFIX}:{event}"
        try:
            await self._store.publish(channel, json.dumps(data, default=str))
        except Exception as e:
            logger.exception("Failed to publish real-time event to %s", channel)
            return SideEffectOutcome.failure(e)

        logger.debug("Published real-time event to %s", channel)
        return SideEffectOutcome.success()

    async def notify_template_conflict(
        self, caller_id: str, intent: str, conflicting_templates: list[str]
    ) -> SideEffectOutcome:
        return await self.notify(
            caller_id,
            "warning",
            "Multiple templates match intent. Using best match.",
            {"intent": intent[:50], "conflicting_templates": conflicting_templates},
        )

    async def notify_intent_rewritten(self, caller_id: str, original: str, rewritten: str) -> SideEffectOutcome:
        return await self.notify(
            caller_id,
            "info",
            f"Rewritten intent: {rewritten}",
            {"original": original, "rewritten": rewritten},
        )

    async def notify_rewrite_fallback(self, caller_id: str) -> SideEffectOutcome:
        return await self.notify(caller_id, "warning", "Intent rewriting failed. Using original input.")

    async def request_completed(
        self,
        caller_id: str,
        intent: str,
        template: str,
        confidence: float,
        cached: bool,
        latency_ms: int,
        tokens_used: int,
    ) -> SideEffectOutcome:
        return await self.publish(
            "completed",
            {
                "event": "request:completed",
                "user": caller_id,
                "intent": intent,
                "template": template,
                "confidence": confidence,
                "cached": cached,
                "latency_ms": latency_ms,
                "tokens_used": tokens_used,
                "timestamp": time.time(),
            },
        )

    async def recent(self, caller_id: str, limit: int = 20) -> list[Notification]:
        """Most recent notifications, newest first."""
        raw_items = await self._store.lrange(history_key(caller_id), -limit, -1)
        notifications = []
        for raw in reversed(raw_items):
            try:
                notifications.append(Notification.model_validate_json(raw))
            except ValidationError:
                logger.warning("Skipping corrupt notification for user %s", caller_id)
        return notifications

    async def stream(self, caller_id: str, count: int | None = None) -> list[tuple[str, dict[str, str]]]:
        """Raw stream entries, oldest first."""
        return await self._store.xrange(stream_key(caller_id), count=count)
