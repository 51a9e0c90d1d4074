"""At-least-once work queue on Redis Streams consumer groups.

A stream is a channel partition; a consumer group reading it is a queue
subscribed to that partition. Unacknowledged entries become visible again
once idle for ``visibility_timeout_ms`` and are moved to the dead-letter
stream after ``max_receive_count`` deliveries.
"""

from dataclasses import dataclass

import redis.asyncio as aioredis
import structlog
from redis.exceptions import ResponseError

from app.config import Settings, settings

logger = structlog.get_logger(__name__)

BODY_FIELD = "body"


@dataclass(frozen=True)
class QueueMessage:
    """One delivery of a queue entry."""

    message_id: str
    body: str
    receive_count: int = 1


@dataclass(frozen=True)
class RedrivePolicy:
    """Delivery policy owned by the transport, not by the consumers."""

    max_receive_count: int
    visibility_timeout_ms: int
    dead_letter_stream: str

    @classmethod
    def for_stream(cls, stream: str, config: Settings | None = None) -> "RedrivePolicy":
        """Build the configured policy for a source stream."""
        config = config or settings
        return cls(
            max_receive_count=config.queue_max_receive_count,
            visibility_timeout_ms=config.queue_visibility_timeout_ms,
            dead_letter_stream=f"{stream}.dlq",
        )


class RedisStreamQueue:
    """Consumer-group reader with redelivery and dead-lettering."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        stream: str,
        group: str,
        consumer: str,
        policy: RedrivePolicy,
    ):
        """Initialize queue for one consumer of a group."""
        self.redis = redis_client
        self.stream = stream
        self.group = group
        self.consumer = consumer
        self.policy = policy

    async def ensure_group(self) -> None:
        """Create the consumer group (and stream) if missing."""
        try:
            await self.redis.xgroup_create(self.stream, self.group, id="0", mkstream=True)
            logger.info("queue_group_created", stream=self.stream, group=self.group)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    async def send(self, body: str, max_len: int | None = None) -> str:
        """Append an entry to the stream."""
        return await self.redis.xadd(
            self.stream,
            {BODY_FIELD: body},
            maxlen=max_len or settings.stream_max_len,
            approximate=True,
        )

    async def receive(self, max_messages: int, block_ms: int | None = None) -> list[QueueMessage]:
        """
        Receive up to ``max_messages`` deliveries.

        Expired in-flight entries are reclaimed first, then new entries are
        read. Entries over the delivery ceiling are dead-lettered instead of
        being returned.
        """
        messages = await self._reclaim_expired(max_messages)

        remaining = max_messages - len(messages)
        if remaining > 0:
            response = await self.redis.xreadgroup(
                self.group,
                self.consumer,
                {self.stream: ">"},
                count=remaining,
                block=block_ms,
            )
            for _stream, entries in response or []:
                for message_id, fields in entries:
                    messages.append(
                        QueueMessage(message_id=message_id, body=(fields or {}).get(BODY_FIELD, ""))
                    )

        return messages

    async def ack(self, *message_ids: str) -> int:
        """Acknowledge settled deliveries."""
        if not message_ids:
            return 0
        return await self.redis.xack(self.stream, self.group, *message_ids)

    async def _reclaim_expired(self, max_messages: int) -> list[QueueMessage]:
        response = await self.redis.xautoclaim(
            self.stream,
            self.group,
            self.consumer,
            min_idle_time=self.policy.visibility_timeout_ms,
            start_id="0-0",
            count=max_messages,
        )
        claimed = response[1] if len(response) > 1 else []

        messages = []
        for message_id, fields in claimed:
            if fields is None:
                # Entry trimmed from the stream while pending
                await self.ack(message_id)
                continue

            receive_count = await self._receive_count(message_id)
            body = fields.get(BODY_FIELD, "")
            if receive_count > self.policy.max_receive_count:
                await self._dead_letter(message_id, body, receive_count)
                continue

            messages.append(
                QueueMessage(message_id=message_id, body=body, receive_count=receive_count)
            )

        return messages

    async def _receive_count(self, message_id: str) -> int:
        pending = await self.redis.xpending_range(
            self.stream,
            self.group,
            min=message_id,
            max=message_id,
            count=1,
        )
        if not pending:
            return 1
        return int(pending[0]["times_delivered"])

    async def _dead_letter(self, message_id: str, body: str, receive_count: int) -> None:
        await self.redis.xadd(
            self.policy.dead_letter_stream,
            {
                BODY_FIELD: body,
                "source_stream": self.stream,
                "source_id": message_id,
                "receive_count": str(receive_count),
            },
        )
        await self.ack(message_id)
        logger.warning(
            "message_dead_lettered",
            stream=self.stream,
            group=self.group,
            message_id=message_id,
            receive_count=receive_count,
            dead_letter_stream=self.policy.dead_letter_stream,
        )

    async def redrive_dead_letters(self, limit: int = 100) -> int:
        """
        Move dead-lettered entries back onto the source stream.

        Returns:
            Number of entries moved
        """
        entries = await self.redis.xrange(self.policy.dead_letter_stream, count=limit)
        moved = 0
        for dead_id, fields in entries:
            await self.send(fields.get(BODY_FIELD, ""))
            await self.redis.xdel(self.policy.dead_letter_stream, dead_id)
            moved += 1

        logger.info("dead_letters_redriven", stream=self.stream, moved=moved)
        return moved
