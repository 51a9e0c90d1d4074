"""Script to move dead-lettered queue entries back to their source stream."""

import argparse
import asyncio
import sys

from app.config import settings
from app.core.countries import COUNTRY_ROUTES
from app.core.redis_client import close_redis_connection, get_redis_client
from app.messaging.work_queue import RedisStreamQueue, RedrivePolicy


def known_streams() -> list[str]:
    """Streams that have a dead-letter companion."""
    return [route.topic for route in COUNTRY_ROUTES.values()] + [settings.completion_bus_stream]


async def redrive(stream: str, limit: int) -> int:
    """Redrive up to ``limit`` entries of one stream's dead-letter stream."""
    queue = RedisStreamQueue(
        get_redis_client(),
        stream=stream,
        group="redrive",
        consumer="redrive",
        policy=RedrivePolicy.for_stream(stream),
    )
    try:
        return await queue.redrive_dead_letters(limit=limit)
    finally:
        await close_redis_connection()


def main() -> int:
    """Run the redrive."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--stream", required=True, choices=known_streams())
    parser.add_argument("--limit", type=int, default=100)
    args = parser.parse_args()

    try:
        moved = asyncio.run(redrive(args.stream, args.limit))
    except Exception as e:
        print(f"✗ Redrive failed: {e}", file=sys.stderr)
        return 1

    print(f"✓ Moved {moved} entries back to {args.stream}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
