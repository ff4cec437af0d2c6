"""
Server-Sent Events (SSE) route for live board updates
"""

import asyncio
import json
import logging
from typing import Annotated, AsyncGenerator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

import qaboard.config
from qaboard.auth import require_principal
from qaboard.models import EventType, Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# Dependency to verify the query token (EventSource cannot send headers)
def verify_query_token(
    token: Annotated[str | None, Query()] = None,
) -> Principal:
    """Verify the stream token and return the caller"""
    return require_principal(
        token,
        qaboard.config.settings.secret_key,
        max_age=qaboard.config.settings.token_max_age,
    )


async def event_generator(lecture_id: str) -> AsyncGenerator[str, None]:
    """
    Generate content-free SSE refresh events from Redis pub/sub

    Args:
        lecture_id: Lecture ID

    Yields:
        SSE formatted event strings
    """
    import redis.asyncio as aioredis

    # Create async Redis connection
    redis_conn = await aioredis.from_url(
        qaboard.config.settings.redis_url,
        decode_responses=True,
    )
    pubsub = redis_conn.pubsub()
    channel = f"lecture:{lecture_id}:events"

    try:
        await pubsub.subscribe(channel)

        # Send initial comment to keep connection alive
        yield ": connected\n\n"

        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                event_type = json.loads(message["data"]).get("event")
            except (json.JSONDecodeError, AttributeError) as e:
                logger.warning("Skipping malformed event on %s: %s", channel, e)
                continue

            if event_type == EventType.REFRESH.value:
                # The payload carries no data; clients re-fetch the board
                yield f"data: {EventType.REFRESH.value}\n\n"

    except asyncio.CancelledError:
        # Client disconnected
        pass
    finally:
        # Clean up subscription
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        await redis_conn.aclose()


@router.get("/lectures/{lecture_id}/stream")
async def lecture_stream(
    lecture_id: str,
    _: Annotated[Principal, Depends(verify_query_token)],
) -> StreamingResponse:
    """
    SSE stream of a lecture's change notifications
    """
    return StreamingResponse(
        event_generator(lecture_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
