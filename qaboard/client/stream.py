"""
Server-push subscription for a single lecture board

The channel carries no data: every message only means "something changed,
re-fetch". Transport failures are never raised; the subscription keeps
reconnecting until it is closed or the server refuses the credential.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable

from pydantic import BaseModel

import qaboard.config
from qaboard.errors import ApiError

logger = logging.getLogger(__name__)


class ServerEvent(BaseModel):
    """One dispatched event from a ``text/event-stream`` response"""

    event: str = "message"
    data: str = ""
    id: str | None = None
    retry: int | None = None  # Reconnect hint in milliseconds


# Synthetic event emitted by a connect function once the stream is accepted
OPEN_EVENT = "open"

# Responses after which the channel is not reopened
REFUSED_STATUSES = frozenset({401, 403})

# Lower bound of the reconnect delay accepted from a server hint, in seconds
MIN_RETRY = 0.1

Connect = Callable[[], AsyncIterator[ServerEvent]]
RefreshCallback = Callable[[], Awaitable[None]]


async def parse_event_stream(lines: AsyncIterable[str]) -> AsyncIterator[ServerEvent]:
    """
    Parse SSE lines into events

    Blocks are separated by blank lines. Comment lines (``:``) are skipped.
    A block is yielded when it carries data or a retry hint.
    """
    event_type = "message"
    data_lines: list[str] = []
    event_id: str | None = None
    retry: int | None = None

    async for raw_line in lines:
        line = raw_line.rstrip("\r\n")

        if line == "":
            if data_lines or retry is not None:
                yield ServerEvent(
                    event=event_type,
                    data="\n".join(data_lines),
                    id=event_id,
                    retry=retry,
                )
            event_type = "message"
            data_lines = []
            retry = None
            continue

        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            data_lines.append(value)
        elif field == "event":
            event_type = value or "message"
        elif field == "id":
            event_id = value
        elif field == "retry" and value.isdigit():
            retry = int(value)


class StreamSubscription:
    """
    Long-lived push channel scoped to one lecture

    Args:
        lecture_id: Lecture the channel is scoped to
        on_refresh: Coroutine run for every notification and after each reconnect
        connect: Opens the channel and yields its events
        retry: Seconds to wait before reconnecting (server hints override it)
    """

    def __init__(
        self,
        lecture_id: str,
        on_refresh: RefreshCallback,
        connect: Connect,
        retry: float | None = None,
    ) -> None:
        self.lecture_id = lecture_id
        self.retry = qaboard.config.settings.stream_retry if retry is None else retry
        self.connected = False
        self._on_refresh = on_refresh
        self._connect = connect
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active(self) -> bool:
        return self._task is not None and not self._closed

    def open(self) -> None:
        """Start the background reader; must be called from a running loop"""
        if self._closed:
            raise RuntimeError("Subscription is closed")
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"lecture-stream:{self.lecture_id}"
        )
        logger.debug("Opened stream for lecture %s", self.lecture_id)

    def close(self) -> None:
        """Close the channel; no refresh is triggered after this returns"""
        if self._closed:
            return
        self._closed = True
        self.connected = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug("Closed stream for lecture %s", self.lecture_id)

    async def wait_closed(self) -> None:
        """Wait until the background reader has finished"""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while not self._closed:
            try:
                async for event in self._connect():
                    if self._closed:
                        return
                    await self._handle(event)
                logger.info("Stream for lecture %s ended, reconnecting", self.lecture_id)
            except ApiError as e:
                if e.status_code in REFUSED_STATUSES:
                    logger.warning(
                        "Stream for lecture %s refused (%s), not reconnecting: %s",
                        self.lecture_id,
                        e.status_code,
                        e.message,
                    )
                    self.connected = False
                    self._closed = True
                    return
                logger.warning("Stream for lecture %s failed: %s", self.lecture_id, e)
            except Exception as e:
                # Reconnection is ours to handle; nothing reaches the caller
                logger.warning("Stream for lecture %s failed: %s", self.lecture_id, e)

            self.connected = False
            if self._closed:
                return
            await asyncio.sleep(self.retry)

    async def _handle(self, event: ServerEvent) -> None:
        if event.retry is not None:
            self.retry = max(event.retry / 1000, MIN_RETRY)

        if event.event == OPEN_EVENT:
            # Changes published before the channel was listening were never
            # announced, so every open resyncs, the first one included
            self.connected = True
            await self._refresh()
            return

        if event.data:
            await self._refresh()

    async def _refresh(self) -> None:
        try:
            await self._on_refresh()
        except Exception:
            logger.exception("Refresh for lecture %s failed", self.lecture_id)
