"""
HTTP client for the board API
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

import qaboard.config
from qaboard.errors import ApiError, TransportError
from qaboard.models import ClassInfo, Lecture, Question
from qaboard.client.stream import OPEN_EVENT, ServerEvent, parse_event_stream

logger = logging.getLogger(__name__)

_QUESTION = TypeAdapter(Question)
_CLASS = TypeAdapter(ClassInfo)
_LECTURE = TypeAdapter(Lecture)

# The push channel is idle for long stretches; never time out between events
STREAM_TIMEOUT = httpx.Timeout(5.0, read=None)


class BoardApiClient:
    """Authenticated request/response channel to the board service"""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or qaboard.config.settings.api_url).rstrip("/")
        self.token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "BoardApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(
                method, self._url(path), headers=self._build_headers(), **kwargs
            )
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            raise ApiError.from_response(response)
        return response

    @staticmethod
    def _parse(adapter: TypeAdapter, response: httpx.Response) -> list[Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(response.status_code, "Server returned a non-JSON payload") from e
        # Anything other than a list is treated as an empty collection
        if not isinstance(data, list):
            return []

        items = []
        for index, item in enumerate(data):
            try:
                items.append(adapter.validate_python(item))
            except ValidationError as e:
                # Malformed rows are skipped individually
                logger.warning("Skipping malformed item %d from %s: %s", index, response.url, e)
        return items

    # Questions

    async def list_questions(self, lecture_id: str) -> list[Question]:
        response = await self._request("GET", f"/lectures/{lecture_id}/questions")
        return self._parse(_QUESTION, response)

    async def create_question(self, lecture_id: str, text: str) -> Question:
        response = await self._request(
            "POST", f"/lectures/{lecture_id}/questions", json={"text": text}
        )
        try:
            return Question.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ApiError(response.status_code, "Server returned malformed data") from e

    async def patch_question(self, question_id: str, payload: dict[str, Any]) -> None:
        await self._request("PATCH", f"/questions/{question_id}", json=payload)

    # Class directory

    async def my_classes(self) -> list[ClassInfo]:
        response = await self._request("GET", "/classes/my")
        return self._parse(_CLASS, response)

    async def class_lectures(self, class_id: str) -> list[Lecture]:
        response = await self._request("GET", f"/classes/{class_id}/lectures")
        return self._parse(_LECTURE, response)

    async def join_class(self, code: str) -> None:
        await self._request("POST", "/classes/join", json={"code": code})

    # Push channel

    def stream_url(self, lecture_id: str) -> httpx.URL:
        """URL of a lecture's push channel; the token travels as a query parameter"""
        return httpx.URL(
            self._url(f"/lectures/{lecture_id}/stream"),
            params={"token": self.token or ""},
        )

    async def iter_lecture_events(self, lecture_id: str) -> AsyncIterator[ServerEvent]:
        """
        Open a lecture's push channel and yield its events

        An ``open`` event is yielded once the server accepts the stream.

        Raises:
            ApiError: If the server refuses the stream
            httpx.HTTPError: On transport failure
        """
        async with self._client.stream(
            "GET",
            self.stream_url(lecture_id),
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            timeout=STREAM_TIMEOUT,
        ) as response:
            if response.is_error:
                await response.aread()
                raise ApiError.from_response(response)

            yield ServerEvent(event=OPEN_EVENT)
            async for event in parse_event_stream(response.aiter_lines()):
                yield event
