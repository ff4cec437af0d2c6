"""
Fixtures for client tests: an in-memory board behind httpx.MockTransport
and a controllable push channel
"""

import asyncio
import copy
import json
import re
from collections import defaultdict
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path

import httpx
import pytest

from qaboard.client.api import BoardApiClient
from qaboard.client.controller import BoardController
from qaboard.client.selection import FileSelectionStore
from qaboard.client.stream import OPEN_EVENT, ServerEvent
from qaboard.errors import DUPLICATE_QUESTION_MESSAGE
from qaboard.models import Role
from qaboard.services.normalize import normalize_text

BASE_URL = "http://board.test/api"

_LECTURE_QUESTIONS = re.compile(r"^/api/lectures/([^/]+)/questions$")
_QUESTION = re.compile(r"^/api/questions/([^/]+)$")
_CLASS_LECTURES = re.compile(r"^/api/classes/([^/]+)/lectures$")


class FakeBoardServer:
    """Minimal board service keeping questions in memory"""

    def __init__(self) -> None:
        self.questions: dict[str, list[dict]] = defaultdict(list)
        self.classes: list[dict] = []
        self.lectures: dict[str, list[dict]] = {}
        self.join_codes: dict[str, dict] = {}
        self.requests: list[tuple[str, str, dict | None]] = []
        # One gate per upcoming list request; the response is held until set
        self.list_gates: list[asyncio.Event] = []
        # Status codes to fail upcoming requests with, keyed by method
        self.failures: dict[str, list[tuple[int, dict]]] = defaultdict(list)
        self._next_id = 1

    def add_question(self, lecture_id: str, text: str, **fields) -> dict:
        question = {
            "_id": str(fields.pop("id", self._next_id)),
            "text": text,
            "author": fields.pop("author", None),
            "status": "open",
            "important": False,
            "answer": None,
        }
        question.update(fields)
        self._next_id += 1
        self.questions[lecture_id].append(question)
        return question

    def calls(self, method: str, path_suffix: str = "") -> list[tuple[str, str, dict | None]]:
        return [r for r in self.requests if r[0] == method and r[1].endswith(path_suffix)]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))

        if self.failures[request.method]:
            status, payload = self.failures[request.method].pop(0)
            return httpx.Response(status, json=payload)

        if match := _LECTURE_QUESTIONS.match(path):
            lecture_id = match.group(1)
            if request.method == "GET":
                snapshot = copy.deepcopy(self.questions[lecture_id])
                if self.list_gates:
                    await self.list_gates.pop(0).wait()
                return httpx.Response(200, json=snapshot)
            if request.method == "POST":
                text = body["text"]
                for q in self.questions[lecture_id]:
                    if q["status"] != "deleted" and normalize_text(q["text"]) == normalize_text(text):
                        return httpx.Response(409, json={"error": DUPLICATE_QUESTION_MESSAGE})
                question = self.add_question(lecture_id, text, author={"name": "Ada"})
                return httpx.Response(201, json=question)

        if (match := _QUESTION.match(path)) and request.method == "PATCH":
            for questions in self.questions.values():
                for q in questions:
                    if q["_id"] == match.group(1):
                        q.update(body)
                        if "answer" in body:
                            q["status"] = "answered" if body["answer"] else "open"
                        return httpx.Response(204)
            return httpx.Response(404, json={"detail": "Question not found"})

        if path == "/api/classes/my":
            return httpx.Response(200, json=self.classes)

        if match := _CLASS_LECTURES.match(path):
            return httpx.Response(200, json=self.lectures.get(match.group(1), []))

        if path == "/api/classes/join":
            joined = self.join_codes.get(body["code"])
            if joined is None:
                return httpx.Response(404, json={"message": "Invalid class code"})
            self.classes.append(joined)
            return httpx.Response(204)

        return httpx.Response(404, json={"detail": "Not Found"})


class FakeChannel:
    """Push channel whose events are fed by the test, one queue per lecture"""

    def __init__(self) -> None:
        self.queues: dict[str, asyncio.Queue] = defaultdict(asyncio.Queue)
        self.connects: list[str] = []
        # Lectures whose channel only opens once the event is set
        self.open_gates: dict[str, asyncio.Event] = {}

    def push(self, lecture_id: str, data: str = "refresh") -> None:
        self.queues[lecture_id].put_nowait(ServerEvent(data=data))

    def fail(self, lecture_id: str, error: Exception) -> None:
        self.queues[lecture_id].put_nowait(error)

    def connect_factory(self, lecture_id: str) -> Callable[[], AsyncIterator[ServerEvent]]:
        async def connect() -> AsyncIterator[ServerEvent]:
            self.connects.append(lecture_id)
            if lecture_id in self.open_gates:
                await self.open_gates[lecture_id].wait()
            yield ServerEvent(event=OPEN_EVENT)
            while True:
                item = await self.queues[lecture_id].get()
                if isinstance(item, Exception):
                    raise item
                yield item

        return connect


@pytest.fixture
def server() -> FakeBoardServer:
    return FakeBoardServer()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def make_api(server: FakeBoardServer) -> Callable[..., BoardApiClient]:
    def factory(token: str | None = "test-token") -> BoardApiClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(server.handler))
        return BoardApiClient(BASE_URL, token=token, client=http)

    return factory


@pytest.fixture
def selection_store(tmp_path: Path) -> FileSelectionStore:
    return FileSelectionStore(tmp_path / "selection.json")


@pytest.fixture
def make_controller(
    make_api: Callable[..., BoardApiClient],
    channel: FakeChannel,
    selection_store: FileSelectionStore,
) -> Callable[..., BoardController]:
    def factory(role: Role = Role.STUDENT, token: str | None = "test-token") -> BoardController:
        return BoardController(
            make_api(token),
            role,
            selection_store,
            connect_factory=channel.connect_factory,
            stream_retry=0.01,
        )

    return factory


@pytest.fixture
def eventually() -> Callable[[Callable[[], bool]], Awaitable[None]]:
    """Wait until a condition holds, letting background tasks run"""

    async def wait(condition: Callable[[], bool], timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout):
            while not condition():
                await asyncio.sleep(0.005)

    return wait


async def settle() -> None:
    """Give background tasks a few loop iterations"""
    for _ in range(5):
        await asyncio.sleep(0.01)


@pytest.fixture
def let_run() -> Callable[[], Awaitable[None]]:
    return settle
