"""
Tests for role-scoped mutations

This test file covers:
- Students can create, TAs cannot (and vice versa for patches)
- Patch bodies contain exactly the fields that were set
- Empty or unknown patch fields are rejected before any request
"""

import json

import httpx
import pytest
from pydantic import ValidationError

from qaboard.client.api import BoardApiClient
from qaboard.client.gateway import MutationGateway
from qaboard.errors import PermissionDeniedError
from qaboard.models import QuestionPatch, Role


@pytest.fixture
def sent() -> list[tuple[str, str, dict]]:
    return []


@pytest.fixture
def api(sent: list[tuple[str, str, dict]]) -> BoardApiClient:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        sent.append((request.method, request.url.path, body))
        if request.method == "POST":
            return httpx.Response(201, json={"id": "q-1", "text": body["text"]})
        return httpx.Response(204)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BoardApiClient("http://board.test/api", token="t", client=http)


class TestCreateQuestion:
    """Test cases for create_question"""

    @pytest.mark.asyncio
    async def test_student_creates(self, api: BoardApiClient, sent) -> None:
        gateway = MutationGateway(api, Role.STUDENT.capabilities)

        question = await gateway.create_question("L1", "What is Y?")

        assert question.text == "What is Y?"
        assert sent == [("POST", "/api/lectures/L1/questions", {"text": "What is Y?"})]

    @pytest.mark.asyncio
    async def test_ta_cannot_create(self, api: BoardApiClient, sent) -> None:
        gateway = MutationGateway(api, Role.TA.capabilities)

        with pytest.raises(PermissionDeniedError):
            await gateway.create_question("L1", "What is Y?")

        assert sent == []


class TestPatchQuestion:
    """Test cases for patch_question"""

    @pytest.mark.asyncio
    async def test_scenario_c_sends_only_important(self, api: BoardApiClient, sent) -> None:
        gateway = MutationGateway(api, Role.TA.capabilities)

        await gateway.patch_question("1", QuestionPatch(important=True))

        assert sent == [("PATCH", "/api/questions/1", {"important": True})]

    @pytest.mark.asyncio
    async def test_answer_only(self, api: BoardApiClient, sent) -> None:
        gateway = MutationGateway(api, Role.TA.capabilities)

        await gateway.patch_question("1", {"answer": "See slide 4"})

        assert sent == [("PATCH", "/api/questions/1", {"answer": "See slide 4"})]

    @pytest.mark.asyncio
    async def test_both_fields(self, api: BoardApiClient, sent) -> None:
        gateway = MutationGateway(api, Role.TA.capabilities)

        await gateway.patch_question("1", {"important": False, "answer": ""})

        assert sent[0][2] == {"important": False, "answer": ""}

    @pytest.mark.asyncio
    async def test_student_cannot_patch(self, api: BoardApiClient, sent) -> None:
        gateway = MutationGateway(api, Role.STUDENT.capabilities)

        with pytest.raises(PermissionDeniedError):
            await gateway.patch_question("1", {"important": True})

        assert sent == []

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, api: BoardApiClient, sent) -> None:
        gateway = MutationGateway(api, Role.TA.capabilities)

        with pytest.raises(ValidationError):
            await gateway.patch_question("1", {"text": "edited"})

        assert sent == []

    def test_empty_patch_rejected(self) -> None:
        with pytest.raises(ValidationError):
            QuestionPatch()
