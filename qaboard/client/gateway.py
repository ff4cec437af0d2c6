"""
Role-scoped mutations sent to the board service
"""

from __future__ import annotations

from typing import Any

from qaboard.client.api import BoardApiClient
from qaboard.errors import PermissionDeniedError
from qaboard.models import Capabilities, Question, QuestionPatch


class MutationGateway:
    """
    Sends create/patch requests on behalf of one role

    The gateway never touches local state: callers converge through a full
    reload once a mutation succeeds.
    """

    def __init__(self, api: BoardApiClient, capabilities: Capabilities) -> None:
        self.api = api
        self.capabilities = capabilities

    async def create_question(self, lecture_id: str, text: str) -> Question:
        """
        Post a question with its raw text

        Raises:
            PermissionDeniedError: If the role cannot create questions
            ApiError: If the server rejects the question (ConflictError on duplicates)
            TransportError: If the request fails
        """
        if not self.capabilities.can_create:
            raise PermissionDeniedError("Only students can post questions")
        return await self.api.create_question(lecture_id, text)

    async def patch_question(
        self, question_id: str, patch: QuestionPatch | dict[str, Any]
    ) -> None:
        """
        Update a question's importance flag and/or reply

        Only fields that were explicitly set are sent.

        Raises:
            PermissionDeniedError: If the role cannot moderate
            pydantic.ValidationError: If the patch is empty or has unknown fields
        """
        if not self.capabilities.can_moderate:
            raise PermissionDeniedError("Only TAs can update questions")
        if not isinstance(patch, QuestionPatch):
            patch = QuestionPatch.model_validate(patch)
        await self.api.patch_question(question_id, patch.payload())
