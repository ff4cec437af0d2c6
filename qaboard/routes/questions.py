"""
Question board routes
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Response
from pydantic import BaseModel, ConfigDict

import qaboard.config
from qaboard.auth import bearer_token, require_principal, require_role
from qaboard.errors import DUPLICATE_QUESTION_MESSAGE
from qaboard.models import CreateQuestionRequest, Principal, QuestionStatus, Role
from qaboard.redis_client import RedisClient
from qaboard.services.normalize import normalize_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# Dependency to get Redis client
def get_redis_client() -> RedisClient:
    """Get Redis client instance"""
    import redis
    redis_conn = redis.from_url(qaboard.config.settings.redis_url, decode_responses=True)
    return RedisClient(redis_conn)


# Dependency to verify the bearer token
def verify_token_auth(
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    """Verify the bearer token and return the caller"""
    return require_principal(
        bearer_token(authorization),
        qaboard.config.settings.secret_key,
        max_age=qaboard.config.settings.token_max_age,
    )


# Request/Response models


class QuestionResponse(BaseModel):
    """A question as sent to clients"""

    id: str
    text: str
    author: dict[str, Any] | None = None
    status: QuestionStatus
    important: bool
    answer: str | None = None


class PatchQuestionRequest(BaseModel):
    """TA changes to a question"""

    model_config = ConfigDict(extra="forbid")

    important: bool | None = None
    answer: str | None = None


def to_response(question: dict[str, Any]) -> QuestionResponse:
    return QuestionResponse.model_validate(question)


@router.get("/lectures/{lecture_id}/questions")
async def list_questions(
    lecture_id: str,
    _: Annotated[Principal, Depends(verify_token_auth)],
    redis_client: Annotated[RedisClient, Depends(get_redis_client)],
) -> list[QuestionResponse]:
    """
    List a lecture's questions in creation order
    """
    return [to_response(q) for q in redis_client.get_questions(lecture_id)]


@router.post("/lectures/{lecture_id}/questions", status_code=201)
async def create_question(
    lecture_id: str,
    body: CreateQuestionRequest,
    principal: Annotated[Principal, Depends(verify_token_auth)],
    redis_client: Annotated[RedisClient, Depends(get_redis_client)],
) -> QuestionResponse:
    """
    Post a student question
    """
    require_role(principal, Role.STUDENT, "Only students can post questions")

    if not normalize_text(body.text):
        raise HTTPException(status_code=422, detail="Question cannot be empty")

    max_length = qaboard.config.settings.max_question_length
    if len(body.text) > max_length:
        raise HTTPException(
            status_code=422,
            detail=f"Question must be {max_length} characters or less",
        )

    question = redis_client.submit_question(lecture_id, body.text, author=principal.user)
    if question is None:
        raise HTTPException(status_code=409, detail=DUPLICATE_QUESTION_MESSAGE)

    redis_client.publish_event(lecture_id)
    logger.info("Question %s posted to lecture %s", question["id"], lecture_id)

    return to_response(question)


@router.patch("/questions/{question_id}", status_code=204)
async def patch_question(
    question_id: str,
    body: PatchQuestionRequest,
    principal: Annotated[Principal, Depends(verify_token_auth)],
    redis_client: Annotated[RedisClient, Depends(get_redis_client)],
) -> Response:
    """
    Flag a question as important and/or reply to it
    """
    require_role(principal, Role.TA, "Only TAs can update questions")

    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=422, detail="Nothing to update")
    if "important" in changes and changes["important"] is None:
        raise HTTPException(status_code=422, detail="Field 'important' must be a boolean")

    question = redis_client.update_question(question_id, changes)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")

    redis_client.publish_event(question["lecture_id"])

    return Response(status_code=204)


@router.delete("/questions/{question_id}", status_code=204)
async def delete_question(
    question_id: str,
    principal: Annotated[Principal, Depends(verify_token_auth)],
    redis_client: Annotated[RedisClient, Depends(get_redis_client)],
) -> Response:
    """
    Soft-delete a question
    """
    require_role(principal, Role.TA, "Only TAs can delete questions")

    question = redis_client.delete_question(question_id)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")

    redis_client.publish_event(question["lecture_id"])

    return Response(status_code=204)
