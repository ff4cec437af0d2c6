"""Client-side duplicate guard for question submissions."""

from __future__ import annotations

from collections.abc import Iterable

from qaboard.errors import DuplicateQuestionError, EmptyQuestionError
from qaboard.models import Question, QuestionStatus
from qaboard.services.normalize import normalize_text


def is_duplicate(candidate: str | None, existing: Iterable[Question]) -> bool:
    """Return True if a non-deleted question has the same normalized text."""

    normalized = normalize_text(candidate)
    return any(
        q.status != QuestionStatus.DELETED and normalize_text(q.text) == normalized
        for q in existing
    )


def check_submission(candidate: str | None, existing: Iterable[Question]) -> str:
    """
    Validate a submission against the locally known questions.

    This only sees the local cache, so two clients racing with the same text
    are left to the server's own check.

    Returns:
        The raw candidate text, unchanged

    Raises:
        EmptyQuestionError: If the normalized text is empty
        DuplicateQuestionError: If a live question already has the same text
    """
    text = candidate or ""
    if not normalize_text(text):
        raise EmptyQuestionError()
    if is_duplicate(text, existing):
        raise DuplicateQuestionError()
    return text
