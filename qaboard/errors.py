"""
Client-side error taxonomy
"""

import httpx

DUPLICATE_QUESTION_MESSAGE = "Duplicate question detected for this lecture."


class BoardError(Exception):
    """Base class for all board errors"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# Local validation (never reaches the network)


class SubmissionError(BoardError):
    """A question submission was blocked locally"""


class EmptyQuestionError(SubmissionError):
    def __init__(self) -> None:
        super().__init__("Question cannot be empty")


class DuplicateQuestionError(SubmissionError):
    def __init__(self) -> None:
        super().__init__(DUPLICATE_QUESTION_MESSAGE)


class PermissionDeniedError(BoardError):
    """The current role lacks the capability for an operation"""


# Remote failures


class TransportError(BoardError):
    """The request never produced an HTTP response"""


class ApiError(BoardError):
    """The server answered with a non-2xx status"""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        """
        Build an error from a failed response

        The message comes from the JSON body's ``detail``, ``error`` or
        ``message`` field, falling back to the reason phrase.
        """
        message = _message_from_body(response) or response.reason_phrase or "Request failed"
        error_cls = ConflictError if response.status_code == 409 else cls
        return error_cls(response.status_code, message)


class ConflictError(ApiError):
    """The server rejected a mutation as a duplicate or conflicting change"""


def _message_from_body(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text or None

    if isinstance(body, dict):
        for field in ("detail", "error", "message"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
            # FastAPI validation errors: list of {"msg": ...}
            if isinstance(value, list) and value:
                first = value[0]
                if isinstance(first, dict) and first.get("msg"):
                    return str(first["msg"])
    return None
