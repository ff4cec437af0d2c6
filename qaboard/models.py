"""
Pydantic models shared by the board service and client
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class QuestionStatus(str, Enum):
    """Lifecycle status of a question"""

    OPEN = "open"
    ANSWERED = "answered"
    DELETED = "deleted"  # Soft delete, only ever observed by clients


class Author(BaseModel):
    """Display information of a question's author"""

    name: str | None = None


class Question(BaseModel):
    """A student question on a lecture board"""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    text: str = ""
    author: Author | None = None
    status: QuestionStatus = QuestionStatus.OPEN
    important: bool = False
    answer: str | None = None

    @field_validator("author", mode="before")
    @classmethod
    def coerce_author(cls, v: Any) -> Any:
        """Accept a bare display name; unknown shapes count as anonymous"""
        if isinstance(v, str):
            return {"name": v}
        if isinstance(v, dict):
            name = v.get("name")
            return {"name": name} if isinstance(name, str) else None
        if isinstance(v, Author):
            return v
        return None

    @property
    def author_name(self) -> str | None:
        return self.author.name if self.author else None


class QuestionPatch(BaseModel):
    """TA-side changes to a question; only explicitly set fields are sent"""

    model_config = ConfigDict(extra="forbid")

    important: bool | None = None
    answer: str | None = None

    @model_validator(mode="after")
    def validate_not_empty(self) -> "QuestionPatch":
        """Require at least one field"""
        if not self.model_fields_set:
            raise ValueError("Patch must set 'important' or 'answer'")
        return self

    def payload(self) -> dict[str, bool | str | None]:
        """Wire body containing exactly the fields that were set"""
        return self.model_dump(exclude_unset=True)


class CreateQuestionRequest(BaseModel):
    """Request body for posting a question"""

    text: str


class ClassInfo(BaseModel):
    """A class the current user belongs to"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    subject: str = ""
    code: str | None = None


class Lecture(BaseModel):
    """A lecture within a class; scopes a question set"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    title: str = ""


# Roles and capabilities


class Role(str, Enum):
    """Board roles"""

    STUDENT = "student"
    TA = "ta"

    @property
    def capabilities(self) -> "Capabilities":
        return STUDENT_CAPABILITIES if self is Role.STUDENT else TA_CAPABILITIES

    @property
    def selection_prefix(self) -> str:
        """Namespace of the persisted class/lecture selection"""
        return "S" if self is Role.STUDENT else "TA"


class Capabilities(BaseModel):
    """What a role may do on a board"""

    model_config = ConfigDict(frozen=True)

    can_create: bool = False
    can_moderate: bool = False


STUDENT_CAPABILITIES = Capabilities(can_create=True)
TA_CAPABILITIES = Capabilities(can_moderate=True)


class Principal(BaseModel):
    """Verified identity carried by a bearer token"""

    role: Role
    user: str


# Client-side state


class BoardState(str, Enum):
    """Lifecycle of a mounted board"""

    IDLE = "idle"  # No lecture selected
    LOADING = "loading"  # First fetch in flight
    LIVE = "live"  # Data present
    CLOSED = "closed"  # Unmounted


class RequestStatus(str, Enum):
    """Status of a user-initiated mutation"""

    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RequestState(BaseModel):
    """Outcome of a user-initiated mutation, drives UI feedback"""

    model_config = ConfigDict(frozen=True)

    status: RequestStatus = RequestStatus.IDLE
    message: str | None = None

    @classmethod
    def pending(cls) -> "RequestState":
        return cls(status=RequestStatus.PENDING)

    @classmethod
    def succeeded(cls, message: str | None = None) -> "RequestState":
        return cls(status=RequestStatus.SUCCEEDED, message=message)

    @classmethod
    def failed(cls, message: str) -> "RequestState":
        return cls(status=RequestStatus.FAILED, message=message)

    @property
    def ok(self) -> bool:
        return self.status == RequestStatus.SUCCEEDED


class Selection(BaseModel):
    """Last chosen class and lecture for one role"""

    class_id: str = ""
    lecture_id: str = ""


# Push events


class EventType(str, Enum):
    """Types of events published on a lecture channel"""

    REFRESH = "refresh"
