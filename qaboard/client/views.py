"""
Role views over a board controller
"""

from __future__ import annotations

from pydantic import BaseModel

from qaboard.client.controller import BoardController
from qaboard.errors import PermissionDeniedError
from qaboard.models import Question, QuestionStatus, RequestState, RequestStatus, Role

ANONYMOUS = "Anon"


class NoteCard(BaseModel):
    """Display data of one question"""

    id: str
    author: str
    badge: str
    text: str
    answer: str | None = None
    important: bool = False

    @classmethod
    def from_question(cls, question: Question) -> "NoteCard":
        if question.important:
            badge = "Important"
        elif question.status == QuestionStatus.ANSWERED:
            badge = "Answered"
        else:
            badge = "Open"

        return cls(
            id=question.id,
            author=question.author_name or ANONYMOUS,
            badge=badge,
            text=question.text,
            answer=question.answer or None,
            important=question.important,
        )


class _RoleBoard:
    """Shared rendering of the current store contents"""

    role: Role

    def __init__(self, controller: BoardController) -> None:
        if controller.role is not self.role:
            raise PermissionDeniedError(
                f"{type(self).__name__} needs a {self.role.value} controller"
            )
        self.controller = controller

    @property
    def lecture_id(self) -> str | None:
        return self.controller.lecture_id

    async def show(self, lecture_id: str) -> None:
        """Mount the board of a lecture"""
        await self.controller.select_lecture(lecture_id)

    @property
    def cards(self) -> list[NoteCard]:
        return [NoteCard.from_question(q) for q in self.controller.store]

    @property
    def error(self) -> str | None:
        return self.controller.error

    def dismiss_error(self) -> None:
        self.controller.dismiss_error()


class StudentBoard(_RoleBoard):
    """Student board: read the questions and post new ones"""

    role = Role.STUDENT

    def __init__(self, controller: BoardController) -> None:
        super().__init__(controller)
        self.draft = ""
        self.posting = False

    async def submit(self) -> RequestState:
        """Post the draft; it is kept on failure so the student can edit it"""
        if self.posting:
            return RequestState.pending()

        self.posting = True
        try:
            result = await self.controller.submit_question(self.draft)
        finally:
            self.posting = False

        if result.status == RequestStatus.SUCCEEDED:
            self.draft = ""
        return result


class TABoard(_RoleBoard):
    """TA board: flag questions as important and reply to them"""

    role = Role.TA

    def __init__(self, controller: BoardController) -> None:
        super().__init__(controller)
        self._reply_drafts: dict[str, str] = {}

    def reply_draft(self, question_id: str) -> str:
        """Reply being typed for a question, seeded from its stored answer"""
        if question_id not in self._reply_drafts:
            question = self.controller.store.get(question_id)
            return (question.answer or "") if question else ""
        return self._reply_drafts[question_id]

    def set_reply_draft(self, question_id: str, text: str) -> None:
        self._reply_drafts[question_id] = text

    async def toggle_important(self, question_id: str) -> RequestState:
        question = self.controller.store.get(question_id)
        if question is None:
            return self.controller.report_error("Question not found")
        return await self.controller.set_important(question_id, not question.important)

    async def reply(self, question_id: str) -> RequestState:
        return await self.controller.set_reply(question_id, self.reply_draft(question_id))
