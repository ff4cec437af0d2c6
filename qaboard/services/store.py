"""
Client-local cache of one lecture's questions
"""

import logging
from collections.abc import Callable, Iterable, Iterator

from qaboard.models import Question

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class BoardStore:
    """
    Replace-only question collection for a single lecture

    Every refresh overwrites the whole set, so the store can never hold a
    partially applied update. Order is kept exactly as the server sent it.
    """

    def __init__(self) -> None:
        self._lecture_id: str | None = None
        self._questions: tuple[Question, ...] = ()
        self._listeners: list[Listener] = []

    @property
    def lecture_id(self) -> str | None:
        return self._lecture_id

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __len__(self) -> int:
        return len(self._questions)

    def get(self, question_id: str) -> Question | None:
        """Look up a question by id"""
        for question in self._questions:
            if question.id == question_id:
                return question
        return None

    def bind(self, lecture_id: str | None) -> None:
        """
        Scope the store to a lecture, dropping the previous contents

        Args:
            lecture_id: Lecture to hold questions for, or None to unbind
        """
        self._lecture_id = lecture_id
        self.clear()

    def replace(self, questions: Iterable[Question], lecture_id: str | None = None) -> None:
        """
        Overwrite the contents with exactly ``questions``

        Args:
            questions: Full question set in server order
            lecture_id: Lecture the set was fetched for; must match the bound lecture

        Raises:
            ValueError: If the set belongs to another lecture or repeats an id
        """
        if lecture_id is not None and lecture_id != self._lecture_id:
            raise ValueError(
                f"Questions for lecture {lecture_id!r} cannot be stored in "
                f"a board bound to {self._lecture_id!r}"
            )

        new_set = tuple(questions)
        ids = [q.id for q in new_set]
        if len(set(ids)) != len(ids):
            raise ValueError("Question ids must be unique within a lecture")

        self._questions = new_set
        self._notify()

    def clear(self) -> None:
        """Empty the store"""
        self._questions = ()
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Board store listener failed")
