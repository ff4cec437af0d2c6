"""
Board controller: one lecture board for one role

Owns the board's store and push subscription. Both converge on the same
"fetch the full set, replace the store" path, whether triggered by a push
notification, a mutation or an explicit reload. Passive refreshes swallow
their errors; user-initiated actions report them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

from qaboard.client.api import BoardApiClient
from qaboard.client.gateway import MutationGateway
from qaboard.client.selection import SelectionStore
from qaboard.client.stream import Connect, StreamSubscription
from qaboard.errors import BoardError, EmptyQuestionError, SubmissionError
from qaboard.models import (
    BoardState,
    ClassInfo,
    Lecture,
    QuestionPatch,
    RequestState,
    Role,
    Selection,
)
from qaboard.services.duplicates import check_submission
from qaboard.services.store import BoardStore

logger = logging.getLogger(__name__)

ConnectFactory = Callable[[str], Connect]


class BoardController:
    """
    Generic board parameterized by the role's capabilities

    Args:
        api: Authenticated API client; without a token the board runs without push updates
        role: Student or TA
        selection: Where the last class/lecture selection is persisted
        store: Question cache (a fresh one by default)
        connect_factory: Builds the push channel opener for a lecture
        stream_retry: Reconnect delay of the push channel in seconds
    """

    def __init__(
        self,
        api: BoardApiClient,
        role: Role,
        selection: SelectionStore,
        store: BoardStore | None = None,
        connect_factory: ConnectFactory | None = None,
        stream_retry: float | None = None,
    ) -> None:
        self.api = api
        self.role = role
        self.capabilities = role.capabilities
        self.gateway = MutationGateway(api, self.capabilities)
        self.selection = selection
        self.store = store or BoardStore()
        self.state = BoardState.IDLE
        self.classes: list[ClassInfo] = []
        self.lectures: list[Lecture] = []
        self.error: str | None = None

        self._connect_factory = connect_factory or (
            lambda lecture_id: partial(api.iter_lecture_events, lecture_id)
        )
        self._stream_retry = stream_retry
        self._subscription: StreamSubscription | None = None
        # Replaced on every lecture change; fetches started under an older
        # context are dropped
        self._context = object()

    # Read-only views of the board

    @property
    def lecture_id(self) -> str | None:
        return self.store.lecture_id

    @property
    def subscription(self) -> StreamSubscription | None:
        return self._subscription

    @property
    def current_selection(self) -> Selection:
        return self.selection.load(self.role)

    # Lifecycle

    async def start(self) -> None:
        """Restore the persisted selection and mount its board"""
        await self.load_classes()
        selection = self.selection.load(self.role)
        if selection.class_id:
            await self.load_lectures()
        if selection.lecture_id:
            await self._mount(selection.lecture_id)

    async def select_class(self, class_id: str) -> None:
        """Pick a class; the lecture selection is reset and the board unmounted"""
        self.selection.save_class(self.role, class_id)
        self._unmount(BoardState.IDLE)
        self.lectures = []
        await self.load_lectures()

    async def select_lecture(self, lecture_id: str) -> None:
        """Pick a lecture and mount its board"""
        self.selection.save_lecture(self.role, lecture_id)
        if not lecture_id:
            self._unmount(BoardState.IDLE)
            return
        await self._mount(lecture_id)

    def close(self) -> None:
        """Unmount: tear down the subscription, clear the store, drop in-flight fetches"""
        self._unmount(BoardState.CLOSED)

    async def aclose(self) -> None:
        """Close and wait for the push reader to finish"""
        subscription = self._subscription
        self.close()
        if subscription is not None:
            await subscription.wait_closed()

    async def _mount(self, lecture_id: str) -> None:
        self._unmount(BoardState.LOADING)
        self.store.bind(lecture_id)

        if self.api.token:
            self._subscription = StreamSubscription(
                lecture_id,
                self.refresh,
                self._connect_factory(lecture_id),
                retry=self._stream_retry,
            )
            self._subscription.open()
        else:
            logger.info("No credential; board for lecture %s runs without push updates", lecture_id)

        await self.refresh()

    def _unmount(self, state: BoardState) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._context = object()
        self.store.bind(None)
        self.state = state

    # Synchronization

    async def refresh(self) -> None:
        """Background resync; failures are logged and discarded"""
        try:
            await self._fetch()
        except (BoardError, ValueError) as e:
            logger.warning("Background refresh of lecture %s failed: %s", self.lecture_id, e)

    async def reload(self) -> None:
        """User-requested resync; failures propagate"""
        await self._fetch()

    async def _fetch(self) -> None:
        lecture_id = self.store.lecture_id
        if lecture_id is None:
            return

        context = self._context
        questions = await self.api.list_questions(lecture_id)
        if context is not self._context:
            logger.debug("Dropping questions fetched for previous lecture %s", lecture_id)
            return

        self.store.replace(questions, lecture_id=lecture_id)
        if self.state == BoardState.LOADING:
            self.state = BoardState.LIVE

    # User-initiated mutations

    async def submit_question(self, text: str) -> RequestState:
        """
        Post a question after the local duplicate check

        Empty text is a no-op. The store is left untouched until the
        following reload brings the accepted question back from the server.
        """
        self.error = None
        lecture_id = self.store.lecture_id
        if lecture_id is None:
            return self.report_error("Select a lecture first")

        try:
            raw = check_submission(text, self.store)
        except EmptyQuestionError:
            return RequestState()
        except SubmissionError as e:
            return self.report_error(e.message)

        try:
            await self.gateway.create_question(lecture_id, raw)
        except BoardError as e:
            return self.report_error(e.message or "Failed to post question")

        await self.refresh()
        return RequestState.succeeded()

    async def set_important(self, question_id: str, important: bool) -> RequestState:
        return await self._patch(question_id, QuestionPatch(important=important))

    async def set_reply(self, question_id: str, answer: str) -> RequestState:
        return await self._patch(question_id, QuestionPatch(answer=answer))

    async def _patch(self, question_id: str, patch: QuestionPatch) -> RequestState:
        self.error = None
        try:
            await self.gateway.patch_question(question_id, patch)
        except BoardError as e:
            return self.report_error(e.message or "Failed to update question")

        await self.refresh()
        return RequestState.succeeded()

    def report_error(self, message: str) -> RequestState:
        """Record a dismissible error for the user"""
        self.error = message
        return RequestState.failed(message)

    def dismiss_error(self) -> None:
        self.error = None

    # Class directory

    async def load_classes(self) -> None:
        try:
            self.classes = await self.api.my_classes()
        except BoardError as e:
            logger.warning("Loading classes failed: %s", e)

    async def load_lectures(self) -> None:
        class_id = self.selection.load(self.role).class_id
        if not class_id:
            self.lectures = []
            return

        try:
            lectures = await self.api.class_lectures(class_id)
        except BoardError as e:
            logger.warning("Loading lectures of class %s failed: %s", class_id, e)
            return

        # The user may have picked another class meanwhile
        if self.selection.load(self.role).class_id == class_id:
            self.lectures = lectures

    async def join_class(self, code: str) -> RequestState:
        """Join a class by its code and refresh the class list"""
        self.error = None
        code = (code or "").strip().upper()
        if not code:
            return RequestState()

        try:
            await self.api.join_class(code)
        except BoardError as e:
            return self.report_error(e.message)

        await self.load_classes()
        return RequestState.succeeded("Joined!")
