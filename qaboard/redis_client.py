"""
Redis client for lecture question boards
"""

import json
import uuid
from datetime import UTC, datetime
from typing import Any, cast

import redis

from qaboard.models import EventType, QuestionStatus
from qaboard.services.normalize import normalize_text


class RedisClient:
    """Redis client wrapper for all board operations"""

    def __init__(self, redis_client: redis.Redis) -> None:
        """
        Initialize Redis client wrapper

        Args:
            redis_client: Redis client instance
        """
        self.redis = redis_client
        self._load_lua_scripts()

    def _load_lua_scripts(self) -> None:
        """Load and register Lua scripts for atomic operations"""
        # Lua script for atomic question submission
        # Claims the normalized text first; a lost claim means a duplicate
        self.atomic_submit_script = self.redis.register_script(
            """
            local index_key = KEYS[1]
            local list_key = KEYS[2]
            local question_key = KEYS[3]
            local normalized = ARGV[1]
            local qid = ARGV[2]
            local question_json = ARGV[3]

            if redis.call('HSETNX', index_key, normalized, qid) == 0 then
                return 0
            end

            redis.call('SET', question_key, question_json)
            redis.call('RPUSH', list_key, qid)
            return 1
            """
        )

        # Lua script for atomic question updates
        # Status is checked and rewritten inside Redis so a concurrent
        # soft delete cannot be overwritten
        self.atomic_update_script = self.redis.register_script(
            """
            local question_key = KEYS[1]
            local changes = cjson.decode(ARGV[1])

            local data = redis.call('GET', question_key)
            if not data then
                return false
            end

            local question = cjson.decode(data)
            if question['status'] == 'deleted' then
                return false
            end

            if changes['important'] ~= nil then
                question['important'] = changes['important']
            end

            if changes['answer'] ~= nil then
                local answer = changes['answer']
                if answer == cjson.null or answer == '' then
                    question['answer'] = cjson.null
                    question['status'] = 'open'
                else
                    question['answer'] = answer
                    question['status'] = 'answered'
                end
            end

            local updated = cjson.encode(question)
            redis.call('SET', question_key, updated)
            return updated
            """
        )

        # Lua script for atomic soft deletion
        # Releases the normalized text only if this question still holds it
        self.atomic_delete_script = self.redis.register_script(
            """
            local question_key = KEYS[1]
            local index_key = KEYS[2]
            local normalized = ARGV[1]
            local qid = ARGV[2]

            local data = redis.call('GET', question_key)
            if not data then
                return false
            end

            local question = cjson.decode(data)
            if question['status'] == 'deleted' then
                return false
            end

            question['status'] = 'deleted'
            local updated = cjson.encode(question)
            redis.call('SET', question_key, updated)

            if redis.call('HGET', index_key, normalized) == qid then
                redis.call('HDEL', index_key, normalized)
            end
            return updated
            """
        )

    # Key generation helpers

    def question_key(self, question_id: str) -> str:
        """Generate Redis key for a question"""
        return f"question:{question_id}"

    def lecture_questions_key(self, lecture_id: str) -> str:
        """Generate Redis key for a lecture's ordered question ids"""
        return f"lecture:{lecture_id}:questions"

    def normalized_index_key(self, lecture_id: str) -> str:
        """Generate Redis key for a lecture's normalized text index"""
        return f"lecture:{lecture_id}:normalized"

    def events_channel_key(self, lecture_id: str) -> str:
        """Generate Redis pub/sub channel key for a lecture's events"""
        return f"lecture:{lecture_id}:events"

    # Question operations

    def submit_question(
        self,
        lecture_id: str,
        text: str,
        author: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Submit a question unless the lecture already has it

        Args:
            lecture_id: Lecture ID
            text: Question text, stored verbatim
            author: Optional display name of the author

        Returns:
            Stored question dict, or None if a live question has the same normalized text
        """
        # Generate question ID with timestamp for sorting
        timestamp = int(datetime.now(UTC).timestamp() * 1000)  # milliseconds
        short_uuid = str(uuid.uuid4())[:8]
        question_id = f"q-{timestamp}-{short_uuid}"

        question_data = {
            "id": question_id,
            "lecture_id": lecture_id,
            "text": text,
            "author": {"name": author} if author else None,
            "status": QuestionStatus.OPEN.value,
            "important": False,
            "answer": None,
            "created_at": datetime.now(UTC).isoformat(),
        }

        accepted = self.atomic_submit_script(
            keys=[
                self.normalized_index_key(lecture_id),
                self.lecture_questions_key(lecture_id),
                self.question_key(question_id),
            ],
            args=[normalize_text(text), question_id, json.dumps(question_data)],
        )

        if int(accepted) == 0:
            return None
        return question_data

    def get_question(self, question_id: str) -> dict[str, Any] | None:
        """
        Get a question

        Args:
            question_id: Question ID

        Returns:
            Question data dict or None if not found
        """
        data = self.redis.get(self.question_key(question_id))

        if data is None:
            return None

        return cast(dict[str, Any], json.loads(data))

    def get_questions(self, lecture_id: str) -> list[dict[str, Any]]:
        """
        Get all questions of a lecture, deleted ones included

        Args:
            lecture_id: Lecture ID

        Returns:
            List of question dicts in creation order
        """
        question_ids = self.redis.lrange(self.lecture_questions_key(lecture_id), 0, -1)
        if not question_ids:
            return []

        keys = [
            self.question_key(qid.decode() if isinstance(qid, bytes) else qid)
            for qid in question_ids
        ]
        questions = []
        for data in self.redis.mget(keys):
            if data is None:
                continue
            questions.append(cast(dict[str, Any], json.loads(data)))

        return questions

    def update_question(
        self,
        question_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any] | None:
        """
        Update the importance flag and/or answer of a question

        A non-empty answer marks the question answered; clearing it reopens it.
        The status check and the write happen atomically in Redis.

        Args:
            question_id: Question ID
            changes: Subset of ``important`` and ``answer``

        Returns:
            Updated question dict, or None if not found or deleted
        """
        normalized_changes: dict[str, Any] = {}
        if "important" in changes:
            normalized_changes["important"] = bool(changes["important"])
        if "answer" in changes:
            normalized_changes["answer"] = changes["answer"] or None

        updated = self.atomic_update_script(
            keys=[self.question_key(question_id)],
            args=[json.dumps(normalized_changes)],
        )
        if updated is None:
            return None
        return cast(dict[str, Any], json.loads(updated))

    def delete_question(self, question_id: str) -> dict[str, Any] | None:
        """
        Soft-delete a question and release its text for new submissions

        Args:
            question_id: Question ID

        Returns:
            Deleted question dict, or None if not found or already deleted
        """
        # Lecture and text never change, so the keys can be derived up front
        question = self.get_question(question_id)
        if question is None:
            return None

        deleted = self.atomic_delete_script(
            keys=[
                self.question_key(question_id),
                self.normalized_index_key(question["lecture_id"]),
            ],
            args=[normalize_text(question["text"]), question_id],
        )
        if deleted is None:
            return None
        return cast(dict[str, Any], json.loads(deleted))

    # Pub/sub operations

    def publish_event(self, lecture_id: str, event_type: EventType = EventType.REFRESH) -> None:
        """
        Publish a change notification on a lecture's channel

        Args:
            lecture_id: Lecture ID
            event_type: Type of event
        """
        channel = self.events_channel_key(lecture_id)
        self.redis.publish(channel, json.dumps({"event": event_type.value}))
