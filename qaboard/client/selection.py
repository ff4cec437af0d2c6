"""
Persistence of the last selected class and lecture, per role
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import redis

import qaboard.config
from qaboard.models import Role, Selection

logger = logging.getLogger(__name__)


def class_key(role: Role) -> str:
    """Storage key of a role's selected class (e.g. S_CUR_CLASS)"""
    return f"{role.selection_prefix}_CUR_CLASS"


def lecture_key(role: Role) -> str:
    """Storage key of a role's selected lecture (e.g. TA_CUR_LECT)"""
    return f"{role.selection_prefix}_CUR_LECT"


class SelectionStore:
    """
    Key/value persistence of board selections

    Subclasses provide ``_get`` and ``_set``; keys are namespaced per role so
    the student and TA boards never overwrite each other.
    """

    def _get(self, key: str) -> str:
        raise NotImplementedError

    def _set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def load(self, role: Role) -> Selection:
        return Selection(
            class_id=self._get(class_key(role)),
            lecture_id=self._get(lecture_key(role)),
        )

    def save_class(self, role: Role, class_id: str) -> None:
        """Remember a class; the lecture selection is reset with it"""
        self._set(class_key(role), class_id)
        self._set(lecture_key(role), "")

    def save_lecture(self, role: Role, lecture_id: str) -> None:
        self._set(lecture_key(role), lecture_id)


class FileSelectionStore(SelectionStore):
    """Selections kept in a small JSON file"""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or qaboard.config.settings.selection_file)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable selection file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _get(self, key: str) -> str:
        return self._read().get(key, "")

    def _set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class RedisSelectionStore(SelectionStore):
    """Selections kept in Redis, so they follow a user across devices"""

    def __init__(self, redis_client: redis.Redis, user: str) -> None:
        self.redis = redis_client
        self.user = user

    def selection_key(self, key: str) -> str:
        """Generate Redis key for a stored selection"""
        return f"selection:{self.user}:{key}"

    def _get(self, key: str) -> str:
        value = self.redis.get(self.selection_key(key))
        if value is None:
            return ""
        if isinstance(value, bytes):
            return value.decode()
        return str(value)

    def _set(self, key: str, value: str) -> None:
        self.redis.set(self.selection_key(key), value)
