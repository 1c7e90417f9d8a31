import copy
from typing import Any, Callable, Dict, List, Optional

import pytest
from unittest.mock import MagicMock

from flexkazi.core.security import Identity
from flexkazi.db.firebase_ops import _normalize


class FakeRegistration:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class InMemoryTreeStore:
    """
    Stand-in for RealtimeDatabaseOps backed by a nested dict.
    Mirrors the database's semantics: writing None deletes, update keys may be nested paths.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = copy.deepcopy(data or {})
        self.listeners: List[Callable[[Any], None]] = []
        self.registrations: List[FakeRegistration] = []
        self.updates: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}
        self.before_transaction: Optional[Callable[[str], None]] = None
        # Sent to each new listener right away, like the SDK's initial put
        self.initial_event: Any = None

    @staticmethod
    def _parts(path: str) -> List[str]:
        return [p for p in _normalize(path).split("/") if p]

    def _maybe_fail(self, op: str):
        if op in self.fail_on:
            raise self.fail_on[op]

    def get(self, path: str) -> Any:
        self._maybe_fail("get")
        node: Any = self.data
        for part in self._parts(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def set(self, path: str, value: Any) -> None:
        self._maybe_fail("set")
        self._write(path, value)

    def _write(self, path: str, value: Any) -> None:
        parts = self._parts(path)
        if not parts:
            self.data = copy.deepcopy(value) or {}
            return
        node = self.data
        for part in parts[:-1]:
            if not isinstance(node.get(part), dict):
                if value is None:
                    return
                node[part] = {}
            node = node[part]
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = copy.deepcopy(value)

    def update(self, path: str, updates: Dict[str, Any]) -> None:
        self._maybe_fail("update")
        self.updates.append((path, copy.deepcopy(updates)))
        base = "/".join(self._parts(path))
        for key, value in updates.items():
            self._write(f"{base}/{key}" if base else key, value)

    def transaction(self, path: str, update_fn: Callable[[Any], Any]) -> Any:
        self._maybe_fail("transaction")
        if self.before_transaction is not None:
            self.before_transaction(path)
        new_value = update_fn(self.get(path))
        self._write(path, new_value)
        return copy.deepcopy(new_value)

    def increment(self, path: str, delta: int = 1) -> int:
        return self.transaction(path, lambda current: (current or 0) + delta)

    def listen(self, path: str, callback: Callable[[Any], None]) -> FakeRegistration:
        self._maybe_fail("listen")
        self.listeners.append(callback)
        registration = FakeRegistration()
        self.registrations.append(registration)
        if self.initial_event is not None:
            callback(self.initial_event)
        return registration

    def emit(self, event: Any) -> None:
        for callback in list(self.listeners):
            callback(event)


class FakeStorage:
    def __init__(self):
        self.uploads: List[tuple] = []
        self.deleted: List[str] = []
        self.delete_error: Optional[Exception] = None

    def upload(self, object_path: str, data: bytes, content_type: Optional[str] = None) -> str:
        self.uploads.append((object_path, data, content_type))
        return f"https://storage.example.com/{object_path}"

    def delete(self, object_path: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(object_path)


def make_task(task_id: str, category: str = "advert", priority: str = "medium", budget: float = 1000,
              assigned_to: Optional[str] = None, status: str = "available", priority_match: bool = False,
              rating: Optional[float] = None, **status_times) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "task_details": {
            "title": f"Task {task_id}",
            "description": "Write copy",
            "category": category,
            "priority": priority,
            "budget": budget,
            "deadline": 1760659200000,
        },
        "status": {"current": status, **status_times},
        "deliverables": {"files": [], "rating": rating},
    }
    if assigned_to:
        record["assignment"] = {
            "assigned_to": assigned_to,
            "assigned_by": "system",
            "assigned_at": 1000,
            "is_priority_match": priority_match,
        }
    return record


@pytest.fixture
def clock():
    return lambda: 1_700_000_000_000


@pytest.fixture
def store():
    return InMemoryTreeStore({
        "users": {
            "u1": {"professional": {"main_category": "advert"}, "personal": {"full_name": "Amina Otieno"}},
            "u2": {"professional": {"main_category": "data"}},
        },
        "tasks": {
            "t1": make_task("t1", category="advert"),
            "t2": make_task("t2", category="data", priority="high"),
        },
        "available_tasks": {
            "advert": {"medium": {"t1": True}},
            "data": {"high": {"t2": True}},
        },
    })


@pytest.fixture
def storage_ops():
    return FakeStorage()


@pytest.fixture
def identity():
    return Identity(uid="u1", email="amina@example.com", display_name="Amina Otieno")


@pytest.fixture
def mock_identity_provider(identity):
    provider = MagicMock()
    provider.verify_token.return_value = identity
    return provider
