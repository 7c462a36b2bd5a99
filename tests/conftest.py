"""
Pytest fixtures.

- Firestore 대역 (메모리 dict, 경로 문자열 키)
- 고정 시각 clock
- default.yaml 로드
"""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
import yaml

# =============================================================================
# Firestore Fake
# =============================================================================


class FakeSnapshot:
    """DocumentSnapshot 대역."""

    def __init__(self, doc_id: str, data: dict[str, Any] | None):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    """DocumentReference 대역 (get/set/update/delete)."""

    def __init__(self, store: "FakeFirestore", path: str):
        self._store = store
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    def get(self) -> FakeSnapshot:
        data = self._store.docs.get(self.path)
        return FakeSnapshot(self.id, data)

    def set(self, data: dict[str, Any], merge: bool = False) -> None:
        if merge and self.path in self._store.docs:
            self._store.docs[self.path] = {**self._store.docs[self.path], **data}
        else:
            self._store.docs[self.path] = dict(data)

    def update(self, data: dict[str, Any]) -> None:
        if self.path not in self._store.docs:
            raise KeyError(f"No document to update: {self.path}")
        self._store.docs[self.path] = {**self._store.docs[self.path], **data}

    def delete(self) -> None:
        self._store.docs.pop(self.path, None)


class FakeQuery:
    """CollectionReference/Query 대역 (== 필터, 정렬, limit)."""

    def __init__(
        self,
        store: "FakeFirestore",
        path: str,
        filters: tuple[tuple[str, Any], ...] = (),
        order: tuple[str, bool] | None = None,
        limit: int | None = None,
    ):
        self._store = store
        self.path = path
        self._filters = filters
        self._order = order
        self._limit = limit

    def where(self, filter: Any) -> "FakeQuery":
        assert filter.op_string == "=="
        return FakeQuery(
            self._store,
            self.path,
            self._filters + ((filter.field_path, filter.value),),
            self._order,
            self._limit,
        )

    def order_by(self, field: str, direction: str = "ASCENDING") -> "FakeQuery":
        return FakeQuery(
            self._store, self.path, self._filters, (field, direction == "DESCENDING"), self._limit
        )

    def limit(self, count: int) -> "FakeQuery":
        return FakeQuery(self._store, self.path, self._filters, self._order, count)

    def stream(self) -> list[FakeSnapshot]:
        prefix = f"{self.path}/"
        rows = [
            (path.rsplit("/", 1)[-1], data)
            for path, data in self._store.docs.items()
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ]
        rows = [
            (doc_id, data)
            for doc_id, data in rows
            if all(data.get(field) == value for field, value in self._filters)
        ]
        if self._order is not None:
            field, descending = self._order
            rows.sort(key=lambda row: row[1].get(field), reverse=descending)
        if self._limit is not None:
            rows = rows[: self._limit]
        return [FakeSnapshot(doc_id, data) for doc_id, data in rows]


class FakeFirestore:
    """
    firestore.Client 대역.

    docs: {"users/u1/subscription/current": {...}}
    """

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}

    def document(self, *segments: str) -> FakeDocument:
        return FakeDocument(self, "/".join(segments))

    def collection(self, *segments: str) -> FakeQuery:
        return FakeQuery(self, "/".join(segments))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def db() -> FakeFirestore:
    """빈 Firestore 대역."""
    return FakeFirestore()


@pytest.fixture
def fixed_now() -> datetime:
    """2025-03-15 12:00 KST (03:00 UTC)."""
    return datetime(2025, 3, 15, 3, 0, tzinfo=UTC)


@pytest.fixture
def clock(fixed_now: datetime) -> Callable[[], datetime]:
    return lambda: fixed_now


@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config(project_root: Path) -> dict:
    """기본 설정 로드."""
    with open(project_root / "default.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)
