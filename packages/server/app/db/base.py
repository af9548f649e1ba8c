"""
Document store contract shared by every backend.

A store holds JSON documents keyed by ``_id``. Each write produces a new
``_rev``; writing a document whose ``_rev`` no longer matches the stored
one raises ``DocumentConflictError`` so callers can re-read and retry.

Selectors use the Mango subset the services rely on: equality, ``$ne``,
``$in``, ``$gte``, ``$lte``, ``$gt``, ``$lt`` and ``$exists``. Dotted keys
address nested fields.
"""

from __future__ import annotations

import abc
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

_MISSING = object()

SUPPORTED_OPERATORS = {"$eq", "$ne", "$in", "$gte", "$lte", "$gt", "$lt", "$exists"}


@dataclass
class FindQuery:
    selector: dict[str, Any]
    limit: Optional[int] = None
    skip: int = 0
    # [{"timestamp": "desc"}] or ["createdAt"]
    sort: list[Any] = field(default_factory=list)


@dataclass
class FindResult:
    docs: list[dict[str, Any]]


@dataclass
class InsertResult:
    ok: bool
    id: str
    rev: Optional[str] = None


class DocumentStore(abc.ABC):
    """Uniform find/insert/get/info interface over a document backend."""

    name: str = "store"

    @abc.abstractmethod
    async def find(self, query: FindQuery) -> FindResult: ...

    @abc.abstractmethod
    async def insert(self, doc: dict[str, Any]) -> InsertResult: ...

    @abc.abstractmethod
    async def get(self, doc_id: str) -> dict[str, Any]:
        """Fetch by id. Raises DocumentNotFoundError when absent."""

    @abc.abstractmethod
    async def info(self) -> dict[str, Any]: ...

    async def ensure_database(self) -> None:
        """Create backing database/tables/indexes if missing."""

    async def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Helpers shared by the in-process and relational backends
# ---------------------------------------------------------------------------

def next_rev(current: Optional[str]) -> str:
    """CouchDB-style revision: ``{generation}-{hex}``."""
    generation = 0
    if current:
        try:
            generation = int(current.split("-", 1)[0])
        except ValueError:
            generation = 0
    return f"{generation + 1}-{uuid.uuid4().hex}"


def get_path(doc: dict[str, Any], key: str) -> Any:
    value: Any = doc
    for part in key.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _compare(value: Any, op: str, operand: Any) -> bool:
    if op == "$exists":
        return (value is not _MISSING) == bool(operand)
    if value is _MISSING:
        # Mango treats a missing field as unequal to anything.
        return op == "$ne"
    if op == "$eq":
        return value == operand
    if op == "$ne":
        return value != operand
    if op == "$in":
        return value in operand
    try:
        if op == "$gte":
            return value >= operand
        if op == "$lte":
            return value <= operand
        if op == "$gt":
            return value > operand
        if op == "$lt":
            return value < operand
    except TypeError:
        return False
    raise ValueError(f"Unsupported selector operator: {op}")


def condition_matches(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        return all(_compare(value, op, operand) for op, operand in condition.items())
    return _compare(value, "$eq", condition)


def matches_selector(doc: dict[str, Any], selector: dict[str, Any]) -> bool:
    """Evaluate a Mango-style selector against a document."""
    return all(condition_matches(get_path(doc, key), cond) for key, cond in selector.items())


def sort_spec(sort: list[Any]) -> list[tuple[str, bool]]:
    spec = []
    for entry in sort:
        if isinstance(entry, str):
            spec.append((entry, False))
        else:
            for key, direction in entry.items():
                spec.append((key, str(direction).lower() == "desc"))
    return spec


def sort_docs(docs: list[dict[str, Any]], sort: list[Any]) -> list[dict[str, Any]]:
    """Sort by each key in turn. Missing and null values go last in either direction."""
    result = list(docs)
    # Stable sort, least significant key first.
    for key, descending in reversed(sort_spec(sort)):
        present = [d for d in result if not _absent(get_path(d, key))]
        absent = [d for d in result if _absent(get_path(d, key))]
        present.sort(key=lambda d: _sort_value(get_path(d, key)), reverse=descending)
        result = present + absent
    return result


def _absent(value: Any) -> bool:
    return value is _MISSING or value is None


def _sort_value(value: Any) -> tuple[int, Any]:
    # Rank by type first so mixed values never compare across types.
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, json.dumps(value, sort_keys=True, default=str))


def apply_window(docs: list[dict[str, Any]], query: FindQuery) -> list[dict[str, Any]]:
    if query.sort:
        docs = sort_docs(docs, query.sort)
    if query.skip:
        docs = docs[query.skip:]
    if query.limit is not None:
        docs = docs[: query.limit]
    return docs
