"""In-memory ``DocumentStore`` for tests: etags, conditional writes, atomic patch."""

from __future__ import annotations

import copy
import uuid
from collections.abc import Sequence
from typing import Any

from devicecheck.core.exceptions import DocumentExistsError, PreconditionFailedError
from devicecheck.core.store import AnyOf, Clause, Condition, OrderBy, field_path, new_document_id

_MISSING = object()


def _lookup(doc: dict[str, Any], field: str) -> Any:
    node: Any = doc
    for part in field_path(field):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _assign(doc: dict[str, Any], field: str, value: Any) -> None:
    parts = field_path(field)
    node = doc
    for part in parts[:-1]:
        node = node.setdefault(part, {})
    node[parts[-1]] = value


def _matches(doc: dict[str, Any], cond: Condition) -> bool:
    value = _lookup(doc, cond.field)
    if value is _MISSING or value is None:
        return False
    if cond.op == "eq":
        return value == cond.value
    if cond.op == "contains":
        return isinstance(value, str) and str(cond.value).lower() in value.lower()
    if cond.op == "gte":
        return value >= cond.value
    return value <= cond.value


def _satisfies(doc: dict[str, Any], where: Sequence[Clause]) -> bool:
    for clause in where:
        if isinstance(clause, AnyOf):
            if clause.conditions and not any(_matches(doc, c) for c in clause.conditions):
                return False
        elif not _matches(doc, clause):
            return False
    return True


def _sort_key(field: str):
    def key(doc: dict[str, Any]) -> tuple[int, Any]:
        value = _lookup(doc, field)
        if value is _MISSING or value is None:
            return (0, 0)
        return (1, value)

    return key


class InMemoryDocumentStore:
    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self.docs: dict[str, dict[str, Any]] = {}

    def _stamp(self, doc: dict[str, Any]) -> dict[str, Any]:
        doc["_etag"] = uuid.uuid4().hex
        self.docs[doc["id"]] = doc
        return copy.deepcopy(doc)

    def _check_etag(self, doc_id: str, etag: str | None) -> None:
        if etag and self.docs[doc_id]["_etag"] != etag:
            raise PreconditionFailedError(f"{self.name}: document {doc_id} was modified concurrently")

    async def create(self, doc: dict[str, Any]) -> dict[str, Any]:
        body = {k: copy.deepcopy(v) for k, v in doc.items() if not k.startswith("_")}
        body.setdefault("id", new_document_id())
        if body["id"] in self.docs:
            raise DocumentExistsError(f"{self.name}: document {body['id']} already exists")
        return self._stamp(body)

    async def get(self, doc_id: str) -> dict[str, Any] | None:
        doc = self.docs.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find(
        self,
        where: Sequence[Clause] = (),
        *,
        order_by: OrderBy = (),
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        items = [d for d in self.docs.values() if _satisfies(d, where)]
        for field, descending in reversed(list(order_by)):
            items.sort(key=_sort_key(field), reverse=descending)
        items = items[skip:] if limit is None else items[skip : skip + limit]
        return copy.deepcopy(items)

    async def find_one(self, where: Sequence[Clause] = (), *, order_by: OrderBy = ()) -> dict[str, Any] | None:
        items = await self.find(where, order_by=order_by, limit=1)
        return items[0] if items else None

    async def count(self, where: Sequence[Clause] = ()) -> int:
        return sum(1 for d in self.docs.values() if _satisfies(d, where))

    async def max_value(self, field: str, where: Sequence[Clause] = ()) -> Any:
        values = [_lookup(d, field) for d in self.docs.values() if _satisfies(d, where)]
        values = [v for v in values if v is not _MISSING and v is not None]
        return max(values) if values else None

    async def replace(self, doc_id: str, doc: dict[str, Any], *, etag: str | None = None) -> dict[str, Any] | None:
        if doc_id not in self.docs:
            return None
        self._check_etag(doc_id, etag)
        body = {k: copy.deepcopy(v) for k, v in doc.items() if not k.startswith("_")}
        body["id"] = doc_id
        return self._stamp(body)

    async def patch(
        self,
        doc_id: str,
        *,
        set_fields: dict[str, Any] | None = None,
        increment: dict[str, int] | None = None,
    ) -> dict[str, Any] | None:
        if doc_id not in self.docs:
            return None
        body = copy.deepcopy(self.docs[doc_id])
        for field, value in (set_fields or {}).items():
            _assign(body, field, copy.deepcopy(value))
        for field, delta in (increment or {}).items():
            current = _lookup(body, field)
            _assign(body, field, (0 if current is _MISSING or current is None else current) + delta)
        return self._stamp(body)

    async def delete(self, doc_id: str, *, etag: str | None = None) -> bool:
        if doc_id not in self.docs:
            return False
        self._check_etag(doc_id, etag)
        del self.docs[doc_id]
        return True
