"""Document store contract and its Azure Cosmos DB implementation.

Services talk to a ``DocumentStore``: per-document CRUD plus filtered
find/count/max. ``CosmosDatabase`` owns the Cosmos client for the lifetime of
the application and hands out one ``CosmosDocumentStore`` per container.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, Union

from azure.core import MatchConditions
from azure.cosmos import PartitionKey
from azure.cosmos.aio import CosmosClient
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosHttpResponseError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)

from devicecheck.core.config import Settings
from devicecheck.core.exceptions import (
    DependencyError,
    DocumentExistsError,
    PreconditionFailedError,
)

logger = logging.getLogger(__name__)

_FIELD_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# uuid hex ids, plus 24-char ObjectId-style ids from imported records
_DOCUMENT_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

OPERATORS = ("eq", "contains", "gte", "lte")


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op!r}")
        field_path(self.field)


@dataclass(frozen=True)
class AnyOf:
    conditions: tuple[Condition, ...]


Clause = Union[Condition, AnyOf]
OrderBy = Sequence[tuple[str, bool]]


def eq(field: str, value: Any) -> Condition:
    return Condition(field, "eq", value)


def contains(field: str, value: str) -> Condition:
    return Condition(field, "contains", value)


def gte(field: str, value: Any) -> Condition:
    return Condition(field, "gte", value)


def lte(field: str, value: Any) -> Condition:
    return Condition(field, "lte", value)


def any_of(*conditions: Condition) -> AnyOf:
    return AnyOf(tuple(conditions))


def field_path(field: str) -> list[str]:
    parts = field.split(".")
    for part in parts:
        if not _FIELD_SEGMENT.fullmatch(part):
            raise ValueError(f"Invalid field path: {field!r}")
    return parts


def new_document_id() -> str:
    return uuid.uuid4().hex


def is_document_id(value: str | None) -> bool:
    return bool(value) and bool(_DOCUMENT_ID.fullmatch(value))


class DocumentStore(Protocol):
    async def create(self, doc: dict[str, Any]) -> dict[str, Any]: ...

    async def get(self, doc_id: str) -> dict[str, Any] | None: ...

    async def find(
        self,
        where: Sequence[Clause] = (),
        *,
        order_by: OrderBy = (),
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    async def find_one(
        self, where: Sequence[Clause] = (), *, order_by: OrderBy = ()
    ) -> dict[str, Any] | None: ...

    async def count(self, where: Sequence[Clause] = ()) -> int: ...

    async def max_value(self, field: str, where: Sequence[Clause] = ()) -> Any: ...

    async def replace(
        self, doc_id: str, doc: dict[str, Any], *, etag: str | None = None
    ) -> dict[str, Any] | None: ...

    async def patch(
        self,
        doc_id: str,
        *,
        set_fields: dict[str, Any] | None = None,
        increment: dict[str, int] | None = None,
    ) -> dict[str, Any] | None: ...

    async def delete(self, doc_id: str, *, etag: str | None = None) -> bool: ...


def build_query(
    select: str,
    where: Sequence[Clause] = (),
    *,
    order_by: OrderBy = (),
    skip: int = 0,
    limit: int | None = None,
) -> tuple[str, list[dict[str, Any]]]:
    """Render a Cosmos SQL query with named parameters.

    Field names are validated against an identifier pattern and referenced
    with bracket notation; all values travel as parameters.
    """
    params: list[dict[str, Any]] = []

    def param(value: Any) -> str:
        name = f"@p{len(params)}"
        params.append({"name": name, "value": value})
        return name

    def render(cond: Condition) -> str:
        ref = _ref(cond.field)
        if cond.op == "eq":
            return f"{ref} = {param(cond.value)}"
        if cond.op == "contains":
            return f"CONTAINS({ref}, {param(cond.value)}, true)"
        if cond.op == "gte":
            return f"{ref} >= {param(cond.value)}"
        if cond.op == "lte":
            return f"{ref} <= {param(cond.value)}"
        raise ValueError(f"Unsupported operator: {cond.op!r}")

    predicates: list[str] = []
    for clause in where:
        if isinstance(clause, AnyOf):
            if clause.conditions:
                predicates.append("(" + " OR ".join(render(c) for c in clause.conditions) + ")")
        else:
            predicates.append(render(clause))

    query = f"SELECT {select} FROM c"
    if predicates:
        query += " WHERE " + " AND ".join(predicates)
    if order_by:
        query += " ORDER BY " + ", ".join(f"{_ref(f)} {'DESC' if desc else 'ASC'}" for f, desc in order_by)
    if limit is not None:
        query += f" OFFSET {param(skip)} LIMIT {param(limit)}"
    return query, params


def _ref(field: str) -> str:
    return "c" + "".join(f'["{part}"]' for part in field_path(field))


def _strip_system_fields(doc: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in doc.items() if not k.startswith("_")}


def _patch_path(field: str) -> str:
    return "/" + "/".join(field_path(field))


class CosmosDocumentStore:
    """``DocumentStore`` over one Cosmos container partitioned on ``/id``."""

    def __init__(self, container: Any, name: str = "") -> None:
        self.container = container
        self.name = name or getattr(container, "id", "")

    async def create(self, doc: dict[str, Any]) -> dict[str, Any]:
        body = _strip_system_fields(doc)
        body.setdefault("id", new_document_id())
        try:
            return await self.container.create_item(body=body)
        except CosmosResourceExistsError as e:
            raise DocumentExistsError(f"{self.name}: document {body['id']} already exists") from e
        except CosmosHttpResponseError as e:
            raise self._dependency_error("create", e) from e

    async def get(self, doc_id: str) -> dict[str, Any] | None:
        try:
            return await self.container.read_item(item=doc_id, partition_key=doc_id)
        except CosmosResourceNotFoundError:
            return None
        except CosmosHttpResponseError as e:
            raise self._dependency_error("read", e) from e

    async def find(
        self,
        where: Sequence[Clause] = (),
        *,
        order_by: OrderBy = (),
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        query, params = build_query("*", where, order_by=order_by, skip=skip, limit=limit)
        return await self._query(query, params)

    async def find_one(
        self, where: Sequence[Clause] = (), *, order_by: OrderBy = ()
    ) -> dict[str, Any] | None:
        items = await self.find(where, order_by=order_by, limit=1)
        return items[0] if items else None

    async def count(self, where: Sequence[Clause] = ()) -> int:
        query, params = build_query("VALUE COUNT(1)", where)
        results = await self._query(query, params)
        return int(results[0]) if results else 0

    async def max_value(self, field: str, where: Sequence[Clause] = ()) -> Any:
        query, params = build_query(f"VALUE MAX({_ref(field)})", where)
        results = await self._query(query, params)
        return results[0] if results else None

    async def replace(
        self, doc_id: str, doc: dict[str, Any], *, etag: str | None = None
    ) -> dict[str, Any] | None:
        body = _strip_system_fields(doc)
        body["id"] = doc_id
        kwargs: dict[str, Any] = {}
        if etag:
            kwargs = {"etag": etag, "match_condition": MatchConditions.IfNotModified}
        try:
            return await self.container.replace_item(item=doc_id, body=body, **kwargs)
        except CosmosAccessConditionFailedError as e:
            raise PreconditionFailedError(f"{self.name}: document {doc_id} was modified concurrently") from e
        except CosmosResourceNotFoundError:
            return None
        except CosmosHttpResponseError as e:
            raise self._dependency_error("replace", e) from e

    async def patch(
        self,
        doc_id: str,
        *,
        set_fields: dict[str, Any] | None = None,
        increment: dict[str, int] | None = None,
    ) -> dict[str, Any] | None:
        operations: list[dict[str, Any]] = []
        for field, value in (set_fields or {}).items():
            operations.append({"op": "set", "path": _patch_path(field), "value": value})
        for field, delta in (increment or {}).items():
            operations.append({"op": "incr", "path": _patch_path(field), "value": delta})
        if not operations:
            return await self.get(doc_id)

        try:
            return await self.container.patch_item(
                item=doc_id,
                partition_key=doc_id,
                patch_operations=operations,
            )
        except CosmosResourceNotFoundError:
            return None
        except CosmosHttpResponseError as e:
            raise self._dependency_error("patch", e) from e

    async def delete(self, doc_id: str, *, etag: str | None = None) -> bool:
        kwargs: dict[str, Any] = {}
        if etag:
            kwargs = {"etag": etag, "match_condition": MatchConditions.IfNotModified}
        try:
            await self.container.delete_item(item=doc_id, partition_key=doc_id, **kwargs)
            return True
        except CosmosAccessConditionFailedError as e:
            raise PreconditionFailedError(f"{self.name}: document {doc_id} was modified concurrently") from e
        except CosmosResourceNotFoundError:
            return False
        except CosmosHttpResponseError as e:
            raise self._dependency_error("delete", e) from e

    async def _query(self, query: str, params: list[dict[str, Any]]) -> list[Any]:
        items: list[Any] = []
        try:
            async for item in self.container.query_items(
                query=query,
                parameters=params,
                enable_cross_partition_query=True,
            ):
                items.append(item)
        except CosmosHttpResponseError as e:
            raise self._dependency_error("query", e) from e
        return items

    def _dependency_error(self, action: str, err: CosmosHttpResponseError) -> DependencyError:
        logger.error("Cosmos %s on %s failed (%s): %s", action, self.name, err.status_code, err.message)
        return DependencyError(f"Document store unavailable ({action} {self.name})")


class CosmosDatabase:
    """Owns the Cosmos client; opened in the app lifespan, closed on shutdown."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.client: CosmosClient | None = None
        self.database: Any = None

    @property
    def configured(self) -> bool:
        return bool(self.settings.COSMOS_DB_ENDPOINT and self.settings.COSMOS_DB_KEY)

    async def open(self) -> None:
        if self.client:
            return
        if not self.configured:
            raise DependencyError("Cosmos DB credentials missing")

        self.client = CosmosClient(self.settings.COSMOS_DB_ENDPOINT, self.settings.COSMOS_DB_KEY)
        if self.settings.COSMOS_DB_CREATE_CONTAINERS:
            self.database = await self.client.create_database_if_not_exists(id=self.settings.COSMOS_DB_DATABASE)
            for name in self.container_names():
                await self.database.create_container_if_not_exists(id=name, partition_key=PartitionKey(path="/id"))
        else:
            self.database = self.client.get_database_client(self.settings.COSMOS_DB_DATABASE)
        logger.info("Cosmos DB opened (database=%s)", self.settings.COSMOS_DB_DATABASE)

    def container_names(self) -> list[str]:
        return [
            self.settings.COSMOS_DB_EMPLOYEES_CONTAINER,
            self.settings.COSMOS_DB_DEVICE_CHECKS_CONTAINER,
            self.settings.COSMOS_DB_DROPDOWN_OPTIONS_CONTAINER,
        ]

    def store(self, container_name: str) -> CosmosDocumentStore:
        if self.database is None:
            raise DependencyError("Cosmos DB is not open")
        return CosmosDocumentStore(self.database.get_container_client(container_name), container_name)

    async def check_connection(self) -> bool:
        if self.database is None:
            return False
        try:
            store = self.store(self.settings.COSMOS_DB_EMPLOYEES_CONTAINER)
            await store.count()
            return True
        except Exception:
            logger.exception("Cosmos DB connection check failed")
            return False

    async def close(self) -> None:
        if self.client:
            await self.client.close()
            self.client = None
            self.database = None
