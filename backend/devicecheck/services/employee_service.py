"""Employee records: CRUD, the delete policy and the check counters.

Aggregate fields (``totalDeviceChecks``, ``lastCheckDate``) are only ever
written through ``write_check_stats``; ordinary edits cannot touch them.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from devicecheck.core.exceptions import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from devicecheck.core.store import Clause, DocumentStore, any_of, contains, eq, is_document_id
from devicecheck.models.common import Page, Pagination, format_utc, page_window, utcnow
from devicecheck.models.employee import (
    Employee,
    EmployeeCreate,
    EmployeeDeleteResult,
    EmployeeStatus,
    EmployeeSummary,
    EmployeeUpdate,
    full_name,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "fullName",
    "firstName",
    "lastName",
    "position",
    "department",
    "status",
    "totalDeviceChecks",
    "lastCheckDate",
    "createdAt",
    "updatedAt",
}

_REQUIRED_FIELDS = ("firstName", "lastName", "position")


def require_document_id(value: str | None, label: str) -> str:
    if not is_document_id(value):
        raise ValidationError(f"Invalid {label} ID")
    return value  # type: ignore[return-value]


def sort_spec(sort_by: str, sort_order: str, allowed: set[str]) -> list[tuple[str, bool]]:
    if sort_by not in allowed:
        raise ValidationError(f"Cannot sort by '{sort_by}'. Allowed: {', '.join(sorted(allowed))}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sortOrder must be 'asc' or 'desc'")
    return [(sort_by, sort_order == "desc")]


def _name_search(text: str) -> Clause:
    return any_of(contains("fullName", text), contains("firstName", text), contains("lastName", text))


class EmployeeService:
    def __init__(
        self,
        employees: DocumentStore,
        checks: DocumentStore,
        *,
        conflict_retries: int = 5,
        default_page_size: int = 10,
        max_page_size: int = 100,
    ) -> None:
        self.employees = employees
        self.checks = checks
        self.conflict_retries = conflict_retries
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    async def create_employee(self, payload: EmployeeCreate) -> Employee:
        now = format_utc(utcnow())
        doc = payload.to_document()
        doc.update(
            fullName=full_name(payload.first_name, payload.last_name),
            totalDeviceChecks=0,
            lastCheckDate=None,
            checkSequence=0,
            createdAt=now,
            updatedAt=now,
        )
        created = await self.employees.create(doc)
        logger.info("Employee created id=%s name=%s", created["id"], created["fullName"])
        return Employee.model_validate(created)

    async def find_employee_document(self, employee_id: str) -> dict[str, Any] | None:
        return await self.employees.get(require_document_id(employee_id, "employee"))

    async def get_employee(self, employee_id: str) -> Employee:
        doc = await self.find_employee_document(employee_id)
        if doc is None:
            raise NotFoundError("Employee not found")
        return Employee.model_validate(doc)

    async def list_employees(
        self,
        *,
        search: str = "",
        department: str = "",
        status: str = "",
        sort_by: str = "fullName",
        sort_order: str = "asc",
        page: int = 1,
        limit: int | None = None,
    ) -> Page[Employee]:
        where: list[Clause] = []
        if search:
            where.append(_name_search(search))
        if department:
            where.append(contains("department", department))
        if status:
            where.append(eq("status", status))

        order_by = sort_spec(sort_by, sort_order, SORTABLE_FIELDS)
        page, limit, skip = page_window(page, limit, self.default_page_size, self.max_page_size)

        docs = await self.employees.find(where, order_by=order_by, skip=skip, limit=limit)
        total = await self.employees.count(where)
        return Page[Employee](
            data=[Employee.model_validate(d) for d in docs],
            pagination=Pagination.build(page, limit, total),
        )

    async def search_employees(
        self, query: str = "", *, status: str = EmployeeStatus.ACTIVE.value, limit: int = 10
    ) -> list[EmployeeSummary]:
        where: list[Clause] = []
        if query:
            where.append(_name_search(query))
        if status:
            where.append(eq("status", status))

        limit = min(max(limit, 1), self.max_page_size)
        docs = await self.employees.find(where, order_by=[("fullName", False)], limit=limit)
        return [EmployeeSummary.model_validate(d) for d in docs]

    async def update_employee(self, employee_id: str, patch: EmployeeUpdate) -> Employee:
        require_document_id(employee_id, "employee")
        changes = patch.to_document(exclude_unset=True)
        for key in _REQUIRED_FIELDS:
            if key in changes and changes[key] is None:
                del changes[key]

        for attempt in range(1, self.conflict_retries + 1):
            doc = await self.employees.get(employee_id)
            if doc is None:
                raise NotFoundError("Employee not found")

            merged = {**doc, **changes}
            if "firstName" in changes or "lastName" in changes:
                merged["fullName"] = full_name(merged["firstName"], merged["lastName"])
            merged["updatedAt"] = format_utc(utcnow())

            try:
                Employee.model_validate(merged)
            except PydanticValidationError as e:
                raise ValidationError(str(e)) from e

            try:
                updated = await self.employees.replace(employee_id, merged, etag=doc.get("_etag"))
            except PreconditionFailedError:
                logger.info("Employee %s changed during update, retrying (attempt %d)", employee_id, attempt)
                continue
            if updated is None:
                raise NotFoundError("Employee not found")
            logger.info("Employee updated id=%s fields=%s", employee_id, sorted(changes))
            return Employee.model_validate(updated)

        raise ConflictError(f"Employee {employee_id} is being modified concurrently, try again")

    async def delete_employee(self, employee_id: str) -> EmployeeDeleteResult:
        """Hard-delete an employee without checks, otherwise mark them Resigned.

        The hard delete is conditional on the etag read before counting, so a
        version assignment racing with it forces the policy to be re-evaluated.
        """
        require_document_id(employee_id, "employee")

        for attempt in range(1, self.conflict_retries + 1):
            doc = await self.employees.get(employee_id)
            if doc is None:
                raise NotFoundError("Employee not found")

            check_count = await self.checks.count([eq("employeeId", employee_id)])
            if check_count > 0:
                updated = await self.employees.patch(
                    employee_id,
                    set_fields={"status": EmployeeStatus.RESIGNED.value, "updatedAt": format_utc(utcnow())},
                )
                if updated is None:
                    raise NotFoundError("Employee not found")
                logger.info("Employee %s soft-deleted (%d device checks)", employee_id, check_count)
                return EmployeeDeleteResult(
                    soft_deleted=True,
                    message="Employee status updated to Resigned (soft delete)",
                    data=Employee.model_validate(updated),
                )

            try:
                deleted = await self.employees.delete(employee_id, etag=doc.get("_etag"))
            except PreconditionFailedError:
                logger.info("Employee %s changed during delete, re-evaluating (attempt %d)", employee_id, attempt)
                continue
            if not deleted:
                raise NotFoundError("Employee not found")
            logger.info("Employee %s deleted", employee_id)
            return EmployeeDeleteResult(soft_deleted=False, message="Employee deleted successfully")

        raise ConflictError(f"Employee {employee_id} is being modified concurrently, try again")

    async def write_check_stats(
        self, employee_id: str, total: int, last_check_date: datetime | str | None
    ) -> bool:
        """System write of the two aggregate fields. Nothing else is touched."""
        if isinstance(last_check_date, datetime):
            last_check_date = format_utc(last_check_date)
        updated = await self.employees.patch(
            employee_id,
            set_fields={"totalDeviceChecks": max(int(total), 0), "lastCheckDate": last_check_date},
        )
        if updated is None:
            logger.warning("Employee %s not found while writing check stats", employee_id)
            return False
        return True

    async def next_check_version(self, employee_id: str, current: dict[str, Any] | None = None) -> int:
        """Reserve the next per-employee check version with an atomic increment."""
        if current is None or not isinstance(current.get("checkSequence"), int):
            await self._seed_check_sequence(employee_id)

        updated = await self.employees.patch(employee_id, increment={"checkSequence": 1})
        if updated is None:
            raise NotFoundError("Employee not found")
        return int(updated["checkSequence"])

    async def _seed_check_sequence(self, employee_id: str) -> None:
        # Records that predate the counter start from their highest existing version.
        for _ in range(self.conflict_retries):
            doc = await self.employees.get(employee_id)
            if doc is None:
                raise NotFoundError("Employee not found")
            if isinstance(doc.get("checkSequence"), int):
                return

            highest = await self.checks.max_value("version", [eq("employeeId", employee_id)])
            doc["checkSequence"] = int(highest or 0)
            try:
                await self.employees.replace(employee_id, doc, etag=doc.get("_etag"))
            except PreconditionFailedError:
                continue
            logger.info("Seeded check sequence for employee %s at %d", employee_id, doc["checkSequence"])
            return

        raise ConflictError(f"Employee {employee_id} is being modified concurrently, try again")

    async def iter_employee_documents(self, batch_size: int = 100) -> AsyncIterator[dict[str, Any]]:
        skip = 0
        while True:
            batch = await self.employees.find(order_by=[("id", False)], skip=skip, limit=batch_size)
            for doc in batch:
                yield doc
            if len(batch) < batch_size:
                return
            skip += batch_size
