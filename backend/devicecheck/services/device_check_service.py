"""Device check records and the employee aggregates that follow them.

Creation order: employee lookup, snapshot, version reservation, check write.
A failure in any of those leaves no check behind. The aggregate refresh that
follows a write is best effort: the write has already succeeded and a stale
aggregate is corrected by the next refresh or by ``repair_all_stats``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from devicecheck.core.exceptions import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from devicecheck.core.store import Clause, DocumentStore, any_of, contains, eq, gte, lte
from devicecheck.models.common import Page, Pagination, format_utc, page_window, utcnow
from devicecheck.models.device_check import (
    DeviceCheck,
    DeviceCheckCreate,
    DeviceCheckDetail,
    DeviceCheckUpdate,
    DeviceType,
    EmployeeChecks,
    EmployeeChecksSummary,
    EmployeeDetail,
    EmployeeSnapshot,
    Ownership,
    RepairReport,
)
from devicecheck.models.employee import Employee, EmployeeSummary
from devicecheck.services.employee_service import EmployeeService, require_document_id, sort_spec

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "checkDate",
    "version",
    "createdAt",
    "updatedAt",
    "employeeSnapshot.fullName",
    "deviceDetail.deviceBrand",
    "deviceDetail.ownership",
    "deviceCondition.deviceSuitability",
}

RECENT_CHECKS_ON_EMPLOYEE = 5


def _day_start(day: date) -> str:
    return format_utc(datetime.combine(day, time.min, tzinfo=timezone.utc))


def _day_end(day: date) -> str:
    return format_utc(datetime.combine(day, time.max, tzinfo=timezone.utc))


class DeviceCheckService:
    def __init__(
        self,
        checks: DocumentStore,
        employee_service: EmployeeService,
        *,
        conflict_retries: int = 5,
        default_page_size: int = 10,
        max_page_size: int = 100,
    ) -> None:
        self.checks = checks
        self.employee_service = employee_service
        self.conflict_retries = conflict_retries
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    async def create_device_check(self, payload: DeviceCheckCreate, *, inspector: str | None = None) -> DeviceCheck:
        employee_id = require_document_id(payload.employee_id, "employee")
        employee = await self.employee_service.find_employee_document(employee_id)
        if employee is None:
            raise NotFoundError("Employee not found")

        snapshot = EmployeeSnapshot(
            full_name=employee["fullName"],
            position=employee["position"],
            department=employee.get("department"),
        )
        version = await self.employee_service.next_check_version(employee_id, current=employee)

        now = utcnow()
        doc = payload.to_document(exclude={"check_date"})
        if inspector and not doc["additionalInfo"].get("inspectorPICName"):
            doc["additionalInfo"]["inspectorPICName"] = inspector
        doc.update(
            employeeId=employee_id,
            employeeSnapshot=snapshot.to_document(),
            checkDate=format_utc(payload.check_date or now),
            version=version,
            createdAt=format_utc(now),
            updatedAt=format_utc(now),
        )

        created = await self.checks.create(doc)
        logger.info("Device check created id=%s employee=%s version=%d", created["id"], employee_id, version)

        await self._refresh_quietly(employee_id)
        return DeviceCheck.model_validate(created)

    async def get_device_check(self, check_id: str) -> DeviceCheckDetail:
        doc = await self.checks.get(require_document_id(check_id, "device check"))
        if doc is None:
            raise NotFoundError("Device check not found")

        employee = await self.employee_service.employees.get(doc["employeeId"])
        detail = DeviceCheckDetail.model_validate(doc)
        if employee is not None:
            detail.employee = EmployeeSummary.model_validate(employee)
        return detail

    async def list_device_checks(
        self,
        *,
        search: str = "",
        employee_id: str = "",
        department: str = "",
        suitability: str = "",
        ownership: str = "",
        date_from: date | None = None,
        date_to: date | None = None,
        sort_by: str = "checkDate",
        sort_order: str = "desc",
        page: int = 1,
        limit: int | None = None,
    ) -> Page[DeviceCheckDetail]:
        where: list[Clause] = []
        if search:
            where.append(
                any_of(
                    contains("employeeSnapshot.fullName", search),
                    contains("deviceDetail.deviceBrand", search),
                    contains("deviceDetail.deviceModel", search),
                    contains("deviceDetail.serialNumber", search),
                )
            )
        if employee_id:
            where.append(eq("employeeId", require_document_id(employee_id, "employee")))
        if department:
            where.append(contains("employeeSnapshot.department", department))
        if suitability:
            where.append(eq("deviceCondition.deviceSuitability", suitability))
        if ownership:
            where.append(eq("deviceDetail.ownership", ownership))
        if date_from:
            where.append(gte("checkDate", _day_start(date_from)))
        if date_to:
            where.append(lte("checkDate", _day_end(date_to)))

        order_by = sort_spec(sort_by, sort_order, SORTABLE_FIELDS)
        page, limit, skip = page_window(page, limit, self.default_page_size, self.max_page_size)

        docs = await self.checks.find(where, order_by=order_by, skip=skip, limit=limit)
        total = await self.checks.count(where)

        employee_ids = sorted({d["employeeId"] for d in docs})
        employees = await asyncio.gather(*(self.employee_service.employees.get(i) for i in employee_ids))
        by_id = {i: e for i, e in zip(employee_ids, employees) if e is not None}

        data: list[DeviceCheckDetail] = []
        for doc in docs:
            detail = DeviceCheckDetail.model_validate(doc)
            if doc["employeeId"] in by_id:
                detail.employee = EmployeeSummary.model_validate(by_id[doc["employeeId"]])
            data.append(detail)

        return Page[DeviceCheckDetail](data=data, pagination=Pagination.build(page, limit, total))

    async def list_checks_for_employee(
        self,
        employee_id: str,
        *,
        sort_by: str = "checkDate",
        sort_order: str = "desc",
        page: int = 1,
        limit: int | None = None,
    ) -> EmployeeChecks:
        employee = await self.employee_service.get_employee(employee_id)
        order_by = sort_spec(sort_by, sort_order, SORTABLE_FIELDS)
        page, limit, skip = page_window(page, limit, self.default_page_size, self.max_page_size)

        where = [eq("employeeId", employee.id)]
        docs, total, latest, pc, laptop, company, personal = await asyncio.gather(
            self.checks.find(where, order_by=order_by, skip=skip, limit=limit),
            self.checks.count(where),
            self.checks.max_value("checkDate", where),
            self.checks.count([*where, eq("deviceDetail.deviceType", DeviceType.PC.value)]),
            self.checks.count([*where, eq("deviceDetail.deviceType", DeviceType.LAPTOP.value)]),
            self.checks.count([*where, eq("deviceDetail.ownership", Ownership.COMPANY.value)]),
            self.checks.count([*where, eq("deviceDetail.ownership", Ownership.PERSONAL.value)]),
        )

        return EmployeeChecks(
            employee=employee,
            checks=[DeviceCheck.model_validate(d) for d in docs],
            pagination=Pagination.build(page, limit, total),
            summary=EmployeeChecksSummary(
                total_checks=total,
                latest_check_date=latest,
                device_types={DeviceType.PC.value: pc, DeviceType.LAPTOP.value: laptop},
                ownership={Ownership.COMPANY.value: company, Ownership.PERSONAL.value: personal},
            ),
        )

    async def get_employee_detail(self, employee_id: str) -> EmployeeDetail:
        employee = await self.employee_service.get_employee(employee_id)
        docs = await self.checks.find(
            [eq("employeeId", employee.id)],
            order_by=[("checkDate", True)],
            limit=RECENT_CHECKS_ON_EMPLOYEE,
        )
        return EmployeeDetail(
            **employee.model_dump(),
            device_checks=[DeviceCheck.model_validate(d) for d in docs],
        )

    async def all_checks_for_employee(self, employee_id: str) -> tuple[Employee, list[DeviceCheck]]:
        employee = await self.employee_service.get_employee(employee_id)
        docs = await self.checks.find([eq("employeeId", employee.id)], order_by=[("checkDate", True)])
        return employee, [DeviceCheck.model_validate(d) for d in docs]

    async def update_device_check(self, check_id: str, patch: DeviceCheckUpdate) -> DeviceCheck:
        require_document_id(check_id, "device check")
        changes = patch.to_document(exclude_unset=True)

        for attempt in range(1, self.conflict_retries + 1):
            doc = await self.checks.get(check_id)
            if doc is None:
                raise NotFoundError("Device check not found")

            if changes.get("employeeId") not in (None, doc["employeeId"]):
                raise ValidationError("Cannot change employeeId after creation")
            if changes.get("version") not in (None, doc["version"]):
                raise ValidationError("Cannot change version after creation")

            merged = dict(doc)
            for key, value in changes.items():
                if key not in ("employeeId", "version"):
                    merged[key] = value
            merged["updatedAt"] = format_utc(utcnow())

            try:
                previous = DeviceCheck.model_validate(doc)
                updated = DeviceCheck.model_validate(merged)
            except PydanticValidationError as e:
                raise ValidationError(str(e)) from e

            try:
                stored = await self.checks.replace(check_id, updated.to_document(), etag=doc.get("_etag"))
            except PreconditionFailedError:
                logger.info("Device check %s changed during update, retrying (attempt %d)", check_id, attempt)
                continue
            if stored is None:
                raise NotFoundError("Device check not found")

            logger.info("Device check updated id=%s sections=%s", check_id, sorted(changes))
            if updated.check_date != previous.check_date:
                await self._refresh_quietly(updated.employee_id)
            return DeviceCheck.model_validate(stored)

        raise ConflictError(f"Device check {check_id} is being modified concurrently, try again")

    async def delete_device_check(self, check_id: str) -> None:
        doc = await self.checks.get(require_document_id(check_id, "device check"))
        if doc is None:
            raise NotFoundError("Device check not found")

        if not await self.checks.delete(check_id):
            raise NotFoundError("Device check not found")
        logger.info("Device check deleted id=%s employee=%s", check_id, doc["employeeId"])

        await self._refresh_quietly(doc["employeeId"])

    async def compute_employee_stats(self, employee_id: str) -> tuple[int, Any]:
        where = [eq("employeeId", employee_id)]
        total = await self.checks.count(where)
        last_check_date = await self.checks.max_value("checkDate", where) if total else None
        return total, last_check_date

    async def refresh_employee_stats(self, employee_id: str) -> tuple[int, Any]:
        """Recompute totalDeviceChecks and lastCheckDate from the check set."""
        total, last_check_date = await self.compute_employee_stats(employee_id)
        await self.employee_service.write_check_stats(employee_id, total, last_check_date)
        return total, last_check_date

    async def _refresh_quietly(self, employee_id: str) -> None:
        try:
            await self.refresh_employee_stats(employee_id)
        except Exception:
            logger.exception("Check stats refresh failed for employee %s; aggregates stay stale", employee_id)

    async def repair_all_stats(self, *, dry_run: bool = False) -> RepairReport:
        employees = repaired = drifted = failed = 0
        async for doc in self.employee_service.iter_employee_documents():
            employees += 1
            try:
                total, last_check_date = await self.compute_employee_stats(doc["id"])
                if doc.get("totalDeviceChecks") == total and doc.get("lastCheckDate") == last_check_date:
                    continue
                drifted += 1
                logger.info(
                    "Stats drift for employee %s: stored=(%s, %s) actual=(%s, %s)",
                    doc["id"],
                    doc.get("totalDeviceChecks"),
                    doc.get("lastCheckDate"),
                    total,
                    last_check_date,
                )
                if not dry_run and await self.employee_service.write_check_stats(doc["id"], total, last_check_date):
                    repaired += 1
            except Exception:
                failed += 1
                logger.exception("Stats repair failed for employee %s", doc["id"])

        return RepairReport(employees=employees, repaired=repaired, drifted=drifted, failed=failed)
