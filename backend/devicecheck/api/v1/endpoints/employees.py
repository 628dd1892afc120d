from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from devicecheck.api.v1.errors import http_error
from devicecheck.core.dependencies import (
    get_current_user,
    get_device_check_service,
    get_employee_service,
    get_report_renderer,
    require_role,
)
from devicecheck.core.exceptions import DeviceCheckError
from devicecheck.models.auth import UserInfo
from devicecheck.models.common import Page
from devicecheck.models.device_check import EmployeeDetail
from devicecheck.models.employee import (
    Employee,
    EmployeeCreate,
    EmployeeDeleteResult,
    EmployeeSummary,
    EmployeeUpdate,
)
from devicecheck.services.device_check_service import DeviceCheckService
from devicecheck.services.employee_service import EmployeeService
from devicecheck.services.report_service import ReportRenderer, ReportRenderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("", response_model=Page[Employee])
async def list_employees(
    search: str = "",
    department: str = "",
    employee_status: str = Query("", alias="status"),
    sort_by: str = Query("fullName", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    page: int = 1,
    limit: int | None = None,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeService = Depends(get_employee_service),  # noqa: B008
):
    try:
        return await employees.list_employees(
            search=search,
            department=department,
            status=employee_status,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    except DeviceCheckError as err:
        raise http_error(err) from err


@router.post("", response_model=Employee, status_code=status.HTTP_201_CREATED)
async def create_employee(
    payload: EmployeeCreate,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeService = Depends(get_employee_service),  # noqa: B008
):
    try:
        employee = await employees.create_employee(payload)
    except DeviceCheckError as err:
        raise http_error(err) from err

    logger.info("Employee %s created by user=%s", employee.id, user.name)
    return employee


@router.get("/search", response_model=list[EmployeeSummary])
async def search_employees(
    q: str = "",
    employee_status: str = Query("Active", alias="status"),
    limit: int = 10,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeService = Depends(get_employee_service),  # noqa: B008
):
    try:
        return await employees.search_employees(q, status=employee_status, limit=limit)
    except DeviceCheckError as err:
        raise http_error(err) from err


@router.get("/{employee_id}", response_model=EmployeeDetail)
async def get_employee(
    employee_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
):
    try:
        return await device_checks.get_employee_detail(employee_id)
    except DeviceCheckError as err:
        raise http_error(err) from err


@router.put("/{employee_id}", response_model=Employee)
async def update_employee(
    employee_id: str,
    payload: EmployeeUpdate,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    employees: EmployeeService = Depends(get_employee_service),  # noqa: B008
):
    try:
        return await employees.update_employee(employee_id, payload)
    except DeviceCheckError as err:
        raise http_error(err) from err


@router.delete("/{employee_id}", response_model=EmployeeDeleteResult)
async def delete_employee(
    employee_id: str,
    user: UserInfo = Depends(require_role("admin")),  # noqa: B008
    employees: EmployeeService = Depends(get_employee_service),  # noqa: B008
):
    try:
        result = await employees.delete_employee(employee_id)
    except DeviceCheckError as err:
        raise http_error(err) from err

    logger.info("Employee %s delete (soft=%s) by user=%s", employee_id, result.soft_deleted, user.name)
    return result


@router.get("/{employee_id}/report")
async def employee_report(
    employee_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
    reports: ReportRenderer = Depends(get_report_renderer),  # noqa: B008
):
    try:
        employee, checks = await device_checks.all_checks_for_employee(employee_id)
    except DeviceCheckError as err:
        raise http_error(err) from err

    try:
        pdf = reports.render_employee_history_report(employee, checks)
    except ReportRenderError as err:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to render report",
        ) from err

    filename = f"device-checks-{employee.id}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
