from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status

from devicecheck.api.v1.errors import http_error
from devicecheck.core.dependencies import (
    get_current_user,
    get_device_check_service,
    get_dropdown_service,
    get_report_renderer,
)
from devicecheck.core.exceptions import DeviceCheckError
from devicecheck.models.auth import UserInfo
from devicecheck.models.common import DeleteResult, Page
from devicecheck.models.device_check import (
    DeviceCheck,
    DeviceCheckCreate,
    DeviceCheckDetail,
    DeviceCheckUpdate,
    EmployeeChecks,
)
from devicecheck.models.normalizer import normalize_for_form
from devicecheck.services.device_check_service import DeviceCheckService
from devicecheck.services.dropdown_service import DropdownService
from devicecheck.services.report_service import ReportRenderer, ReportRenderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/device-checks", tags=["device-checks"])


@router.get("", response_model=Page[DeviceCheckDetail])
async def list_device_checks(
    search: str = "",
    employee_id: str = Query("", alias="employeeId"),
    department: str = "",
    suitability: str = "",
    ownership: str = "",
    date_from: date | None = Query(None, alias="dateFrom"),  # noqa: B008
    date_to: date | None = Query(None, alias="dateTo"),  # noqa: B008
    sort_by: str = Query("checkDate", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = 1,
    limit: int | None = None,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
):
    try:
        return await device_checks.list_device_checks(
            search=search,
            employee_id=employee_id,
            department=department,
            suitability=suitability,
            ownership=ownership,
            date_from=date_from,
            date_to=date_to,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    except DeviceCheckError as err:
        raise http_error(err) from err


@router.post("", response_model=DeviceCheck, status_code=status.HTTP_201_CREATED)
async def create_device_check(
    payload: DeviceCheckCreate,
    background_tasks: BackgroundTasks,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
    dropdown: DropdownService = Depends(get_dropdown_service),  # noqa: B008
):
    try:
        check = await device_checks.create_device_check(payload, inspector=user.name)
    except DeviceCheckError as err:
        raise http_error(err) from err

    background_tasks.add_task(dropdown.record_check_values, check)
    return check


@router.get("/employee/{employee_id}", response_model=EmployeeChecks)
async def list_checks_for_employee(
    employee_id: str,
    sort_by: str = Query("checkDate", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = 1,
    limit: int | None = None,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
):
    try:
        return await device_checks.list_checks_for_employee(
            employee_id, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit
        )
    except DeviceCheckError as err:
        raise http_error(err) from err


@router.get("/{check_id}", response_model=None)
async def get_device_check(
    check_id: str,
    view: str = "",
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
) -> dict[str, Any]:
    if view not in ("", "form"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="view must be 'form' or omitted",
        )
    try:
        detail = await device_checks.get_device_check(check_id)
    except DeviceCheckError as err:
        raise http_error(err) from err

    doc = detail.to_document()
    return normalize_for_form(doc) if view == "form" else doc


@router.put("/{check_id}", response_model=DeviceCheck)
async def update_device_check(
    check_id: str,
    payload: DeviceCheckUpdate,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
):
    try:
        return await device_checks.update_device_check(check_id, payload)
    except DeviceCheckError as err:
        raise http_error(err) from err


@router.delete("/{check_id}", response_model=DeleteResult)
async def delete_device_check(
    check_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
):
    try:
        await device_checks.delete_device_check(check_id)
    except DeviceCheckError as err:
        raise http_error(err) from err

    logger.info("Device check %s deleted by user=%s", check_id, user.name)
    return DeleteResult(message="Device check deleted successfully")


@router.get("/{check_id}/report")
async def device_check_report(
    check_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
    reports: ReportRenderer = Depends(get_report_renderer),  # noqa: B008
):
    try:
        check = await device_checks.get_device_check(check_id)
    except DeviceCheckError as err:
        raise http_error(err) from err

    try:
        pdf = reports.render_device_check_report(check)
    except ReportRenderError as err:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to render report",
        ) from err

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="device-check-{check.id}.pdf"'},
    )
