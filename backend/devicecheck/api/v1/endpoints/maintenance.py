from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from devicecheck.api.v1.errors import http_error
from devicecheck.core.dependencies import get_device_check_service, require_role
from devicecheck.core.exceptions import DeviceCheckError
from devicecheck.models.auth import UserInfo
from devicecheck.models.device_check import RepairReport
from devicecheck.services.device_check_service import DeviceCheckService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/repair-stats", response_model=RepairReport)
async def repair_stats(
    dry_run: bool = False,
    user: UserInfo = Depends(require_role("admin")),  # noqa: B008
    device_checks: DeviceCheckService = Depends(get_device_check_service),  # noqa: B008
):
    try:
        report = await device_checks.repair_all_stats(dry_run=dry_run)
    except DeviceCheckError as err:
        raise http_error(err) from err

    logger.info(
        "Stats repair by user=%s: %d employees, %d drifted, %d repaired, %d failed",
        user.name,
        report.employees,
        report.drifted,
        report.repaired,
        report.failed,
    )
    return report
