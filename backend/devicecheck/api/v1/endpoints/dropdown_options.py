from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status

from devicecheck.api.v1.errors import http_error
from devicecheck.core.dependencies import get_current_user, get_dropdown_service
from devicecheck.core.exceptions import DeviceCheckError
from devicecheck.models.auth import UserInfo
from devicecheck.models.dropdown import DropdownOption, DropdownOptionCreate
from devicecheck.services.dropdown_service import DropdownService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dropdown-options", tags=["dropdown-options"])


@router.get("", response_model=list[DropdownOption])
async def list_dropdown_options(
    field_name: str = Query(..., alias="fieldName"),
    category: str | None = None,
    limit: int = 50,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    dropdown: DropdownService = Depends(get_dropdown_service),  # noqa: B008
):
    try:
        return await dropdown.list_options(field_name, category=category, limit=limit)
    except DeviceCheckError as err:
        raise http_error(err) from err


@router.post("", response_model=DropdownOption, status_code=status.HTTP_201_CREATED)
async def record_dropdown_option(
    payload: DropdownOptionCreate,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
    dropdown: DropdownService = Depends(get_dropdown_service),  # noqa: B008
):
    try:
        return await dropdown.record_option(payload.field_name, payload.value, payload.category)
    except DeviceCheckError as err:
        raise http_error(err) from err
