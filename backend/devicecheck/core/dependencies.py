from __future__ import annotations

import logging

from fastapi import Depends, Header, HTTPException, Request, status

from devicecheck.core.auth import TokenValidator, extract_roles
from devicecheck.core.config import settings
from devicecheck.models.auth import TokenClaims, UserInfo
from devicecheck.services.container import ServiceContainer
from devicecheck.services.device_check_service import DeviceCheckService
from devicecheck.services.dropdown_service import DropdownService
from devicecheck.services.employee_service import EmployeeService
from devicecheck.services.report_service import ReportRenderer

logger = logging.getLogger(__name__)


def get_token_validator(request: Request) -> TokenValidator:
    validator = getattr(request.app.state, "token_validator", None)
    if validator is None:
        validator = TokenValidator(settings.AZURE_AD_TENANT_ID, settings.AZURE_AD_CLIENT_ID)
        request.app.state.token_validator = validator
    return validator


async def get_current_user(
    authorization: str | None = Header(None),
    validator: TokenValidator = Depends(get_token_validator),  # noqa: B008
) -> UserInfo:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization.split(" ", 1)[1]

    try:
        payload = validator.validate(token)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Token validation error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    claims = TokenClaims(
        oid=payload.get("oid"),
        name=payload.get("name"),
        preferred_username=payload.get("preferred_username"),
        roles=extract_roles(payload),
    )
    return UserInfo.from_claims(claims)


def require_role(*roles: str):
    async def _check_role(user: UserInfo = Depends(get_current_user)) -> UserInfo:  # noqa: B008
        if not user.has_any_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {', '.join(roles)}",
            )
        return user

    return _check_role


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document store is not configured",
        )
    return services


def get_employee_service(services: ServiceContainer = Depends(get_services)) -> EmployeeService:  # noqa: B008
    return services.employees


def get_device_check_service(services: ServiceContainer = Depends(get_services)) -> DeviceCheckService:  # noqa: B008
    return services.device_checks


def get_dropdown_service(services: ServiceContainer = Depends(get_services)) -> DropdownService:  # noqa: B008
    return services.dropdown


def get_report_renderer(services: ServiceContainer = Depends(get_services)) -> ReportRenderer:  # noqa: B008
    return services.reports
