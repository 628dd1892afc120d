from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from devicecheck.core.config import settings
from devicecheck.core.dependencies import get_current_user
from devicecheck.models.auth import UserInfo

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(request: Request):
    services: dict[str, str] = {}

    database = getattr(request.app.state, "database", None)
    try:
        if database is not None and database.database is not None:
            ok = await database.check_connection()
            services["cosmos_db"] = "ok" if ok else "error"
        else:
            services["cosmos_db"] = "not_configured"
    except Exception:
        services["cosmos_db"] = "error"

    all_ok = all(v in ("ok", "not_configured") for v in services.values())

    return {
        "status": "healthy" if all_ok else "degraded",
        "version": settings.APP_VERSION,
        "services": services,
    }


@router.get("/protected")
async def health_protected(user: UserInfo = Depends(get_current_user)):  # noqa: B008
    return {"status": "ok", "user": user.model_dump()}


@router.get("/ready")
async def readiness_probe(request: Request):
    return {"ready": getattr(request.app.state, "services", None) is not None}
