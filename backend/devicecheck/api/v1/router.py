from fastapi import APIRouter

from devicecheck.api.v1.endpoints import device_checks, dropdown_options, employees, health, maintenance

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router)
api_router.include_router(employees.router)
api_router.include_router(device_checks.router)
api_router.include_router(dropdown_options.router)
api_router.include_router(maintenance.router)
