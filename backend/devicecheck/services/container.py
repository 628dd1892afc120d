from __future__ import annotations

from dataclasses import dataclass

from devicecheck.core.config import Settings
from devicecheck.core.store import CosmosDatabase
from devicecheck.services.device_check_service import DeviceCheckService
from devicecheck.services.dropdown_service import DropdownService
from devicecheck.services.employee_service import EmployeeService
from devicecheck.services.report_service import ReportRenderer


@dataclass
class ServiceContainer:
    employees: EmployeeService
    device_checks: DeviceCheckService
    dropdown: DropdownService
    reports: ReportRenderer


def build_services(database: CosmosDatabase, settings: Settings) -> ServiceContainer:
    employee_store = database.store(settings.COSMOS_DB_EMPLOYEES_CONTAINER)
    check_store = database.store(settings.COSMOS_DB_DEVICE_CHECKS_CONTAINER)
    option_store = database.store(settings.COSMOS_DB_DROPDOWN_OPTIONS_CONTAINER)

    paging = {"default_page_size": settings.DEFAULT_PAGE_SIZE, "max_page_size": settings.MAX_PAGE_SIZE}
    employees = EmployeeService(
        employee_store, check_store, conflict_retries=settings.WRITE_CONFLICT_RETRIES, **paging
    )
    return ServiceContainer(
        employees=employees,
        device_checks=DeviceCheckService(
            check_store, employees, conflict_retries=settings.WRITE_CONFLICT_RETRIES, **paging
        ),
        dropdown=DropdownService(option_store, max_page_size=settings.MAX_PAGE_SIZE),
        reports=ReportRenderer(settings.REPORT_TITLE),
    )
