"""Device check models: inspection payload, stored record and composed views."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import Field, StringConstraints, model_validator

from devicecheck.models.common import DocumentModel, Pagination, UtcDatetime
from devicecheck.models.employee import Employee, EmployeeSummary
from devicecheck.models.normalizer import normalize_for_submission

Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Notes = Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]


class DeviceType(str, Enum):
    PC = "PC"
    LAPTOP = "Laptop"


class Ownership(str, Enum):
    COMPANY = "Company"
    PERSONAL = "Personal"


class OsType(str, Enum):
    WINDOWS = "Windows"
    LINUX = "Linux"
    MAC = "Mac"


class License(str, Enum):
    ORIGINAL = "Original"
    PIRATED = "Pirated"
    OPEN_SOURCE = "Open Source"
    UNKNOWN = "Unknown"


class MemoryType(str, Enum):
    HDD = "HDD"
    SSD = "SSD"


class Suitability(str, Enum):
    SUITABLE = "Suitable"
    LIMITED_SUITABILITY = "Limited Suitability"
    NEEDS_REPAIR = "Needs Repair"
    UNSUITABLE = "Unsuitable"


class AntivirusStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class Availability(str, Enum):
    AVAILABLE = "Available"
    NOT_AVAILABLE = "Not Available"


class EmployeeSnapshot(DocumentModel):
    """Employee identity as known when the check was recorded. Never updated."""

    full_name: str
    position: str
    department: str | None = None


class DeviceDetail(DocumentModel):
    device_type: DeviceType
    ownership: Ownership
    device_brand: Text
    device_model: Text
    serial_number: Text


class OperatingSystem(DocumentModel):
    os_type: OsType
    os_version: Text
    os_license: License
    os_regular_update: bool = False


class Specification(DocumentModel):
    ram_capacity: Notes | None = None
    memory_type: MemoryType | None = None
    memory_capacity: Notes | None = None
    processor: Notes | None = None


class DeviceCondition(DocumentModel):
    device_suitability: Suitability
    battery_suitability: Text
    keyboard_condition: Text
    touchpad_condition: Text
    monitor_condition: Text
    wifi_condition: Text


class Application(DocumentModel):
    application_name: Text
    license: License
    notes: Notes | None = None


class VpnEntry(DocumentModel):
    vpn_name: Text
    license: License
    notes: Notes | None = None


class Antivirus(DocumentModel):
    status: AntivirusStatus
    items: list[Application] = Field(default_factory=list, alias="list")


class Vpn(DocumentModel):
    status: Availability
    items: list[VpnEntry] = Field(default_factory=list, alias="list")


class Security(DocumentModel):
    antivirus: Antivirus
    vpn: Vpn


class AdditionalInfo(DocumentModel):
    password_usage: Availability
    other_notes: Notes | None = None
    inspector_pic_name: Notes | None = Field(default=None, alias="inspectorPICName")


class _NormalizedInput(DocumentModel):
    @model_validator(mode="before")
    @classmethod
    def _normalize_enums(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return normalize_for_submission(data)
        return data


class DeviceCheckCreate(_NormalizedInput):
    employee_id: str = Field(..., min_length=1)
    device_detail: DeviceDetail
    operating_system: OperatingSystem
    specification: Specification | None = None
    device_condition: DeviceCondition
    work_applications: list[Application] = []
    non_work_applications: list[Application] = []
    security: Security
    additional_info: AdditionalInfo
    check_date: UtcDatetime | None = None


class DeviceCheckUpdate(_NormalizedInput):
    """Section-level patch. employee_id and version may only repeat stored values."""

    employee_id: str | None = None
    version: int | None = None
    device_detail: DeviceDetail | None = None
    operating_system: OperatingSystem | None = None
    specification: Specification | None = None
    device_condition: DeviceCondition | None = None
    work_applications: list[Application] | None = None
    non_work_applications: list[Application] | None = None
    security: Security | None = None
    additional_info: AdditionalInfo | None = None
    check_date: UtcDatetime | None = None


class DeviceCheck(DocumentModel):
    id: str
    employee_id: str
    employee_snapshot: EmployeeSnapshot
    device_detail: DeviceDetail
    operating_system: OperatingSystem
    specification: Specification | None = None
    device_condition: DeviceCondition
    work_applications: list[Application] = []
    non_work_applications: list[Application] = []
    security: Security
    additional_info: AdditionalInfo
    check_date: UtcDatetime
    version: int = Field(..., ge=1)
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class DeviceCheckDetail(DeviceCheck):
    """A check together with the employee's current record, if it still exists."""

    employee: EmployeeSummary | None = None


class EmployeeDetail(Employee):
    """An employee with the most recent device checks."""

    device_checks: list[DeviceCheck] = []


class EmployeeChecksSummary(DocumentModel):
    total_checks: int
    latest_check_date: UtcDatetime | None = None
    device_types: dict[str, int]
    ownership: dict[str, int]


class EmployeeChecks(DocumentModel):
    employee: Employee
    checks: list[DeviceCheck]
    pagination: Pagination
    summary: EmployeeChecksSummary


class RepairReport(DocumentModel):
    employees: int
    repaired: int
    drifted: int
    failed: int
