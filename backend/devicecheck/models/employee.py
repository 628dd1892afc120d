"""Employee models for the Cosmos DB employees container."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator

from devicecheck.models.common import DocumentModel, UtcDatetime


class EmployeeStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    RESIGNED = "Resigned"


def _strip(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _required_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


def _upper(value: str | None) -> str | None:
    value = _strip(value)
    return value.upper() if value else None


def full_name(first_name: str, last_name: str) -> str:
    return f"{first_name} {last_name}".strip()


class EmployeeCreate(DocumentModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    position: str = Field(..., min_length=1, max_length=200)
    department: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    phone_number: str | None = Field(default=None, max_length=50)
    status: EmployeeStatus = EmployeeStatus.ACTIVE

    @field_validator("first_name", "last_name", mode="after")
    @classmethod
    def _names(cls, value: str) -> str:
        return _required_text(value)

    @field_validator("position", mode="after")
    @classmethod
    def _position(cls, value: str) -> str:
        return _required_text(value).upper()

    @field_validator("department", mode="after")
    @classmethod
    def _department(cls, value: str | None) -> str | None:
        return _upper(value)

    @field_validator("email", mode="after")
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        value = _strip(value)
        return value.lower() if value else None

    @field_validator("phone_number", mode="after")
    @classmethod
    def _phone(cls, value: str | None) -> str | None:
        return _strip(value)


class EmployeeUpdate(DocumentModel):
    """Partial edit. Aggregates and the version counter are not accepted here."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    position: str | None = Field(default=None, min_length=1, max_length=200)
    department: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    phone_number: str | None = Field(default=None, max_length=50)
    status: EmployeeStatus | None = None

    @field_validator("first_name", "last_name", mode="after")
    @classmethod
    def _names(cls, value: str | None) -> str | None:
        return _required_text(value)

    @field_validator("position", mode="after")
    @classmethod
    def _position(cls, value: str | None) -> str | None:
        value = _required_text(value)
        return value.upper() if value else None

    @field_validator("department", mode="after")
    @classmethod
    def _department(cls, value: str | None) -> str | None:
        return _upper(value)

    @field_validator("email", mode="after")
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        value = _strip(value)
        return value.lower() if value else None

    @field_validator("phone_number", mode="after")
    @classmethod
    def _phone(cls, value: str | None) -> str | None:
        return _strip(value)


class EmployeeSummary(DocumentModel):
    """Minimal employee info for lists, autocomplete and check detail."""

    id: str
    full_name: str
    first_name: str | None = None
    last_name: str | None = None
    position: str | None = None
    department: str | None = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    total_device_checks: int = Field(default=0, ge=0)
    last_check_date: UtcDatetime | None = None


class Employee(EmployeeSummary):
    first_name: str
    last_name: str
    position: str
    email: str | None = None
    phone_number: str | None = None
    check_sequence: int = Field(default=0, ge=0)
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class EmployeeDeleteResult(DocumentModel):
    soft_deleted: bool
    message: str
    data: Employee | None = None
