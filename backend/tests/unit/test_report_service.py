from __future__ import annotations

from unittest.mock import patch

import fitz
import pytest

from devicecheck.models.device_check import DeviceCheck
from devicecheck.models.employee import Employee
from devicecheck.services.report_service import ReportRenderer, ReportRenderError
from tests.conftest import check_payload

EMPLOYEE = Employee.model_validate(
    {
        "id": "e1",
        "fullName": "Budi Santoso",
        "firstName": "Budi",
        "lastName": "Santoso",
        "position": "SOFTWARE ENGINEER",
        "department": "ENGINEERING",
        "totalDeviceChecks": 2,
    }
)


def _check(version: int, check_date: str, **device) -> DeviceCheck:
    doc = check_payload("e1")
    doc["deviceDetail"].update(device)
    doc.update(
        id=f"c{version}",
        version=version,
        checkDate=check_date,
        employeeSnapshot={"fullName": "Budi Santoso", "position": "SOFTWARE ENGINEER", "department": "ENGINEERING"},
    )
    return DeviceCheck.model_validate(doc)


def _text(pdf: bytes) -> str:
    doc = fitz.open(stream=pdf, filetype="pdf")
    text = "\n".join(page.get_text() for page in doc)
    doc.close()
    return text


def test_device_check_report_contains_all_sections():
    pdf = ReportRenderer("Device Checking System").render_device_check_report(_check(1, "2024-01-10"))

    assert pdf.startswith(b"%PDF")
    text = _text(pdf)
    for heading in (
        "Employee Information",
        "Device Information",
        "Operating System",
        "Specifications",
        "Device Condition",
        "Work Applications",
        "Non-Work Applications",
        "Security",
        "Additional Information",
    ):
        assert heading in text
    assert "Budi Santoso" in text
    assert "ThinkPad T14" in text
    assert "2024-01-10" in text


def test_history_report_orders_checks_by_date_desc():
    checks = [
        _check(1, "2024-01-10"),
        _check(2, "2024-03-05", deviceType="PC", ownership="Personal"),
    ]

    text = _text(ReportRenderer().render_employee_history_report(EMPLOYEE, checks))

    assert "Device Check History - Budi Santoso" in text
    assert "Total checks: 2" in text
    assert "PC: 1" in text
    assert "Personal: 1" in text
    assert text.index("Check #2") < text.index("Check #1")


def test_history_report_breaks_pages():
    checks = [_check(v, f"2024-01-{v:02d}") for v in range(1, 9)]

    pdf = ReportRenderer().render_employee_history_report(EMPLOYEE, checks)

    doc = fitz.open(stream=pdf, filetype="pdf")
    assert doc.page_count > 1
    doc.close()


def test_history_report_without_checks():
    text = _text(ReportRenderer().render_employee_history_report(EMPLOYEE, []))
    assert "Total checks: 0" in text


def test_render_failure_is_wrapped():
    with patch("devicecheck.services.report_service.fitz.open", side_effect=RuntimeError("boom")):
        with pytest.raises(ReportRenderError):
            ReportRenderer().render_device_check_report(_check(1, "2024-01-10"))
