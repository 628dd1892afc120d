from __future__ import annotations

import logging
import textwrap
from collections import Counter
from collections.abc import Iterable
from datetime import datetime

import fitz

from devicecheck.models.device_check import Application, DeviceCheck, DeviceType, Ownership
from devicecheck.models.employee import Employee

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("a4")
MARGIN = 50
LINE_HEIGHT = 14
WRAP_COLUMNS = 90

FONT = "helv"
FONT_BOLD = "hebo"


class ReportRenderError(Exception):
    pass


def _date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _text(value: object) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(getattr(value, "value", value))


class _PdfWriter:
    """Top-to-bottom text layout with automatic page breaks."""

    def __init__(self, title: str, footer: str) -> None:
        self.doc = fitz.open()
        self.title = title
        self.footer = footer
        self.page: fitz.Page | None = None
        self.y = 0.0
        self._new_page()

    def _new_page(self) -> None:
        self.page = self.doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        self.page.insert_text((MARGIN, PAGE_HEIGHT - MARGIN / 2), self.footer, fontname=FONT, fontsize=8)
        self.y = MARGIN

    def _ensure_room(self, height: float) -> None:
        if self.y + height > PAGE_HEIGHT - MARGIN:
            self._new_page()

    def line(self, text: str, *, bold: bool = False, size: float = 10, indent: float = 0) -> None:
        for chunk in textwrap.wrap(text, WRAP_COLUMNS) or [""]:
            self._ensure_room(LINE_HEIGHT)
            self.page.insert_text(
                (MARGIN + indent, self.y),
                chunk,
                fontname=FONT_BOLD if bold else FONT,
                fontsize=size,
            )
            self.y += LINE_HEIGHT * size / 10

    def heading(self, text: str, size: float = 16) -> None:
        self._ensure_room(LINE_HEIGHT * 3)
        self.y += LINE_HEIGHT / 2
        self.line(text, bold=True, size=size)

    def section(self, title: str, rows: Iterable[tuple[str, object]]) -> None:
        self.heading(title, size=12)
        for label, value in rows:
            self.line(f"{label}: {_text(value)}", indent=10)

    def blank(self) -> None:
        self.y += LINE_HEIGHT

    def to_bytes(self) -> bytes:
        try:
            for number, page in enumerate(self.doc, start=1):
                page.insert_text(
                    (PAGE_WIDTH - MARGIN - 60, PAGE_HEIGHT - MARGIN / 2),
                    f"Page {number} of {self.doc.page_count}",
                    fontname=FONT,
                    fontsize=8,
                )
            return self.doc.tobytes()
        finally:
            self.doc.close()


def _application_rows(apps: list[Application]) -> list[tuple[str, object]]:
    if not apps:
        return [("Applications", None)]
    rows: list[tuple[str, object]] = []
    for index, app in enumerate(apps, start=1):
        detail = f"{app.application_name} ({_text(app.license)})"
        if app.notes:
            detail += f" - {app.notes}"
        rows.append((str(index), detail))
    return rows


class ReportRenderer:
    def __init__(self, title: str = "Device Checking System") -> None:
        self.title = title

    def render_device_check_report(self, check: DeviceCheck) -> bytes:
        try:
            writer = _PdfWriter(self.title, f"Generated {_date(datetime.now())}")
            writer.heading(self.title, size=18)
            writer.line(f"Device Check Report - version {check.version}", bold=True, size=12)
            writer.line(f"Check date: {_date(check.check_date)}")
            self._write_check(writer, check)
            return writer.to_bytes()
        except Exception as e:
            logger.error("Device check report failed for %s: %s", check.id, e)
            raise ReportRenderError(f"Failed to render device check report: {e}") from e

    def render_employee_history_report(self, employee: Employee, checks: list[DeviceCheck]) -> bytes:
        checks = sorted(checks, key=lambda c: c.check_date, reverse=True)
        device_types = Counter(c.device_detail.device_type for c in checks)
        ownership = Counter(c.device_detail.ownership for c in checks)

        try:
            writer = _PdfWriter(self.title, f"Generated {_date(datetime.now())}")
            writer.heading(self.title, size=18)
            writer.line(f"Device Check History - {employee.full_name}", bold=True, size=12)
            writer.section(
                "Employee Information",
                [
                    ("Name", employee.full_name),
                    ("Position", employee.position),
                    ("Department", employee.department),
                    ("Status", employee.status),
                    ("Email", employee.email),
                ],
            )
            writer.section(
                "Summary",
                [
                    ("Total checks", len(checks)),
                    ("Last check", _date(checks[0].check_date) if checks else None),
                    ("PC", device_types[DeviceType.PC]),
                    ("Laptop", device_types[DeviceType.LAPTOP]),
                    ("Company", ownership[Ownership.COMPANY]),
                    ("Personal", ownership[Ownership.PERSONAL]),
                ],
            )
            for check in checks:
                writer.blank()
                writer.heading(f"Check #{check.version} - {_date(check.check_date)}", size=14)
                self._write_check(writer, check, include_employee=False)
            return writer.to_bytes()
        except Exception as e:
            logger.error("History report failed for employee %s: %s", employee.id, e)
            raise ReportRenderError(f"Failed to render employee history report: {e}") from e

    def _write_check(self, writer: _PdfWriter, check: DeviceCheck, *, include_employee: bool = True) -> None:
        if include_employee:
            snapshot = check.employee_snapshot
            writer.section(
                "Employee Information",
                [("Name", snapshot.full_name), ("Position", snapshot.position), ("Department", snapshot.department)],
            )

        detail = check.device_detail
        writer.section(
            "Device Information",
            [
                ("Type", detail.device_type),
                ("Ownership", detail.ownership),
                ("Brand", detail.device_brand),
                ("Model", detail.device_model),
                ("Serial number", detail.serial_number),
            ],
        )

        os_ = check.operating_system
        writer.section(
            "Operating System",
            [
                ("Type", os_.os_type),
                ("Version", os_.os_version),
                ("License", os_.os_license),
                ("Regular updates", os_.os_regular_update),
            ],
        )

        spec = check.specification
        writer.section(
            "Specifications",
            [
                ("RAM", spec.ram_capacity if spec else None),
                ("Storage type", spec.memory_type if spec else None),
                ("Storage capacity", spec.memory_capacity if spec else None),
                ("Processor", spec.processor if spec else None),
            ],
        )

        condition = check.device_condition
        writer.section(
            "Device Condition",
            [
                ("Suitability", condition.device_suitability),
                ("Battery", condition.battery_suitability),
                ("Keyboard", condition.keyboard_condition),
                ("Touchpad", condition.touchpad_condition),
                ("Monitor", condition.monitor_condition),
                ("WiFi", condition.wifi_condition),
            ],
        )

        writer.section("Work Applications", _application_rows(check.work_applications))
        writer.section("Non-Work Applications", _application_rows(check.non_work_applications))

        security = check.security
        writer.section(
            "Security",
            [
                ("Antivirus", security.antivirus.status),
                *[(f"Antivirus {i}", a.application_name) for i, a in enumerate(security.antivirus.items, start=1)],
                ("VPN", security.vpn.status),
                *[(f"VPN {i}", v.vpn_name) for i, v in enumerate(security.vpn.items, start=1)],
            ],
        )

        info = check.additional_info
        writer.section(
            "Additional Information",
            [
                ("Password usage", info.password_usage),
                ("Notes", info.other_notes),
                ("Inspector", info.inspector_pic_name),
            ],
        )
