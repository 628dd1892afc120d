"""Autocomplete suggestions learned from submitted device checks."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Any

from devicecheck.core.exceptions import DocumentExistsError, ValidationError
from devicecheck.core.store import Clause, DocumentStore, eq
from devicecheck.models.common import format_utc, utcnow
from devicecheck.models.device_check import DeviceCheck
from devicecheck.models.dropdown import DropdownOption

logger = logging.getLogger(__name__)

WORK_APPS = "WORKAPPS"
NON_WORK_APPS = "NONWORKAPPS"
ANTIVIRUS = "ANTIVIRUS"
VPN = "VPN"


def _normalize(value: str | None) -> str:
    return (value or "").strip().upper()


def option_id(field_name: str, value: str) -> str:
    digest = hashlib.sha256(f"{field_name}\x1f{_normalize(value)}".encode()).hexdigest()
    return digest[:40]


def extract_check_values(check: DeviceCheck) -> list[tuple[str, str, str | None]]:
    """(fieldName, value, category) for every free-text value worth suggesting."""
    values: list[tuple[str, str, str | None]] = [
        ("deviceBrand", check.device_detail.device_brand, None),
        ("osVersion", check.operating_system.os_version, None),
    ]
    if check.specification:
        values += [
            ("ramCapacity", check.specification.ram_capacity, None),
            ("memoryCapacity", check.specification.memory_capacity, None),
            ("processor", check.specification.processor, None),
        ]
    values += [("applicationName", app.application_name, WORK_APPS) for app in check.work_applications]
    values += [("applicationName", app.application_name, NON_WORK_APPS) for app in check.non_work_applications]
    values += [("applicationName", av.application_name, ANTIVIRUS) for av in check.security.antivirus.items]
    values += [("vpnName", vpn.vpn_name, VPN) for vpn in check.security.vpn.items]
    values.append(("inspectorPICName", check.additional_info.inspector_pic_name, None))

    return [(field, value, category) for field, value, category in values if _normalize(value)]


class DropdownService:
    def __init__(self, options: DocumentStore, *, max_page_size: int = 100) -> None:
        self.options = options
        self.max_page_size = max_page_size

    async def record_option(self, field_name: str, value: str, category: str | None = None) -> DropdownOption:
        """Count one use of ``value`` for ``field_name``, creating the option on first use."""
        field_name = field_name.strip()
        normalized = _normalize(value)
        if not field_name or not normalized:
            raise ValidationError("fieldName and value are required")

        doc_id = option_id(field_name, normalized)
        now = format_utc(utcnow())

        updated = await self._increment(doc_id, now)
        if updated is not None:
            return DropdownOption.model_validate(updated)

        doc: dict[str, Any] = {
            "id": doc_id,
            "fieldName": field_name,
            "value": normalized,
            "category": _normalize(category) or None,
            "usageCount": 1,
            "lastUsedAt": now,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            created = await self.options.create(doc)
        except DocumentExistsError:
            # another writer created it between our patch and create
            updated = await self._increment(doc_id, now)
            if updated is None:
                raise
            return DropdownOption.model_validate(updated)

        logger.debug("Dropdown option created field=%s value=%s", field_name, normalized)
        return DropdownOption.model_validate(created)

    async def _increment(self, doc_id: str, now: str) -> dict[str, Any] | None:
        return await self.options.patch(
            doc_id,
            set_fields={"lastUsedAt": now, "updatedAt": now},
            increment={"usageCount": 1},
        )

    async def list_options(
        self, field_name: str, *, category: str | None = None, limit: int = 50
    ) -> list[DropdownOption]:
        if not field_name or not field_name.strip():
            raise ValidationError("fieldName is required")

        where: list[Clause] = [eq("fieldName", field_name.strip())]
        if category:
            where.append(eq("category", _normalize(category)))

        limit = min(max(limit, 1), self.max_page_size)
        docs = await self.options.find(where, order_by=[("usageCount", True), ("value", False)], limit=limit)
        return [DropdownOption.model_validate(d) for d in docs]

    async def record_check_values(self, check: DeviceCheck) -> int:
        """Upsert every suggestion found in ``check``. Returns how many succeeded."""
        values = extract_check_values(check)
        results = await asyncio.gather(
            *(self.record_option(field, value, category) for field, value, category in values),
            return_exceptions=True,
        )

        failures = 0
        for (field, value, _), result in zip(values, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.error("Dropdown upsert failed field=%s value=%s: %s", field, value, result)
        if failures:
            logger.warning("Dropdown upserts for check %s: %d of %d failed", check.id, failures, len(values))
        return len(values) - failures
