"""Conversion between stored enum values and the form's internal keys.

Stored documents use the capitalized labels ("Open Source", "Not Available");
the entry form works with lowercase camelCase keys ("openSource",
"notAvailable"). Older records and clients may send either convention.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

DEVICE_TYPE = {"PC": "pc", "Laptop": "laptop"}
OWNERSHIP = {"Company": "company", "Personal": "personal"}
OS_TYPE = {"Windows": "windows", "Linux": "linux", "Mac": "mac"}
LICENSE = {"Original": "original", "Pirated": "pirated", "Open Source": "openSource", "Unknown": "unknown"}
MEMORY_TYPE = {"HDD": "hdd", "SSD": "ssd"}
SUITABILITY = {
    "Suitable": "suitable",
    "Limited Suitability": "limitedSuitability",
    "Needs Repair": "needsRepair",
    "Unsuitable": "unsuitable",
}
SECURITY_STATUS = {
    "Active": "active",
    "Inactive": "inactive",
    "Available": "available",
    "Not Available": "notAvailable",
}
PASSWORD_USAGE = {"Available": "available", "Not Available": "notAvailable"}

# "[]" marks a list whose items are each visited.
ENUM_PATHS: list[tuple[str, dict[str, str]]] = [
    ("deviceDetail.deviceType", DEVICE_TYPE),
    ("deviceDetail.ownership", OWNERSHIP),
    ("operatingSystem.osType", OS_TYPE),
    ("operatingSystem.osLicense", LICENSE),
    ("specification.memoryType", MEMORY_TYPE),
    ("deviceCondition.deviceSuitability", SUITABILITY),
    ("workApplications[].license", LICENSE),
    ("nonWorkApplications[].license", LICENSE),
    ("security.antivirus.status", SECURITY_STATUS),
    ("security.antivirus.list[].license", LICENSE),
    ("security.vpn.status", SECURITY_STATUS),
    ("security.vpn.list[].license", LICENSE),
    ("additionalInfo.passwordUsage", PASSWORD_USAGE),
]


def _submission_map(form_map: dict[str, str]) -> dict[str, str]:
    inverse = {canonical.lower(): canonical for canonical in form_map}
    inverse.update({key.lower(): canonical for canonical, key in form_map.items()})
    return inverse


_SUBMISSION_PATHS = [(path, _submission_map(mapping)) for path, mapping in ENUM_PATHS]


def _apply(node: Any, segments: list[str], convert: Callable[[str], str]) -> None:
    if not isinstance(node, dict) or not segments:
        return

    head, rest = segments[0], segments[1:]
    if head.endswith("[]"):
        items = node.get(head[:-2])
        if isinstance(items, list):
            for item in items:
                _apply(item, rest, convert)
        return

    if not rest:
        value = node.get(head)
        if isinstance(value, str) and value:
            node[head] = convert(value)
        return

    _apply(node.get(head), rest, convert)


def normalize_for_form(data: dict[str, Any] | None) -> dict[str, Any] | None:
    """Stored labels to internal form keys. Unknown values pass through."""
    if not data:
        return data
    normalized = copy.deepcopy(data)
    for path, mapping in ENUM_PATHS:
        _apply(normalized, path.split("."), lambda v, m=mapping: m.get(v, v))
    return normalized


def normalize_for_submission(data: dict[str, Any] | None) -> dict[str, Any] | None:
    """Internal form keys (any case) to stored labels. Unknown values pass through."""
    if not data:
        return data
    normalized = copy.deepcopy(data)
    for path, mapping in _SUBMISSION_PATHS:
        _apply(normalized, path.split("."), lambda v, m=mapping: m.get(v.lower(), v))
    return normalized
