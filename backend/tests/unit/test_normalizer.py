from __future__ import annotations

from devicecheck.models.normalizer import normalize_for_form, normalize_for_submission
from tests.conftest import check_payload


def test_form_view_uses_internal_keys():
    doc = check_payload("abc")
    doc["deviceCondition"]["deviceSuitability"] = "Limited Suitability"
    doc["security"]["vpn"]["status"] = "Not Available"

    form = normalize_for_form(doc)

    assert form["deviceDetail"]["deviceType"] == "laptop"
    assert form["deviceDetail"]["ownership"] == "company"
    assert form["operatingSystem"]["osLicense"] == "original"
    assert form["deviceCondition"]["deviceSuitability"] == "limitedSuitability"
    assert form["security"]["vpn"]["status"] == "notAvailable"
    assert form["security"]["vpn"]["list"][0]["license"] == "openSource"
    assert form["workApplications"][0]["license"] == "original"
    assert form["additionalInfo"]["passwordUsage"] == "available"


def test_form_view_does_not_mutate_input():
    doc = check_payload("abc")
    normalize_for_form(doc)
    assert doc["deviceDetail"]["deviceType"] == "Laptop"


def test_submission_accepts_any_case_of_either_convention():
    doc = {
        "deviceDetail": {"deviceType": "LAPTOP", "ownership": "personal"},
        "operatingSystem": {"osType": "mac", "osLicense": "OPENSOURCE"},
        "deviceCondition": {"deviceSuitability": "needsrepair"},
        "security": {"antivirus": {"status": "INACTIVE", "list": [{"license": "pirated"}]}},
        "additionalInfo": {"passwordUsage": "not available"},
    }

    result = normalize_for_submission(doc)

    assert result["deviceDetail"] == {"deviceType": "Laptop", "ownership": "Personal"}
    assert result["operatingSystem"] == {"osType": "Mac", "osLicense": "Open Source"}
    assert result["deviceCondition"]["deviceSuitability"] == "Needs Repair"
    assert result["security"]["antivirus"]["status"] == "Inactive"
    assert result["security"]["antivirus"]["list"][0]["license"] == "Pirated"
    assert result["additionalInfo"]["passwordUsage"] == "Not Available"


def test_unknown_values_pass_through():
    doc = {"deviceDetail": {"deviceType": "Tablet"}, "specification": None}
    assert normalize_for_submission(doc) == doc
    assert normalize_for_form(doc) == doc


def test_empty_input():
    assert normalize_for_form(None) is None
    assert normalize_for_submission({}) == {}
