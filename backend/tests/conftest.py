from __future__ import annotations

import base64
import time
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from jose import jwt
from starlette.testclient import TestClient

from devicecheck.core.dependencies import get_current_user, get_services
from devicecheck.main import app
from devicecheck.models.auth import UserInfo
from devicecheck.services.container import ServiceContainer
from devicecheck.services.device_check_service import DeviceCheckService
from devicecheck.services.dropdown_service import DropdownService
from devicecheck.services.employee_service import EmployeeService
from devicecheck.services.report_service import ReportRenderer
from tests.memory_store import InMemoryDocumentStore

TEST_TENANT_ID = "test-tenant-00000000-0000-0000-0000-000000000000"
TEST_CLIENT_ID = "test-client-00000000-0000-0000-0000-000000000000"
TEST_KID = "test-kid-1"


def _int_to_base64url(value: int) -> str:
    byte_length = (value.bit_length() + 7) // 8
    return base64.urlsafe_b64encode(value.to_bytes(byte_length, byteorder="big")).rstrip(b"=").decode("ascii")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _auth_settings():
    from devicecheck.core.config import settings

    original_tenant = settings.AZURE_AD_TENANT_ID
    original_client = settings.AZURE_AD_CLIENT_ID
    settings.AZURE_AD_TENANT_ID = TEST_TENANT_ID
    settings.AZURE_AD_CLIENT_ID = TEST_CLIENT_ID
    yield
    settings.AZURE_AD_TENANT_ID = original_tenant
    settings.AZURE_AD_CLIENT_ID = original_client


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def rsa_test_keys():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("utf-8")

    pub = private_key.public_key().public_numbers()
    jwk_dict = {
        "kty": "RSA",
        "kid": TEST_KID,
        "use": "sig",
        "alg": "RS256",
        "n": _int_to_base64url(pub.n),
        "e": _int_to_base64url(pub.e),
    }
    jwks_response = {"keys": [jwk_dict]}
    return private_pem, jwks_response


def _make_token(
    private_pem: str,
    *,
    oid: str = "test-oid-123",
    name: str = "Test User",
    email: str = "test@example.com",
    roles: list[str] | None = None,
    expired: bool = False,
    audience: str = TEST_CLIENT_ID,
) -> str:
    now = int(time.time())
    claims = {
        "oid": oid,
        "name": name,
        "preferred_username": email,
        "roles": roles or [],
        "iss": f"https://login.microsoftonline.com/{TEST_TENANT_ID}/v2.0",
        "aud": audience,
        "exp": now - 3600 if expired else now + 3600,
        "iat": now - 60,
        "nbf": now - 60,
    }
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": TEST_KID})


@pytest.fixture
def mock_user_viewer():
    return UserInfo(id="viewer-1", name="Viewer User", email="viewer@example.com", roles=["viewer"])


@pytest.fixture
def mock_user_admin():
    return UserInfo(id="admin-1", name="Admin User", email="admin@example.com", roles=["admin"])


@pytest.fixture
def stores() -> dict[str, InMemoryDocumentStore]:
    return {
        "employees": InMemoryDocumentStore("employees"),
        "checks": InMemoryDocumentStore("device-checks"),
        "options": InMemoryDocumentStore("dropdown-options"),
    }


@pytest.fixture
def employee_service(stores) -> EmployeeService:
    return EmployeeService(stores["employees"], stores["checks"])


@pytest.fixture
def device_check_service(stores, employee_service) -> DeviceCheckService:
    return DeviceCheckService(stores["checks"], employee_service)


@pytest.fixture
def dropdown_service(stores) -> DropdownService:
    return DropdownService(stores["options"])


@pytest.fixture
def services(employee_service, device_check_service, dropdown_service) -> ServiceContainer:
    return ServiceContainer(
        employees=employee_service,
        device_checks=device_check_service,
        dropdown=dropdown_service,
        reports=ReportRenderer(),
    )


@pytest.fixture
def authenticated_client(mock_user_admin, services):
    app.dependency_overrides[get_current_user] = lambda: mock_user_admin
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def viewer_client(mock_user_viewer, services):
    app.dependency_overrides[get_current_user] = lambda: mock_user_viewer
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def employee_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "firstName": "Budi",
        "lastName": "Santoso",
        "position": "Software Engineer",
        "department": "Engineering",
        "email": "Budi.Santoso@Example.com",
    }
    payload.update(overrides)
    return payload


def check_payload(employee_id: str, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "employeeId": employee_id,
        "deviceDetail": {
            "deviceType": "Laptop",
            "ownership": "Company",
            "deviceBrand": "Lenovo",
            "deviceModel": "ThinkPad T14",
            "serialNumber": "SN-001",
        },
        "operatingSystem": {
            "osType": "Windows",
            "osVersion": "Windows 11 Pro",
            "osLicense": "Original",
            "osRegularUpdate": True,
        },
        "specification": {
            "ramCapacity": "16 GB",
            "memoryType": "SSD",
            "memoryCapacity": "512 GB",
            "processor": "Intel Core i7",
        },
        "deviceCondition": {
            "deviceSuitability": "Suitable",
            "batterySuitability": "Good",
            "keyboardCondition": "Good",
            "touchpadCondition": "Good",
            "monitorCondition": "Good",
            "wifiCondition": "Good",
        },
        "workApplications": [{"applicationName": "Microsoft Office", "license": "Original"}],
        "nonWorkApplications": [{"applicationName": "Spotify", "license": "Original"}],
        "security": {
            "antivirus": {"status": "Active", "list": [{"applicationName": "Defender", "license": "Original"}]},
            "vpn": {"status": "Available", "list": [{"vpnName": "WireGuard", "license": "Open Source"}]},
        },
        "additionalInfo": {"passwordUsage": "Available", "otherNotes": "", "inspectorPICName": "Rina"},
    }
    payload.update(overrides)
    return payload
