import sys

from pydantic_settings import BaseSettings

_ENV_FILE = None if "pytest" in sys.modules else ".env"


class Settings(BaseSettings):
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    COSMOS_DB_ENDPOINT: str = ""
    COSMOS_DB_KEY: str = ""
    COSMOS_DB_DATABASE: str = "device-checker"
    COSMOS_DB_EMPLOYEES_CONTAINER: str = "employees"
    COSMOS_DB_DEVICE_CHECKS_CONTAINER: str = "device-checks"
    COSMOS_DB_DROPDOWN_OPTIONS_CONTAINER: str = "dropdown-options"
    COSMOS_DB_CREATE_CONTAINERS: bool = False

    AZURE_AD_TENANT_ID: str = ""
    AZURE_AD_CLIENT_ID: str = ""

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    WRITE_CONFLICT_RETRIES: int = 5

    REPORT_TITLE: str = "Device Checking System"

    model_config = {
        "env_file": _ENV_FILE,
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


settings = Settings()
