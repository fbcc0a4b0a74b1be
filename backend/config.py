"""Configuration using Pydantic BaseSettings."""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Dashboard polling routes, relative to api_prefix
DASHBOARD_POLLING_ROUTES = ("/admin/metrics", "/admin/metrics/detailed")


class Settings(BaseSettings):
    """Monitoring backend configuration."""

    model_config = SettingsConfigDict(env_prefix="MONITORING_", case_sensitive=False)

    api_prefix: str = "/api"
    audit_log_file: str = "./data/audit.jsonl"  # stored as JSONL
    max_samples: int = 10_000
    user_activity_scan_limit: int = 10_000
    excluded_endpoints: Optional[List[str]] = Field(default=None, validate_default=True)
    cors_origins: List[str] = ["*"]  # dev OK; lock down in prod
    log_json: bool = False
    log_level: str = "INFO"

    @field_validator("excluded_endpoints")
    @classmethod
    def default_excluded_endpoints(cls, v: Optional[List[str]], info: ValidationInfo) -> List[str]:
        """Unset means the dashboard's own polling routes under api_prefix."""
        if v is not None:
            return v
        prefix = info.data.get("api_prefix", "/api")
        return [f"GET {prefix}{route}" for route in DASHBOARD_POLLING_ROUTES]


@lru_cache
def get_settings() -> Settings:
    return Settings()
