"""
Configuration for PMS Sync
Process settings from the environment and per-provider connection configs
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pms_sync.contracts import IntegrationError
from pms_sync.utils.logging import get_logger

logger = get_logger("pms_sync.config")

# Authentication scheme per vendor adapter
VENDOR_AUTH_TYPES: Dict[str, str] = {
    "cloudbeds": "bearer",
    "opera": "api_key",
    "mews": "bearer",
    "protel": "basic",
    "mock": "none",
}


class IntegrationSettings(BaseSettings):
    """Process-wide settings, read from ``PMS_SYNC_*`` environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="PMS_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)
    default_timeout: float = Field(default=30.0, gt=0)
    providers_file: Optional[Path] = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        allowed = ["development", "staging", "production", "test"]
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of: {allowed}")
        return v.lower()


class ProviderConfig(BaseModel):
    """Connection settings for one configured PMS provider"""

    key: str = Field(..., min_length=1)
    vendor: str
    enabled: bool = True
    base_url: Optional[str] = None
    property_id: Optional[str] = None

    api_key: Optional[SecretStr] = None
    access_token: Optional[SecretStr] = None
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    webhook_secret: Optional[SecretStr] = None

    timeout: Optional[float] = Field(default=None, gt=0)
    max_retries: Optional[int] = Field(default=None, ge=0)
    initial_delay: Optional[float] = Field(default=None, ge=0)
    max_delay: Optional[float] = Field(default=None, ge=0)
    backoff_multiplier: Optional[float] = Field(default=None, ge=1)
    retryable_status_codes: Optional[List[int]] = None
    retryable_faults: List[str] = Field(default_factory=list)

    @field_validator("vendor")
    @classmethod
    def validate_vendor(cls, v):
        vendor = v.lower()
        if vendor not in VENDOR_AUTH_TYPES:
            raise ValueError(f"Unknown PMS vendor '{v}', expected one of: {sorted(VENDOR_AUTH_TYPES)}")
        return vendor

    @model_validator(mode="after")
    def validate_credentials(self):
        auth_type = VENDOR_AUTH_TYPES[self.vendor]
        if auth_type == "bearer":
            required = [] if (self.api_key or self.access_token) else ["access_token"]
        elif auth_type == "api_key":
            required = [name for name in ("api_key", "property_id") if not getattr(self, name)]
        elif auth_type == "basic":
            required = [name for name in ("username", "password") if not getattr(self, name)]
        else:
            required = []

        if required:
            raise ValueError(
                f"Provider '{self.key}' ({self.vendor}, {auth_type} auth) is missing: {', '.join(required)}"
            )
        return self

    @property
    def auth_type(self) -> str:
        return VENDOR_AUTH_TYPES[self.vendor]

    def secret(self, name: str) -> Optional[str]:
        value = getattr(self, name)
        return value.get_secret_value() if value is not None else None

    def retry_overrides(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {
            "max_retries": self.max_retries,
            "initial_delay": self.initial_delay,
            "max_delay": self.max_delay,
            "backoff_multiplier": self.backoff_multiplier,
        }
        if self.retryable_status_codes is not None:
            overrides["retryable_status_codes"] = frozenset(self.retryable_status_codes)
        return overrides


def _configuration_error(message: str, cause: Optional[BaseException] = None) -> IntegrationError:
    return IntegrationError(message, status_code=500, code="CONFIGURATION_ERROR", cause=cause)


def parse_provider_configs(data: Any) -> List[ProviderConfig]:
    """Validate the ``providers`` list of a loaded providers document"""
    if data is None:
        return []
    if not isinstance(data, dict) or not isinstance(data.get("providers", []), list):
        raise _configuration_error("Providers document must be a mapping with a 'providers' list")

    configs = []
    for index, entry in enumerate(data.get("providers") or []):
        try:
            configs.append(ProviderConfig.model_validate(entry))
        except ValidationError as e:
            raise _configuration_error(f"Invalid provider entry #{index}: {e}", cause=e) from e

    keys = [config.key for config in configs]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise _configuration_error(f"Duplicate provider keys: {', '.join(duplicates)}")
    return configs


def webhook_secrets(configs: List[ProviderConfig]) -> Dict[str, str]:
    """Provider key -> webhook signing secret, for providers that have one"""
    return {
        config.key: config.secret("webhook_secret")
        for config in configs
        if config.webhook_secret is not None
    }


def load_provider_configs(path: Union[str, Path]) -> List[ProviderConfig]:
    """
    Load provider configs from a YAML file.

    ``${VAR}`` references are expanded from the environment before parsing so
    credentials can stay out of the file.
    """
    path = Path(path)
    if not path.exists():
        raise _configuration_error(f"Providers file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        text = os.path.expandvars(f.read())
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise _configuration_error(f"Providers file is not valid YAML: {path}", cause=e) from e

    configs = parse_provider_configs(data)
    logger.info("providers_loaded", path=str(path), count=len(configs))
    return configs
