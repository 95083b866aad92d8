"""
Tests for settings and provider config loading
"""

import pytest

from pms_sync.config import (
    IntegrationSettings,
    ProviderConfig,
    load_provider_configs,
    parse_provider_configs,
    webhook_secrets,
)
from pms_sync.contracts import IntegrationError

PROVIDERS_YAML = """
providers:
  - key: cloudbeds-main
    vendor: cloudbeds
    access_token: ${CLOUDBEDS_TOKEN}
    webhook_secret: cb-secret
    max_retries: 5
  - key: opera-paris
    vendor: OPERA
    api_key: opera-key
    property_id: PARIS01
    enabled: false
  - key: protel-berlin
    vendor: protel
    username: api
    password: pw
    retryable_faults: [Server.Busy]
"""


class TestIntegrationSettings:
    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("PMS_SYNC_LOG_LEVEL", "debug")
        monkeypatch.setenv("PMS_SYNC_ENVIRONMENT", "Production")
        monkeypatch.setenv("PMS_SYNC_JSON_LOGS", "false")

        settings = IntegrationSettings()

        assert settings.log_level == "DEBUG"
        assert settings.environment == "production"
        assert settings.json_logs is False

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("PMS_SYNC_LOG_LEVEL", "chatty")

        with pytest.raises(ValueError):
            IntegrationSettings()


class TestProviderConfig:
    def test_bearer_vendor_requires_token(self):
        with pytest.raises(ValueError, match="access_token"):
            ProviderConfig(key="cb", vendor="cloudbeds")

    def test_api_key_vendor_requires_property(self):
        with pytest.raises(ValueError, match="property_id"):
            ProviderConfig(key="op", vendor="opera", api_key="k")

    def test_basic_vendor_requires_password(self):
        with pytest.raises(ValueError, match="password"):
            ProviderConfig(key="pr", vendor="protel", username="u")

    def test_unknown_vendor(self):
        with pytest.raises(ValueError, match="Unknown PMS vendor"):
            ProviderConfig(key="x", vendor="fidelio")

    def test_secrets_hidden_in_repr(self):
        config = ProviderConfig(key="cb", vendor="cloudbeds", access_token="tok-123")

        assert "tok-123" not in repr(config)
        assert config.secret("access_token") == "tok-123"
        assert config.auth_type == "bearer"

    def test_retry_overrides(self):
        config = ProviderConfig(
            key="mock", vendor="mock", max_retries=1, retryable_status_codes=[503]
        )

        overrides = config.retry_overrides()
        assert overrides["max_retries"] == 1
        assert overrides["initial_delay"] is None
        assert overrides["retryable_status_codes"] == frozenset({503})


class TestProviderFiles:
    def test_load_expands_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CLOUDBEDS_TOKEN", "cb-token")
        path = tmp_path / "providers.yaml"
        path.write_text(PROVIDERS_YAML)

        configs = load_provider_configs(path)

        assert [c.key for c in configs] == ["cloudbeds-main", "opera-paris", "protel-berlin"]
        assert configs[0].secret("access_token") == "cb-token"
        assert configs[1].vendor == "opera"
        assert configs[1].enabled is False
        assert configs[2].retryable_faults == ["Server.Busy"]
        assert webhook_secrets(configs) == {"cloudbeds-main": "cb-secret"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(IntegrationError) as exc_info:
            load_provider_configs(tmp_path / "absent.yaml")

        assert exc_info.value.code == "CONFIGURATION_ERROR"

    def test_invalid_entry_reports_index(self):
        with pytest.raises(IntegrationError) as exc_info:
            parse_provider_configs({"providers": [{"key": "ok", "vendor": "mock"}, {"key": "bad", "vendor": "mews"}]})

        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert "#1" in exc_info.value.message

    def test_duplicate_keys(self):
        entry = {"key": "same", "vendor": "mock"}

        with pytest.raises(IntegrationError, match="Duplicate provider keys: same"):
            parse_provider_configs({"providers": [entry, dict(entry)]})

    def test_empty_document(self):
        assert parse_provider_configs(None) == []
        assert parse_provider_configs({"providers": []}) == []

    def test_wrong_shape(self):
        with pytest.raises(IntegrationError):
            parse_provider_configs(["not", "a", "mapping"])
