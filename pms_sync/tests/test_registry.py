"""
Tests for the adapter registry
"""

import pytest

from pms_sync.adapters import CloudbedsAdapter, MewsAdapter, OperaAdapter, ProtelAdapter
from pms_sync.config import ProviderConfig
from pms_sync.contracts import IntegrationError, MockAdapter
from pms_sync.registry import AdapterRegistry, build_adapter, load_registry


def configs():
    return [
        ProviderConfig(key="cb", vendor="cloudbeds", access_token="tok", max_retries=5),
        ProviderConfig(key="op", vendor="opera", api_key="k", property_id="HOTEL1"),
        ProviderConfig(key="mw", vendor="mews", access_token="tok"),
        ProviderConfig(key="pr", vendor="protel", username="u", password="p", retryable_faults=["Server.Busy"]),
        ProviderConfig(key="mk", vendor="mock"),
        ProviderConfig(key="off", vendor="mock", enabled=False),
    ]


class TestBuildAdapter:
    def test_builds_each_vendor(self):
        adapters = {config.key: build_adapter(config) for config in configs()}

        assert isinstance(adapters["cb"], CloudbedsAdapter)
        assert isinstance(adapters["op"], OperaAdapter)
        assert isinstance(adapters["mw"], MewsAdapter)
        assert isinstance(adapters["pr"], ProtelAdapter)
        assert isinstance(adapters["mk"], MockAdapter)
        assert adapters["cb"].key == "cb"

    def test_retry_overrides_merge_with_vendor_defaults(self):
        cloudbeds = build_adapter(configs()[0])
        opera = build_adapter(configs()[1])

        assert cloudbeds.transport.retry_options.max_retries == 5
        assert opera.transport.retry_options.max_retries == 2
        assert opera.transport.retry_options.initial_delay == 2.0

    def test_protel_retryable_faults(self):
        protel = build_adapter(configs()[3])

        assert protel.transport.retryable_faults == frozenset({"Server.Busy"})


class TestAdapterRegistry:
    def test_disabled_providers_are_skipped(self):
        registry = AdapterRegistry.from_configs(configs())

        assert registry.keys() == ["cb", "mk", "mw", "op", "pr"]
        assert "off" not in registry
        assert len(registry) == 5

    def test_require_unknown_provider(self):
        registry = AdapterRegistry({"mock": MockAdapter()})

        with pytest.raises(IntegrationError) as exc_info:
            registry.require("fidelio")

        assert exc_info.value.code == "PROVIDER_NOT_SUPPORTED"
        assert exc_info.value.status_code == 501
        assert registry.get("fidelio") is None

    def test_registry_is_read_only(self):
        registry = AdapterRegistry({"mock": MockAdapter()})

        with pytest.raises(TypeError):
            registry.adapters["other"] = MockAdapter()

    def test_describe(self):
        registry = AdapterRegistry({"mock": MockAdapter()})

        description = registry.describe()

        assert description["mock"]["vendor"] == "mock"
        assert description["mock"]["capabilities"]["bookings"] is True

    @pytest.mark.asyncio
    async def test_aclose_closes_adapters(self):
        registry = AdapterRegistry.from_configs(configs())

        await registry.aclose()

    def test_load_registry_from_yaml(self, tmp_path):
        path = tmp_path / "providers.yaml"
        path.write_text("providers:\n  - key: demo\n    vendor: mock\n")

        registry = load_registry(path)

        assert list(registry) == ["demo"]
