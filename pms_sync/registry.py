"""
PMS Adapter Registry
Explicit provider-key -> adapter lookup, built once and read-only afterwards
"""

from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Type, Union

from pms_sync.adapters import CloudbedsAdapter, MewsAdapter, OperaAdapter, ProtelAdapter
from pms_sync.config import ProviderConfig, load_provider_configs
from pms_sync.contracts import AdapterMetadata, BaseAdapter, IntegrationError, MockAdapter, PMSProviderAdapter
from pms_sync.resilience import RetryOptions
from pms_sync.utils.logging import get_logger

logger = get_logger("pms_sync.registry")

ADAPTER_CLASSES: Mapping[str, Type[BaseAdapter]] = MappingProxyType(
    {
        "cloudbeds": CloudbedsAdapter,
        "opera": OperaAdapter,
        "mews": MewsAdapter,
        "protel": ProtelAdapter,
        "mock": MockAdapter,
    }
)


def _retry_options(adapter_cls: Type[BaseAdapter], config: ProviderConfig) -> RetryOptions:
    base = getattr(adapter_cls, "default_retry", None) or RetryOptions()
    return base.merged(**config.retry_overrides())


def _optional(**kwargs) -> Dict[str, object]:
    return {name: value for name, value in kwargs.items() if value is not None}


def _build_cloudbeds(config: ProviderConfig) -> CloudbedsAdapter:
    return CloudbedsAdapter(
        config.secret("access_token") or config.secret("api_key"),
        key=config.key,
        retry_options=_retry_options(CloudbedsAdapter, config),
        **_optional(base_url=config.base_url, timeout=config.timeout),
    )


def _build_opera(config: ProviderConfig) -> OperaAdapter:
    return OperaAdapter(
        config.secret("api_key"),
        config.property_id,
        key=config.key,
        retry_options=_retry_options(OperaAdapter, config),
        **_optional(base_url=config.base_url, timeout=config.timeout),
    )


def _build_mews(config: ProviderConfig) -> MewsAdapter:
    return MewsAdapter(
        config.secret("access_token") or config.secret("api_key"),
        key=config.key,
        **_optional(endpoint=config.base_url, timeout=config.timeout),
    )


def _build_protel(config: ProviderConfig) -> ProtelAdapter:
    return ProtelAdapter(
        config.username,
        config.secret("password"),
        key=config.key,
        retry_options=_retry_options(ProtelAdapter, config),
        retryable_faults=config.retryable_faults,
        **_optional(base_url=config.base_url, timeout=config.timeout),
    )


def _build_mock(config: ProviderConfig) -> MockAdapter:
    return MockAdapter(key=config.key)


VENDOR_BUILDERS: Mapping[str, Callable[[ProviderConfig], PMSProviderAdapter]] = MappingProxyType(
    {
        "cloudbeds": _build_cloudbeds,
        "opera": _build_opera,
        "mews": _build_mews,
        "protel": _build_protel,
        "mock": _build_mock,
    }
)


def build_adapter(config: ProviderConfig) -> PMSProviderAdapter:
    """Construct the vendor adapter described by ``config``"""
    builder = VENDOR_BUILDERS.get(config.vendor)
    if builder is None:
        raise IntegrationError(
            f"PMS provider '{config.vendor}' is not supported",
            status_code=501,
            code="PROVIDER_NOT_SUPPORTED",
        )
    adapter = builder(config)
    logger.info("adapter_built", provider=config.key, vendor=config.vendor)
    return adapter


class AdapterRegistry:
    """
    Read-only mapping of provider key to a configured adapter.

    Built explicitly and handed to the orchestrator; there is no global
    instance and no registration after construction.
    """

    def __init__(self, adapters: Optional[Mapping[str, PMSProviderAdapter]] = None):
        self._adapters = MappingProxyType(dict(adapters or {}))

    @classmethod
    def from_configs(cls, configs: List[ProviderConfig]) -> "AdapterRegistry":
        adapters: Dict[str, PMSProviderAdapter] = {}
        for config in configs:
            if not config.enabled:
                logger.info("provider_disabled", provider=config.key, vendor=config.vendor)
                continue
            adapters[config.key] = build_adapter(config)
        return cls(adapters)

    @property
    def adapters(self) -> Mapping[str, PMSProviderAdapter]:
        return self._adapters

    def get(self, provider_key: str) -> Optional[PMSProviderAdapter]:
        return self._adapters.get(provider_key)

    def require(self, provider_key: str) -> PMSProviderAdapter:
        adapter = self.get(provider_key)
        if adapter is None:
            raise IntegrationError(
                f"PMS provider '{provider_key}' is not supported",
                status_code=501,
                code="PROVIDER_NOT_SUPPORTED",
                details={"provider": provider_key},
            )
        return adapter

    def keys(self) -> List[str]:
        return sorted(self._adapters)

    def describe(self) -> Dict[str, Dict[str, object]]:
        """Metadata and capabilities per configured provider"""
        description = {}
        for key, adapter in self._adapters.items():
            metadata: AdapterMetadata = adapter.metadata
            description[key] = {**metadata.to_dict(), "capabilities": dict(adapter.capabilities)}
        return description

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()

    def __contains__(self, provider_key: object) -> bool:
        return provider_key in self._adapters

    def __iter__(self) -> Iterator[str]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)


def load_registry(path: Union[str, Path]) -> AdapterRegistry:
    """Build a registry from a providers YAML file"""
    return AdapterRegistry.from_configs(load_provider_configs(path))
