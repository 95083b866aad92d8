#!/usr/bin/env python3
"""
Quick verification script to ensure configured PMS providers are reachable
"""

import argparse
import asyncio
import sys
from typing import List, Optional, Tuple

from pms_sync.config import IntegrationSettings, load_provider_configs
from pms_sync.contracts import IntegrationError
from pms_sync.reconciliation import InMemoryRecordStore, Reconciler
from pms_sync.registry import AdapterRegistry
from pms_sync.sync import SyncOrchestrator
from pms_sync.utils.logging import configure_logging


def build_orchestrator(registry: AdapterRegistry) -> SyncOrchestrator:
    reconciler = Reconciler(InMemoryRecordStore(), InMemoryRecordStore(), InMemoryRecordStore())
    return SyncOrchestrator(registry, reconciler)


async def verify_providers(
    registry: AdapterRegistry, hotel_id: str, external_hotel_id: Optional[str]
) -> List[Tuple[str, bool]]:
    """Run a connection test against every configured provider"""
    orchestrator = build_orchestrator(registry)
    results = []
    for key in registry.keys():
        adapter = registry.require(key)
        print(f"\nTesting {key} ({adapter.metadata.display_name}, {adapter.metadata.protocol})...")
        result = await orchestrator.test_connection(hotel_id, key, external_hotel_id)
        marker = "✓" if result.success else "✗"
        print(f"{marker} {result.message}")
        results.append((key, result.success))
    return results


async def run(args: argparse.Namespace) -> int:
    settings = IntegrationSettings()
    configure_logging(settings.log_level, json_logs=settings.json_logs)

    providers_file = args.providers or settings.providers_file
    if providers_file is None:
        print("✗ No providers file given (use --providers or PMS_SYNC_PROVIDERS_FILE)")
        return 2

    try:
        configs = load_provider_configs(providers_file)
    except IntegrationError as e:
        print(f"✗ {e.message}")
        return 2
    print(f"✓ Loaded {len(configs)} provider configs from {providers_file}")

    registry = AdapterRegistry.from_configs(configs)
    try:
        results = await verify_providers(registry, args.hotel_id, args.external_hotel_id)
    finally:
        await registry.aclose()

    print("\n=== Summary ===")
    passed = sum(1 for _, success in results if success)
    for key, success in results:
        print(f"{key}: {'✓ PASS' if success else '✗ FAIL'}")
    print(f"\nTotal: {passed}/{len(results)} providers reachable")
    return 0 if passed == len(results) else 1


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Verify configured PMS providers")
    parser.add_argument("--providers", help="Path to the providers YAML file")
    parser.add_argument("--hotel-id", default="verify", help="Internal hotel id used for the scope")
    parser.add_argument("--external-hotel-id", help="Vendor property id, when it differs from the hotel id")
    args = parser.parse_args(argv)

    print("=== PMS Sync Provider Verification ===\n")
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
