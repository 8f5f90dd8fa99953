"""Device store gateways."""

from __future__ import annotations

from typing import TYPE_CHECKING

from smarthome.storage.base import DeviceStoreGateway
from smarthome.storage.sqlite_devices import SQLiteDeviceStore

if TYPE_CHECKING:
    from smarthome.config.schema import StoreConfig

__all__ = ["DeviceStoreGateway", "SQLiteDeviceStore", "create_store_from_config"]


def create_store_from_config(config: "StoreConfig") -> DeviceStoreGateway:
    """Factory helper to build the configured gateway (one per process)."""
    backend = (config.backend or "firestore").strip().lower()
    if backend == "sqlite":
        return SQLiteDeviceStore(config.sqlite_path)
    if backend == "firestore":
        from smarthome.storage.firestore_devices import FirestoreDeviceStore

        return FirestoreDeviceStore.from_credentials(
            config.credentials_path,
            database_url=config.database_url,
        )
    raise ValueError(f"unknown store backend: {config.backend}")
