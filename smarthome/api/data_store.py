"""Per-user device inventory operations used by the intent handlers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from smarthome.api.auth import DEFAULT_ACCESS_TOKEN, UserTokenResolver
from smarthome.config.schema import Config
from smarthome.engine import CommandExecutionEngine, DeviceDocument, Execution
from smarthome.storage import DeviceStoreGateway, create_store_from_config


class SmartHomeDataStore:
    """Application service wrapping one gateway handle shared by all requests."""

    def __init__(
        self,
        store: DeviceStoreGateway,
        *,
        reject_unknown_commands: bool = True,
        default_access_token: str | None = None,
    ) -> None:
        self.store = store
        self.engine = CommandExecutionEngine(store, reject_unknown_commands=reject_unknown_commands)
        self.resolver = UserTokenResolver(
            store,
            default_token=default_access_token or DEFAULT_ACCESS_TOKEN,
        )

    @classmethod
    def from_config(cls, config: Config) -> "SmartHomeDataStore":
        store = create_store_from_config(config.store)
        logger.info(
            f"Smart home data store ready backend={store.name} "
            f"reject_unknown_commands={config.engine.reject_unknown_commands}"
        )
        return cls(
            store,
            reject_unknown_commands=config.engine.reject_unknown_commands,
            default_access_token=config.engine.default_access_token,
        )

    async def close(self) -> None:
        await self.store.close()

    async def get_devices(self, user_id: str) -> list[DeviceDocument]:
        return await self.store.get_devices(user_id)

    async def get_user_id(self, token: str | None) -> str:
        return await self.resolver.resolve_user(token)

    async def is_homegraph_enabled(self, user_id: str) -> bool:
        return bool(await self.store.get_user_field(user_id, "homegraph"))

    async def set_homegraph(self, user_id: str, enable: bool) -> None:
        await self.store.update_user_field(user_id, "homegraph", bool(enable))

    async def set_user(self, user_id: str, data: Mapping[str, Any]) -> None:
        """Create or replace the user document (token, homegraph flag)."""
        await self.store.set_user(user_id, dict(data))
        logger.info(f"User document written user={user_id}")

    async def update_device(
        self,
        user_id: str,
        device_id: str,
        *,
        name: Any = None,
        nickname: Any = None,
        states: Mapping[str, Any] | None = None,
        error_code: str | None = None,
        tfa: str | None = None,
    ) -> list[str]:
        """Replace the given top-level fields in one update; returns the changed fields."""
        updates: dict[str, Any] = {}
        if name is not None:
            updates["name"] = name
        if nickname is not None:
            updates["nickname"] = nickname
        if states is not None:
            updates["states"] = dict(states)
        if error_code is not None:
            updates["errorCode"] = error_code
        if tfa is not None:
            updates["tfa"] = tfa
        if updates:
            await self.store.update_fields(user_id, device_id, updates)
        return sorted(updates)

    async def add_device(self, user_id: str, data: Mapping[str, Any]) -> str:
        device_id = str(data.get("deviceId") or "").strip()
        if not device_id:
            raise ValueError("deviceId is required")
        await self.store.set_device(user_id, device_id, dict(data))
        logger.info(f"Device added user={user_id} device={device_id}")
        return device_id

    async def delete_device(self, user_id: str, device_id: str) -> None:
        await self.store.delete_device(user_id, device_id)
        logger.info(f"Device deleted user={user_id} device={device_id}")

    async def get_state(self, user_id: str, device_id: str) -> dict[str, Any]:
        device = await self.store.get_device(user_id, device_id)
        return dict(device.states)

    async def execute(
        self,
        user_id: str,
        device_id: str,
        execution: Execution | Mapping[str, Any],
    ) -> dict[str, Any]:
        return await self.engine.execute(user_id, device_id, execution)
