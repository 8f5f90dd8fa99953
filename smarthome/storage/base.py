"""Device store gateway contract.

Documents live at ``users/{userId}`` and ``users/{userId}/devices/{deviceId}``.
Field updates use dotted paths (``states.color.spectrumRgb``); a single
``update_fields`` call is atomic for its whole mapping.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from smarthome.engine.model import DeviceDocument


class DeviceStoreGateway(ABC):
    """Async document store used by the engine and the data-store facade."""

    name: str = "base"

    @abstractmethod
    async def get_devices(self, user_id: str) -> list[DeviceDocument]:
        """Return every device document under the user."""

    @abstractmethod
    async def get_device(self, user_id: str, device_id: str) -> DeviceDocument:
        """Read one device; raises ``DeviceNotFoundError`` when absent."""

    @abstractmethod
    async def update_fields(
        self,
        user_id: str,
        device_id: str,
        updates: Mapping[str, Any],
    ) -> None:
        """Patch dotted-path fields atomically; raises ``DeviceNotFoundError`` when absent."""

    @abstractmethod
    async def set_device(self, user_id: str, device_id: str, data: Mapping[str, Any]) -> None:
        """Replace or create a device document."""

    @abstractmethod
    async def delete_device(self, user_id: str, device_id: str) -> None:
        """Delete a device document; deleting a missing device is a no-op."""

    @abstractmethod
    async def get_user_field(self, user_id: str, field: str) -> Any:
        """Return a top-level user field, or ``None`` when unset."""

    @abstractmethod
    async def update_user_field(self, user_id: str, field: str, value: Any) -> None:
        """Set a top-level user field."""

    @abstractmethod
    async def find_user_ids_by_token(self, access_token: str) -> list[str]:
        """Return ids of users whose ``fakeAccessToken`` equals the token."""

    @abstractmethod
    async def set_user(self, user_id: str, data: Mapping[str, Any]) -> None:
        """Replace or create a user document (provisioning/tooling only)."""

    async def close(self) -> None:
        """Release client resources."""
