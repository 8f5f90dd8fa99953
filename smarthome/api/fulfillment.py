"""Assistant intent envelope adapter (EXECUTE, QUERY, DISCONNECT)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Awaitable, Callable

from loguru import logger

from smarthome.api.data_store import SmartHomeDataStore
from smarthome.engine import Execution
from smarthome.errors import (
    CHALLENGE_TAGS,
    DEVICE_NOT_FOUND,
    DEVICE_OFFLINE,
    NOT_SUPPORTED,
    DeviceNotFoundError,
    InfrastructureError,
    SmartHomeError,
)

INTENT_EXECUTE = "action.devices.EXECUTE"
INTENT_QUERY = "action.devices.QUERY"
INTENT_DISCONNECT = "action.devices.DISCONNECT"

STATUS_SUCCESS = "SUCCESS"
STATUS_ERROR = "ERROR"
STATUS_OFFLINE = "OFFLINE"
CHALLENGE_NEEDED = "challengeNeeded"

StateReporter = Callable[[str, str, dict[str, Any]], Awaitable[Any]]


def error_result(device_id: str, code: str) -> dict[str, Any]:
    """Map an engine error tag to one EXECUTE command result."""
    if code in CHALLENGE_TAGS:
        return {
            "ids": [device_id],
            "status": STATUS_ERROR,
            "errorCode": CHALLENGE_NEEDED,
            "challengeNeeded": {"type": code},
        }
    if code == DEVICE_OFFLINE:
        return {"ids": [device_id], "status": STATUS_OFFLINE, "errorCode": DEVICE_OFFLINE}
    return {"ids": [device_id], "status": STATUS_ERROR, "errorCode": code}


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


class SmartHomeFulfillment:
    """Turns intent requests into data-store calls and shapes the responses."""

    def __init__(
        self,
        data_store: SmartHomeDataStore,
        *,
        state_reporter: StateReporter | None = None,
    ) -> None:
        self.data_store = data_store
        self.state_reporter = state_reporter

    async def handle(self, body: Mapping[str, Any], authorization: str | None = None) -> dict[str, Any]:
        """Handle one fulfillment request.

        Raises ``NoUserError`` when the token matches no user; engine errors are
        folded into the per-device results.
        """
        request_id = str(body.get("requestId") or "")
        user_id = await self.data_store.get_user_id(authorization)
        payload: dict[str, Any] = {}
        for item in _as_list(body.get("inputs")):
            if not isinstance(item, Mapping):
                continue
            intent = str(item.get("intent") or "")
            intent_payload = item.get("payload")
            if not isinstance(intent_payload, Mapping):
                intent_payload = {}
            if intent == INTENT_EXECUTE:
                payload = await self.on_execute(user_id, intent_payload)
            elif intent == INTENT_QUERY:
                payload = await self.on_query(user_id, intent_payload)
            elif intent == INTENT_DISCONNECT:
                logger.info(f"User {user_id} disconnected")
                payload = {}
            else:
                logger.warning(f"Unsupported intent {intent!r} request={request_id}")
                payload = {"errorCode": NOT_SUPPORTED}
        return {"requestId": request_id, "payload": payload}

    async def on_execute(self, user_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        results: list[dict[str, Any]] = []
        for command in _as_list(payload.get("commands")):
            if not isinstance(command, Mapping):
                continue
            executions = [
                Execution.from_payload(item)
                for item in _as_list(command.get("execution"))
                if isinstance(item, Mapping)
            ]
            for device in _as_list(command.get("devices")):
                device_id = str(device.get("id") or "") if isinstance(device, Mapping) else ""
                if not device_id:
                    continue
                results.append(await self._execute_device(user_id, device_id, executions))
        return {"commands": results}

    async def _execute_device(
        self,
        user_id: str,
        device_id: str,
        executions: list[Execution],
    ) -> dict[str, Any]:
        states: dict[str, Any] = {}
        try:
            for execution in executions:
                states = await self.data_store.execute(user_id, device_id, execution)
        except DeviceNotFoundError as e:
            return error_result(device_id, e.code)
        except InfrastructureError:
            raise
        except SmartHomeError as e:
            return error_result(device_id, e.code)
        await self._report_state(user_id, device_id, states)
        return {"ids": [device_id], "status": STATUS_SUCCESS, "states": states}

    async def _report_state(self, user_id: str, device_id: str, states: dict[str, Any]) -> None:
        if self.state_reporter is None:
            return
        try:
            if not await self.data_store.is_homegraph_enabled(user_id):
                return
            await self.state_reporter(user_id, device_id, dict(states))
        except Exception as e:
            logger.warning(f"State report failed user={user_id} device={device_id}: {e}")

    async def on_query(self, user_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        devices: dict[str, Any] = {}
        for device in _as_list(payload.get("devices")):
            device_id = str(device.get("id") or "") if isinstance(device, Mapping) else ""
            if not device_id:
                continue
            try:
                states = await self.data_store.get_state(user_id, device_id)
            except DeviceNotFoundError:
                devices[device_id] = {"status": STATUS_ERROR, "errorCode": DEVICE_NOT_FOUND}
                continue
            devices[device_id] = {**states, "status": STATUS_SUCCESS}
        return {"devices": devices}
