"""Command execution engine: load, check, dispatch, persist."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from smarthome.engine.commands import CommandContext, get_handler
from smarthome.engine.model import Execution
from smarthome.engine.preconditions import evaluate_preconditions
from smarthome.errors import COMMAND_NOT_SUPPORTED, CommandError, SmartHomeError

if TYPE_CHECKING:
    from smarthome.storage.base import DeviceStoreGateway


class CommandExecutionEngine:
    """Stateless per call; safe to share across concurrent requests."""

    def __init__(
        self,
        store: "DeviceStoreGateway",
        *,
        reject_unknown_commands: bool = True,
    ) -> None:
        self.store = store
        self.reject_unknown_commands = bool(reject_unknown_commands)

    async def execute(
        self,
        user_id: str,
        device_id: str,
        execution: Execution | Mapping[str, Any],
    ) -> dict[str, Any]:
        """Apply one execution to a device and return the resulting state map.

        Raises a ``SmartHomeError`` whose ``code`` is the tag to report.
        """
        if not isinstance(execution, Execution):
            execution = Execution.from_payload(execution)

        device = await self.store.get_device(user_id, device_id)
        states = device.working_states()
        try:
            evaluate_preconditions(device, states, execution.challenge)
            handler = get_handler(execution.command)
            if handler is None:
                if self.reject_unknown_commands:
                    raise CommandError(COMMAND_NOT_SUPPORTED, execution.command)
                logger.debug(f"Ignoring unknown command {execution.command} on {device_id}")
                return states
            updates = handler(CommandContext(device=device, states=states, params=execution.params))
        except SmartHomeError as e:
            logger.warning(
                f"Execution rejected user={user_id} device={device_id} "
                f"command={execution.command} error={e.code} kind={e.category}"
            )
            raise

        if updates:
            await self.store.update_fields(user_id, device_id, updates)
        logger.debug(
            f"Executed {execution.command} user={user_id} device={device_id} "
            f"fields={sorted(updates or {})}"
        )
        return states
