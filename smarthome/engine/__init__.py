"""Command execution engine for assistant device intents."""

from smarthome.engine.commands import COMMAND_HANDLERS, CommandContext, supported_commands
from smarthome.engine.executor import CommandExecutionEngine
from smarthome.engine.model import DeviceDocument, Execution, normalize_command
from smarthome.engine.preconditions import evaluate_preconditions

__all__ = [
    "COMMAND_HANDLERS",
    "CommandContext",
    "CommandExecutionEngine",
    "DeviceDocument",
    "Execution",
    "evaluate_preconditions",
    "normalize_command",
    "supported_commands",
]
