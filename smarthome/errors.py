"""Error vocabulary shared with the voice assistant.

Tag strings are part of the assistant contract and must never be rewritten.
Every exception carries its tag as ``code`` and as its string value, so callers
can surface ``str(exc)`` directly.
"""

from __future__ import annotations

# Precondition tags.
DEVICE_OFFLINE = "deviceOffline"
ACK_NEEDED = "ackNeeded"
PIN_NEEDED = "pinNeeded"
CHALLENGE_FAILED_PIN_NEEDED = "challengeFailedPinNeeded"

# Command tags.
NOT_SUPPORTED = "notSupported"
NO_TIMER_EXISTS = "noTimerExists"
VALUE_OUT_OF_RANGE = "valueOutOfRange"
COMMAND_NOT_SUPPORTED = "commandNotSupported"

# Infrastructure tags.
NO_USER = "noUser"
STORE_UNAVAILABLE = "storeUnavailable"
DEVICE_NOT_FOUND = "deviceNotFound"

CHALLENGE_TAGS = frozenset({ACK_NEEDED, PIN_NEEDED, CHALLENGE_FAILED_PIN_NEEDED})


class SmartHomeError(Exception):
    """Base error; ``code`` is the tag returned to the assistant."""

    category = "unknown"

    def __init__(self, code: str, detail: str = "") -> None:
        super().__init__(code)
        self.code = code
        self.detail = detail

    def __str__(self) -> str:
        return self.code


class PreconditionError(SmartHomeError):
    """Raised before any mutation (offline, injected error, challenge)."""

    category = "precondition"


class CommandError(SmartHomeError):
    """Raised while dispatching a command."""

    category = "command"


class InfrastructureError(SmartHomeError):
    category = "infrastructure"


class NoUserError(InfrastructureError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(NO_USER, detail)


class StoreUnavailableError(InfrastructureError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(STORE_UNAVAILABLE, detail)


class DeviceNotFoundError(InfrastructureError):
    def __init__(self, user_id: str, device_id: str) -> None:
        super().__init__(DEVICE_NOT_FOUND, f"users/{user_id}/devices/{device_id}")
        self.user_id = user_id
        self.device_id = device_id
