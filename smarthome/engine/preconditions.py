"""Checks applied to every execution before any state is touched."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from smarthome.engine.model import DeviceDocument
from smarthome.errors import (
    ACK_NEEDED,
    CHALLENGE_FAILED_PIN_NEEDED,
    DEVICE_OFFLINE,
    PIN_NEEDED,
    PreconditionError,
)

TFA_NONE = ""
TFA_ACK = "ack"


def check_online(states: Mapping[str, Any]) -> None:
    if states.get("online") is not True:
        raise PreconditionError(DEVICE_OFFLINE)


def check_injected_error(device: DeviceDocument) -> None:
    if device.error_code:
        raise PreconditionError(device.error_code, "injected device error")


def check_challenge(tfa: str, challenge: Mapping[str, Any] | None) -> None:
    """Two-factor decision.

    ``tfa`` is ``""`` (no challenge), ``"ack"`` (acknowledgment) or the
    expected PIN. A challenge without a ``pin`` field passes whenever ``tfa``
    is set.
    """
    if tfa == TFA_ACK and challenge is None:
        raise PreconditionError(ACK_NEEDED)
    if tfa != TFA_NONE and challenge is None:
        raise PreconditionError(PIN_NEEDED)
    if tfa != TFA_NONE and challenge is not None:
        pin = challenge.get("pin")
        if pin is not None and str(pin) != tfa:
            raise PreconditionError(CHALLENGE_FAILED_PIN_NEEDED)


def evaluate_preconditions(
    device: DeviceDocument,
    states: Mapping[str, Any],
    challenge: Mapping[str, Any] | None,
) -> None:
    """Online gate, then injected error, then two-factor. Never mutates state."""
    check_online(states)
    check_injected_error(device)
    check_challenge(device.tfa, challenge)
