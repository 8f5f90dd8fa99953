"""Device document model, execution requests and dotted-path helpers."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

COMMAND_PREFIX = "action.devices.commands."
NO_TIMER = -1
STATES_ROOT = "states"


def normalize_command(value: Any) -> str:
    """Return the fully qualified command name (``OnOff`` is accepted too)."""
    text = str(value or "").strip()
    if text and "." not in text:
        return f"{COMMAND_PREFIX}{text}"
    return text


def state_path(*keys: str) -> str:
    """Dotted path rooted at ``states.``."""
    return ".".join((STATES_ROOT, *keys))


def split_path(path: str) -> list[str]:
    parts = str(path or "").split(".")
    if any(not part for part in parts):
        raise ValueError(f"invalid dotted path: {path!r}")
    return parts


def set_dotted(doc: dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at ``path``, creating intermediate mappings as needed."""
    parts = split_path(path)
    node = doc
    for key in parts[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[parts[-1]] = value


def apply_field_updates(doc: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Return a deep copy of ``doc`` with every dotted-path update applied."""
    patched = copy.deepcopy(dict(doc))
    for path, value in updates.items():
        set_dotted(patched, path, copy.deepcopy(value))
    return patched


def merge_settings(current: Any, update: Any) -> dict[str, Any]:
    """Per-key merge used by SetModes/SetToggles; ``update`` wins."""
    merged: dict[str, Any] = dict(current) if isinstance(current, Mapping) else {}
    if isinstance(update, Mapping):
        merged.update(update)
    return merged


@dataclass(slots=True)
class Execution:
    """One command execution as sent by the assistant."""

    command: str
    params: dict[str, Any] = field(default_factory=dict)
    challenge: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.command = normalize_command(self.command)
        self.params = dict(self.params) if isinstance(self.params, Mapping) else {}
        if self.challenge is not None and not isinstance(self.challenge, Mapping):
            self.challenge = None
        elif self.challenge is not None:
            self.challenge = dict(self.challenge)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Execution":
        return cls(
            command=str(payload.get("command") or ""),
            params=payload.get("params") or {},
            challenge=payload.get("challenge"),
        )


@dataclass(slots=True)
class DeviceDocument:
    """Semi-structured device document stored under ``users/{uid}/devices/{did}``."""

    device_id: str
    states: dict[str, Any] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)
    error_code: str = ""
    tfa: str = ""
    name: Any = None
    nickname: Any = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, device_id: str = "") -> "DeviceDocument":
        states = data.get("states")
        attributes = data.get("attributes")
        return cls(
            device_id=str(data.get("deviceId") or device_id or ""),
            states=dict(states) if isinstance(states, Mapping) else {},
            attributes=dict(attributes) if isinstance(attributes, Mapping) else {},
            error_code=str(data.get("errorCode") or ""),
            tfa=str(data.get("tfa") or ""),
            name=data.get("name"),
            nickname=data.get("nickname"),
            raw=copy.deepcopy(dict(data)),
        )

    def to_dict(self) -> dict[str, Any]:
        data = copy.deepcopy(self.raw)
        data.setdefault("deviceId", self.device_id)
        return data

    @property
    def is_online(self) -> bool:
        return self.states.get("online") is True

    @property
    def has_open_direction(self) -> bool:
        return "openDirection" in self.attributes

    def working_states(self) -> dict[str, Any]:
        """Fresh mutable copy of ``states`` that handlers read and write."""
        return dict(self.states)
