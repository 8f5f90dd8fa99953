"""Trait command handlers.

Each handler receives the working state map, writes the keys it echoes back to
the assistant into it, and returns the dotted-path updates to persist. The
returned mapping is always submitted as one atomic gateway update, and every
validation happens before a handler returns, so a failed command never writes.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from smarthome.engine.model import (
    COMMAND_PREFIX,
    NO_TIMER,
    DeviceDocument,
    merge_settings,
    state_path,
)
from smarthome.errors import (
    NO_TIMER_EXISTS,
    NOT_SUPPORTED,
    VALUE_OUT_OF_RANGE,
    CommandError,
)

CAMERA_STREAM_URL = "https://fluffysheep.com/baaaaa.mp4"

# Assistant color key -> stored color key.
_COLOR_KEYS = (
    ("spectrumRGB", "spectrumRgb"),
    ("spectrumHSV", "spectrumHsv"),
    ("temperature", "temperatureK"),
)
_THERMOSTAT_AMBIENT_KEYS = ("thermostatTemperatureAmbient", "thermostatHumidityAmbient")


@dataclass(slots=True)
class CommandContext:
    device: DeviceDocument
    states: dict[str, Any]
    params: dict[str, Any]

    @property
    def snapshot(self) -> dict[str, Any]:
        """States as loaded, before the handler ran."""
        return self.device.states

    def copy_from_snapshot(self, *keys: str) -> None:
        for key in keys:
            self.states[key] = self.snapshot.get(key)


FieldUpdates = dict[str, Any]
CommandHandler = Callable[[CommandContext], FieldUpdates | None]

COMMAND_HANDLERS: dict[str, CommandHandler] = {}


def command(name: str) -> Callable[[CommandHandler], CommandHandler]:
    def _register(fn: CommandHandler) -> CommandHandler:
        COMMAND_HANDLERS[f"{COMMAND_PREFIX}{name}"] = fn
        return fn

    return _register


def get_handler(command_name: str) -> CommandHandler | None:
    return COMMAND_HANDLERS.get(command_name)


def supported_commands() -> list[str]:
    return sorted(COMMAND_HANDLERS)


def _require_timer(ctx: CommandContext) -> int:
    remaining = ctx.states.get("timerRemainingSec", NO_TIMER)
    if remaining is None or int(remaining) == NO_TIMER:
        raise CommandError(NO_TIMER_EXISTS)
    return int(remaining)


# action.devices.traits.ArmDisarm
@command("ArmDisarm")
def arm_disarm(ctx: CommandContext) -> FieldUpdates:
    is_armed = bool(ctx.params.get("arm", ctx.states.get("isArmed", False)))
    if "cancel" in ctx.params:
        # cancel undoes the requested arm transition
        is_armed = not is_armed
    ctx.states["isArmed"] = is_armed
    updates: FieldUpdates = {state_path("isArmed"): is_armed}
    if "armLevel" in ctx.params:
        arm_level = ctx.params["armLevel"]
        updates[state_path("currentArmLevel")] = arm_level
        ctx.states["currentArmLevel"] = arm_level
    return updates


# action.devices.traits.Brightness
@command("BrightnessAbsolute")
def brightness_absolute(ctx: CommandContext) -> FieldUpdates:
    brightness = ctx.params.get("brightness")
    ctx.states["brightness"] = brightness
    return {state_path("brightness"): brightness}


# action.devices.traits.CameraStream
@command("GetCameraStream")
def get_camera_stream(ctx: CommandContext) -> None:
    ctx.states["cameraStreamAccessUrl"] = CAMERA_STREAM_URL


# action.devices.traits.ColorSetting
@command("ColorAbsolute")
def color_absolute(ctx: CommandContext) -> FieldUpdates:
    color = ctx.params.get("color")
    if isinstance(color, Mapping):
        for param_key, state_key in _COLOR_KEYS:
            if param_key in color:
                value = color[param_key]
                ctx.states[state_key] = value
                return {state_path("color", state_key): value}
    raise CommandError(NOT_SUPPORTED, "color payload has no supported color key")


# action.devices.traits.Dock
@command("Dock")
def dock(ctx: CommandContext) -> FieldUpdates:
    ctx.states["isDocked"] = True
    return {state_path("isDocked"): True}


# action.devices.traits.FanSpeed
@command("SetFanSpeed")
def set_fan_speed(ctx: CommandContext) -> FieldUpdates:
    fan_speed = ctx.params.get("fanSpeed")
    ctx.states["currentFanSpeedSetting"] = fan_speed
    return {state_path("currentFanSpeedSetting"): fan_speed}


@command("Reverse")
def reverse(ctx: CommandContext) -> FieldUpdates:
    return {state_path("currentFanSpeedReverse"): True}


# action.devices.traits.Locator
@command("Locate")
def locate(ctx: CommandContext) -> FieldUpdates:
    ctx.states["generatedAlert"] = True
    return {
        state_path("silent"): ctx.params.get("silent"),
        state_path("generatedAlert"): True,
    }


# action.devices.traits.LockUnlock
@command("LockUnlock")
def lock_unlock(ctx: CommandContext) -> FieldUpdates:
    lock = ctx.params.get("lock")
    ctx.states["isLocked"] = lock
    return {state_path("isLocked"): lock}


# action.devices.traits.OnOff
@command("OnOff")
def on_off(ctx: CommandContext) -> FieldUpdates:
    on = ctx.params.get("on")
    ctx.states["on"] = on
    return {state_path("on"): on}


# action.devices.traits.OpenClose
@command("OpenClose")
def open_close(ctx: CommandContext) -> FieldUpdates:
    open_percent = ctx.params.get("openPercent")
    if not ctx.device.has_open_direction:
        ctx.states["openPercent"] = open_percent
        return {state_path("openPercent"): open_percent}

    direction = ctx.params.get("openDirection")
    current = ctx.snapshot.get("openState")
    if not isinstance(current, list):
        raise CommandError(NOT_SUPPORTED, "device has openDirection but no openState list")
    open_states = copy.deepcopy(current)
    for entry in open_states:
        if isinstance(entry, dict) and entry.get("openDirection") == direction:
            entry["openPercent"] = open_percent
    ctx.states["openState"] = open_states
    ctx.states["openStates"] = open_states
    return {state_path("openState"): open_states}


# action.devices.traits.Scene
@command("ActivateScene")
def activate_scene(ctx: CommandContext) -> FieldUpdates:
    # scenes are stateless to the caller
    return {state_path("deactivate"): ctx.params.get("deactivate")}


# action.devices.traits.StartStop
@command("StartStop")
def start_stop(ctx: CommandContext) -> FieldUpdates:
    start = ctx.params.get("start")
    ctx.states["isRunning"] = start
    return {state_path("isRunning"): start}


@command("PauseUnpause")
def pause_unpause(ctx: CommandContext) -> FieldUpdates:
    pause = ctx.params.get("pause")
    ctx.states["isPaused"] = pause
    return {state_path("isPaused"): pause}


# action.devices.traits.Modes
@command("SetModes")
def set_modes(ctx: CommandContext) -> FieldUpdates:
    settings = merge_settings(
        ctx.states.get("currentModeSettings"),
        ctx.params.get("updateModeSettings"),
    )
    ctx.states["currentModeSettings"] = settings
    return {state_path("currentModeSettings"): settings}


# action.devices.traits.Toggles
@command("SetToggles")
def set_toggles(ctx: CommandContext) -> FieldUpdates:
    settings = merge_settings(
        ctx.states.get("currentToggleSettings"),
        ctx.params.get("updateToggleSettings"),
    )
    ctx.states["currentToggleSettings"] = settings
    return {state_path("currentToggleSettings"): settings}


# action.devices.traits.Timer
@command("TimerStart")
def timer_start(ctx: CommandContext) -> FieldUpdates:
    seconds = ctx.params.get("timerTimeSec")
    ctx.states["timerRemainingSec"] = seconds
    return {state_path("timerRemainingSec"): seconds}


@command("TimerAdjust")
def timer_adjust(ctx: CommandContext) -> FieldUpdates:
    remaining = _require_timer(ctx)
    adjusted = remaining + int(ctx.params.get("timerTimeSec") or 0)
    if adjusted < 0:
        raise CommandError(VALUE_OUT_OF_RANGE, f"timerRemainingSec would be {adjusted}")
    ctx.states["timerRemainingSec"] = adjusted
    return {state_path("timerRemainingSec"): adjusted}


@command("TimerPause")
def timer_pause(ctx: CommandContext) -> FieldUpdates:
    _require_timer(ctx)
    ctx.states["timerPaused"] = True
    return {state_path("timerPaused"): True}


@command("TimerResume")
def timer_resume(ctx: CommandContext) -> FieldUpdates:
    _require_timer(ctx)
    ctx.states["timerPaused"] = False
    return {state_path("timerPaused"): False}


@command("TimerCancel")
def timer_cancel(ctx: CommandContext) -> FieldUpdates:
    _require_timer(ctx)
    # Stored as "no timer", reported to the assistant as zero seconds left.
    ctx.states["timerRemainingSec"] = 0
    return {state_path("timerRemainingSec"): NO_TIMER}


# action.devices.traits.TemperatureControl
@command("SetTemperature")
def set_temperature(ctx: CommandContext) -> FieldUpdates:
    temperature = ctx.params.get("temperature")
    ctx.states["temperatureSetpointCelsius"] = temperature
    ctx.copy_from_snapshot("temperatureAmbientCelsius")
    return {state_path("temperatureSetpointCelsius"): temperature}


# action.devices.traits.TemperatureSetting
@command("ThermostatTemperatureSetpoint")
def thermostat_temperature_setpoint(ctx: CommandContext) -> FieldUpdates:
    setpoint = ctx.params.get("thermostatTemperatureSetpoint")
    ctx.states["thermostatTemperatureSetpoint"] = setpoint
    ctx.copy_from_snapshot("thermostatMode", *_THERMOSTAT_AMBIENT_KEYS)
    return {state_path("thermostatTemperatureSetpoint"): setpoint}


@command("ThermostatTemperatureSetRange")
def thermostat_temperature_set_range(ctx: CommandContext) -> FieldUpdates:
    low = ctx.params.get("thermostatTemperatureSetpointLow")
    high = ctx.params.get("thermostatTemperatureSetpointHigh")
    ctx.copy_from_snapshot(
        "thermostatTemperatureSetpoint",
        "thermostatMode",
        *_THERMOSTAT_AMBIENT_KEYS,
    )
    return {
        state_path("thermostatTemperatureSetpointLow"): low,
        state_path("thermostatTemperatureSetpointHigh"): high,
    }


@command("ThermostatSetMode")
def thermostat_set_mode(ctx: CommandContext) -> FieldUpdates:
    mode = ctx.params.get("thermostatMode")
    ctx.states["thermostatMode"] = mode
    ctx.copy_from_snapshot("thermostatTemperatureSetpoint", *_THERMOSTAT_AMBIENT_KEYS)
    return {state_path("thermostatMode"): mode}
