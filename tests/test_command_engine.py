import copy

import pytest

from smarthome.engine import CommandExecutionEngine, Execution, supported_commands
from smarthome.engine.commands import CAMERA_STREAM_URL
from smarthome.engine.model import DeviceDocument, apply_field_updates
from smarthome.errors import (
    COMMAND_NOT_SUPPORTED,
    DEVICE_NOT_FOUND,
    DEVICE_OFFLINE,
    NO_TIMER_EXISTS,
    NOT_SUPPORTED,
    VALUE_OUT_OF_RANGE,
    CommandError,
    DeviceNotFoundError,
    PreconditionError,
    SmartHomeError,
)
from smarthome.storage import SQLiteDeviceStore
from smarthome.storage.base import DeviceStoreGateway

USER = "user-1"
DEVICE = "dev-1"


class _RecordingGateway(DeviceStoreGateway):
    """In-memory gateway that records every update call."""

    name = "memory"

    def __init__(self, devices: dict[str, dict] | None = None) -> None:
        self.devices = {key: copy.deepcopy(value) for key, value in (devices or {}).items()}
        self.update_calls: list[dict] = []

    async def get_devices(self, user_id):  # type: ignore[no-untyped-def]
        return [DeviceDocument.from_dict(data, device_id=did) for did, data in self.devices.items()]

    async def get_device(self, user_id, device_id):  # type: ignore[no-untyped-def]
        if device_id not in self.devices:
            raise DeviceNotFoundError(user_id, device_id)
        return DeviceDocument.from_dict(self.devices[device_id], device_id=device_id)

    async def update_fields(self, user_id, device_id, updates):  # type: ignore[no-untyped-def]
        if device_id not in self.devices:
            raise DeviceNotFoundError(user_id, device_id)
        self.update_calls.append(dict(updates))
        self.devices[device_id] = apply_field_updates(self.devices[device_id], updates)

    async def set_device(self, user_id, device_id, data):  # type: ignore[no-untyped-def]
        self.devices[device_id] = dict(data)

    async def delete_device(self, user_id, device_id):  # type: ignore[no-untyped-def]
        self.devices.pop(device_id, None)

    async def get_user_field(self, user_id, field):  # type: ignore[no-untyped-def]
        return None

    async def update_user_field(self, user_id, field, value):  # type: ignore[no-untyped-def]
        return None

    async def find_user_ids_by_token(self, access_token):  # type: ignore[no-untyped-def]
        return []

    async def set_user(self, user_id, data):  # type: ignore[no-untyped-def]
        return None


def _device(states: dict | None = None, **extra) -> dict:  # type: ignore[no-untyped-def]
    doc = {
        "deviceId": DEVICE,
        "states": {"online": True, **(states or {})},
        "errorCode": "",
        "tfa": "",
    }
    doc.update(extra)
    return doc


def _gateway(states: dict | None = None, **extra) -> _RecordingGateway:  # type: ignore[no-untyped-def]
    return _RecordingGateway({DEVICE: _device(states, **extra)})


async def _run(gateway, command: str, params: dict | None = None, challenge=None, **kwargs):  # type: ignore[no-untyped-def]
    engine = CommandExecutionEngine(gateway, **kwargs)
    return await engine.execute(
        USER,
        DEVICE,
        Execution(command=f"action.devices.commands.{command}", params=params or {}, challenge=challenge),
    )


@pytest.fixture
def sqlite_store(tmp_path):  # type: ignore[no-untyped-def]
    store = SQLiteDeviceStore(tmp_path / "devices.db")
    try:
        yield store
    finally:
        store.close_sync()


@pytest.mark.asyncio
async def test_on_off_happy_path_persists_and_echoes(sqlite_store) -> None:  # type: ignore[no-untyped-def]
    sqlite_store.set_device_sync(USER, DEVICE, _device({"on": False}))
    engine = CommandExecutionEngine(sqlite_store)

    states = await engine.execute(
        USER,
        DEVICE,
        {"command": "action.devices.commands.OnOff", "params": {"on": True}, "challenge": None},
    )

    assert states["on"] is True
    stored = sqlite_store.get_device_sync(USER, DEVICE)
    assert stored.states["on"] is True


@pytest.mark.asyncio
async def test_offline_device_fails_and_document_is_untouched(sqlite_store) -> None:  # type: ignore[no-untyped-def]
    doc = _device({"on": False})
    doc["states"]["online"] = False
    sqlite_store.set_device_sync(USER, DEVICE, doc)
    before = sqlite_store.get_device_sync(USER, DEVICE).to_dict()
    engine = CommandExecutionEngine(sqlite_store)

    with pytest.raises(PreconditionError) as exc:
        await engine.execute(USER, DEVICE, {"command": "action.devices.commands.OnOff", "params": {"on": True}})

    assert exc.value.code == DEVICE_OFFLINE
    assert str(exc.value) == DEVICE_OFFLINE
    assert sqlite_store.get_device_sync(USER, DEVICE).to_dict() == before


@pytest.mark.asyncio
async def test_missing_online_flag_counts_as_offline() -> None:
    gateway = _RecordingGateway({DEVICE: {"states": {"on": False}, "errorCode": "", "tfa": ""}})
    with pytest.raises(SmartHomeError) as exc:
        await _run(gateway, "OnOff", {"on": True})
    assert exc.value.code == DEVICE_OFFLINE
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_wrong_pin_fails_with_challenge_failed() -> None:
    gateway = _gateway(tfa="1234")
    with pytest.raises(PreconditionError) as exc:
        await _run(gateway, "OnOff", {"on": True}, challenge={"pin": "0000"})
    assert exc.value.code == "challengeFailedPinNeeded"
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_injected_error_code_is_raised_verbatim_without_writes() -> None:
    gateway = _gateway({"on": False}, errorCode="deviceJammingDetected")
    with pytest.raises(PreconditionError) as exc:
        await _run(gateway, "OnOff", {"on": True})
    assert exc.value.code == "deviceJammingDetected"
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_offline_takes_priority_over_injected_error_and_challenge() -> None:
    gateway = _gateway(errorCode="deviceJammingDetected", tfa="ack")
    gateway.devices[DEVICE]["states"]["online"] = False
    with pytest.raises(PreconditionError) as exc:
        await _run(gateway, "OnOff", {"on": True})
    assert exc.value.code == DEVICE_OFFLINE


@pytest.mark.asyncio
async def test_injected_error_takes_priority_over_challenge() -> None:
    gateway = _gateway(errorCode="lowBattery", tfa="1234")
    with pytest.raises(PreconditionError) as exc:
        await _run(gateway, "OnOff", {"on": True})
    assert exc.value.code == "lowBattery"


@pytest.mark.parametrize(
    ("tfa", "challenge", "expected"),
    [
        ("", None, None),
        ("", {"pin": "1234"}, None),
        ("", {"pin": "wrong"}, None),
        ("ack", None, "ackNeeded"),
        ("ack", {"ack": True}, None),
        ("ack", {"pin": "1234"}, "challengeFailedPinNeeded"),
        ("1234", None, "pinNeeded"),
        ("1234", {"pin": "1234"}, None),
        ("1234", {"pin": "wrong"}, "challengeFailedPinNeeded"),
        ("1234", {"ack": True}, None),
    ],
)
@pytest.mark.asyncio
async def test_two_factor_matrix(tfa, challenge, expected) -> None:  # type: ignore[no-untyped-def]
    gateway = _gateway({"on": False}, tfa=tfa)
    if expected is None:
        states = await _run(gateway, "OnOff", {"on": True}, challenge=challenge)
        assert states["on"] is True
        assert gateway.update_calls == [{"states.on": True}]
        return
    with pytest.raises(PreconditionError) as exc:
        await _run(gateway, "OnOff", {"on": True}, challenge=challenge)
    assert exc.value.code == expected
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_numeric_pin_matches_string_tfa() -> None:
    gateway = _gateway(tfa="1234")
    states = await _run(gateway, "OnOff", {"on": True}, challenge={"pin": 1234})
    assert states["on"] is True


@pytest.mark.asyncio
async def test_unknown_command_is_rejected_by_default() -> None:
    gateway = _gateway({"on": False})
    with pytest.raises(CommandError) as exc:
        await _run(gateway, "Teleport", {"to": "mars"})
    assert exc.value.code == COMMAND_NOT_SUPPORTED
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_unknown_command_returns_snapshot_in_legacy_mode() -> None:
    gateway = _gateway({"on": False})
    states = await _run(gateway, "Teleport", {"to": "mars"}, reject_unknown_commands=False)
    assert states == {"online": True, "on": False}
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_missing_device_raises_device_not_found() -> None:
    gateway = _RecordingGateway()
    with pytest.raises(DeviceNotFoundError) as exc:
        await _run(gateway, "OnOff", {"on": True})
    assert exc.value.code == DEVICE_NOT_FOUND


@pytest.mark.asyncio
async def test_short_command_names_are_accepted() -> None:
    gateway = _gateway({"on": False})
    engine = CommandExecutionEngine(gateway)
    states = await engine.execute(USER, DEVICE, {"command": "OnOff", "params": {"on": True}})
    assert states["on"] is True


# ---------------------------------------------------------------------------
# Dispatch table rows
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_arm_disarm_without_level_writes_under_states() -> None:
    gateway = _gateway({"isArmed": False})
    states = await _run(gateway, "ArmDisarm", {"arm": True})
    assert states["isArmed"] is True
    assert gateway.update_calls == [{"states.isArmed": True}]
    assert "isArmed" not in gateway.devices[DEVICE]


@pytest.mark.asyncio
async def test_arm_disarm_with_level_writes_both_fields_atomically() -> None:
    gateway = _gateway({"isArmed": False})
    states = await _run(gateway, "ArmDisarm", {"arm": True, "armLevel": "L2"})
    assert states["isArmed"] is True
    assert states["currentArmLevel"] == "L2"
    assert gateway.update_calls == [{"states.isArmed": True, "states.currentArmLevel": "L2"}]


@pytest.mark.asyncio
async def test_arm_disarm_cancel_inverts_arm() -> None:
    gateway = _gateway({"isArmed": True})
    states = await _run(gateway, "ArmDisarm", {"arm": True, "cancel": True})
    assert states["isArmed"] is False
    assert gateway.devices[DEVICE]["states"]["isArmed"] is False


@pytest.mark.asyncio
async def test_brightness_absolute() -> None:
    gateway = _gateway({"brightness": 10})
    states = await _run(gateway, "BrightnessAbsolute", {"brightness": 65})
    assert states["brightness"] == 65
    assert gateway.devices[DEVICE]["states"]["brightness"] == 65


@pytest.mark.asyncio
async def test_get_camera_stream_echoes_url_without_writes() -> None:
    gateway = _gateway()
    states = await _run(gateway, "GetCameraStream", {"StreamToChromecast": True})
    assert states["cameraStreamAccessUrl"] == CAMERA_STREAM_URL
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_color_absolute_rgb(sqlite_store) -> None:  # type: ignore[no-untyped-def]
    sqlite_store.set_device_sync(USER, DEVICE, _device({"color": {}}))
    engine = CommandExecutionEngine(sqlite_store)
    states = await engine.execute(
        USER,
        DEVICE,
        Execution(command="action.devices.commands.ColorAbsolute", params={"color": {"spectrumRGB": 16711680}}),
    )
    assert states["spectrumRgb"] == 16711680
    stored = sqlite_store.get_device_sync(USER, DEVICE)
    assert stored.states["color"]["spectrumRgb"] == 16711680


@pytest.mark.asyncio
async def test_color_absolute_hsv_and_temperature() -> None:
    gateway = _gateway({"color": {"spectrumRgb": 1}})
    hsv = {"hue": 10, "saturation": 0.5, "value": 1}
    states = await _run(gateway, "ColorAbsolute", {"color": {"spectrumHSV": hsv}})
    assert states["spectrumHsv"] == hsv
    states = await _run(gateway, "ColorAbsolute", {"color": {"temperature": 2700}})
    assert states["temperatureK"] == 2700
    color = gateway.devices[DEVICE]["states"]["color"]
    assert color == {"spectrumRgb": 1, "spectrumHsv": hsv, "temperatureK": 2700}


@pytest.mark.asyncio
async def test_color_absolute_without_known_key_fails_without_writes() -> None:
    gateway = _gateway({"color": {}})
    with pytest.raises(CommandError) as exc:
        await _run(gateway, "ColorAbsolute", {"color": {"name": "red"}})
    assert exc.value.code == NOT_SUPPORTED
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_dock() -> None:
    gateway = _gateway({"isDocked": False})
    states = await _run(gateway, "Dock")
    assert states["isDocked"] is True
    assert gateway.update_calls == [{"states.isDocked": True}]


@pytest.mark.asyncio
async def test_set_fan_speed_and_reverse() -> None:
    gateway = _gateway()
    states = await _run(gateway, "SetFanSpeed", {"fanSpeed": "high"})
    assert states["currentFanSpeedSetting"] == "high"
    states = await _run(gateway, "Reverse")
    assert "currentFanSpeedReverse" not in states
    assert gateway.devices[DEVICE]["states"]["currentFanSpeedReverse"] is True


@pytest.mark.asyncio
async def test_locate_writes_silent_and_alert() -> None:
    gateway = _gateway()
    states = await _run(gateway, "Locate", {"silent": True})
    assert states["generatedAlert"] is True
    assert gateway.update_calls == [{"states.silent": True, "states.generatedAlert": True}]


@pytest.mark.asyncio
async def test_lock_unlock_start_stop_pause() -> None:
    gateway = _gateway()
    assert (await _run(gateway, "LockUnlock", {"lock": True}))["isLocked"] is True
    assert (await _run(gateway, "StartStop", {"start": True}))["isRunning"] is True
    assert (await _run(gateway, "PauseUnpause", {"pause": True}))["isPaused"] is True
    stored = gateway.devices[DEVICE]["states"]
    assert stored["isLocked"] is True
    assert stored["isRunning"] is True
    assert stored["isPaused"] is True


@pytest.mark.asyncio
async def test_open_close_single_direction() -> None:
    gateway = _gateway({"openPercent": 0})
    states = await _run(gateway, "OpenClose", {"openPercent": 40})
    assert states["openPercent"] == 40
    assert gateway.update_calls == [{"states.openPercent": 40}]


@pytest.mark.asyncio
async def test_open_close_multi_direction_updates_matching_entry_only(sqlite_store) -> None:  # type: ignore[no-untyped-def]
    doc = _device(
        {
            "openState": [
                {"openDirection": "UP", "openPercent": 0},
                {"openDirection": "DOWN", "openPercent": 0},
            ]
        },
        attributes={"openDirection": True},
    )
    sqlite_store.set_device_sync(USER, DEVICE, doc)
    engine = CommandExecutionEngine(sqlite_store)

    states = await engine.execute(
        USER,
        DEVICE,
        {"command": "action.devices.commands.OpenClose", "params": {"openDirection": "UP", "openPercent": 50}},
    )

    expected = [
        {"openDirection": "UP", "openPercent": 50},
        {"openDirection": "DOWN", "openPercent": 0},
    ]
    assert states["openStates"] == expected
    assert sqlite_store.get_device_sync(USER, DEVICE).states["openState"] == expected


@pytest.mark.asyncio
async def test_open_close_multi_direction_without_open_state_is_not_supported() -> None:
    gateway = _gateway(attributes={"openDirection": True})
    with pytest.raises(CommandError) as exc:
        await _run(gateway, "OpenClose", {"openDirection": "UP", "openPercent": 50})
    assert exc.value.code == NOT_SUPPORTED
    assert gateway.update_calls == []
    assert "openState" not in gateway.devices[DEVICE]["states"]


@pytest.mark.asyncio
async def test_activate_scene_has_no_echo() -> None:
    gateway = _gateway()
    states = await _run(gateway, "ActivateScene", {"deactivate": False})
    assert "deactivate" not in states
    assert gateway.devices[DEVICE]["states"]["deactivate"] is False


@pytest.mark.asyncio
async def test_set_modes_merges_with_update_winning() -> None:
    gateway = _gateway({"currentModeSettings": {"load": "small", "temp": "cold"}})
    states = await _run(gateway, "SetModes", {"updateModeSettings": {"load": "large"}})
    assert states["currentModeSettings"] == {"load": "large", "temp": "cold"}
    again = await _run(gateway, "SetModes", {"updateModeSettings": {"load": "large"}})
    assert again["currentModeSettings"] == states["currentModeSettings"]


@pytest.mark.asyncio
async def test_set_toggles_defaults_missing_map() -> None:
    gateway = _gateway()
    states = await _run(gateway, "SetToggles", {"updateToggleSettings": {"sterilization": True}})
    assert states["currentToggleSettings"] == {"sterilization": True}
    assert gateway.devices[DEVICE]["states"]["currentToggleSettings"] == {"sterilization": True}


@pytest.mark.asyncio
async def test_set_modes_last_writer_wins_per_key() -> None:
    gateway = _gateway({"currentModeSettings": {}})
    await _run(gateway, "SetModes", {"updateModeSettings": {"load": "small", "temp": "hot"}})
    states = await _run(gateway, "SetModes", {"updateModeSettings": {"load": "large"}})
    assert states["currentModeSettings"] == {"load": "large", "temp": "hot"}


@pytest.mark.parametrize(
    ("command", "param_key", "state_key"),
    [
        ("SetModes", "updateModeSettings", "currentModeSettings"),
        ("SetToggles", "updateToggleSettings", "currentToggleSettings"),
    ],
)
@pytest.mark.asyncio
async def test_settings_updates_commute_only_on_disjoint_keys(  # type: ignore[no-untyped-def]
    tmp_path, command, param_key, state_key
) -> None:
    async def apply_in_order(db_name: str, first: dict, second: dict) -> dict:
        store = SQLiteDeviceStore(tmp_path / db_name)
        try:
            store.set_device_sync(USER, DEVICE, _device({state_key: {"base": 0}}))
            engine = CommandExecutionEngine(store)
            for update in (first, second):
                await engine.execute(
                    USER,
                    DEVICE,
                    Execution(command=command, params={param_key: update}),
                )
            return store.get_device_sync(USER, DEVICE).states[state_key]
        finally:
            store.close_sync()

    forward = await apply_in_order("disjoint-ab.db", {"a": 1}, {"b": 2})
    backward = await apply_in_order("disjoint-ba.db", {"b": 2}, {"a": 1})
    assert forward == backward == {"base": 0, "a": 1, "b": 2}

    forward = await apply_in_order("overlap-ab.db", {"a": 1}, {"a": 2})
    backward = await apply_in_order("overlap-ba.db", {"a": 2}, {"a": 1})
    assert forward == {"base": 0, "a": 2}
    assert backward == {"base": 0, "a": 1}


@pytest.mark.asyncio
async def test_timer_start_adjust_round_trip() -> None:
    gateway = _gateway({"timerRemainingSec": -1})
    assert (await _run(gateway, "TimerStart", {"timerTimeSec": 60}))["timerRemainingSec"] == 60
    assert (await _run(gateway, "TimerAdjust", {"timerTimeSec": 30}))["timerRemainingSec"] == 90
    assert (await _run(gateway, "TimerAdjust", {"timerTimeSec": -30}))["timerRemainingSec"] == 60
    assert gateway.devices[DEVICE]["states"]["timerRemainingSec"] == 60


@pytest.mark.asyncio
async def test_timer_adjust_underflow_fails_without_writes() -> None:
    gateway = _gateway({"timerRemainingSec": 10})
    with pytest.raises(CommandError) as exc:
        await _run(gateway, "TimerAdjust", {"timerTimeSec": -20})
    assert exc.value.code == VALUE_OUT_OF_RANGE
    assert gateway.update_calls == []
    assert gateway.devices[DEVICE]["states"]["timerRemainingSec"] == 10


@pytest.mark.parametrize("command", ["TimerAdjust", "TimerPause", "TimerResume", "TimerCancel"])
@pytest.mark.asyncio
async def test_timer_commands_require_running_timer(command: str) -> None:
    gateway = _gateway({"timerRemainingSec": -1})
    with pytest.raises(CommandError) as exc:
        await _run(gateway, command, {"timerTimeSec": 5})
    assert exc.value.code == NO_TIMER_EXISTS
    assert gateway.update_calls == []


@pytest.mark.asyncio
async def test_timer_pause_resume() -> None:
    gateway = _gateway({"timerRemainingSec": 30, "timerPaused": False})
    assert (await _run(gateway, "TimerPause"))["timerPaused"] is True
    assert (await _run(gateway, "TimerResume"))["timerPaused"] is False


@pytest.mark.asyncio
async def test_timer_cancel_stores_no_timer_but_reports_zero() -> None:
    gateway = _gateway({"timerRemainingSec": 30})
    states = await _run(gateway, "TimerCancel")
    assert states["timerRemainingSec"] == 0
    assert gateway.devices[DEVICE]["states"]["timerRemainingSec"] == -1


@pytest.mark.asyncio
async def test_set_temperature_echoes_ambient_from_snapshot() -> None:
    gateway = _gateway({"temperatureAmbientCelsius": 21, "temperatureSetpointCelsius": 18})
    states = await _run(gateway, "SetTemperature", {"temperature": 24})
    assert states["temperatureSetpointCelsius"] == 24
    assert states["temperatureAmbientCelsius"] == 21
    assert gateway.update_calls == [{"states.temperatureSetpointCelsius": 24}]


THERMOSTAT = {
    "thermostatMode": "heat",
    "thermostatTemperatureSetpoint": 20,
    "thermostatTemperatureAmbient": 18,
    "thermostatHumidityAmbient": 40,
}


@pytest.mark.asyncio
async def test_thermostat_setpoint_echoes_mode_and_ambients() -> None:
    gateway = _gateway(dict(THERMOSTAT))
    states = await _run(gateway, "ThermostatTemperatureSetpoint", {"thermostatTemperatureSetpoint": 22})
    assert states["thermostatTemperatureSetpoint"] == 22
    assert states["thermostatMode"] == "heat"
    assert states["thermostatTemperatureAmbient"] == 18
    assert states["thermostatHumidityAmbient"] == 40


@pytest.mark.asyncio
async def test_thermostat_set_range_is_one_atomic_update() -> None:
    gateway = _gateway(dict(THERMOSTAT))
    states = await _run(
        gateway,
        "ThermostatTemperatureSetRange",
        {"thermostatTemperatureSetpointLow": 18, "thermostatTemperatureSetpointHigh": 24},
    )
    assert gateway.update_calls == [
        {
            "states.thermostatTemperatureSetpointLow": 18,
            "states.thermostatTemperatureSetpointHigh": 24,
        }
    ]
    assert states["thermostatTemperatureSetpoint"] == 20
    assert states["thermostatMode"] == "heat"


@pytest.mark.asyncio
async def test_thermostat_set_mode_echoes_prior_setpoint() -> None:
    gateway = _gateway(dict(THERMOSTAT))
    states = await _run(gateway, "ThermostatSetMode", {"thermostatMode": "cool"})
    assert states["thermostatMode"] == "cool"
    assert states["thermostatTemperatureSetpoint"] == 20
    assert gateway.devices[DEVICE]["states"]["thermostatMode"] == "cool"


# ---------------------------------------------------------------------------
# Properties across the whole table
# ---------------------------------------------------------------------------

_ECHO_CASES = {
    "ArmDisarm": ({"arm": True}, {"isArmed"}),
    "BrightnessAbsolute": ({"brightness": 5}, {"brightness"}),
    "GetCameraStream": ({}, {"cameraStreamAccessUrl"}),
    "ColorAbsolute": ({"color": {"spectrumRGB": 1}}, {"spectrumRgb"}),
    "Dock": ({}, {"isDocked"}),
    "SetFanSpeed": ({"fanSpeed": "low"}, {"currentFanSpeedSetting"}),
    "Reverse": ({}, set()),
    "Locate": ({"silent": False}, {"generatedAlert"}),
    "LockUnlock": ({"lock": False}, {"isLocked"}),
    "OnOff": ({"on": True}, {"on"}),
    "OpenClose": ({"openPercent": 10}, {"openPercent"}),
    "ActivateScene": ({"deactivate": False}, set()),
    "StartStop": ({"start": True}, {"isRunning"}),
    "PauseUnpause": ({"pause": True}, {"isPaused"}),
    "SetModes": ({"updateModeSettings": {"a": "b"}}, {"currentModeSettings"}),
    "SetToggles": ({"updateToggleSettings": {"a": True}}, {"currentToggleSettings"}),
    "TimerStart": ({"timerTimeSec": 5}, {"timerRemainingSec"}),
    "TimerAdjust": ({"timerTimeSec": 5}, {"timerRemainingSec"}),
    "TimerPause": ({}, {"timerPaused"}),
    "TimerResume": ({}, {"timerPaused"}),
    "TimerCancel": ({}, {"timerRemainingSec"}),
    "SetTemperature": ({"temperature": 20}, {"temperatureSetpointCelsius", "temperatureAmbientCelsius"}),
    "ThermostatTemperatureSetpoint": (
        {"thermostatTemperatureSetpoint": 21},
        {"thermostatTemperatureSetpoint", "thermostatMode", "thermostatTemperatureAmbient"},
    ),
    "ThermostatTemperatureSetRange": (
        {"thermostatTemperatureSetpointLow": 18, "thermostatTemperatureSetpointHigh": 23},
        {"thermostatTemperatureSetpoint", "thermostatMode", "thermostatHumidityAmbient"},
    ),
    "ThermostatSetMode": ({"thermostatMode": "off"}, {"thermostatMode", "thermostatTemperatureSetpoint"}),
}


def test_echo_cases_cover_every_registered_command() -> None:
    assert sorted(f"action.devices.commands.{name}" for name in _ECHO_CASES) == supported_commands()


@pytest.mark.parametrize("command", sorted(_ECHO_CASES))
@pytest.mark.asyncio
async def test_every_command_echoes_its_keys(command: str) -> None:
    params, echoes = _ECHO_CASES[command]
    gateway = _gateway({"timerRemainingSec": 30, "temperatureAmbientCelsius": 19, **THERMOSTAT})
    states = await _run(gateway, command, params)
    assert echoes <= set(states)


@pytest.mark.parametrize("command", sorted(_ECHO_CASES))
@pytest.mark.asyncio
async def test_every_command_fails_offline_without_writes(command: str) -> None:
    params, _ = _ECHO_CASES[command]
    gateway = _gateway({"timerRemainingSec": 30})
    gateway.devices[DEVICE]["states"]["online"] = False
    before = copy.deepcopy(gateway.devices[DEVICE])
    with pytest.raises(PreconditionError):
        await _run(gateway, command, params)
    assert gateway.update_calls == []
    assert gateway.devices[DEVICE] == before
