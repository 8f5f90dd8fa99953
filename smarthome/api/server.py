"""Fulfillment endpoint and admin JSON API over a threaded HTTP server."""

from __future__ import annotations

import asyncio
import contextlib
import hmac
import json
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Coroutine
from urllib.parse import urlparse

from loguru import logger

from smarthome.api.control_security import RequestRateLimiter, client_identity
from smarthome.api.data_store import SmartHomeDataStore
from smarthome.api.fulfillment import SmartHomeFulfillment, StateReporter
from smarthome.errors import (
    DEVICE_NOT_FOUND,
    NO_USER,
    STORE_UNAVAILABLE,
    SmartHomeError,
)


def json_response(data: dict[str, Any]) -> bytes:
    """Serialize JSON response payload."""
    return json.dumps(data, ensure_ascii=False).encode("utf-8")


def error_to_status(error_code: Any) -> HTTPStatus:
    code = str(error_code or "")
    if code == NO_USER:
        return HTTPStatus.UNAUTHORIZED
    if code == DEVICE_NOT_FOUND:
        return HTTPStatus.NOT_FOUND
    if code == STORE_UNAVAILABLE:
        return HTTPStatus.SERVICE_UNAVAILABLE
    return HTTPStatus.BAD_REQUEST


def _to_bool_value(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return bool(default)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return bool(default)


class _SmartHomeRequestHandler(BaseHTTPRequestHandler):
    """Synchronous HTTP handler that proxies into the asyncio loop."""

    data_store: SmartHomeDataStore | None = None
    fulfillment: SmartHomeFulfillment | None = None
    loop: asyncio.AbstractEventLoop | None = None
    auth_enabled: bool = False
    auth_token: str = ""
    max_request_body_bytes: int = 1024 * 1024
    request_timeout_seconds: float = 10.0
    rate_limiter: RequestRateLimiter | None = None

    server_version = "smarthome/0.1"

    def do_GET(self) -> None:  # noqa: N802
        if not self._ensure_rate_limited():
            return
        parts = self._path_parts()
        if parts[:1] == ["v1"] and not self._ensure_authorized():
            return
        if parts == ["v1", "health"]:
            backend = self.data_store.store.name if self.data_store else "unavailable"
            self._send_json(HTTPStatus.OK, {"success": True, "store": backend})
            return
        if len(parts) == 4 and parts[:2] == ["v1", "users"] and parts[3] == "devices":
            self._get_devices(parts[2])
            return
        if len(parts) == 6 and parts[:2] == ["v1", "users"] and parts[3] == "devices" and parts[5] == "state":
            self._get_state(parts[2], parts[4])
            return
        if len(parts) == 4 and parts[:2] == ["v1", "users"] and parts[3] == "homegraph":
            self._get_homegraph(parts[2])
            return
        self._send_json(HTTPStatus.NOT_FOUND, {"success": False, "error": "unknown endpoint"})

    def do_POST(self) -> None:  # noqa: N802
        if not self._ensure_rate_limited():
            return
        parts = self._path_parts()
        if parts[:1] == ["v1"] and not self._ensure_authorized():
            return
        payload = self._read_json_body()
        if payload is None:
            return

        if parts == ["smarthome"]:
            self._post_fulfillment(payload)
            return
        if len(parts) == 3 and parts[:2] == ["v1", "users"]:
            self._post_set_user(parts[2], payload)
            return
        if len(parts) == 4 and parts[:2] == ["v1", "users"] and parts[3] == "devices":
            self._post_add_device(parts[2], payload)
            return
        if len(parts) == 4 and parts[:2] == ["v1", "users"] and parts[3] == "homegraph":
            self._post_homegraph(parts[2], payload)
            return
        if len(parts) == 6 and parts[:2] == ["v1", "users"] and parts[3] == "devices":
            user_id, device_id, action = parts[2], parts[4], parts[5]
            if action == "update":
                self._post_update_device(user_id, device_id, payload)
                return
            if action == "delete":
                self._post_delete_device(user_id, device_id)
                return
            if action == "execute":
                self._post_execute(user_id, device_id, payload)
                return
        self._send_json(HTTPStatus.NOT_FOUND, {"success": False, "error": "unknown endpoint"})

    def log_message(self, fmt: str, *args: Any) -> None:
        logger.debug("smarthome-api " + fmt % args)

    def _path_parts(self) -> list[str]:
        return [p for p in urlparse(self.path).path.split("/") if p]

    @staticmethod
    def _is_authorized_request(
        headers: Any,
        *,
        enabled: bool,
        token: str,
    ) -> bool:
        if not enabled:
            return True
        expected = (token or "").strip()
        if not expected:
            return False
        raw_auth = str(headers.get("Authorization", "")).strip()
        if raw_auth.lower().startswith("bearer "):
            candidate = raw_auth[7:].strip()
        else:
            candidate = str(headers.get("X-Auth-Token", "")).strip()
        if not candidate:
            return False
        return hmac.compare_digest(candidate, expected)

    def _ensure_authorized(self) -> bool:
        if self._is_authorized_request(
            self.headers,
            enabled=self.auth_enabled,
            token=self.auth_token,
        ):
            return True
        self._send_json(HTTPStatus.UNAUTHORIZED, {"success": False, "error": "unauthorized"})
        return False

    def _ensure_rate_limited(self) -> bool:
        limiter = self.rate_limiter
        if limiter is None:
            return True
        if limiter.allow(key=client_identity(self.headers, self.client_address)):
            return True
        self._send_json(HTTPStatus.TOO_MANY_REQUESTS, {"success": False, "error": "rate_limited"})
        return False

    def _read_json_body(self) -> dict[str, Any] | None:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            length = 0
        max_body = max(1024, int(self.max_request_body_bytes))
        if length > max_body:
            self._send_json(
                HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
                {"success": False, "error": f"request body too large (max {max_body} bytes)"},
            )
            return None
        body = self.rfile.read(length) if length > 0 else b"{}"
        try:
            payload = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            self._send_json(HTTPStatus.BAD_REQUEST, {"success": False, "error": "invalid json"})
            return None
        if not isinstance(payload, dict):
            self._send_json(HTTPStatus.BAD_REQUEST, {"success": False, "error": "payload must be object"})
            return None
        return payload

    @staticmethod
    def _resolve_future_result(
        future: Any,
        *,
        timeout: float,
    ) -> tuple[bool, Any | None, HTTPStatus, str | None]:
        """Resolve a thread-safe asyncio future into (ok, result, http_status, error)."""
        try:
            return True, future.result(timeout=timeout), HTTPStatus.OK, None
        except FutureTimeoutError:
            with contextlib.suppress(Exception):
                future.cancel()
            return False, None, HTTPStatus.GATEWAY_TIMEOUT, "runtime timeout"
        except SmartHomeError as e:
            return False, None, error_to_status(e.code), e.code
        except ValueError as e:
            return False, None, HTTPStatus.BAD_REQUEST, str(e)
        except Exception as e:
            logger.warning(f"smarthome-api future failed: {e}")
            return False, None, HTTPStatus.INTERNAL_SERVER_ERROR, "runtime error"

    def _run(self, coro: Coroutine[Any, Any, Any]) -> tuple[bool, Any | None, HTTPStatus, str | None]:
        if not self.loop:
            coro.close()
            return False, None, HTTPStatus.SERVICE_UNAVAILABLE, "runtime unavailable"
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return self._resolve_future_result(fut, timeout=self.request_timeout_seconds)

    def _ensure_data_store(self) -> bool:
        if self.data_store and self.loop:
            return True
        self._send_json(HTTPStatus.SERVICE_UNAVAILABLE, {"success": False, "error": "store unavailable"})
        return False

    def _post_fulfillment(self, payload: dict[str, Any]) -> None:
        if not self.fulfillment or not self.loop:
            self._send_json(HTTPStatus.SERVICE_UNAVAILABLE, {"success": False, "error": "fulfillment unavailable"})
            return
        authorization = self.headers.get("Authorization")
        ok, result, status, error = self._run(self.fulfillment.handle(payload, authorization))
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        self._send_json(HTTPStatus.OK, result)

    def _get_devices(self, user_id: str) -> None:
        if not self._ensure_data_store():
            return
        ok, result, status, error = self._run(self.data_store.get_devices(user_id))
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        devices = [device.to_dict() for device in result]
        self._send_json(HTTPStatus.OK, {"success": True, "count": len(devices), "devices": devices})

    def _get_state(self, user_id: str, device_id: str) -> None:
        if not self._ensure_data_store():
            return
        ok, result, status, error = self._run(self.data_store.get_state(user_id, device_id))
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        self._send_json(HTTPStatus.OK, {"success": True, "device_id": device_id, "states": result})

    def _get_homegraph(self, user_id: str) -> None:
        if not self._ensure_data_store():
            return
        ok, result, status, error = self._run(self.data_store.is_homegraph_enabled(user_id))
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        self._send_json(HTTPStatus.OK, {"success": True, "user_id": user_id, "enabled": bool(result)})

    def _post_homegraph(self, user_id: str, payload: dict[str, Any]) -> None:
        if not self._ensure_data_store():
            return
        enabled = _to_bool_value(payload.get("enabled", payload.get("homegraph")), default=False)
        ok, _, status, error = self._run(self.data_store.set_homegraph(user_id, enabled))
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        self._send_json(HTTPStatus.OK, {"success": True, "user_id": user_id, "enabled": enabled})

    def _post_set_user(self, user_id: str, payload: dict[str, Any]) -> None:
        if not self._ensure_data_store():
            return
        ok, _, status, error = self._run(self.data_store.set_user(user_id, payload))
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        self._send_json(HTTPStatus.OK, {"success": True, "user_id": user_id})

    def _post_add_device(self, user_id: str, payload: dict[str, Any]) -> None:
        if not self._ensure_data_store():
            return
        ok, result, status, error = self._run(self.data_store.add_device(user_id, payload))
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        self._send_json(HTTPStatus.OK, {"success": True, "device_id": result})

    def _post_update_device(self, user_id: str, device_id: str, payload: dict[str, Any]) -> None:
        if not self._ensure_data_store():
            return
        states = payload.get("states")
        if states is not None and not isinstance(states, dict):
            self._send_json(HTTPStatus.BAD_REQUEST, {"success": False, "error": "states must be object"})
            return
        ok, result, status, error = self._run(
            self.data_store.update_device(
                user_id,
                device_id,
                name=payload.get("name"),
                nickname=payload.get("nickname"),
                states=states,
                error_code=payload.get("errorCode"),
                tfa=payload.get("tfa"),
            )
        )
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        self._send_json(HTTPStatus.OK, {"success": True, "device_id": device_id, "updated": result})

    def _post_delete_device(self, user_id: str, device_id: str) -> None:
        if not self._ensure_data_store():
            return
        ok, _, status, error = self._run(self.data_store.delete_device(user_id, device_id))
        if not ok:
            self._send_json(status, {"success": False, "error": error})
            return
        self._send_json(HTTPStatus.OK, {"success": True, "device_id": device_id})

    def _post_execute(self, user_id: str, device_id: str, payload: dict[str, Any]) -> None:
        if not self._ensure_data_store():
            return
        if not str(payload.get("command") or "").strip():
            self._send_json(HTTPStatus.BAD_REQUEST, {"success": False, "error": "command is required"})
            return
        ok, result, status, error = self._run(self.data_store.execute(user_id, device_id, payload))
        if not ok:
            self._send_json(status, {"success": False, "device_id": device_id, "error": error})
            return
        self._send_json(HTTPStatus.OK, {"success": True, "device_id": device_id, "states": result})

    def _send_json(self, code: HTTPStatus, payload: dict[str, Any]) -> None:
        body = json_response(payload)
        self.send_response(code)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class SmartHomeServer:
    """Threaded HTTP endpoint for assistant fulfillment and device admin.

    ``state_reporter`` is handed to the default fulfillment adapter and is only
    awaited after a successful execute for users with homegraph enabled.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        data_store: SmartHomeDataStore,
        loop: asyncio.AbstractEventLoop,
        fulfillment: SmartHomeFulfillment | None = None,
        state_reporter: StateReporter | None = None,
        max_request_body_bytes: int = 1024 * 1024,
        request_timeout_seconds: float = 10.0,
        auth_enabled: bool = False,
        auth_token: str = "",
        rate_limit_enabled: bool = True,
        rate_limit_rpm: int = 600,
        rate_limit_burst: int = 120,
    ) -> None:
        self.host = host
        self.port = port
        self.data_store = data_store
        self.fulfillment = fulfillment or SmartHomeFulfillment(data_store, state_reporter=state_reporter)
        self.loop = loop
        self.max_request_body_bytes = max(1024, int(max_request_body_bytes))
        self.request_timeout_seconds = max(0.1, float(request_timeout_seconds))
        self.auth_enabled = auth_enabled
        self.auth_token = auth_token
        self.rate_limit_enabled = bool(rate_limit_enabled)
        self.rate_limit_rpm = max(1, int(rate_limit_rpm))
        self.rate_limit_burst = max(0, int(rate_limit_burst))
        self._thread: threading.Thread | None = None
        self._server: ThreadingHTTPServer | None = None

    def start(self) -> None:
        handler_cls = type("BoundSmartHomeRequestHandler", (_SmartHomeRequestHandler,), {})
        handler_cls.data_store = self.data_store
        handler_cls.fulfillment = self.fulfillment
        handler_cls.loop = self.loop
        handler_cls.auth_enabled = self.auth_enabled
        handler_cls.auth_token = self.auth_token
        handler_cls.max_request_body_bytes = self.max_request_body_bytes
        handler_cls.request_timeout_seconds = self.request_timeout_seconds
        handler_cls.rate_limiter = (
            RequestRateLimiter(
                requests_per_minute=self.rate_limit_rpm,
                burst=self.rate_limit_burst,
            )
            if self.rate_limit_enabled
            else None
        )
        self._server = ThreadingHTTPServer((self.host, self.port), handler_cls)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Smart home API listening on http://{self.host}:{self.port}")

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2)
        self._thread = None
