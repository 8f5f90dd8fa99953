#!/usr/bin/env python3
"""Seed a user and its device documents through the admin API."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any
from urllib import request
from urllib.error import HTTPError, URLError


def _load_devices(path: Path) -> list[dict[str, Any]]:
    raw = path.read_text(encoding="utf-8").strip()
    if not raw:
        raise ValueError(f"empty device file: {path}")

    if raw.startswith("["):
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"device file root must be list: {path}")
        rows = data
    else:
        rows = []
        for line in raw.splitlines():
            text = line.strip()
            if not text or text.startswith("#"):
                continue
            rows.append(json.loads(text))

    output: list[dict[str, Any]] = []
    for idx, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            raise ValueError(f"device row #{idx} must be object")
        if not str(row.get("deviceId") or "").strip():
            raise ValueError(f"device row #{idx} is missing deviceId")
        output.append(row)
    if not output:
        raise ValueError(f"device file has no devices: {path}")
    return output


def _request_json(
    url: str,
    *,
    method: str,
    payload: dict[str, Any] | None,
    auth_token: str,
    timeout_seconds: float,
) -> tuple[int, dict[str, Any]]:
    body = None
    if payload is not None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    req = request.Request(url, data=body, method=method)
    req.add_header("Content-Type", "application/json")
    if auth_token:
        req.add_header("Authorization", f"Bearer {auth_token}")
    try:
        with request.urlopen(req, timeout=timeout_seconds) as resp:
            data = json.loads(resp.read().decode("utf-8"))
            return int(resp.status), data if isinstance(data, dict) else {"value": data}
    except HTTPError as exc:
        text = exc.read().decode("utf-8", errors="ignore")
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = {"success": False, "error": text}
        return int(exc.code), data if isinstance(data, dict) else {"value": data}


def _main() -> int:
    parser = argparse.ArgumentParser(description="Seed smart home devices into the admin API")
    parser.add_argument("--base-url", default="http://127.0.0.1:3000", help="Server base URL")
    parser.add_argument("--user", required=True, help="User id to seed")
    parser.add_argument("--devices", required=True, help="Device file (.json list or .jsonl)")
    parser.add_argument("--access-token", default="123access", help="fakeAccessToken stored on the user")
    parser.add_argument("--homegraph", action="store_true", help="Enable homegraph for the user")
    parser.add_argument("--auth-token", default="", help="Admin API bearer token")
    parser.add_argument("--request-timeout", type=float, default=8.0, help="HTTP timeout seconds")
    args = parser.parse_args()

    devices_path = Path(args.devices).expanduser().resolve()
    devices = _load_devices(devices_path)
    base_url = str(args.base_url).rstrip("/")
    user_url = f"{base_url}/v1/users/{args.user}"

    def call(url: str, payload: dict[str, Any]) -> bool:
        try:
            status, data = _request_json(
                url,
                method="POST",
                payload=payload,
                auth_token=str(args.auth_token),
                timeout_seconds=float(args.request_timeout),
            )
        except URLError as exc:
            print(f"request failed: {url}: {exc}", file=sys.stderr)
            return False
        ok = status == 200 and bool(data.get("success"))
        if not ok:
            print(f"request failed: {url} status={status} body={data}", file=sys.stderr)
        return ok

    print(f"devices: {devices_path}")
    user_doc = {"fakeAccessToken": str(args.access_token), "homegraph": bool(args.homegraph)}
    if not call(user_url, user_doc):
        return 1
    print(f"user {args.user} homegraph={'on' if args.homegraph else 'off'}")

    for idx, device in enumerate(devices, start=1):
        if not call(f"{user_url}/devices", device):
            return 1
        print(f"[{idx}/{len(devices)}] deviceId={device.get('deviceId')} type={device.get('type', '')}")

    print("seed completed")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
