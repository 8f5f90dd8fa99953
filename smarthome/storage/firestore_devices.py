"""Cloud Firestore gateway backed by the firebase-admin async client."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore_async
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter
from loguru import logger

from smarthome.engine.model import DeviceDocument
from smarthome.errors import DeviceNotFoundError, StoreUnavailableError
from smarthome.storage.base import DeviceStoreGateway

USERS_COLLECTION = "users"
DEVICES_COLLECTION = "devices"
DEFAULT_APP_NAME = "smarthome"


class FirestoreDeviceStore(DeviceStoreGateway):
    """Gateway over ``users/{uid}/devices/{did}`` documents in Firestore.

    Firestore offers strongly consistent single-document reads, so a read that
    follows a write always observes it. Dotted update keys are native field
    paths, which keeps ``update_fields`` to one atomic ``update`` call.
    """

    name = "firestore"

    def __init__(self, client: Any) -> None:
        self._db = client

    @classmethod
    def from_credentials(
        cls,
        credentials_path: str | Path,
        *,
        database_url: str = "",
        app_name: str = DEFAULT_APP_NAME,
    ) -> "FirestoreDeviceStore":
        """Initialize a firebase app from a service-account file."""
        path = Path(credentials_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"service account credentials not found: {path}")
        cred = credentials.Certificate(str(path))
        options = {"databaseURL": database_url} if database_url else None
        try:
            app = firebase_admin.get_app(app_name)
        except ValueError:
            app = firebase_admin.initialize_app(cred, options, name=app_name)
        logger.info(f"Firestore device store ready app={app_name} credentials={path}")
        return cls(firestore_async.client(app))

    def _user_ref(self, user_id: str) -> Any:
        return self._db.collection(USERS_COLLECTION).document(str(user_id))

    def _device_ref(self, user_id: str, device_id: str) -> Any:
        return self._user_ref(user_id).collection(DEVICES_COLLECTION).document(str(device_id))

    @contextlib.contextmanager
    def _translate_errors(self, user_id: str, device_id: str = "") -> Iterator[None]:
        try:
            yield
        except google_exceptions.NotFound as e:
            if device_id:
                raise DeviceNotFoundError(user_id, device_id) from e
            raise StoreUnavailableError(str(e)) from e
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore call failed user={user_id} device={device_id}: {e}")
            raise StoreUnavailableError(str(e)) from e

    async def get_devices(self, user_id: str) -> list[DeviceDocument]:
        output: list[DeviceDocument] = []
        with self._translate_errors(user_id):
            collection = self._user_ref(user_id).collection(DEVICES_COLLECTION)
            async for snapshot in collection.stream():
                output.append(DeviceDocument.from_dict(snapshot.to_dict() or {}, device_id=snapshot.id))
        return output

    async def get_device(self, user_id: str, device_id: str) -> DeviceDocument:
        with self._translate_errors(user_id, device_id):
            snapshot = await self._device_ref(user_id, device_id).get()
        if not snapshot.exists:
            raise DeviceNotFoundError(user_id, device_id)
        return DeviceDocument.from_dict(snapshot.to_dict() or {}, device_id=device_id)

    async def update_fields(self, user_id: str, device_id: str, updates: Mapping[str, Any]) -> None:
        with self._translate_errors(user_id, device_id):
            await self._device_ref(user_id, device_id).update(dict(updates))

    async def set_device(self, user_id: str, device_id: str, data: Mapping[str, Any]) -> None:
        with self._translate_errors(user_id, device_id):
            await self._device_ref(user_id, device_id).set(dict(data))

    async def delete_device(self, user_id: str, device_id: str) -> None:
        with self._translate_errors(user_id, device_id):
            await self._device_ref(user_id, device_id).delete()

    async def get_user_field(self, user_id: str, field: str) -> Any:
        with self._translate_errors(user_id):
            snapshot = await self._user_ref(user_id).get()
        if not snapshot.exists:
            return None
        return (snapshot.to_dict() or {}).get(field)

    async def update_user_field(self, user_id: str, field: str, value: Any) -> None:
        with self._translate_errors(user_id):
            await self._user_ref(user_id).update({field: value})

    async def find_user_ids_by_token(self, access_token: str) -> list[str]:
        query = self._db.collection(USERS_COLLECTION).where(
            filter=FieldFilter("fakeAccessToken", "==", access_token)
        )
        output: list[str] = []
        with self._translate_errors("*"):
            async for snapshot in query.stream():
                output.append(str(snapshot.id))
        return output

    async def set_user(self, user_id: str, data: Mapping[str, Any]) -> None:
        with self._translate_errors(user_id):
            await self._user_ref(user_id).set(dict(data))

    async def close(self) -> None:
        closer = getattr(self._db, "close", None)
        if callable(closer):
            result = closer()
            if hasattr(result, "__await__"):
                await result
