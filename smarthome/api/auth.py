"""Bearer token to user id resolution."""

from __future__ import annotations

from loguru import logger

from smarthome.errors import NoUserError
from smarthome.storage.base import DeviceStoreGateway

DEFAULT_ACCESS_TOKEN = "Bearer 123access"
_BEARER_PREFIX = "bearer "


def extract_access_token(bearer_token: str | None, *, default: str = DEFAULT_ACCESS_TOKEN) -> str:
    """Return the opaque tail of ``Bearer <opaque>``.

    A missing token falls back to ``default``; a value without the scheme is
    taken as the opaque token itself.
    """
    raw = bearer_token if bearer_token is not None else default
    text = str(raw or "").strip()
    if text.lower().startswith(_BEARER_PREFIX):
        return text[len(_BEARER_PREFIX):].strip()
    return text


class UserTokenResolver:
    """Matches the token against ``users.fakeAccessToken``."""

    def __init__(self, store: DeviceStoreGateway, *, default_token: str = DEFAULT_ACCESS_TOKEN) -> None:
        self.store = store
        self.default_token = default_token

    async def resolve_user(self, bearer_token: str | None) -> str:
        access_token = extract_access_token(bearer_token, default=self.default_token)
        if not access_token:
            raise NoUserError("empty access token")
        user_ids = await self.store.find_user_ids_by_token(access_token)
        if not user_ids:
            logger.warning("No user found for access token")
            raise NoUserError("no user matches access token")
        return user_ids[0]
