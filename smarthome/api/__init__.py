"""HTTP surface: fulfillment adapter, admin API and request security."""

from smarthome.api.auth import UserTokenResolver, extract_access_token
from smarthome.api.data_store import SmartHomeDataStore
from smarthome.api.fulfillment import SmartHomeFulfillment, error_result
from smarthome.api.server import SmartHomeServer

__all__ = [
    "SmartHomeDataStore",
    "SmartHomeFulfillment",
    "SmartHomeServer",
    "UserTokenResolver",
    "error_result",
    "extract_access_token",
]
