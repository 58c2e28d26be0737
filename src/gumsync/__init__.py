"""gumsync: polling, conditional fetch and optimistic query cache for Gumboard."""

from gumsync.client import SyncClient, open_sync_client
from gumsync.config import Settings
from gumsync.errors import DecodeError, ErrorCode, GumsyncError, HttpError, NetworkError
from gumsync.models.cache import CacheEntry, ResourceKey

__all__ = [
    "CacheEntry",
    "DecodeError",
    "ErrorCode",
    "GumsyncError",
    "HttpError",
    "NetworkError",
    "ResourceKey",
    "Settings",
    "SyncClient",
    "open_sync_client",
]
