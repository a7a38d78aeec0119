"""Storage service implementations for attachment files."""

from services.storage.factory import StorageFactory
from services.storage.local_storage import LocalStorageService

__all__ = ["LocalStorageService", "StorageFactory"]
