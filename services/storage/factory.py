"""Storage service factory."""
from core.config import Settings
from core.storage_protocols import IStorageService
from services.storage.local_storage import LocalStorageService


class StorageFactory:
    """Factory for creating storage service instances based on configuration."""

    @staticmethod
    def create_storage_service(settings: Settings) -> IStorageService:
        """
        Raises:
            ValueError: If the storage root is not configured
        """
        if not settings.storage_root:
            raise ValueError("STORAGE_ROOT is required")
        return LocalStorageService(storage_root=settings.storage_root)
