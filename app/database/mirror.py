"""Remote blob storage selection (inventory mirror + CI workspace uploads)."""
import logging
from typing import Optional

from app.config import Settings

logger = logging.getLogger(__name__)


def build_blob_storage(settings: Settings, area: str):
    """
    Return the configured blob storage for an area ("inventory" or "deployments"),
    or None when no mirror is configured or it cannot be initialized.
    """
    backend = (settings.inventory_mirror or "none").lower()
    if backend == "none":
        return None
    try:
        if backend == "azure":
            from app.database.azure_blob import AzureBlobStorage
            container = settings.inventory_container if area == "inventory" else settings.deployments_container
            return AzureBlobStorage(settings, container)
        if backend == "s3":
            from app.database.s3_storage import S3Storage
            return S3Storage(settings, prefix=area)
    except Exception as e:
        logger.warning(f"Blob storage initialization failed ({str(e)}), continuing without mirror")
        return None
    logger.warning(f"Unknown inventory mirror '{backend}', continuing without mirror")
    return None


class BlobInventoryMirror:
    """Adapts a blob storage to the load/save contract of the inventory store."""

    def __init__(self, storage, blob_name: str):
        self.storage = storage
        self.blob_name = blob_name

    def load(self) -> Optional[bytes]:
        return self.storage.download_file(self.blob_name)

    def save(self, data: bytes) -> None:
        self.storage.upload_file(data, self.blob_name, content_type="application/json")


def build_inventory_mirror(settings: Settings) -> Optional[BlobInventoryMirror]:
    storage = build_blob_storage(settings, "inventory")
    if storage is None:
        return None
    return BlobInventoryMirror(storage, settings.inventory_blob_name)
