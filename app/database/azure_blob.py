"""Azure Blob Storage for the inventory mirror and CI workspace uploads."""
import logging
from typing import Optional

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

from app.config import Settings

logger = logging.getLogger(__name__)


class AzureBlobStorage:
    def __init__(self, settings: Settings, container_name: str):
        if not settings.azure_storage_connection_string:
            raise ValueError("AZURE_STORAGE_CONNECTION_STRING must be configured for Azure Blob Storage")
        self.container_name = container_name
        self._client = BlobServiceClient.from_connection_string(settings.azure_storage_connection_string)
        self._container = self._client.get_container_client(container_name)
        try:
            self._container.create_container()
            logger.info("Created blob container %s", container_name)
        except ResourceExistsError:
            pass

    def upload_file(self, file_content: bytes, key: str, content_type: str = "application/json") -> str:
        """Upload blob (overwriting) and return its URL."""
        blob = self._container.get_blob_client(key)
        blob.upload_blob(
            file_content,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
        )
        return blob.url

    def download_file(self, key: str) -> Optional[bytes]:
        """Return blob content, or None when the blob doesn't exist yet."""
        try:
            return self._container.get_blob_client(key).download_blob().readall()
        except ResourceNotFoundError:
            return None
