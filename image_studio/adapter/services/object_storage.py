"""Object Storage Implementations"""

import logging
import os
import uuid
import aiofiles
from image_studio.app.services.object_storage import ObjectStorage, StorageError

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}


class LocalObjectStorage(ObjectStorage):
    """
    Stores files in a local directory

    References are `{base_url}/{filename}`; serving the directory under
    base_url is left to the deployment.
    """

    def __init__(self, directory: str, base_url: str = "/media"):
        self.directory = directory
        self.base_url = base_url.rstrip("/")

    async def store(self, data: bytes, content_type: str = "image/png") -> str:
        if not data:
            raise StorageError("Refusing to store an empty file")

        filename = f"{uuid.uuid4().hex}{EXTENSIONS.get(content_type, '.bin')}"
        path = os.path.join(self.directory, filename)

        try:
            os.makedirs(self.directory, exist_ok=True)
            async with aiofiles.open(path, "wb") as handle:
                await handle.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

        logger.info(f"Stored {len(data)} bytes as {filename}")
        return f"{self.base_url}/{filename}"
