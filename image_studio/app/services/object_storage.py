"""Object Storage Interface

Stores generated images and hands back an opaque reference.
"""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Raised when an upload cannot be completed"""


class ObjectStorage(ABC):

    @abstractmethod
    async def store(self, data: bytes, content_type: str = "image/png") -> str:
        """
        Persist bytes and return a reference (URL or key)

        Raises:
            StorageError: If the upload failed
        """
        pass
