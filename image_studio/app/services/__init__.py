from .unit_of_work import UnitOfWork
from .image_provider import ImageProvider, ProviderError, ProviderErrorCategory
from .object_storage import ObjectStorage, StorageError
from .retry_policy import RetryPolicy
from .rate_limiter import RateLimiter, InMemoryRateLimiter, rate_limit_key
from .status_tracker import StatusTracker, TrackedStatus
from .admission_queue import AdmissionQueue, QueueSlot, QueueStats, SlotRegistry, InMemorySlotRegistry

__all__ = [
    "UnitOfWork",
    "ImageProvider",
    "ProviderError",
    "ProviderErrorCategory",
    "ObjectStorage",
    "StorageError",
    "RetryPolicy",
    "RateLimiter",
    "InMemoryRateLimiter",
    "rate_limit_key",
    "StatusTracker",
    "TrackedStatus",
    "AdmissionQueue",
    "QueueSlot",
    "QueueStats",
    "SlotRegistry",
    "InMemorySlotRegistry",
]
