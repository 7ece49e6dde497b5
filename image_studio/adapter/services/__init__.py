from .unit_of_work import SqlAlchemyUnitOfWork
from .image_provider import HttpImageProvider, MockImageProvider, create_image_provider
from .object_storage import LocalObjectStorage
from .redis_rate_limiter import RedisRateLimiter
from .redis_slot_registry import RedisSlotRegistry

__all__ = [
    "SqlAlchemyUnitOfWork",
    "HttpImageProvider",
    "MockImageProvider",
    "create_image_provider",
    "LocalObjectStorage",
    "RedisRateLimiter",
    "RedisSlotRegistry",
]
