from datetime import datetime, timezone
from uuid import uuid4
from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.types import TypeDecorator
from sqlmodel import SQLModel

# SQLite only auto-increments INTEGER primary keys
BigIntegerPK = BigInteger().with_variant(Integer, "sqlite")


def generate_uuid() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp, the convention for every stored datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive value; convert an aware one."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    TIMESTAMP WITH TIME ZONE that always round-trips aware UTC values

    SQLite has no timezone storage and hands back naive values; those are
    read as UTC so every backend yields the same aware datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)


class BaseModel(SQLModel):
    pass
