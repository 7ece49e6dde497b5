from .user_account_repository import SqlAlchemyUserAccountRepository
from .usage_entry_repository import SqlAlchemyUsageEntryRepository
from .generation_repository import SqlAlchemyGenerationRepository

__all__ = [
    "SqlAlchemyUserAccountRepository",
    "SqlAlchemyUsageEntryRepository",
    "SqlAlchemyGenerationRepository",
]
