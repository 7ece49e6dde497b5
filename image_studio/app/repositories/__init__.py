from .user_account_repository import UserAccountRepository
from .usage_entry_repository import UsageEntryRepository
from .generation_repository import GenerationRepository

__all__ = [
    "UserAccountRepository",
    "UsageEntryRepository",
    "GenerationRepository",
]
