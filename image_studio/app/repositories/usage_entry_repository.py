"""Usage Entry Repository Interface

Defines the contract for the append-only usage ledger.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from image_studio.domain.usage_entry import UsageAction, UsageLedgerEntry


class UsageEntryRepository(ABC):

    @abstractmethod
    async def create(self, entry: UsageLedgerEntry) -> UsageLedgerEntry:
        """
        Append a ledger entry

        Raises:
            IntegrityError: If idempotency_key already exists
        """
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[UsageLedgerEntry]:
        pass

    @abstractmethod
    async def list_by_user(
        self,
        user_id: str,
        limit: int = 50,
        action: Optional[UsageAction] = None,
    ) -> List[UsageLedgerEntry]:
        """
        Most recent entries first
        """
        pass

    @abstractmethod
    async def list_by_generation(self, generation_id: str) -> List[UsageLedgerEntry]:
        """
        Entries of one generation in insertion order
        """
        pass

    @abstractmethod
    async def get_sum_by_user(self, user_id: str) -> int:
        """
        Sum of all signed amounts for a user (0 when none)
        """
        pass
