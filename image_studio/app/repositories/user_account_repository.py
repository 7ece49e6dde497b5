"""User Account Repository Interface

Defines the contract for token balance persistence. Balance mutations are
single conditional statements so concurrent requests from the same user can
never overdraw the account.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from image_studio.domain.user_account import UserAccount


class UserAccountRepository(ABC):
    """
    Repository interface for UserAccount persistence
    """

    @abstractmethod
    async def get_by_id(self, user_id: str, for_update: bool = False) -> Optional[UserAccount]:
        """
        Retrieve account by user ID

        Args:
            user_id: User identifier
            for_update: If True, lock the row with SELECT FOR UPDATE

        Returns:
            UserAccount if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, account: UserAccount) -> UserAccount:
        """
        Persist a new account

        Args:
            account: UserAccount entity to persist

        Returns:
            Created UserAccount
        """
        pass

    @abstractmethod
    async def debit(self, user_id: str, amount: int) -> Optional[int]:
        """
        Atomically subtract tokens if, and only if, the balance covers them

        The balance check and the write happen in one statement
        (UPDATE ... WHERE token_balance >= amount).

        Args:
            user_id: User identifier
            amount: Tokens to subtract (> 0)

        Returns:
            New balance, or None if the account is missing or the balance
            is insufficient (nothing was written)
        """
        pass

    @abstractmethod
    async def credit(
        self,
        user_id: str,
        amount: int,
        purchased: int = 0,
        granted: int = 0,
        used_delta: int = 0,
    ) -> Optional[int]:
        """
        Atomically add tokens and adjust lifetime counters

        Args:
            user_id: User identifier
            amount: Tokens to add (> 0)
            purchased: Added to total_tokens_purchased
            granted: Added to free_tokens_granted
            used_delta: Added to total_tokens_used (negative for refunds, floored at 0)

        Returns:
            New balance, or None if the account is missing
        """
        pass

    @abstractmethod
    async def get_all(self) -> List[UserAccount]:
        """
        Retrieve all accounts

        Returns:
            List of all UserAccount entities
        """
        pass
