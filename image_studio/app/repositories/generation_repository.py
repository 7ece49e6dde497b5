"""Generation Repository Interface

Defines the contract for generation persistence. Status changes go through
`transition`, a compare-and-swap on the recorded status.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from image_studio.domain.generation import Generation, GenerationStatus


class GenerationRepository(ABC):

    @abstractmethod
    async def create(self, generation: Generation) -> Generation:
        """
        Insert a new generation row

        Args:
            generation: Generation entity to persist

        Returns:
            Created Generation
        """
        pass

    @abstractmethod
    async def get_by_id(self, generation_id: str) -> Optional[Generation]:
        """
        Retrieve generation by ID

        Returns:
            Generation if found, None otherwise
        """
        pass

    @abstractmethod
    async def transition(
        self,
        generation_id: str,
        expected: Iterable[GenerationStatus],
        target: GenerationStatus,
        values: Optional[Dict[str, Any]] = None,
    ) -> Optional[Generation]:
        """
        Compare-and-swap the status of a generation

        The row is updated only if its current status is one of `expected`.
        Exactly one of several concurrent callers can win a given swap.

        Args:
            generation_id: Generation ID
            expected: Statuses the row must currently be in
            target: New status
            values: Extra columns to set together with the status

        Returns:
            The updated Generation if the swap won, None otherwise
        """
        pass

    @abstractmethod
    async def increment_attempts(self, generation_id: str) -> bool:
        """
        Record one more provider attempt on a processing generation

        Returns:
            False when the generation is no longer processing (cancelled,
            failed or swept meanwhile); nothing is written then
        """
        pass

    @abstractmethod
    async def list_by_user(
        self,
        user_id: str,
        status: Optional[GenerationStatus] = None,
        limit: int = 20,
    ) -> List[Generation]:
        """
        Newest first
        """
        pass

    @abstractmethod
    async def list_by_status(
        self,
        statuses: Iterable[GenerationStatus],
        limit: int = 10,
        updated_before: Optional[datetime] = None,
    ) -> List[Generation]:
        """
        Oldest first (FIFO by created_at)

        Args:
            statuses: Statuses to include
            limit: Maximum rows returned
            updated_before: Only rows whose last transition is strictly older than this
        """
        pass

    @abstractmethod
    async def count_by_status(
        self, created_since: Optional[datetime] = None
    ) -> Dict[GenerationStatus, int]:
        """
        Number of generations per status; statuses without rows are absent

        Args:
            created_since: Only rows created at or after this instant (all when None)
        """
        pass

    @abstractmethod
    async def count_by_model(self, created_since: Optional[datetime] = None) -> Dict[str, int]:
        """
        Number of generations per `parameters.model` ("unknown" when unset)
        """
        pass

    @abstractmethod
    async def average_processing_time_ms(
        self, created_since: Optional[datetime] = None
    ) -> Optional[float]:
        """
        Mean processing_time_ms over rows that recorded one; None when none did
        """
        pass
