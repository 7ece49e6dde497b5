"""Generation State Machine

Owns the lifecycle of a generation record. Every status change is a
compare-and-swap on the recorded status, and every ledger effect of a
transition is written in the same database transaction as the swap.

    pending -> processing -> uploading -> completed
    pending | processing | uploading -> failed
    pending | processing -> cancelled

A caller that loses a swap gets INVALID_TRANSITION. That rejection is
final: another actor already moved the generation.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.services.unit_of_work import UnitOfWork
from image_studio.app.services.status_tracker import StatusTracker
from image_studio.app.repositories.generation_repository import GenerationRepository
from image_studio.app.use_cases.tokens.token_ledger import TokenLedger
from image_studio.domain.base import as_utc, utcnow
from image_studio.domain.generation import (
    Generation,
    GenerationStatus,
    predecessors_of,
)
from image_studio.domain.usage_entry import UsageAction

logger = logging.getLogger(__name__)

ADVANCE_TARGETS = frozenset({GenerationStatus.PROCESSING, GenerationStatus.UPLOADING})


def _elapsed_ms(since: datetime, now: datetime) -> int:
    return max(0, int((as_utc(now) - as_utc(since)).total_seconds() * 1000))


class GenerationStateMachine:
    """
    Generation lifecycle operations

    Business Rules:
    1. create: debit and insert commit together, or neither persists
    2. complete: only from processing or uploading; charges nothing more
       (tokens were reserved at creation); already completed is a no-op
    3. fail: from any non-terminal state; refunds the reservation
    4. cancel: owner only, from pending or processing; refunds the
       reservation; already cancelled is a no-op
    5. retry: owner only, from failed; creates a NEW row with
       retry_count + 1 and leaves the failed row untouched
    """

    def __init__(
        self,
        uow: UnitOfWork,
        generation_repo: GenerationRepository,
        token_ledger: TokenLedger,
        status_tracker: Optional[StatusTracker] = None,
    ):
        self.uow = uow
        self.generation_repo = generation_repo
        self.token_ledger = token_ledger
        self.status_tracker = status_tracker

    async def get(self, generation_id: str) -> Result[Generation]:
        generation = await self.generation_repo.get_by_id(generation_id)
        if not generation:
            return self._not_found(generation_id)
        return Return.ok(generation)

    async def create(
        self,
        user_id: str,
        prompt: str,
        parameters: Dict[str, Any],
        cost: int,
        retry_count: int = 0,
        retried_from_id: Optional[str] = None,
        input_images: Optional[List[str]] = None,
    ) -> Result[Generation]:
        """
        Reserve `cost` tokens and insert the generation in `pending`

        Returns:
            Result[Generation]: Created generation, or the ledger error
            (INSUFFICIENT_TOKENS, USER_NOT_FOUND) with nothing persisted
        """
        generation = Generation(
            user_id=user_id,
            prompt=prompt,
            parameters=parameters,
            input_images=input_images or [],
            tokens_reserved=cost,
            retry_count=retry_count,
            retried_from_id=retried_from_id,
        )

        debit_result = await self.token_ledger.debit(
            user_id,
            cost,
            generation_id=generation.id,
            reason="Generation started",
            commit=False,
        )
        if debit_result.is_err():
            await self.uow.rollback()
            return Return.err(debit_result.error)

        try:
            created = await self.generation_repo.create(generation)
            await self.uow.commit()
        except Exception as e:
            # The debit shares the transaction, so it is discarded too
            await self.uow.rollback()
            logger.error(f"Failed to create generation for user {user_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.CREATE_GENERATION_FAILED,
                    message="Failed to create generation",
                    reason=str(e),
                )
            )

        logger.info(
            f"Generation {created.id} created for user {user_id} "
            f"(reserved={cost}, retry_count={retry_count})"
        )
        self._track(created)
        return Return.ok(created)

    async def advance(self, generation_id: str, to: GenerationStatus) -> Result[Generation]:
        """
        Move to processing or uploading. No ledger effect.
        """
        if to not in ADVANCE_TARGETS:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"Cannot advance to '{to.value}'",
                    reason="advance only targets processing or uploading",
                )
            )

        values: Dict[str, Any] = {}
        if to == GenerationStatus.PROCESSING:
            values["started_at"] = utcnow()

        try:
            updated = await self.generation_repo.transition(
                generation_id, predecessors_of(to), to, values
            )
            if updated is None:
                return await self._lost_race(generation_id, to)
            await self.uow.commit()
        except Exception as e:
            return await self._transition_failed(generation_id, to, e)

        logger.info(f"Generation {generation_id} advanced to {to.value}")
        self._track(updated)
        return Return.ok(updated)

    async def record_attempt(self, generation_id: str, attempt: int) -> bool:
        """
        Count a provider attempt. False means the generation left
        `processing` and no further attempt may be made.
        """
        recorded = await self.generation_repo.increment_attempts(generation_id)
        if not recorded:
            await self.uow.rollback()
            return False
        await self.uow.commit()
        if self.status_tracker:
            self.status_tracker.update(generation_id, attempt=attempt)
        return True

    async def complete(self, generation_id: str, result_refs: List[str]) -> Result[Generation]:
        """
        Finalize a successful generation

        From processing the record walks through uploading in the same
        transaction. Completing an already completed generation returns it
        unchanged, so duplicate provider callbacks never charge twice.
        """
        generation = await self.generation_repo.get_by_id(generation_id)
        if not generation:
            return self._not_found(generation_id)
        if generation.status == GenerationStatus.COMPLETED:
            logger.info(f"Generation {generation_id} already completed, ignoring")
            return Return.ok(generation)

        user_id = generation.user_id
        tokens_reserved = generation.tokens_reserved
        created_at = generation.created_at

        try:
            if generation.status == GenerationStatus.PROCESSING:
                stepped = await self.generation_repo.transition(
                    generation_id,
                    [GenerationStatus.PROCESSING],
                    GenerationStatus.UPLOADING,
                )
                if stepped is None:
                    return await self._lost_race(generation_id, GenerationStatus.COMPLETED)

            now = utcnow()
            updated = await self.generation_repo.transition(
                generation_id,
                predecessors_of(GenerationStatus.COMPLETED),
                GenerationStatus.COMPLETED,
                {
                    "tokens_used": tokens_reserved,
                    "result_refs": list(result_refs),
                    "error": None,
                    "completed_at": now,
                    "processing_time_ms": _elapsed_ms(created_at, now),
                },
            )
            if updated is None:
                return await self._lost_race(generation_id, GenerationStatus.COMPLETED)

            await self.token_ledger.record(
                user_id,
                UsageAction.COMPLETED,
                generation_id,
                reason="Generation completed",
            )
            await self.uow.commit()
        except Exception as e:
            return await self._transition_failed(generation_id, GenerationStatus.COMPLETED, e)

        logger.info(
            f"Generation {generation_id} completed with {len(result_refs)} result(s) "
            f"(charged={tokens_reserved})"
        )
        self._track(updated)
        return Return.ok(updated)

    async def fail(self, generation_id: str, error: str) -> Result[Generation]:
        """
        Terminal failure with a refund of the reserved tokens
        """
        return await self._terminate(
            generation_id,
            GenerationStatus.FAILED,
            UsageAction.FAILED,
            error=error,
            reason="Generation failed - refund",
        )

    async def cancel(self, generation_id: str, requester_id: str) -> Result[Generation]:
        """
        Owner cancellation with a refund of the reserved tokens

        Returns:
            Result[Generation]: Cancelled generation, or UNAUTHORIZED,
            GENERATION_NOT_FOUND, INVALID_TRANSITION
        """
        generation = await self.generation_repo.get_by_id(generation_id)
        if not generation:
            return self._not_found(generation_id)
        if generation.user_id != requester_id:
            return self._unauthorized(generation_id, requester_id)
        if generation.status == GenerationStatus.CANCELLED:
            return Return.ok(generation)

        return await self._terminate(
            generation_id,
            GenerationStatus.CANCELLED,
            UsageAction.CANCELLED,
            error=None,
            reason="Generation cancelled - refund",
            generation=generation,
        )

    async def retry(self, generation_id: str, requester_id: str) -> Result[Generation]:
        """
        Create a new generation from a failed one

        The new row reserves the original cost again and carries
        retry_count + 1; the failed row is left as history.
        """
        original = await self.generation_repo.get_by_id(generation_id)
        if not original:
            return self._not_found(generation_id)
        if original.user_id != requester_id:
            return self._unauthorized(generation_id, requester_id)
        if original.status != GenerationStatus.FAILED:
            return Return.err(
                Error(
                    code=ErrorCode.INVALID_TRANSITION,
                    message=f"Only failed generations can be retried (status is '{original.status.value}')",
                    reason=f"generation_id={generation_id}",
                )
            )

        validation = await self.token_ledger.validate(original.user_id, original.tokens_reserved)
        if validation.is_err():
            return Return.err(validation.error)
        if not validation.value.sufficient:
            return Return.err(
                Error(
                    code=ErrorCode.INSUFFICIENT_TOKENS,
                    message=(
                        f"Insufficient tokens. Required: {original.tokens_reserved}, "
                        f"Available: {validation.value.balance}"
                    ),
                    reason=f"shortfall={validation.value.shortfall}",
                )
            )

        return await self.create(
            original.user_id,
            original.prompt,
            dict(original.parameters or {}),
            original.tokens_reserved,
            retry_count=original.retry_count + 1,
            retried_from_id=original.id,
            input_images=list(original.input_images or []),
        )

    async def _terminate(
        self,
        generation_id: str,
        target: GenerationStatus,
        action: UsageAction,
        error: Optional[str],
        reason: str,
        generation: Optional[Generation] = None,
    ) -> Result[Generation]:
        if generation is None:
            generation = await self.generation_repo.get_by_id(generation_id)
            if not generation:
                return self._not_found(generation_id)

        allowed = predecessors_of(target)
        if generation.status not in allowed:
            return self._invalid_transition(generation_id, generation.status, target)

        user_id = generation.user_id
        tokens_reserved = generation.tokens_reserved
        created_at = generation.created_at

        try:
            now = utcnow()
            updated = await self.generation_repo.transition(
                generation_id,
                allowed,
                target,
                {
                    "tokens_used": 0,
                    "error": error,
                    "completed_at": now,
                    "processing_time_ms": _elapsed_ms(created_at, now),
                },
            )
            if updated is None:
                return await self._lost_race(generation_id, target)

            if tokens_reserved > 0:
                refund = await self.token_ledger.credit(
                    user_id,
                    tokens_reserved,
                    generation_id=generation_id,
                    reason=reason,
                    action=action,
                    commit=False,
                )
                if refund.is_err():
                    await self.uow.rollback()
                    return Return.err(refund.error)

            await self.uow.commit()
        except Exception as e:
            return await self._transition_failed(generation_id, target, e)

        logger.info(
            f"Generation {generation_id} {target.value}, refunded {tokens_reserved} tokens to {user_id}"
        )
        self._track(updated)
        return Return.ok(updated)

    async def _lost_race(self, generation_id: str, target: GenerationStatus) -> Result:
        await self.uow.rollback()
        current = await self.generation_repo.get_by_id(generation_id)
        if not current:
            return self._not_found(generation_id)
        if target == GenerationStatus.COMPLETED and current.status == GenerationStatus.COMPLETED:
            return Return.ok(current)
        logger.info(
            f"Generation {generation_id} is '{current.status.value}', "
            f"rejecting transition to '{target.value}'"
        )
        return self._invalid_transition(generation_id, current.status, target)

    async def _transition_failed(
        self, generation_id: str, target: GenerationStatus, exc: Exception
    ) -> Result:
        await self.uow.rollback()
        logger.error(f"Transition of generation {generation_id} to {target.value} failed: {exc}")
        return Return.err(
            Error(
                code=ErrorCode.TRANSITION_FAILED,
                message=f"Failed to move generation to '{target.value}'",
                reason=str(exc),
            )
        )

    def _track(self, generation: Generation) -> None:
        if self.status_tracker is None:
            return
        self.status_tracker.update(
            generation.id,
            status=generation.status,
            user_id=generation.user_id,
            error=generation.error,
            result_refs=list(generation.result_refs or []),
        )

    @staticmethod
    def _invalid_transition(
        generation_id: str, current: GenerationStatus, target: GenerationStatus
    ) -> Result:
        return Return.err(
            Error(
                code=ErrorCode.INVALID_TRANSITION,
                message=f"Cannot move generation from '{current.value}' to '{target.value}'",
                reason=f"generation_id={generation_id}",
            )
        )

    @staticmethod
    def _not_found(generation_id: str) -> Result:
        return Return.err(
            Error(
                code=ErrorCode.GENERATION_NOT_FOUND,
                message=f"Generation {generation_id} not found",
            )
        )

    @staticmethod
    def _unauthorized(generation_id: str, requester_id: str) -> Result:
        return Return.err(
            Error(
                code=ErrorCode.UNAUTHORIZED,
                message="You do not own this generation",
                reason=f"generation_id={generation_id}, requester={requester_id}",
            )
        )
