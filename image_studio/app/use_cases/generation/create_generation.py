"""CreateGeneration Use Case

Admits a new generation: balance check, rate limit, reservation, queueing.
"""

import logging
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.services.admission_queue import AdmissionQueue, UnitOfWorkFn
from image_studio.app.services.rate_limiter import RateLimiter, rate_limit_key
from image_studio.app.use_cases.tokens.token_ledger import TokenLedger
from .dtos import CreateGenerationCommandDTO, GenerationResponseDTO
from .estimate_cost import EstimateGenerationCost
from .state_machine import GenerationStateMachine

logger = logging.getLogger(__name__)

GENERATE_ACTION = "generate"


class CreateGeneration:
    """
    Use Case: Create and queue a generation

    Business Rules:
    1. Unknown model -> VALIDATION_ERROR, nothing recorded
    2. Queue at capacity -> QUEUE_FULL before anything is charged
    3. Balance below the estimated cost -> INSUFFICIENT_TOKENS, no row,
       and the rate window is left untouched
    4. Sliding-window limit per user -> RATE_LIMIT_EXCEEDED
    5. Reservation and row insert commit together (state machine create)
    6. If the queue fills up between the check and the enqueue, the
       generation stays pending and the pending dispatcher picks it up
    """

    def __init__(
        self,
        state_machine: GenerationStateMachine,
        token_ledger: TokenLedger,
        estimator: EstimateGenerationCost,
        rate_limiter: RateLimiter,
        queue: AdmissionQueue,
        unit_of_work: UnitOfWorkFn,
    ):
        self.state_machine = state_machine
        self.token_ledger = token_ledger
        self.estimator = estimator
        self.rate_limiter = rate_limiter
        self.queue = queue
        self.unit_of_work = unit_of_work

    async def execute(self, command: CreateGenerationCommandDTO) -> Result[GenerationResponseDTO]:
        estimate = await self.estimator.execute(command.parameters)
        if estimate.is_err():
            return Return.err(estimate.error)
        cost = estimate.value.estimated_tokens

        if not await self.queue.has_capacity():
            stats = await self.queue.stats()
            return Return.err(
                Error(
                    code=ErrorCode.QUEUE_FULL,
                    message="Queue is full, please try again later",
                    reason=f"active={stats.active}, estimated_wait_ms={stats.estimated_wait_ms}",
                )
            )

        validation = await self.token_ledger.validate(command.user_id, cost)
        if validation.is_err():
            return Return.err(validation.error)
        if not validation.value.sufficient:
            return Return.err(
                Error(
                    code=ErrorCode.INSUFFICIENT_TOKENS,
                    message=f"Insufficient tokens. Required: {cost}, Available: {validation.value.balance}",
                    reason=f"shortfall={validation.value.shortfall}",
                )
            )

        key = rate_limit_key(command.user_id, GENERATE_ACTION)
        if not await self.rate_limiter.is_allowed(key):
            retry_after = await self.rate_limiter.retry_after(key)
            logger.warning(f"User {command.user_id} hit the generation rate limit")
            return Return.err(
                Error(
                    code=ErrorCode.RATE_LIMIT_EXCEEDED,
                    message=f"Rate limit exceeded. Try again in {retry_after // 1000 + 1} seconds",
                    reason=f"retry_after_ms={retry_after}",
                )
            )

        created = await self.state_machine.create(
            command.user_id,
            command.prompt,
            command.parameters.model_dump(),
            cost,
            input_images=list(command.input_images),
        )
        if created.is_err():
            return Return.err(created.error)
        generation = created.value

        queued = await self.queue.enqueue(generation.id, self.unit_of_work)
        if queued.is_err():
            logger.warning(
                f"Generation {generation.id} left pending: {queued.error.code}"
            )

        return Return.ok(GenerationResponseDTO.from_entity(generation))
