from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional
import redis.asyncio as aioredis
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from image_studio.adapter.repositories import (
    SqlAlchemyGenerationRepository,
    SqlAlchemyUsageEntryRepository,
    SqlAlchemyUserAccountRepository,
)
from image_studio.adapter.services import (
    LocalObjectStorage,
    RedisRateLimiter,
    RedisSlotRegistry,
    SqlAlchemyUnitOfWork,
    create_image_provider,
)
from image_studio.app.services.admission_queue import AdmissionQueue
from image_studio.app.services.image_provider import ImageProvider
from image_studio.app.services.object_storage import ObjectStorage
from image_studio.app.services.rate_limiter import InMemoryRateLimiter, RateLimiter
from image_studio.app.services.retry_policy import RetryPolicy
from image_studio.app.services.status_tracker import StatusTracker
from image_studio.app.use_cases.generation.estimate_cost import EstimateGenerationCost
from image_studio.app.use_cases.generation.process_generation import ProcessGeneration
from image_studio.app.use_cases.generation.state_machine import GenerationStateMachine
from image_studio.app.use_cases.tokens.token_ledger import TokenLedger


def build_engine(db_uri: str) -> AsyncEngine:
    return create_async_engine(db_uri, echo=False, future=True)


def build_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


def build_token_ledger(session: AsyncSession) -> TokenLedger:
    return TokenLedger(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserAccountRepository(session),
        SqlAlchemyUsageEntryRepository(session),
    )


def build_state_machine(
    session: AsyncSession, status_tracker: Optional[StatusTracker] = None
) -> GenerationStateMachine:
    return GenerationStateMachine(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyGenerationRepository(session),
        build_token_ledger(session),
        status_tracker,
    )


@dataclass
class Services:
    """
    Process-wide collaborators, constructed once at startup

    Request handlers and workers receive this object instead of reaching
    for module globals; tests build their own.
    """

    engine: AsyncEngine
    session_factory: sessionmaker
    queue: AdmissionQueue
    rate_limiter: RateLimiter
    status_tracker: StatusTracker
    retry_policy: RetryPolicy
    provider: ImageProvider
    storage: ObjectStorage
    estimator: EstimateGenerationCost
    signup_tokens: int = 0
    webhook_secret: str = ""
    service_api_key: str = ""
    redis: Optional[aioredis.Redis] = None

    @asynccontextmanager
    async def state_machine_scope(self) -> AsyncIterator[GenerationStateMachine]:
        async with self.session_factory() as session:
            yield build_state_machine(session, self.status_tracker)

    @property
    def processor(self) -> ProcessGeneration:
        return ProcessGeneration(
            self.state_machine_scope,
            self.provider,
            self.storage,
            self.retry_policy,
        )

    async def close(self) -> None:
        await self.queue.shutdown()
        if self.redis is not None:
            await self.redis.close()
        await self.engine.dispose()


def build_services(
    config,
    engine: Optional[AsyncEngine] = None,
    provider: Optional[ImageProvider] = None,
    storage: Optional[ObjectStorage] = None,
    rate_limiter: Optional[RateLimiter] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> Services:
    """
    Wire every collaborator from configuration

    Explicit arguments override what the configuration would build.
    """
    engine = engine or build_engine(config.DB_URI)

    redis = None
    if "redis" in (config.QUEUE_BACKEND, config.RATE_LIMIT_BACKEND):
        redis = aioredis.from_url(config.REDIS_URL, encoding="utf-8", decode_responses=True)

    if rate_limiter is None:
        if config.RATE_LIMIT_BACKEND == "redis":
            rate_limiter = RedisRateLimiter(
                redis,
                max_requests=config.RATE_LIMIT_MAX_REQUESTS,
                window_ms=config.RATE_LIMIT_WINDOW_MS,
            )
        else:
            rate_limiter = InMemoryRateLimiter(
                max_requests=config.RATE_LIMIT_MAX_REQUESTS,
                window_ms=config.RATE_LIMIT_WINDOW_MS,
            )

    registry = None
    if config.QUEUE_BACKEND == "redis":
        registry = RedisSlotRegistry(redis, slot_ttl_seconds=config.QUEUE_SLOT_TTL_SECONDS)

    return Services(
        engine=engine,
        session_factory=build_session_factory(engine),
        queue=AdmissionQueue(
            max_concurrent=config.QUEUE_MAX_CONCURRENT,
            average_processing_time_ms=config.QUEUE_AVERAGE_PROCESSING_MS,
            registry=registry,
        ),
        rate_limiter=rate_limiter,
        status_tracker=StatusTracker(freshness_seconds=config.STATUS_TRACKER_FRESHNESS_SECONDS),
        retry_policy=retry_policy or RetryPolicy(
            max_attempts=config.RETRY_MAX_ATTEMPTS,
            base_delay_ms=config.RETRY_BASE_DELAY_MS,
        ),
        provider=provider or create_image_provider(
            config.IMAGE_PROVIDER,
            base_url=config.IMAGE_PROVIDER_URL,
            api_key=config.IMAGE_PROVIDER_API_KEY,
            timeout=config.IMAGE_PROVIDER_TIMEOUT_SECONDS,
        ),
        storage=storage or LocalObjectStorage(config.STORAGE_DIR, config.STORAGE_BASE_URL),
        estimator=EstimateGenerationCost(),
        signup_tokens=config.SIGNUP_FREE_TOKENS,
        webhook_secret=config.WEBHOOK_SECRET,
        service_api_key=config.SERVICE_API_KEY,
        redis=redis,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.services.session_factory() as session:
        yield session
