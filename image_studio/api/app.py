"""FastAPI application factory"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel

from image_studio.api.error import ClientError
from image_studio.api.routes import generations, health, queue, tokens, webhooks
from image_studio.app.errors import ErrorCode
from image_studio.depends import Services, build_services
from image_studio.worker import (
    BalanceReconcilerWorker,
    PendingGenerationDispatcher,
    StuckGenerationSweeper,
)

logger = logging.getLogger(__name__)


def _init_sentry(config) -> None:
    import sentry_sdk

    sentry_sdk.init(
        dsn=config.DSN_SENTRY,
        environment=config.SENTRY_ENVIRONMENT,
        traces_sample_rate=0.1,
    )
    logger.info("Sentry initialized")


def _start_workers(config, services: Services) -> List[asyncio.Task]:
    tasks = []

    if config.STUCK_SWEEP_ENABLED:
        sweeper = StuckGenerationSweeper(
            session_factory=services.session_factory,
            queue=services.queue,
            status_tracker=services.status_tracker,
            timeout_seconds=config.STUCK_GENERATION_TIMEOUT_SECONDS,
        )
        tasks.append(asyncio.create_task(
            sweeper.run_forever(config.STUCK_SWEEP_INTERVAL_SECONDS), name="stuck-sweeper"
        ))

    dispatcher = PendingGenerationDispatcher(
        services.session_factory,
        services.queue,
        services.processor,
        batch_size=config.PENDING_DISPATCH_BATCH_SIZE,
    )
    tasks.append(asyncio.create_task(
        dispatcher.run_forever(config.PENDING_DISPATCH_INTERVAL_SECONDS), name="pending-dispatcher"
    ))

    if config.RECONCILIATION_ENABLED:
        reconciler = BalanceReconcilerWorker(session_factory=services.session_factory)
        tasks.append(asyncio.create_task(
            reconciler.run_forever(config.RECONCILIATION_INTERVAL_SECONDS), name="balance-reconciler"
        ))

    return tasks


def create_app(config, services: Optional[Services] = None) -> FastAPI:
    """
    Build the application

    Args:
        config: ApplicationConfig (or any object with the same attributes)
        services: Pre-built collaborators. When omitted they are built from
            config at startup, tables are created and background workers run.
    """
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if config.ENABLE_SENTRY and config.DSN_SENTRY:
        _init_sentry(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, "services", None) is None
        if owned:
            app.state.services = build_services(config)
            async with app.state.services.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

        current: Services = app.state.services
        await current.queue.start()
        workers = _start_workers(config, current) if owned else []

        try:
            yield
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            if owned:
                await current.close()
            else:
                await current.queue.shutdown()

    app = FastAPI(
        title="Image Studio",
        description="Token-metered asynchronous image generation",
        version="1.0.0",
        lifespan=lifespan,
    )

    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ClientError)
    async def client_error_handler(request: Request, exc: ClientError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.error.code, "message": exc.error.message}},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request parameters")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": ErrorCode.VALIDATION_ERROR,
                    "message": f"{location}: {message}" if location else message,
                }
            },
        )

    prefix = config.API_PREFIX or ""
    app.include_router(health.router)
    app.include_router(generations.router, prefix=prefix)
    app.include_router(tokens.router, prefix=prefix)
    app.include_router(queue.router, prefix=prefix)
    app.include_router(webhooks.router, prefix=prefix)

    return app
