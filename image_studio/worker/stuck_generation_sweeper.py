"""Stuck Generation Sweeper Background Worker

Periodically fails and refunds generations that stopped progressing, so no
reservation is held indefinitely after a crash or a lost job. Runs inside
the API process (where it can skip jobs this process is still running) or
as a standalone script.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.orm import sessionmaker

from config import ApplicationConfig
from image_studio.adapter.repositories import SqlAlchemyGenerationRepository
from image_studio.app.services.admission_queue import AdmissionQueue
from image_studio.app.services.status_tracker import StatusTracker
from image_studio.app.use_cases.generation import SweepStuckGenerations
from image_studio.app.use_cases.generation.dtos import SweepResultDTO
from image_studio.depends import build_engine, build_session_factory, build_state_machine

logger = logging.getLogger(__name__)


class StuckGenerationSweeper:
    """
    Background worker for the stuck-job sweep

    Usage:
        # Run once
        worker = StuckGenerationSweeper()
        result = await worker.run_once()

        # Run continuously
        await worker.run_forever(interval_seconds=60)
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        queue: Optional[AdmissionQueue] = None,
        status_tracker: Optional[StatusTracker] = None,
        timeout_seconds: Optional[int] = None,
        db_uri: Optional[str] = None,
    ):
        """
        Args:
            session_factory: Shared session factory; when omitted the worker
                owns an engine built from db_uri
            queue: Admission queue of this process, used to skip live jobs
            status_tracker: Tracker to update and prune
            timeout_seconds: Inactivity after which a generation is stuck
        """
        self.engine = None
        if session_factory is None:
            self.engine = build_engine(db_uri or ApplicationConfig.DB_URI)
            session_factory = build_session_factory(self.engine)
        self.async_session_factory = session_factory
        self.queue = queue
        self.status_tracker = status_tracker
        self.timeout_seconds = timeout_seconds or ApplicationConfig.STUCK_GENERATION_TIMEOUT_SECONDS

        logger.info(f"StuckGenerationSweeper initialized (timeout={self.timeout_seconds}s)")

    async def run_once(self) -> SweepResultDTO:
        async with self.async_session_factory() as session:
            use_case = SweepStuckGenerations(
                SqlAlchemyGenerationRepository(session),
                build_state_machine(session, self.status_tracker),
                queue=self.queue,
                timeout_seconds=self.timeout_seconds,
            )
            result = await use_case.execute()

        if result.is_err():
            logger.error(f"Sweep failed: {result.error.message}")
            raise RuntimeError(f"Sweep failed: {result.error.message}")

        if self.status_tracker is not None:
            evicted = self.status_tracker.cleanup(self.timeout_seconds)
            if evicted:
                logger.info(f"Evicted {evicted} stale entries from the status tracker")

        return result.value

    async def run_forever(self, interval_seconds: int = 60):
        logger.info(f"Starting stuck generation sweep with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                if result.failed_count:
                    logger.warning(
                        f"Sweep cycle failed {result.failed_count} stuck generation(s) "
                        f"in {result.execution_time_ms}ms"
                    )
            except Exception as e:
                logger.error(f"Sweep cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("StuckGenerationSweeper shutdown complete")


async def main():
    """
    Entry point for running the sweeper as a standalone script

    Usage:
        python -m image_studio.worker.stuck_generation_sweeper --once
        python -m image_studio.worker.stuck_generation_sweeper --interval 60
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Stuck Generation Sweeper")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.STUCK_SWEEP_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    parser.add_argument(
        "--timeout", type=int, default=ApplicationConfig.STUCK_GENERATION_TIMEOUT_SECONDS,
        help="Seconds without progress before a generation is failed"
    )
    args = parser.parse_args()

    worker = StuckGenerationSweeper(timeout_seconds=args.timeout)

    try:
        if args.once:
            result = await worker.run_once()
            print("Sweep complete:")
            print(f"  Checked: {result.total_checked}")
            print(f"  Failed and refunded: {result.failed_count}")
            print(f"  Skipped: {result.skipped_count}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
