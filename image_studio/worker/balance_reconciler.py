"""Balance Reconciliation Background Worker

Periodically compares token balances against the usage ledger.
Can be run as a standalone script or inside the API process.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.orm import sessionmaker

from config import ApplicationConfig
from image_studio.adapter.repositories import (
    SqlAlchemyUsageEntryRepository,
    SqlAlchemyUserAccountRepository,
)
from image_studio.app.use_cases.tokens import ReconcileBalances, ReconciliationResultDTO
from image_studio.depends import build_engine, build_session_factory
from image_studio.domain.base import utcnow

logger = logging.getLogger(__name__)


class BalanceReconcilerWorker:
    """
    Background worker for balance reconciliation

    Features:
    - Compares each balance with the sum of its ledger entries
    - Logs discrepancies for investigation, never corrects them
    - Can run once or continuously (default: daily)
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        db_uri: Optional[str] = None,
    ):
        self.engine = None
        if session_factory is None:
            self.engine = build_engine(db_uri or ApplicationConfig.DB_URI)
            session_factory = build_session_factory(self.engine)
        self.async_session_factory = session_factory

        logger.info("BalanceReconcilerWorker initialized")

    async def run_once(self) -> ReconciliationResultDTO:
        if not ApplicationConfig.RECONCILIATION_ENABLED:
            logger.info("Balance reconciliation is disabled, skipping")
            return ReconciliationResultDTO(
                total_accounts_checked=0,
                discrepancies_found=0,
                discrepancies=[],
                reconciliation_time=utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = ReconcileBalances(
                SqlAlchemyUserAccountRepository(session),
                SqlAlchemyUsageEntryRepository(session),
            )
            result = await use_case.execute()

        if result.is_err():
            logger.error(f"Reconciliation failed: {result.error.message}")
            raise RuntimeError(f"Reconciliation failed: {result.error.message}")

        response = result.value
        if response.discrepancies_found > 0:
            logger.error(f"ALERT: {response.discrepancies_found} balance discrepancies found!")
            for d in response.discrepancies:
                logger.error(
                    f"  - User {d.user_id}: expected={d.calculated_balance}, "
                    f"actual={d.account_balance}, diff={d.discrepancy}"
                )

        return response

    async def run_forever(self, interval_seconds: int = 86400):
        logger.info(f"Starting continuous balance reconciliation with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Reconciliation cycle complete. "
                    f"Checked {result.total_accounts_checked} accounts, "
                    f"found {result.discrepancies_found} discrepancies "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("BalanceReconcilerWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m image_studio.worker.balance_reconciler --once
        python -m image_studio.worker.balance_reconciler --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Balance Reconciliation Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds (default: 86400 = 24 hours)"
    )
    args = parser.parse_args()

    worker = BalanceReconcilerWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Reconciliation complete:")
            print(f"  Total accounts checked: {result.total_accounts_checked}")
            print(f"  Discrepancies found: {result.discrepancies_found}")
            print(f"  Execution time: {result.execution_time_ms}ms")
            for d in result.discrepancies:
                print(
                    f"  - User {d.user_id}: expected={d.calculated_balance}, "
                    f"actual={d.account_balance}, diff={d.discrepancy}"
                )
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
