"""ReconcileBalances Use Case

Compares every account balance with the sum of its usage ledger entries.
"""

import logging
import time
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.repositories.user_account_repository import UserAccountRepository
from image_studio.app.repositories.usage_entry_repository import UsageEntryRepository
from image_studio.domain.base import utcnow
from .dtos import BalanceDiscrepancyDTO, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class ReconcileBalances:
    """
    Use Case: Reconcile token balances against the usage ledger

    Business Rules:
    1. Expected balance = sum of the user's signed ledger amounts
       (reservations negative; refunds, purchases and grants positive)
    2. Any mismatch is reported and logged
    3. Does NOT modify any data (read-only reconciliation)
    """

    def __init__(
        self,
        account_repo: UserAccountRepository,
        usage_repo: UsageEntryRepository,
    ):
        self.account_repo = account_repo
        self.usage_repo = usage_repo

    async def execute(self) -> Result[ReconciliationResultDTO]:
        start_time = time.time()
        reconciliation_time = utcnow()

        try:
            logger.info("Starting token balance reconciliation")

            accounts = await self.account_repo.get_all()
            discrepancies: list[BalanceDiscrepancyDTO] = []

            for account in accounts:
                ledger_sum = await self.usage_repo.get_sum_by_user(account.id)
                if account.token_balance != ledger_sum:
                    discrepancy = BalanceDiscrepancyDTO(
                        user_id=account.id,
                        account_balance=account.token_balance,
                        calculated_balance=ledger_sum,
                        discrepancy=account.token_balance - ledger_sum,
                    )
                    discrepancies.append(discrepancy)
                    logger.warning(
                        f"Discrepancy found for user {account.id}: "
                        f"account_balance={account.token_balance}, "
                        f"ledger_sum={ledger_sum}, "
                        f"discrepancy={discrepancy.discrepancy}"
                    )

            execution_time_ms = int((time.time() - start_time) * 1000)

            if discrepancies:
                logger.warning(
                    f"Reconciliation complete. Found {len(discrepancies)} discrepancies "
                    f"out of {len(accounts)} accounts in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Reconciliation complete. All {len(accounts)} accounts balanced "
                    f"in {execution_time_ms}ms"
                )

            return Return.ok(
                ReconciliationResultDTO(
                    total_accounts_checked=len(accounts),
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    reconciliation_time=reconciliation_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            logger.error(f"Balance reconciliation failed: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.RECONCILIATION_FAILED,
                    message="Failed to reconcile token balances",
                    reason=str(e),
                )
            )
