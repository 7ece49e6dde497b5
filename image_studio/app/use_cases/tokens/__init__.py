"""Token accounting use cases"""
from .token_ledger import TokenLedger
from .get_token_stats import GetTokenStats
from .add_tokens import PurchaseTokens, GrantTokens
from .list_usage_history import ListUsageHistory
from .provision_account import ProvisionAccount
from .reconcile_balances import ReconcileBalances
from .dtos import (
    TokenValidationDTO,
    TokenStatsDTO,
    AddTokensCommandDTO,
    TokenMovementDTO,
    UsageHistoryResponseDTO,
    BalanceDiscrepancyDTO,
    ReconciliationResultDTO,
)

__all__ = [
    "TokenLedger",
    "GetTokenStats",
    "PurchaseTokens",
    "GrantTokens",
    "ListUsageHistory",
    "ProvisionAccount",
    "ReconcileBalances",
    "TokenValidationDTO",
    "TokenStatsDTO",
    "AddTokensCommandDTO",
    "TokenMovementDTO",
    "UsageHistoryResponseDTO",
    "BalanceDiscrepancyDTO",
    "ReconciliationResultDTO",
]
