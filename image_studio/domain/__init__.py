from .base import BaseModel, generate_uuid, utcnow
from .user_account import UserAccount
from .usage_entry import UsageLedgerEntry, UsageAction, REFUND_ACTIONS
from .generation import (
    Generation,
    GenerationStatus,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    can_transition,
    predecessors_of,
)

__all__ = [
    "BaseModel",
    "generate_uuid",
    "utcnow",
    "UserAccount",
    "UsageLedgerEntry",
    "UsageAction",
    "REFUND_ACTIONS",
    "Generation",
    "GenerationStatus",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "can_transition",
    "predecessors_of",
]
