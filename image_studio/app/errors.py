"""Error codes returned by use cases and services"""


class ErrorCode:
    INSUFFICIENT_TOKENS = "INSUFFICIENT_TOKENS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    QUEUE_FULL = "QUEUE_FULL"
    ALREADY_QUEUED = "ALREADY_QUEUED"
    GENERATION_NOT_FOUND = "GENERATION_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    DEBIT_FAILED = "DEBIT_FAILED"
    CREDIT_FAILED = "CREDIT_FAILED"
    CREATE_GENERATION_FAILED = "CREATE_GENERATION_FAILED"
    TRANSITION_FAILED = "TRANSITION_FAILED"
    SWEEP_FAILED = "SWEEP_FAILED"
    RECONCILIATION_FAILED = "RECONCILIATION_FAILED"
