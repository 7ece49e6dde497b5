"""Generation lifecycle use cases"""
from .state_machine import GenerationStateMachine
from .estimate_cost import EstimateGenerationCost, MODEL_CATALOG, calculate_token_cost
from .process_generation import ProcessGeneration
from .create_generation import CreateGeneration
from .cancel_generation import CancelGeneration
from .retry_generation import RetryGeneration
from .get_generation import GetGeneration
from .get_generation_status import GetGenerationStatus
from .list_generations import ListGenerations
from .get_queue_stats import GetQueueStats
from .get_generation_analytics import GetGenerationAnalytics
from .handle_provider_callback import HandleProviderCallback
from .sweep_stuck_generations import SweepStuckGenerations
from .dispatch_pending_generations import DispatchPendingGenerations

__all__ = [
    "GenerationStateMachine",
    "EstimateGenerationCost",
    "MODEL_CATALOG",
    "calculate_token_cost",
    "ProcessGeneration",
    "CreateGeneration",
    "CancelGeneration",
    "RetryGeneration",
    "GetGeneration",
    "GetGenerationStatus",
    "ListGenerations",
    "GetQueueStats",
    "GetGenerationAnalytics",
    "HandleProviderCallback",
    "SweepStuckGenerations",
    "DispatchPendingGenerations",
]
