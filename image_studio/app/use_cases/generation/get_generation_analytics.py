"""GetGenerationAnalytics Use Case"""

from datetime import timedelta
from typing import Dict, Optional
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.app.repositories.generation_repository import GenerationRepository
from image_studio.domain.base import utcnow
from image_studio.domain.generation import GenerationStatus
from .dtos import GenerationAnalyticsDTO

TIMEFRAMES: Dict[str, Optional[timedelta]] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}


class GetGenerationAnalytics:
    """
    Use Case: Summarize generations created within a timeframe

    Business Rules:
    - Timeframe is one of 24h, 7d, 30d or all (default 7d)
    - by_status lists every status, zero when absent
    - Average processing time covers generations that recorded one
    - Success rate is completed / total as a percentage
    """

    def __init__(self, generation_repo: GenerationRepository):
        self.generation_repo = generation_repo

    async def execute(self, timeframe: str = "7d") -> Result[GenerationAnalyticsDTO]:
        if timeframe not in TIMEFRAMES:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"timeframe must be one of {', '.join(TIMEFRAMES)}",
                    reason=f"timeframe={timeframe}",
                )
            )

        window = TIMEFRAMES[timeframe]
        created_since = utcnow() - window if window is not None else None

        counts = await self.generation_repo.count_by_status(created_since)
        by_model = await self.generation_repo.count_by_model(created_since)
        average = await self.generation_repo.average_processing_time_ms(created_since)

        by_status = {status.value: counts.get(status, 0) for status in GenerationStatus}
        total = sum(by_status.values())
        completed = by_status[GenerationStatus.COMPLETED.value]
        success_rate = round(completed / total * 100, 1) if total else 0.0

        return Return.ok(
            GenerationAnalyticsDTO(
                timeframe=timeframe,
                total=total,
                by_status=by_status,
                by_model=by_model,
                average_processing_time_ms=round(average) if average is not None else None,
                success_rate=success_rate,
            )
        )
