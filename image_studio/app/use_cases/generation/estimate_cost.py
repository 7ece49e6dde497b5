"""
Estimate Generation Cost Use Case

Computes the tokens a generation will reserve without touching any balance.
"""
import math
from typing import Dict, Optional
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from .dtos import EstimateResponseDTO, GenerationParametersDTO


# Base cost in tokens per model
MODEL_CATALOG: Dict[str, int] = {
    "dall-e-3-standard": 3,
    "dall-e-3-hd": 5,
    "gpt-4-vision-enhanced": 7,
}

QUALITY_MULTIPLIERS: Dict[str, float] = {
    "draft": 1.0,
    "standard": 1.0,
    "high": 1.5,
    "ultra": 2.0,
}


def calculate_token_cost(base_cost: int, quality: str) -> int:
    """Apply the quality multiplier, rounding up to a whole token."""
    return int(math.ceil(base_cost * QUALITY_MULTIPLIERS.get(quality, 1.0)))


class EstimateGenerationCost:
    """
    Use case: Preflight cost estimation

    The same estimate is reserved by CreateGeneration, so what the user is
    shown is exactly what gets debited.
    """

    def __init__(self, catalog: Optional[Dict[str, int]] = None):
        """
        Args:
            catalog: Optional custom model catalog. Defaults to MODEL_CATALOG.
        """
        self.catalog = catalog or MODEL_CATALOG

    async def execute(self, parameters: GenerationParametersDTO) -> Result[EstimateResponseDTO]:
        base_cost = self.catalog.get(parameters.model)
        if base_cost is None:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"Unknown model '{parameters.model}'",
                    reason=f"available={sorted(self.catalog)}",
                )
            )

        return Return.ok(
            EstimateResponseDTO(
                model=parameters.model,
                quality=parameters.quality,
                base_cost=base_cost,
                multiplier=QUALITY_MULTIPLIERS.get(parameters.quality, 1.0),
                estimated_tokens=calculate_token_cost(base_cost, parameters.quality),
            )
        )
