"""Data Transfer Objects for Generation Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from image_studio.domain.generation import Generation

Quality = Literal["draft", "standard", "high", "ultra"]
AspectRatio = Literal["1:1", "3:4", "4:3", "16:9"]

MAX_PROMPT_LENGTH = 500


class GenerationParametersDTO(BaseModel):
    """
    Generation parameters

    Stored as-is on the Generation row and forwarded to the provider.
    """

    model: str = Field(default="dall-e-3-standard", description="Model identifier")
    style: Optional[str] = Field(default=None, max_length=64, description="Style preset")
    quality: Quality = Field(default="standard", description="Output quality")
    aspect_ratio: AspectRatio = Field(default="1:1", description="Output aspect ratio")
    seed: Optional[int] = Field(default=None, ge=0, description="Deterministic seed")

    class Config:
        json_schema_extra = {
            "example": {
                "model": "dall-e-3-hd",
                "style": "fashion",
                "quality": "high",
                "aspect_ratio": "3:4",
                "seed": 42
            }
        }


class CreateGenerationCommandDTO(BaseModel):
    """
    Command DTO for creating a generation

    Used as input to CreateGeneration use case.
    """

    user_id: str = Field(..., min_length=1, description="Requesting user")
    prompt: str = Field(
        ...,
        min_length=1,
        max_length=MAX_PROMPT_LENGTH,
        description="Prompt text (1-500 characters)"
    )
    parameters: GenerationParametersDTO = Field(default_factory=GenerationParametersDTO)
    input_images: List[str] = Field(
        default_factory=list,
        max_length=4,
        description="References of input images"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_123",
                "prompt": "studio photo of a leather bag, soft lighting",
                "parameters": {"model": "dall-e-3-standard", "quality": "standard"},
                "input_images": ["https://cdn.example.com/products/bag.png"]
            }
        }


class EstimateResponseDTO(BaseModel):
    """
    Response DTO for cost estimation
    """

    model: str
    quality: str
    base_cost: int = Field(..., description="Model base cost in tokens")
    multiplier: float = Field(..., description="Quality multiplier")
    estimated_tokens: int = Field(..., description="Tokens that will be reserved")

    class Config:
        json_schema_extra = {
            "example": {
                "model": "dall-e-3-hd",
                "quality": "high",
                "base_cost": 5,
                "multiplier": 1.5,
                "estimated_tokens": 8
            }
        }


class GenerationResponseDTO(BaseModel):
    """
    Response DTO for a generation record
    """

    id: str
    user_id: str
    status: str
    prompt: str
    parameters: Dict[str, Any]
    input_images: List[str]
    tokens_reserved: int
    tokens_used: int
    retry_count: int
    retried_from_id: Optional[str] = None
    attempts: int
    error: Optional[str] = None
    result_refs: List[str]
    processing_time_ms: Optional[int] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, generation: Generation) -> "GenerationResponseDTO":
        return cls(
            id=generation.id,
            user_id=generation.user_id,
            status=generation.status.value,
            prompt=generation.prompt,
            parameters=generation.parameters or {},
            input_images=generation.input_images or [],
            tokens_reserved=generation.tokens_reserved,
            tokens_used=generation.tokens_used,
            retry_count=generation.retry_count,
            retried_from_id=generation.retried_from_id,
            attempts=generation.attempts,
            error=generation.error,
            result_refs=generation.result_refs or [],
            processing_time_ms=generation.processing_time_ms,
            created_at=generation.created_at,
            started_at=generation.started_at,
            updated_at=generation.updated_at,
            completed_at=generation.completed_at,
        )


class GenerationListResponseDTO(BaseModel):
    generations: List[GenerationResponseDTO]
    total: int


class GenerationStatusDTO(BaseModel):
    """
    Lightweight status for polling

    `source` is "tracker" when served from the in-memory cache and
    "database" otherwise.
    """

    generation_id: str
    status: str
    error: Optional[str] = None
    result_refs: List[str] = Field(default_factory=list)
    attempt: int = 0
    source: Literal["tracker", "database"] = "database"


class QueueStatsDTO(BaseModel):
    active: int = Field(..., description="Occupied concurrency slots")
    capacity: int = Field(..., description="Maximum concurrent generations")
    estimated_wait_ms: int = Field(..., description="active * average processing time")

    class Config:
        json_schema_extra = {
            "example": {"active": 2, "capacity": 5, "estimated_wait_ms": 120000}
        }


class GenerationAnalyticsDTO(BaseModel):
    """
    Aggregate generation statistics over a timeframe

    success_rate is the percentage of completed generations, to one
    decimal, and 0.0 when the timeframe holds none.
    """

    timeframe: Literal["24h", "7d", "30d", "all"]
    total: int
    by_status: Dict[str, int]
    by_model: Dict[str, int]
    average_processing_time_ms: Optional[int] = None
    success_rate: float

    class Config:
        json_schema_extra = {
            "example": {
                "timeframe": "7d",
                "total": 40,
                "by_status": {"pending": 1, "processing": 2, "completed": 34, "failed": 2, "cancelled": 1},
                "by_model": {"dall-e-3-standard": 30, "flux-pro": 10},
                "average_processing_time_ms": 18250,
                "success_rate": 85.0
            }
        }


class ProviderCallbackDTO(BaseModel):
    """
    Command DTO for an asynchronous provider callback

    Exactly one of result_refs (success) or error (failure) is expected.
    """

    generation_id: str = Field(..., min_length=1)
    success: bool
    result_refs: List[str] = Field(default_factory=list)
    error: Optional[str] = Field(default=None, max_length=2000)

    class Config:
        json_schema_extra = {
            "example": {
                "generation_id": "0b6f4c4e-3c59-4c2b-8d7e-3f1e0b8f9a11",
                "success": True,
                "result_refs": ["/media/2f0c.png"],
                "error": None
            }
        }


class CallbackResultDTO(BaseModel):
    generation_id: str
    status: str
    applied: bool = Field(..., description="False when the generation had already reached a terminal state")


class SweepResultDTO(BaseModel):
    total_checked: int
    failed_count: int
    skipped_count: int
    failed_ids: List[str]
    execution_time_ms: int


class DispatchResultDTO(BaseModel):
    total_pending: int
    dispatched_count: int
    dispatched_ids: List[str]
