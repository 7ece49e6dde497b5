"""Request schemas for the Generation API

Pydantic models for validating incoming HTTP requests.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from image_studio.app.use_cases.generation.dtos import (
    MAX_PROMPT_LENGTH,
    GenerationParametersDTO,
)


class CreateGenerationRequestSchema(BaseModel):
    """
    Request schema for creating a generation

    Used for POST /generations endpoint. The owner comes from the
    X-User-Id header, never from the body.
    """

    prompt: str = Field(
        ...,
        min_length=1,
        max_length=MAX_PROMPT_LENGTH,
        description="Prompt text (1-500 characters)"
    )

    parameters: GenerationParametersDTO = Field(
        default_factory=GenerationParametersDTO,
        description="Model, style, quality, aspect ratio and seed"
    )

    input_images: List[str] = Field(
        default_factory=list,
        max_length=4,
        description="References of input images (product/model photos)"
    )

    @field_validator('prompt')
    @classmethod
    def validate_prompt(cls, v):
        """Reject prompts made only of whitespace"""
        if not v.strip():
            raise ValueError("Prompt must not be blank")
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "prompt": "studio photo of a leather bag, soft lighting",
                "parameters": {
                    "model": "dall-e-3-standard",
                    "style": "fashion",
                    "quality": "standard",
                    "aspect_ratio": "1:1",
                    "seed": None
                },
                "input_images": []
            }
        }


class ProviderCallbackRequestSchema(BaseModel):
    """
    Request schema for provider webhooks

    Used for POST /webhooks/provider endpoint.
    """

    generation_id: str = Field(..., min_length=1, description="Generation the callback is about")
    success: bool = Field(..., description="Whether the provider produced images")
    result_refs: List[str] = Field(default_factory=list, description="Stored output references")
    error: Optional[str] = Field(default=None, max_length=2000, description="Provider error message")

    class Config:
        json_schema_extra = {
            "example": {
                "generation_id": "0b6f4c4e-3c59-4c2b-8d7e-3f1e0b8f9a11",
                "success": False,
                "result_refs": [],
                "error": "NSFW content detected"
            }
        }
