"""Generation Domain Entity

One requested image-generation job and its lifecycle record.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Integer, String, Text, JSON
from image_studio.domain.base import BaseModel, generate_uuid, UTCDateTime, utcnow


class GenerationStatus(str, Enum):
    """Generation lifecycle states"""
    PENDING = "pending"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[GenerationStatus] = frozenset({
    GenerationStatus.COMPLETED,
    GenerationStatus.FAILED,
    GenerationStatus.CANCELLED,
})

# Every status must appear as a key; terminal states have no outgoing edge.
ALLOWED_TRANSITIONS: Dict[GenerationStatus, FrozenSet[GenerationStatus]] = {
    GenerationStatus.PENDING: frozenset({
        GenerationStatus.PROCESSING,
        GenerationStatus.FAILED,
        GenerationStatus.CANCELLED,
    }),
    GenerationStatus.PROCESSING: frozenset({
        GenerationStatus.UPLOADING,
        GenerationStatus.FAILED,
        GenerationStatus.CANCELLED,
    }),
    GenerationStatus.UPLOADING: frozenset({
        GenerationStatus.COMPLETED,
        GenerationStatus.FAILED,
    }),
    GenerationStatus.COMPLETED: frozenset(),
    GenerationStatus.FAILED: frozenset(),
    GenerationStatus.CANCELLED: frozenset(),
}


def predecessors_of(target: GenerationStatus) -> FrozenSet[GenerationStatus]:
    """Statuses from which `target` can be reached in one step."""
    return frozenset(
        source for source, targets in ALLOWED_TRANSITIONS.items() if target in targets
    )


def can_transition(source: GenerationStatus, target: GenerationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[source]


class Generation(BaseModel, table=True):
    """
    Generation - Lifecycle record of one image-generation job

    Domain Rules:
    - user_id is immutable
    - tokens_reserved is fixed at creation
    - tokens_used is 0, or equal to tokens_reserved iff status == completed
    - status only moves along ALLOWED_TRANSITIONS
    - A retry creates a new row with retry_count + 1; the failed row is kept
    - Rows are never deleted
    """

    __tablename__ = "generations"
    __table_args__ = (
        Index('ix_generations_status_created', 'status', 'created_at'),
        Index('ix_generations_user_status', 'user_id', 'status'),
        Index('ix_generations_user_created', 'user_id', 'created_at'),
        CheckConstraint('tokens_reserved >= 0', name='tokens_reserved_non_negative'),
        CheckConstraint('retry_count >= 0', name='retry_count_non_negative'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(36), primary_key=True),
        description="Generation identifier (uuid4)"
    )

    user_id: str = Field(
        index=True,
        description="Owner of the generation"
    )

    status: GenerationStatus = Field(
        default=GenerationStatus.PENDING,
        description="Lifecycle status"
    )

    prompt: str = Field(
        sa_column=Column(Text, nullable=False),
        description="Prompt sent to the provider"
    )

    parameters: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="Opaque generation parameters (model, style, quality, aspect_ratio, seed)"
    )

    input_images: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="References of input images (product/model photos)"
    )

    tokens_reserved: int = Field(
        sa_column=Column(Integer, nullable=False),
        description="Tokens debited at admission"
    )

    tokens_used: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Tokens finally charged (0 or tokens_reserved)"
    )

    retry_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Position in the retry chain"
    )

    retried_from_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(36), nullable=True),
        description="Failed generation this one retries"
    )

    attempts: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Provider attempts made for this row"
    )

    error: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Last error message"
    )

    result_refs: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Ordered output references, empty until completion"
    )

    processing_time_ms: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, nullable=True),
        description="Time from creation to terminal state"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCDateTime, nullable=False),
        description="Creation timestamp"
    )

    started_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(UTCDateTime, nullable=True),
        description="When processing started"
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCDateTime, nullable=False),
        description="Last transition timestamp"
    )

    completed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(UTCDateTime, nullable=True),
        description="When a terminal state was reached"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "0b6f4c4e-3c59-4c2b-8d7e-3f1e0b8f9a11",
                "user_id": "user_123",
                "status": "pending",
                "prompt": "studio photo of a leather bag, soft lighting",
                "parameters": {
                    "model": "dall-e-3-standard",
                    "style": "fashion",
                    "quality": "standard",
                    "aspect_ratio": "1:1",
                    "seed": None
                },
                "tokens_reserved": 3,
                "tokens_used": 0,
                "retry_count": 0,
                "result_refs": [],
                "created_at": "2024-01-01T00:00:00Z"
            }
        }
