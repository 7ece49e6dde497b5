"""Image Provider Interface

The external AI generation provider is a black box. Adapters translate
whatever the provider reports into a ProviderError carrying an explicit
category, so retry decisions never depend on error message text.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional


class ProviderErrorCategory(str, Enum):
    """Structured classification of provider failures"""
    TIMEOUT = "timeout"                # Provider did not answer in time
    RATE_LIMITED = "rate_limited"      # Provider throttled us (HTTP 429)
    SERVER_ERROR = "server_error"      # Provider 5xx
    VALIDATION = "validation"          # Provider rejected the parameters
    MALFORMED_INPUT = "malformed_input"  # Prompt or input images unusable
    AUTHORIZATION = "authorization"    # Bad or missing credentials
    UNKNOWN = "unknown"


RETRYABLE_CATEGORIES = frozenset({
    ProviderErrorCategory.TIMEOUT,
    ProviderErrorCategory.RATE_LIMITED,
    ProviderErrorCategory.SERVER_ERROR,
})


class ProviderError(Exception):
    def __init__(
        self,
        message: str,
        category: ProviderErrorCategory = ProviderErrorCategory.UNKNOWN,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.category in RETRYABLE_CATEGORIES

    @classmethod
    def from_status_code(cls, status_code: int, message: str) -> "ProviderError":
        if status_code == 429:
            category = ProviderErrorCategory.RATE_LIMITED
        elif status_code in (408, 504):
            category = ProviderErrorCategory.TIMEOUT
        elif status_code >= 500:
            category = ProviderErrorCategory.SERVER_ERROR
        elif status_code in (401, 403):
            category = ProviderErrorCategory.AUTHORIZATION
        elif status_code in (400, 422):
            category = ProviderErrorCategory.VALIDATION
        elif status_code == 413 or status_code == 415:
            category = ProviderErrorCategory.MALFORMED_INPUT
        else:
            category = ProviderErrorCategory.UNKNOWN
        return cls(message, category=category, status_code=status_code)

    def __repr__(self) -> str:
        return f"ProviderError({self.category.value}: {self.message})"


class ImageProvider(ABC):

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        parameters: Dict[str, Any],
        input_images: List[str],
    ) -> List[bytes]:
        """
        Generate images

        Args:
            prompt: Final prompt text
            parameters: Generation parameters (model, style, quality, aspect_ratio, seed)
            input_images: References of input images

        Returns:
            Raw bytes of each generated image

        Raises:
            ProviderError: On any provider-side failure
        """
        pass
