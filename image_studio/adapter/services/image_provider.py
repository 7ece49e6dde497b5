"""Image Provider Implementations

Provides concrete adapters for the external image generation provider.
"""

import base64
import hashlib
import logging
from typing import Any, Dict, List, Optional
import httpx
from image_studio.app.services.image_provider import (
    ImageProvider,
    ProviderError,
    ProviderErrorCategory,
)

logger = logging.getLogger(__name__)

# 1x1 transparent PNG
PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class MockImageProvider(ImageProvider):
    """
    Provider that returns placeholder images without any network call

    Used in development when no provider is configured. `failures` makes
    the first N calls raise the given category, to exercise retries.
    """

    def __init__(
        self,
        images_per_call: int = 1,
        failures: int = 0,
        failure_category: ProviderErrorCategory = ProviderErrorCategory.SERVER_ERROR,
    ):
        self.images_per_call = images_per_call
        self.failures = failures
        self.failure_category = failure_category
        self.calls = 0

    async def generate(
        self,
        prompt: str,
        parameters: Dict[str, Any],
        input_images: List[str],
    ) -> List[bytes]:
        self.calls += 1
        if self.calls <= self.failures:
            raise ProviderError(
                f"Mock provider failure {self.calls}/{self.failures}",
                category=self.failure_category,
            )

        digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:12]
        logger.info(f"Mock provider generated {self.images_per_call} image(s) for prompt {digest}")
        return [PLACEHOLDER_PNG for _ in range(self.images_per_call)]


class HttpImageProvider(ImageProvider):
    """
    Provider reached over HTTP

    POSTs {"prompt", "parameters", "input_images"} to `{base_url}/generate`
    and expects {"images": [<base64>, ...]} or {"image_urls": [<url>, ...]}.
    Every failure is raised as a ProviderError with a category taken from
    the HTTP status or the transport error, never from the message text.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Provider base URL
            api_key: Bearer token, if the provider needs one
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def generate(
        self,
        prompt: str,
        parameters: Dict[str, Any],
        input_images: List[str],
    ) -> List[bytes]:
        payload = {
            "prompt": prompt,
            "parameters": parameters,
            "input_images": input_images,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/generate",
                    json=payload,
                    headers=self._headers(),
                )
                if response.status_code >= 400:
                    raise ProviderError.from_status_code(
                        response.status_code,
                        f"Provider responded {response.status_code}: {response.text[:200]}",
                    )
                body = response.json()

                if body.get("images"):
                    return [base64.b64decode(image) for image in body["images"]]

                images = []
                for url in body.get("image_urls") or []:
                    download = await client.get(url)
                    if download.status_code >= 400:
                        raise ProviderError.from_status_code(
                            download.status_code,
                            f"Result download failed with {download.status_code}",
                        )
                    images.append(download.content)
                return images

        except ProviderError:
            raise
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"Provider timed out after {self.timeout}s",
                category=ProviderErrorCategory.TIMEOUT,
            ) from e
        except httpx.TransportError as e:
            # Connection reset, DNS failure, ...
            raise ProviderError(
                f"Provider unreachable: {e}",
                category=ProviderErrorCategory.SERVER_ERROR,
            ) from e
        except (ValueError, TypeError, KeyError) as e:
            raise ProviderError(
                f"Malformed provider response: {e}",
                category=ProviderErrorCategory.UNKNOWN,
            ) from e


def create_image_provider(
    kind: str,
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: float = 120.0,
) -> ImageProvider:
    """
    Factory function to create the configured image provider

    Args:
        kind: "http" or "mock"
        base_url: Required for "http"
    """
    if kind == "http":
        if not base_url:
            raise ValueError("IMAGE_PROVIDER_URL is required when IMAGE_PROVIDER is 'http'")
        return HttpImageProvider(base_url, api_key=api_key, timeout=timeout)
    if kind == "mock":
        logger.warning("Using mock image provider, generated images are placeholders")
        return MockImageProvider()
    raise ValueError(f"Unknown image provider '{kind}'")
