"""
Unit tests for HttpImageProvider

Tests cover:
- Inline base64 images and downloadable image URLs
- HTTP status codes mapped to error categories
- Transport failures and malformed bodies
"""

import base64
import json

import httpx
import pytest

from image_studio.adapter.services.image_provider import (
    HttpImageProvider,
    MockImageProvider,
    create_image_provider,
)
from image_studio.app.services.image_provider import ProviderError, ProviderErrorCategory


def provider_for(handler) -> HttpImageProvider:
    return HttpImageProvider(
        "https://provider.test/v1/",
        api_key="secret",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
class TestHttpImageProvider:

    async def test_inline_images(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"images": [base64.b64encode(b"png-bytes").decode()]})

        images = await provider_for(handler).generate("a cat", {"model": "dall-e-3-hd"}, ["in.png"])

        assert images == [b"png-bytes"]
        assert seen["url"] == "https://provider.test/v1/generate"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"] == {
            "prompt": "a cat",
            "parameters": {"model": "dall-e-3-hd"},
            "input_images": ["in.png"],
        }

    async def test_image_urls_are_downloaded(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"image_urls": ["https://cdn.test/1.png"]})
            return httpx.Response(200, content=b"downloaded")

        images = await provider_for(handler).generate("a cat", {}, [])

        assert images == [b"downloaded"]

    @pytest.mark.parametrize("status_code,category", [
        (429, ProviderErrorCategory.RATE_LIMITED),
        (503, ProviderErrorCategory.SERVER_ERROR),
        (400, ProviderErrorCategory.VALIDATION),
        (401, ProviderErrorCategory.AUTHORIZATION),
    ])
    async def test_status_codes_are_classified(self, status_code, category):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, text="nope")

        with pytest.raises(ProviderError) as exc_info:
            await provider_for(handler).generate("a cat", {}, [])

        assert exc_info.value.category == category
        assert exc_info.value.status_code == status_code

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderError) as exc_info:
            await provider_for(handler).generate("a cat", {}, [])

        assert exc_info.value.category == ProviderErrorCategory.TIMEOUT
        assert exc_info.value.retryable

    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            await provider_for(handler).generate("a cat", {}, [])

        assert exc_info.value.category == ProviderErrorCategory.SERVER_ERROR

    async def test_malformed_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"not json")

        with pytest.raises(ProviderError) as exc_info:
            await provider_for(handler).generate("a cat", {}, [])

        assert exc_info.value.category == ProviderErrorCategory.UNKNOWN
        assert not exc_info.value.retryable


@pytest.mark.asyncio
class TestMockImageProvider:

    async def test_scripted_failures_then_success(self):
        provider = MockImageProvider(images_per_call=2, failures=1)

        with pytest.raises(ProviderError):
            await provider.generate("a cat", {}, [])
        images = await provider.generate("a cat", {}, [])

        assert len(images) == 2
        assert provider.calls == 2


def test_factory():
    assert isinstance(create_image_provider("mock"), MockImageProvider)
    assert isinstance(create_image_provider("http", base_url="https://p.test"), HttpImageProvider)
    with pytest.raises(ValueError):
        create_image_provider("http")
    with pytest.raises(ValueError):
        create_image_provider("carrier-pigeon")
