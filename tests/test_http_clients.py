"""Tests for HTTP-based adapters."""

import asyncio
import base64
from dataclasses import dataclass, field

import httpx
import openai
import pytest

from meal_inference.adapters.http_image_store import HttpxImageStore
from meal_inference.adapters.openai_completion_client import OpenAICompletionClient
from meal_inference.adapters.openfoodfacts_client import HttpxOpenFoodFactsClient
from meal_inference.domain.errors import RateLimited, RequestRejected, TransportError
from tests.conftest import JPEG_BYTES

_OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.test/v1/chat/completions")


@dataclass
class _Message:
    content: str | None


@dataclass
class _Choice:
    message: _Message


@dataclass
class _Completion:
    choices: list[_Choice]


@dataclass
class _FakeCompletions:
    content: str | None = '{"foods": []}'
    error: Exception | None = None
    last_payload: dict[str, object] | None = None

    async def create(self, **kwargs: object) -> _Completion:
        self.last_payload = kwargs
        if self.error is not None:
            raise self.error
        return _Completion(choices=[_Choice(message=_Message(content=self.content))])


@dataclass
class _FakeChat:
    completions: _FakeCompletions = field(default_factory=_FakeCompletions)


@dataclass
class _FakeOpenAI:
    chat: _FakeChat = field(default_factory=_FakeChat)


def _complete(client: OpenAICompletionClient, image_data_url: str | None = None):
    return asyncio.run(
        client.complete(
            model="vision-model",
            system_prompt="system",
            user_prompt="Analyse this meal",
            image_data_url=image_data_url,
            max_tokens=800,
            temperature=0.1,
        )
    )


def test_openai_client_sends_image_and_returns_text() -> None:
    fake = _FakeOpenAI()
    client = OpenAICompletionClient(client=fake)

    text = _complete(client, image_data_url="data:image/jpeg;base64,ZmFrZQ==")

    assert text == '{"foods": []}'
    payload = fake.chat.completions.last_payload
    assert payload is not None
    assert payload["model"] == "vision-model"
    assert payload["max_tokens"] == 800
    system, user = payload["messages"]
    assert system == {"role": "system", "content": "system"}
    assert user["content"][1]["image_url"]["url"].startswith("data:image/jpeg")


def test_openai_client_sends_plain_text_prompt() -> None:
    fake = _FakeOpenAI()

    _complete(OpenAICompletionClient(client=fake))

    payload = fake.chat.completions.last_payload
    assert payload is not None
    assert payload["messages"][1]["content"] == "Analyse this meal"


def test_openai_client_maps_errors() -> None:
    rate_limited = openai.RateLimitError(
        "slow down",
        response=httpx.Response(
            429, request=_OPENAI_REQUEST, headers={"retry-after": "3"}
        ),
        body=None,
    )
    server_error = openai.InternalServerError(
        "boom", response=httpx.Response(503, request=_OPENAI_REQUEST), body=None
    )
    bad_request = openai.BadRequestError(
        "invalid image",
        response=httpx.Response(400, request=_OPENAI_REQUEST),
        body=None,
    )
    connection_error = openai.APIConnectionError(request=_OPENAI_REQUEST)
    expected = [
        (rate_limited, RateLimited),
        (server_error, TransportError),
        (bad_request, RequestRejected),
        (connection_error, TransportError),
    ]

    for error, mapped in expected:
        fake = _FakeOpenAI()
        fake.chat.completions.error = error
        with pytest.raises(mapped) as excinfo:
            _complete(OpenAICompletionClient(client=fake))
        if mapped is RateLimited:
            assert excinfo.value.retry_after == 3.0


def test_openai_client_rejects_empty_content() -> None:
    fake = _FakeOpenAI()
    fake.chat.completions.content = ""

    with pytest.raises(TransportError, match="empty"):
        _complete(OpenAICompletionClient(client=fake))


def test_openfoodfacts_client_search() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"products": [{"product_name": "Skyr"}]})

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxOpenFoodFactsClient(
        base_url="https://off.test",
        user_agent="meal-inference-tests",
        http_client=async_client,
    )

    payload = asyncio.run(client.search_products("skyr"))

    assert payload == {"products": [{"product_name": "Skyr"}]}
    request = seen[0]
    assert request.url.path == "/cgi/search.pl"
    assert request.url.params["search_terms"] == "skyr"
    assert request.url.params["page_size"] == "1"
    assert request.headers["User-Agent"] == "meal-inference-tests"


def test_openfoodfacts_client_raises_on_server_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    client = HttpxOpenFoodFactsClient(
        base_url="https://off.test",
        user_agent="tests",
        http_client=httpx.AsyncClient(transport=transport),
    )

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.search_products("skyr"))


def _image_store(handler, base_url: str | None = "https://images.test"):
    transport = httpx.MockTransport(handler)
    return HttpxImageStore(
        http_client=httpx.AsyncClient(transport=transport), base_url=base_url
    )


def test_image_store_downloads_relative_locator() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://images.test/meals/photo.jpg"
        return httpx.Response(200, content=JPEG_BYTES)

    data = asyncio.run(_image_store(handler).fetch("/meals/photo.jpg"))

    assert data == JPEG_BYTES


def test_image_store_decodes_data_urls() -> None:
    encoded = base64.b64encode(JPEG_BYTES).decode()
    store = _image_store(lambda request: httpx.Response(500))

    data = asyncio.run(store.fetch(f"data:image/jpeg;base64,{encoded}"))

    assert data == JPEG_BYTES
    with pytest.raises(RequestRejected):
        asyncio.run(store.fetch("data:image/jpeg;base64,@@@"))
    with pytest.raises(RequestRejected):
        asyncio.run(store.fetch("data:text/plain,hello"))


def test_image_store_maps_status_codes() -> None:
    missing = _image_store(lambda request: httpx.Response(404))
    failing = _image_store(lambda request: httpx.Response(502))
    empty = _image_store(lambda request: httpx.Response(200, content=b""))

    with pytest.raises(RequestRejected):
        asyncio.run(missing.fetch("meals/photo.jpg"))
    with pytest.raises(TransportError):
        asyncio.run(failing.fetch("meals/photo.jpg"))
    with pytest.raises(RequestRejected, match="empty"):
        asyncio.run(empty.fetch("meals/photo.jpg"))


def test_image_store_needs_base_url_for_relative_locators() -> None:
    store = _image_store(lambda request: httpx.Response(200), base_url=None)

    with pytest.raises(RequestRejected, match="Cannot resolve"):
        asyncio.run(store.fetch("meals/photo.jpg"))
