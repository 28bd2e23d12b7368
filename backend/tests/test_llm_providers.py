import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from shopassist.errors import ProviderError
from shopassist.llm.base import parse_arguments
from shopassist.llm.litellm_provider import LiteLLMProvider
from shopassist.llm.mock_provider import FALLBACK_TEXT, MockProvider
from shopassist.llm.openai_provider import OpenAIProvider

MESSAGES = [{"role": "user", "content": "what's in my cart?"}]


@pytest.mark.parametrize("raw,expected", [
    ('{"query": "hats"}', {"query": "hats"}),
    ({"query": "hats"}, {"query": "hats"}),
    ("{broken", {}),
    ("[1, 2]", {}),
    (None, {}),
])
def test_parse_arguments(raw, expected):
    assert parse_arguments(raw) == expected


@pytest.mark.asyncio
async def test_openai_function_call():
    client = MagicMock()
    client.responses.create = AsyncMock(return_value=SimpleNamespace(
        output_text="",
        output=[
            SimpleNamespace(type="reasoning"),
            SimpleNamespace(type="function_call", name="view_cart", arguments='{"sessionId": "s1"}'),
        ],
    ))
    provider = OpenAIProvider(api_key=None, model="gpt-4.1-mini", client=client)

    reply = await provider.complete(MESSAGES, [{"type": "function", "name": "view_cart"}])

    assert provider.available()
    assert reply.tool_call.name == "view_cart"
    assert reply.tool_call.arguments == {"sessionId": "s1"}
    kwargs = client.responses.create.call_args.kwargs
    assert kwargs["input"] == MESSAGES
    assert kwargs["tools"][0]["name"] == "view_cart"


@pytest.mark.asyncio
async def test_openai_plain_text_sends_no_tools():
    client = MagicMock()
    client.responses.create = AsyncMock(return_value={"output_text": "Hello!", "output": []})
    provider = OpenAIProvider(api_key="sk-test", model="gpt-4.1-mini", client=client)

    reply = await provider.complete(MESSAGES, None)

    assert reply.text == "Hello!"
    assert reply.tool_call is None
    assert "tools" not in client.responses.create.call_args.kwargs


@pytest.mark.asyncio
async def test_openai_errors_become_provider_errors():
    client = MagicMock()
    client.responses.create = AsyncMock(side_effect=RuntimeError("429"))
    provider = OpenAIProvider(api_key="sk-test", model="gpt-4.1-mini", client=client)

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(MESSAGES)
    assert exc_info.value.provider_id == "openai"


def test_openai_without_key_is_unavailable():
    assert not OpenAIProvider(api_key=None, model="gpt-4.1-mini").available()


@pytest.mark.asyncio
async def test_litellm_tool_call():
    message = {
        "content": None,
        "tool_calls": [{"function": {"name": "search_products", "arguments": '{"query": "boots"}'}}],
    }
    fake = AsyncMock(return_value={"choices": [{"message": message}]})
    provider = LiteLLMProvider("groq", "gsk-test", "groq/llama-3.3-70b-versatile")

    with patch("litellm.acompletion", fake):
        reply = await provider.complete(MESSAGES, [{"type": "function", "function": {"name": "search_products"}}])

    assert reply.text == ""
    assert reply.tool_call.name == "search_products"
    assert reply.tool_call.arguments == {"query": "boots"}
    kwargs = fake.call_args.kwargs
    assert kwargs["model"] == "groq/llama-3.3-70b-versatile"
    assert kwargs["tool_choice"] == "auto"


@pytest.mark.asyncio
async def test_litellm_legacy_function_call():
    message = {"content": "", "function_call": {"name": "view_cart", "arguments": ""}}
    provider = LiteLLMProvider("mistral", "key", "mistral/mistral-small-latest")

    with patch("litellm.acompletion", AsyncMock(return_value={"choices": [{"message": message}]})):
        reply = await provider.complete(MESSAGES, [{"type": "function"}])

    assert reply.tool_call.name == "view_cart"
    assert reply.tool_call.arguments == {}


@pytest.mark.asyncio
async def test_litellm_errors_become_provider_errors():
    provider = LiteLLMProvider("gemini", "key", "gemini/gemini-1.5-flash")

    with patch("litellm.acompletion", AsyncMock(side_effect=ConnectionError("offline"))):
        with pytest.raises(ProviderError) as exc_info:
            await provider.complete(MESSAGES)
    assert exc_info.value.provider_id == "gemini"


@pytest.mark.asyncio
@pytest.mark.parametrize("text,tool,arguments", [
    ("put together an outfit for a party", "recommend_outfit", {"query": "put together an outfit for a party"}),
    ("add p7 to my cart", "add_to_cart", {"productId": "p7", "quantity": 1}),
    ("remove p7 from the cart", "remove_from_cart", {"productId": "p7"}),
    ("checkout", "checkout", {}),
    ("show my cart", "view_cart", {}),
    ("show me my orders", "view_orders", {}),
    ("browse jackets", "search_products", {"query": "browse jackets"}),
])
async def test_mock_intents(text, tool, arguments):
    offered = ["recommend_outfit", "add_to_cart", "remove_from_cart", "checkout", "view_cart",
               "view_orders", "recommend_products", "search_products"]
    reply = await MockProvider().complete([{"role": "user", "content": text}], offered)
    assert reply.tool_call.name == tool
    assert reply.tool_call.arguments == arguments


@pytest.mark.asyncio
async def test_mock_only_uses_offered_tools():
    reply = await MockProvider().complete([{"role": "user", "content": "checkout"}], ["search_products"])
    assert reply.tool_call is None
    assert reply.text == FALLBACK_TEXT
