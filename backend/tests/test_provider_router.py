import asyncio
import pytest
from unittest.mock import MagicMock

from shopassist.llm.base import NativeReply, ToolCall
from shopassist.llm.mock_provider import FALLBACK_TEXT, MockProvider
from shopassist.llm.router import ProviderRouter
from shopassist.llm.tool_schema import ToolDef

TOOL_DEFS = [
    ToolDef("search_products", "Search the catalog", {"type": "object", "properties": {"query": {"type": "string"}}}),
    ToolDef("recommend_products", "Recommend products", {"type": "object", "properties": {}}),
    ToolDef("view_cart", "Show the cart", {"type": "object", "properties": {}}),
]


def _messages(text):
    return [{"role": "system", "content": "You are a shopping assistant."}, {"role": "user", "content": text}]


@pytest.mark.asyncio
async def test_decide_fails_over_to_next_provider(make_provider):
    broken = make_provider("groq", error=RuntimeError("rate limited"))
    working = make_provider("gemini", reply=NativeReply(tool_call=ToolCall("view_cart", {})))
    sink = MagicMock()
    router = ProviderRouter([broken, working], event_sink=sink)

    decision = await router.decide(_messages("what's in my cart"), TOOL_DEFS)

    assert decision.is_tool
    assert decision.tool.name == "view_cart"
    assert decision.provider_id == "gemini"
    assert decision.model == "gemini-model"
    events = [c.args[0]["event"] for c in sink.record.call_args_list]
    assert events == ["provider_failed", "provider_decision"]


@pytest.mark.asyncio
async def test_decide_treats_timeout_as_failure(make_provider):
    async def slow(*args, **kwargs):
        await asyncio.sleep(1)
        return NativeReply(text="too late")

    sleepy = make_provider("openai")
    sleepy.complete.side_effect = slow
    fast = make_provider("mistral", reply="Happy to help!")
    router = ProviderRouter([sleepy, fast], timeout_seconds=0.01)

    decision = await router.decide(_messages("hi there, any tips?"), TOOL_DEFS)

    assert not decision.is_tool
    assert decision.text == "Happy to help!"
    assert decision.provider_id == "mistral"


@pytest.mark.asyncio
async def test_decide_rejects_tool_that_was_not_offered(make_provider):
    rogue = make_provider("groq", reply=NativeReply(tool_call=ToolCall("delete_everything", {})))
    honest = make_provider("gemini", reply=NativeReply(tool_call=ToolCall("search_products", {"query": "hats"})))
    router = ProviderRouter([rogue, honest])

    decision = await router.decide(_messages("find hats"), TOOL_DEFS)

    assert decision.provider_id == "gemini"
    assert decision.tool.arguments == {"query": "hats"}


@pytest.mark.asyncio
async def test_decide_treats_empty_text_as_failure(make_provider):
    silent = make_provider("groq", reply="   ")
    router = ProviderRouter([silent])

    decision = await router.decide(_messages("show me jackets"), TOOL_DEFS)

    assert decision.provider_id == "mock"


@pytest.mark.asyncio
async def test_decide_skips_unconfigured_providers(make_provider):
    missing_key = make_provider("openai", available=False)
    configured = make_provider("groq", reply="Sure thing.")
    router = ProviderRouter([missing_key, configured])

    decision = await router.decide(_messages("anything new?"), TOOL_DEFS)

    missing_key.complete.assert_not_called()
    assert decision.provider_id == "groq"


@pytest.mark.asyncio
async def test_all_providers_failing_falls_back_to_pattern_matcher(make_provider):
    router = ProviderRouter([
        make_provider("groq", error=RuntimeError("boom")),
        make_provider("gemini", error=ConnectionError("offline")),
    ])

    decision = await router.decide(_messages("show me running shoes"), TOOL_DEFS)

    assert decision.provider_id == "mock"
    assert decision.tool.name == "recommend_products"
    assert decision.tool.arguments == {"query": "show me running shoes"}


@pytest.mark.asyncio
async def test_pattern_fallback_answers_with_text_when_nothing_matches():
    router = ProviderRouter([])

    decision = await router.decide(_messages("tell me a joke"), TOOL_DEFS)

    assert decision.provider_id == "mock"
    assert not decision.is_tool
    assert decision.text == FALLBACK_TEXT


@pytest.mark.asyncio
async def test_tools_are_translated_per_provider_format(make_provider):
    responses_style = make_provider("openai", reply="ok", tool_format="responses")
    router = ProviderRouter([responses_style])

    await router.decide(_messages("hello there friend"), TOOL_DEFS)

    tools = responses_style.complete.call_args.args[1]
    assert tools[0]["name"] == "search_products"
    assert "function" not in tools[0]


@pytest.mark.asyncio
async def test_respond_prefers_requested_provider(make_provider):
    first = make_provider("groq", reply="from groq")
    second = make_provider("gemini", reply="from gemini")
    router = ProviderRouter([first, second])

    result = await router.respond(_messages("describe these"), preferred_provider="gemini")

    assert result.success
    assert result.text == "from gemini"
    first.complete.assert_not_called()


@pytest.mark.asyncio
async def test_respond_never_uses_pattern_matcher(make_provider):
    router = ProviderRouter([make_provider("groq", error=RuntimeError("down")), MockProvider()])

    result = await router.respond(_messages("describe these"))

    assert result.success is False
    assert result.provider_id == "none"
    assert result.text == ""


def test_health_reports_available_providers(make_provider):
    router = ProviderRouter([make_provider("openai", available=False), MockProvider()])

    health = router.health()

    assert health["healthy"] is True
    assert health["availableProviders"] == ["mock"]
    assert health["status"] == {"openai": False, "mock": True}
