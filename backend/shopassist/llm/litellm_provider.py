import logging
from typing import Any, Dict, List, Optional

from shopassist.errors import ProviderError
from shopassist.llm.base import LLMProvider, NativeReply, ToolCall, get_field, parse_arguments

logger = logging.getLogger("shop.llm.litellm")


def _extract_tool_call_from_litellm_message(msg: Any) -> Optional[ToolCall]:
    tool_calls = get_field(msg, "tool_calls") or []
    if tool_calls:
        fn = get_field(tool_calls[0], "function") or {}
        name = get_field(fn, "name")
        if name:
            return ToolCall(name=name, arguments=parse_arguments(get_field(fn, "arguments")))
    # Legacy single function_call shape
    fc = get_field(msg, "function_call")
    if fc and get_field(fc, "name"):
        return ToolCall(name=get_field(fc, "name"), arguments=parse_arguments(get_field(fc, "arguments")))
    return None


class LiteLLMProvider(LLMProvider):
    """
    Chat Completions backend through LiteLLM. One instance per provider id
    (groq, gemini, mistral); the model string carries LiteLLM's provider
    prefix, e.g. "groq/llama-3.3-70b-versatile".
    """
    tool_format = "chat"

    def __init__(self, provider_id: str, api_key: Optional[str], model: str, api_base: Optional[str] = None):
        super().__init__(model)
        self.provider_id = provider_id
        self.api_key = api_key
        self.api_base = api_base

    def available(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Any]] = None,
        temperature: float = 0.4,
    ) -> NativeReply:
        import litellm

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "api_key": self.api_key,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            resp = await litellm.acompletion(**kwargs)
            choice = get_field(resp, "choices")[0]
        except Exception as e:
            raise ProviderError(self.provider_id, f"{type(e).__name__}: {e}") from e

        msg = get_field(choice, "message") or {}
        text = get_field(msg, "content") or ""
        return NativeReply(text=text, tool_call=_extract_tool_call_from_litellm_message(msg))
