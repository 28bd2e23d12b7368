import logging
from typing import Any, Dict, List, Optional

from shopassist.errors import ProviderError
from shopassist.llm.base import LLMProvider, NativeReply, ToolCall, get_field, parse_arguments

logger = logging.getLogger("shop.llm.openai")


def _extract_tool_call_from_openai_response(resp: Any) -> Optional[ToolCall]:
    """
    Responses API output is a list of items, which may include a function_call item.
    """
    output = get_field(resp, "output")
    if not isinstance(output, list):
        return None
    for item in output:
        if get_field(item, "type") == "function_call":
            name = get_field(item, "name")
            if not name:
                continue
            return ToolCall(name=name, arguments=parse_arguments(get_field(item, "arguments")))
    return None


class OpenAIProvider(LLMProvider):
    """OpenAI Responses API backend."""
    provider_id = "openai"
    tool_format = "responses"

    def __init__(self, api_key: Optional[str], model: str, base_url: Optional[str] = None, client: Any = None):
        super().__init__(model)
        self.api_key = api_key
        self.base_url = base_url
        self._client = client

    def available(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Any]] = None,
        temperature: float = 0.4,
    ) -> NativeReply:
        kwargs: Dict[str, Any] = {"model": self.model, "input": messages, "temperature": temperature}
        # An empty tools list is rejected by the API
        if tools:
            kwargs["tools"] = tools
        try:
            resp = await self._get_client().responses.create(**kwargs)
        except Exception as e:
            raise ProviderError(self.provider_id, f"{type(e).__name__}: {e}") from e

        text = get_field(resp, "output_text", "") or ""
        return NativeReply(text=text, tool_call=_extract_tool_call_from_openai_response(resp))
