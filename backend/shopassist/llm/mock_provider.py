import re
from typing import Any, Dict, List, Optional

from shopassist.llm.base import LLMProvider, NativeReply, ToolCall

_PRODUCT_ID_RE = re.compile(r"\bp\d+\b", re.I)

# (pattern, tool) in priority order; first hit whose tool is offered wins.
_INTENTS = [
    (re.compile(r"\b(outfit|what (should i|to) wear|complete look|dress me|style me)\b", re.I), "recommend_outfit"),
    (re.compile(r"\badd\b.*\b(cart|p\d+)\b|\badd this\b", re.I), "add_to_cart"),
    (re.compile(r"\b(remove|delete) .*\bcart\b", re.I), "remove_from_cart"),
    (re.compile(r"\b(checkout|check out|place (my )?order|buy now)\b", re.I), "checkout"),
    (re.compile(r"\b(my cart|view cart|show (me )?(my )?cart|what'?s in my cart)\b", re.I), "view_cart"),
    (re.compile(r"\b(my orders|order history)\b", re.I), "view_orders"),
    (re.compile(r"\b(recommend|suggest|show me|find me|looking for)\b", re.I), "recommend_products"),
    (re.compile(r"\b(search|browse)\b", re.I), "search_products"),
]

FALLBACK_TEXT = "I can help you find products, build an outfit, or manage your cart. What are you looking for?"


def _last_user_text(messages: List[Dict[str, Any]]) -> str:
    for msg in reversed(messages):
        if msg.get("role") == "user":
            return str(msg.get("content") or "")
    return ""


class MockProvider(LLMProvider):
    """
    Deterministic keyword backend. Always available, never raises, so the
    router can always produce a decision.
    """
    provider_id = "mock"
    tool_format = "names"
    supports_plain = False

    def __init__(self, model: str = "pattern-matcher"):
        super().__init__(model)

    def available(self) -> bool:
        return True

    def _decide(self, text: str, offered: List[str]) -> Optional[ToolCall]:
        for pattern, tool in _INTENTS:
            if tool not in offered or not pattern.search(text):
                continue
            if tool == "add_to_cart":
                m = _PRODUCT_ID_RE.search(text)
                if not m:
                    continue
                return ToolCall(name=tool, arguments={"productId": m.group(0).lower(), "quantity": 1})
            if tool == "remove_from_cart":
                m = _PRODUCT_ID_RE.search(text)
                if not m:
                    continue
                return ToolCall(name=tool, arguments={"productId": m.group(0).lower()})
            if tool in ("recommend_outfit", "recommend_products", "search_products"):
                return ToolCall(name=tool, arguments={"query": text})
            return ToolCall(name=tool, arguments={})
        return None

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Any]] = None,
        temperature: float = 0.4,
    ) -> NativeReply:
        text = _last_user_text(messages)
        if tools:
            call = self._decide(text, list(tools))
            if call is not None:
                return NativeReply(tool_call=call)
        return NativeReply(text=FALLBACK_TEXT)
