import asyncio
import logging
from typing import Any, Dict, List, Optional

from shopassist.core.logging import record_event
from shopassist.errors import ProviderError
from shopassist.llm.base import (
    DECISION_MESSAGE,
    DECISION_TOOL,
    Decision,
    LLMProvider,
    NativeReply,
    PlainResult,
)
from shopassist.llm.mock_provider import MockProvider
from shopassist.llm.tool_schema import ToolDef, translate

logger = logging.getLogger("shop.llm.router")


class ProviderRouter:
    """
    Tries model backends strictly in priority order until one answers.

    - decide(): tool-or-text decision with the tenant's tool definitions
    - respond(): plain text, used for grounded Stage 2 phrasing and greetings

    Any backend failure (error, timeout, malformed reply) moves on to the
    next backend. decide() ends in a deterministic pattern matcher, so it
    always returns a Decision.
    """
    def __init__(
        self,
        providers: List[LLMProvider],
        timeout_seconds: float = 20.0,
        temperature: float = 0.4,
        event_sink: Any = None,
    ):
        self.providers = providers
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.event_sink = event_sink
        self._fallback = MockProvider()

    def _record(self, event: Dict[str, Any]) -> None:
        record_event(self.event_sink, event)

    async def _call(self, provider: LLMProvider, messages, tools) -> NativeReply:
        try:
            return await asyncio.wait_for(
                provider.complete(messages, tools, temperature=self.temperature),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(provider.provider_id, f"timed out after {self.timeout_seconds}s") from e
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(provider.provider_id, f"{type(e).__name__}: {e}") from e

    @staticmethod
    def _normalize(provider: LLMProvider, reply: NativeReply, offered: List[str]) -> Decision:
        if reply.tool_call is not None:
            if reply.tool_call.name not in offered:
                raise ProviderError(provider.provider_id, f"called unknown tool '{reply.tool_call.name}'")
            return Decision(
                decision=DECISION_TOOL,
                provider_id=provider.provider_id,
                model=provider.model,
                tool=reply.tool_call,
                text=reply.text or "",
            )
        if not (reply.text or "").strip():
            raise ProviderError(provider.provider_id, "empty response")
        return Decision(decision=DECISION_MESSAGE, provider_id=provider.provider_id, model=provider.model, text=reply.text)

    # ----------------------------
    # Public APIs
    # ----------------------------

    async def decide(self, messages: List[Dict[str, Any]], tool_defs: List[ToolDef]) -> Decision:
        offered = [d.name for d in tool_defs]
        errors: List[ProviderError] = []

        for provider in self.providers:
            if not provider.available():
                logger.debug(f"Skipping {provider.provider_id}: not configured")
                continue
            try:
                native_tools = translate(tool_defs, provider.tool_format)
                reply = await self._call(provider, messages, native_tools)
                decision = self._normalize(provider, reply, offered)
            except ProviderError as e:
                logger.warning(f"Provider failed, trying next: {e}")
                errors.append(e)
                self._record({"event": "provider_failed", "provider": provider.provider_id, "error": str(e)})
                continue

            logger.info(
                f"Stage 1 decision by {provider.provider_id}/{provider.model}: {decision.decision}"
                + (f" -> {decision.tool.name}" if decision.tool else "")
            )
            self._record({"event": "provider_decision", "provider": provider.provider_id,
                          "decision": decision.decision, "failovers": len(errors)})
            return decision

        logger.error(f"All {len(errors)} providers failed, using pattern fallback")
        reply = await self._fallback.complete(messages, offered)
        return self._normalize(self._fallback, reply, offered)

    async def respond(self, messages: List[Dict[str, Any]], preferred_provider: Optional[str] = None) -> PlainResult:
        ordered = list(self.providers)
        if preferred_provider:
            ordered.sort(key=lambda p: p.provider_id != preferred_provider)

        for provider in ordered:
            if not provider.supports_plain or not provider.available():
                continue
            try:
                reply = await self._call(provider, messages, None)
            except ProviderError as e:
                logger.warning(f"Plain response failed, trying next: {e}")
                self._record({"event": "provider_failed", "provider": provider.provider_id, "error": str(e)})
                continue
            if (reply.text or "").strip():
                return PlainResult(text=reply.text.strip(), provider_id=provider.provider_id, model=provider.model)
            logger.warning(f"Provider {provider.provider_id} returned empty text")

        return PlainResult(text="", provider_id="none", model="", success=False)

    def status(self) -> Dict[str, bool]:
        return {p.provider_id: p.available() for p in self.providers}

    def health(self) -> Dict[str, Any]:
        status = self.status()
        available = [pid for pid, ok in status.items() if ok]
        return {"healthy": bool(available), "availableProviders": available, "status": status}
