import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shopassist.core.logging import record_event
from shopassist.errors import (
    ActionDisabledError,
    ActionNotFoundError,
    AdapterNotFoundError,
    FunctionNotFoundError,
    HandlerExecutionError,
    InvalidHandlerError,
)
from shopassist.llm.base import Decision, ToolCall
from shopassist.llm.router import ProviderRouter
from shopassist.llm.tool_schema import build_tool_defs
from shopassist.pipeline import grounding
from shopassist.pipeline.prompts import build_messages, build_system_prompt
from shopassist.pipeline.rules import ROUTE_GREETING, RuleSet, TurnInput, default_post_rules, default_pre_rules
from shopassist.state.profile import build_profile_summary, preference_hint
from shopassist.state.recent import build_recent_products_context
from shopassist.tools.base import ToolContext
from shopassist.tools.dispatcher import ActionDispatcher, ActionResult
from shopassist.tools.registry import ActionRegistry

logger = logging.getLogger("shop.pipeline")

RULES_PROVIDER = "rules"
RULES_MODEL = "forced-route"
TEMPLATE_PROVIDER = "template"

GREETING_REPLIES = [
    "Hey! What are you looking for today?",
    "Hi there! What can I help you find?",
    "Hello! Looking for something specific or just browsing?",
]
ACTION_FAILED_TEXT = "I tried to help with that but encountered an issue. Could you try again?"
ACTION_UNAVAILABLE_TEXT = "Sorry, I can't do that for this store yet. Is there something else I can help with?"
MATCHED_IDS_LIMIT = 5


@dataclass
class ChatTurn:
    tenant_id: str
    message: str
    session_id: Optional[str] = None
    history: List[Dict[str, Any]] = field(default_factory=list)


class Orchestrator:
    """
    Two-stage turn pipeline:

      rules -> (forced tool | greeting | Stage 1 decision) -> action -> state -> Stage 2

    Tenant and registry loading errors (unknown tenant, missing default
    registry) propagate to the caller. Past that point handle() always
    returns a response dict.
    """
    def __init__(
        self,
        *,
        router: ProviderRouter,
        dispatcher: ActionDispatcher,
        registry_loader: Any,
        tenant_loader: Any,
        store: Any,
        catalog: Any,
        recommender: Any,
        settings: Any = None,
        event_sink: Any = None,
        pre_rules: Optional[RuleSet] = None,
        post_rules: Optional[RuleSet] = None,
    ):
        self.router = router
        self.dispatcher = dispatcher
        self.registry_loader = registry_loader
        self.tenant_loader = tenant_loader
        self.store = store
        self.catalog = catalog
        self.recommender = recommender
        self.settings = settings
        self.event_sink = event_sink
        self.pre_rules = pre_rules or default_pre_rules()
        self.post_rules = post_rules or default_post_rules()

    def _record(self, event: Dict[str, Any]) -> None:
        record_event(self.event_sink, event)

    # ----------------------------
    # Public APIs
    # ----------------------------

    async def handle(self, turn: ChatTurn, session_logger: Any = None) -> Dict[str, Any]:
        tenant = self.tenant_loader.load(turn.tenant_id)
        registry = self.registry_loader.load_registry(turn.tenant_id)
        session = self.store.get(turn.tenant_id, turn.session_id)
        recent = self._recent_products(session)

        logger.info(f"TURN START | tenant={turn.tenant_id} session={turn.session_id} msg={turn.message!r}")
        if session_logger:
            session_logger.info(f"USER: {turn.message}")

        try:
            response = await self._run(turn, tenant, registry, session, recent, session_logger)
        except Exception as e:
            # Last line of defence: the caller always gets an answer.
            logger.error(f"Pipeline failed for tenant={turn.tenant_id}: {e}", exc_info=True)
            response = self._message(ACTION_FAILED_TEXT, TEMPLATE_PROVIDER, "", error=str(e))

        if session_logger:
            session_logger.info(f"ASSISTANT ({response['type']}): {response.get('text') or response.get('groundedText')}")
        self._record({"event": "turn_complete", "tenant": turn.tenant_id, "type": response["type"],
                      "action": response.get("action"), "provider": response.get("provider")})
        return response

    async def run_direct_action(
        self, tenant_id: str, session_id: Optional[str], action: str, params: Dict[str, Any]
    ) -> ActionResult:
        """Execute one action without any model involvement. Action errors propagate."""
        tenant = self.tenant_loader.load(tenant_id)
        registry = self.registry_loader.load_registry(tenant_id)
        session = self.store.get(tenant_id, session_id)
        ctx = self._tool_context(tenant, session_id, "", self._recent_products(session))
        params = dict(params or {})
        if session_id:
            params["sessionId"] = session_id
        result = await self.dispatcher.run_action(registry, action, params, ctx)
        await self._remember_products(tenant_id, session_id, result.result, "")
        return result

    # ----------------------------
    # Turn stages
    # ----------------------------

    async def _run(self, turn, tenant, registry: ActionRegistry, session, recent, session_logger) -> Dict[str, Any]:
        rule_input = TurnInput(message=turn.message, history=turn.history, recent_products=recent)

        route = self.pre_rules.evaluate(rule_input)
        if route is not None and route.kind == ROUTE_GREETING:
            logger.info("Greeting detected, bypassing tool decision")
            return await self._greeting(tenant, turn)

        if route is not None:
            logger.info(f"Forced route '{route.rule}' -> {route.tool.name}")
            decision = Decision(decision="tool", provider_id=RULES_PROVIDER, model=RULES_MODEL, tool=route.tool)
        else:
            decision = await self._stage1(turn, tenant, registry, session)
            if not decision.is_tool:
                override = self.post_rules.evaluate(rule_input)
                if override is None:
                    return self._message(decision.text, decision.provider_id, decision.model)
                logger.info(f"Model answered with text; rule '{override.rule}' forces {override.tool.name}")
                decision = Decision(
                    decision="tool", provider_id=decision.provider_id, model=decision.model,
                    tool=override.tool, text=decision.text,
                )

        return await self._execute(turn, tenant, registry, decision, recent, session_logger)

    async def _greeting(self, tenant, turn: ChatTurn) -> Dict[str, Any]:
        messages = build_messages(build_system_prompt(tenant), turn.message, turn.history)
        plain = await self.router.respond(messages)
        if plain.success:
            return self._message(plain.text, plain.provider_id, plain.model)
        return self._message(random.choice(GREETING_REPLIES), TEMPLATE_PROVIDER, "")

    async def _stage1(self, turn: ChatTurn, tenant, registry: ActionRegistry, session) -> Decision:
        system_prompt = build_system_prompt(
            tenant,
            profile_summary=build_profile_summary(session.profile),
            recent_products=build_recent_products_context(session.last_products, session.last_matched_ids),
            hint=preference_hint(session.profile),
        )
        messages = build_messages(system_prompt, turn.message, turn.history)
        return await self.router.decide(messages, build_tool_defs(registry))

    async def _execute(self, turn, tenant, registry, decision: Decision, recent, session_logger) -> Dict[str, Any]:
        tool: ToolCall = decision.tool
        params = dict(tool.arguments or {})
        if turn.session_id:
            params["sessionId"] = turn.session_id

        ctx = self._tool_context(tenant, turn.session_id, turn.message, recent, session_logger)
        if session_logger:
            session_logger.info(f"TOOL START: {tool.name} Args: {params}")

        try:
            result = await self.dispatcher.run_action(registry, tool.name, params, ctx)
        except (ActionNotFoundError, ActionDisabledError) as e:
            logger.warning(f"Action unavailable: {e}")
            return self._message(ACTION_UNAVAILABLE_TEXT, decision.provider_id, decision.model, error=str(e))
        except (InvalidHandlerError, AdapterNotFoundError, FunctionNotFoundError) as e:
            logger.error(f"Deployment defect while running '{tool.name}': {e}")
            return self._message(self._failure_text(decision), decision.provider_id, decision.model, error=str(e))
        except HandlerExecutionError as e:
            return self._message(self._failure_text(decision), decision.provider_id, decision.model, error=str(e))

        if session_logger:
            session_logger.info(f"TOOL DONE: {tool.name} in {result.duration_ms}ms ({result.source})")

        await self._remember_products(turn.tenant_id, turn.session_id, result.result, turn.message)
        grounded_text = await self._stage2(tenant, tool.name, turn.message, result.result, decision.provider_id)

        return {
            "type": "tool_result",
            "action": tool.name,
            "params": params,
            "toolResult": result.to_dict(),
            "groundedText": grounded_text,
            "provider": decision.provider_id,
            "model": decision.model,
        }

    async def _stage2(self, tenant, action: str, user_message: str, result: Dict[str, Any], provider_id: str) -> str:
        template = grounding.template_response(action, result)
        if template is not None:
            return template

        messages = grounding.build_grounded_messages(tenant, action, user_message, result)
        preferred = provider_id if provider_id != RULES_PROVIDER else None
        plain = await self.router.respond(messages, preferred_provider=preferred)
        text = plain.text if plain.success else grounding.fallback_explanation(action, result)
        return grounding.ensure_grounded(text, grounding.item_names(grounding.extract_products(result)))

    # ----------------------------
    # Helpers
    # ----------------------------

    def _tool_context(self, tenant, session_id, message, recent, session_logger=None) -> ToolContext:
        return ToolContext(
            tenant=tenant,
            store=self.store,
            catalog=self.catalog,
            recommender=self.recommender,
            session_id=session_id,
            message=message,
            settings=self.settings,
            recent_products=recent,
            session_logger=session_logger,
        )

    @staticmethod
    def _recent_products(session) -> List[Dict[str, Any]]:
        by_id = {p.get("id"): p for p in session.last_products}
        ordered = [by_id[pid] for pid in session.last_matched_ids if pid in by_id]
        return ordered or list(session.last_products)

    async def _remember_products(self, tenant_id, session_id, result: Dict[str, Any], query: str) -> None:
        products = grounding.extract_products(result)
        if not products:
            return
        matched = products[:MATCHED_IDS_LIMIT]
        await self.store.save_context(
            tenant_id, session_id,
            last_products=products,
            last_matched_ids=[p["id"] for p in matched if p.get("id")],
        )
        await self.store.update_profile(tenant_id, session_id, matched, query=query)

    @staticmethod
    def _failure_text(decision: Decision) -> str:
        # Stage 1 text was written before the action ran, so it always carries the error note.
        proposed = (decision.text or "").strip()
        return f"{proposed} {ACTION_FAILED_TEXT}" if proposed else ACTION_FAILED_TEXT

    @staticmethod
    def _message(text: str, provider: str, model: str, error: Optional[str] = None) -> Dict[str, Any]:
        out = {"type": "message", "text": text, "provider": provider, "model": model}
        if error:
            out["error"] = error
        return out
