import inspect
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from shopassist.core.logging import record_event
from shopassist.errors import ActionDisabledError, ActionNotFoundError, HandlerExecutionError
from shopassist.tools.base import ToolContext
from shopassist.tools.registry import ActionRegistry
from shopassist.tools.resolver import AdapterResolver

logger = logging.getLogger("shop.tools.dispatcher")


@dataclass
class ActionResult:
    action: str
    handler: str
    source: str
    result: Dict[str, Any]
    duration_ms: float
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def meta(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "handler": self.handler,
            "source": self.source,
            "durationMs": self.duration_ms,
            "timestamp": self.timestamp,
        }

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.result)
        out["_meta"] = self.meta
        return out


class ActionDispatcher:
    """
    Executes registry actions through the adapter resolver.
    """
    def __init__(self, resolver: AdapterResolver, event_sink: Any = None):
        self.resolver = resolver
        self.event_sink = event_sink

    def _record(self, event: Dict[str, Any]) -> None:
        record_event(self.event_sink, event)

    async def run_action(
        self,
        registry: ActionRegistry,
        action: str,
        params: Optional[Dict[str, Any]],
        ctx: ToolContext,
    ) -> ActionResult:
        """
        Validate, resolve and invoke one action.

        Raises ActionNotFoundError / ActionDisabledError / InvalidHandlerError /
        AdapterNotFoundError / FunctionNotFoundError before the handler runs,
        and HandlerExecutionError (chained) if the handler itself fails.
        """
        descriptor = registry.get(action)
        if descriptor is None:
            logger.warning(f"Action '{action}' not in registry for tenant '{ctx.tenant_id}'")
            raise ActionNotFoundError(action, ctx.tenant_id)
        if not descriptor.enabled:
            logger.warning(f"Action '{action}' disabled for tenant '{ctx.tenant_id}'")
            raise ActionDisabledError(action, ctx.tenant_id)

        namespace, function = descriptor.split_handler()
        resolution = self.resolver.resolve(namespace, function, ctx.tenant_id)
        logger.info(f"Tool Exec: {action} -> {descriptor.handler} ({resolution.source})")

        start = time.perf_counter()
        try:
            out = resolution.func(dict(params or {}), ctx)
            if inspect.isawaitable(out):
                out = await out
        except Exception as e:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.error(f"Error executing action '{action}' ({descriptor.handler}): {e}", exc_info=True)
            self._record({"event": "action_failed", "action": action, "handler": descriptor.handler,
                          "tenant": ctx.tenant_id, "durationMs": duration_ms, "error": str(e)})
            raise HandlerExecutionError(
                action, descriptor.handler, duration_ms, str(e),
                context={"source": resolution.source, "tenant": ctx.tenant_id},
            ) from e

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        if not isinstance(out, dict):
            out = {"result": out}
        result = ActionResult(
            action=action,
            handler=descriptor.handler,
            source=resolution.source,
            result=out,
            duration_ms=duration_ms,
        )
        self._record({"event": "action_executed", **result.meta, "tenant": ctx.tenant_id})
        return result
