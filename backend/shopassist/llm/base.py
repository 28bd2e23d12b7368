from __future__ import annotations

import abc
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DECISION_TOOL = "tool"
DECISION_MESSAGE = "message"


@dataclass
class ToolCall:
    """Provider-independent tool call. Arguments are not validated here."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "arguments": self.arguments}


@dataclass
class Decision:
    decision: str                        # "tool" | "message"
    provider_id: str
    model: str
    tool: Optional[ToolCall] = None
    text: str = ""

    @property
    def is_tool(self) -> bool:
        return self.decision == DECISION_TOOL and self.tool is not None


@dataclass
class PlainResult:
    text: str
    provider_id: str
    model: str
    success: bool = True


@dataclass
class NativeReply:
    """What a backend returned, already flattened: text plus at most one tool call."""
    text: str = ""
    tool_call: Optional[ToolCall] = None


def parse_arguments(args: Any) -> Dict[str, Any]:
    """Tool arguments arrive as a JSON string or a dict; anything unusable becomes {}."""
    if isinstance(args, dict):
        return args
    if isinstance(args, str) and args.strip():
        try:
            parsed = json.loads(args)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def get_field(obj: Any, key: str, default=None):
    """
    Safe getter for both dict payloads and SDK objects.
    """
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


class LLMProvider(abc.ABC):
    """
    One model backend. complete() raises ProviderError on any failure; the
    router handles failover. Calls must be safe to resend.
    """
    provider_id: str = ""
    tool_format: str = "chat"
    # False for backends that cannot phrase free text (skipped by respond()).
    supports_plain: bool = True

    def __init__(self, model: str):
        self.model = model

    @abc.abstractmethod
    def available(self) -> bool:
        """True when the backend is configured (e.g. has an API key)."""

    @abc.abstractmethod
    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Any]] = None,
        temperature: float = 0.4,
    ) -> NativeReply:
        """Run one completion. tools are already in this backend's native format."""
