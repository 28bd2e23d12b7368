from dataclasses import dataclass
from typing import Any, Dict, List

from shopassist.tools.registry import ActionRegistry


@dataclass(frozen=True)
class ToolDef:
    name: str
    description: str
    parameters: Dict[str, Any]


def build_tool_defs(registry: ActionRegistry) -> List[ToolDef]:
    """Tool definitions for every enabled action of the tenant registry."""
    return [
        ToolDef(name=a.name, description=a.description or a.name.replace("_", " "), parameters=a.tool_parameters())
        for a in registry.enabled_actions()
    ]


def to_responses_tools(defs: List[ToolDef]) -> List[Dict[str, Any]]:
    # OpenAI Responses API: type/name/parameters are flattened.
    return [
        {
            "type": "function",
            "name": d.name,
            "description": d.description,
            "parameters": d.parameters,
            "strict": False,
        }
        for d in defs
    ]


def to_chat_tools(defs: List[ToolDef]) -> List[Dict[str, Any]]:
    # Chat Completions style (LiteLLM): schema nested under "function".
    return [
        {
            "type": "function",
            "function": {"name": d.name, "description": d.description, "parameters": d.parameters},
        }
        for d in defs
    ]


def to_tool_names(defs: List[ToolDef]) -> List[str]:
    return [d.name for d in defs]


TRANSLATORS = {
    "responses": to_responses_tools,
    "chat": to_chat_tools,
    "names": to_tool_names,
}


def translate(defs: List[ToolDef], tool_format: str) -> List[Any]:
    try:
        return TRANSLATORS[tool_format](defs)
    except KeyError:
        raise ValueError(f"Unknown tool format: {tool_format}")
