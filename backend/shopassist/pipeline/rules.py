"""
Deterministic routing rules evaluated around the model decision.

Rules are plain {name, predicate, action} records kept in priority order so
the override surface can be read (and tested) in one place:

- PRE_ROUTING_RULES run before Stage 1 and can bypass the model entirely.
- POST_DECISION_RULES run only when Stage 1 answered with text.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from shopassist.catalog.search import extract_price_bounds
from shopassist.llm.base import ToolCall
from shopassist.state.recent import is_asking_for_cheaper

ROUTE_TOOL = "tool"
ROUTE_GREETING = "greeting"


@dataclass(frozen=True)
class TurnInput:
    message: str
    history: List[Dict[str, Any]] = field(default_factory=list)
    recent_products: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class RouteAction:
    kind: str                        # "tool" | "greeting"
    rule: str
    tool: Optional[ToolCall] = None


@dataclass(frozen=True)
class RoutingRule:
    name: str
    predicate: Callable[[TurnInput], bool]
    action: Callable[[TurnInput], RouteAction]


class RuleSet:
    def __init__(self, rules: List[RoutingRule]):
        self.rules = list(rules)

    def evaluate(self, turn: TurnInput) -> Optional[RouteAction]:
        """First matching rule wins."""
        for rule in self.rules:
            if rule.predicate(turn):
                return rule.action(turn)
        return None

    def names(self) -> List[str]:
        return [r.name for r in self.rules]


# ---------------------------
# Patterns
# ---------------------------

GREETING_PATTERNS = [
    re.compile(r"^(hi|hey|hello|hola|yo|sup)[\s!.,]*$"),
    re.compile(r"^good\s*(morning|afternoon|evening|day)[\s!.,]*$"),
    re.compile(r"^(thanks|thank you|thx|ty)[\s!.,]*$"),
    re.compile(r"^(ok|okay|sure|alright|cool|nice|great|awesome|perfect)[\s!.,]*$"),
    re.compile(r"^what'?s?\s*up[\s!.,?]*$"),
    re.compile(r"^how\s*are\s*you[\s!.,?]*$"),
    re.compile(r"^(no|nope|not really|maybe later|not now)[\s!.,]*$"),
    re.compile(r"^(yes|yeah|yep|yup)[\s!.,]*$"),
]

STYLE_CHANGE_PATTERNS = [
    re.compile(r"more\s+(casual|formal|street|elegant|sporty|relaxed|dressy|comfortable)"),
    re.compile(r"less\s+(formal|casual)"),
    re.compile(r"(lighter|darker|different)\s+colou?r"),
    re.compile(r"change\s+(the\s+)?colou?r"),
    re.compile(r"brighter"),
    re.compile(r"make\s+it\s+more"),
    re.compile(r"switch\s+to"),
    re.compile(r"can\s+(you\s+)?make\s+it"),
    re.compile(r"(try\s+)?something\s+more"),
]

OCCASION_PATTERNS = [
    (re.compile(r"\b(eid|ramadan)\b", re.I), "eid"),
    (re.compile(r"\b(wedding|shaadi|nikah|baraat)\b", re.I), "wedding"),
    (re.compile(r"\b(office|work|formal|business|meeting|interview)\b", re.I), "office"),
    (re.compile(r"\b(casual|everyday|daily|weekend)\b", re.I), "casual"),
    (re.compile(r"\b(party|celebration|club|night out)\b", re.I), "party"),
    (re.compile(r"\b(travel|vacation|trip)\b", re.I), "travel"),
    (re.compile(r"\b(date|dinner|romantic)\b", re.I), "date"),
    (re.compile(r"\b(sport|sports|gym|athletic|workout)\b", re.I), "sports"),
]

_COMPARE_RE = re.compile(r"\b(compare|comparison|versus|vs\.?|difference between)\b", re.I)
_OUTFIT_RE = re.compile(
    r"\b(outfit|complete look|full look|what (should|do|can) i wear|what to wear|dress me|style me)\b", re.I
)
_CART_INTENT_RE = re.compile(r"\b(cart|checkout|check out|buy|order)\b", re.I)


def is_greeting_only(message: str) -> bool:
    text = (message or "").strip().lower()
    return any(p.match(text) for p in GREETING_PATTERNS)


def is_style_change(message: str) -> bool:
    text = (message or "").strip().lower()
    return any(p.search(text) for p in STYLE_CHANGE_PATTERNS)


def extract_occasion(text: str) -> Optional[str]:
    for rx, occasion in OCCASION_PATTERNS:
        if rx.search(text or ""):
            return occasion
    return None


def occasion_from_history(history: List[Dict[str, Any]], default: str = "casual") -> str:
    """Most recent occasion mentioned in the conversation."""
    for msg in reversed(history or []):
        content = msg.get("content", "") if isinstance(msg, dict) else str(msg)
        occasion = extract_occasion(content)
        if occasion:
            return occasion
    return default


# ---------------------------
# Pre-routing rules
# ---------------------------

def _has_price_bound(turn: TurnInput) -> bool:
    if _CART_INTENT_RE.search(turn.message or "") or _OUTFIT_RE.search(turn.message or ""):
        return False
    bounds = extract_price_bounds(turn.message)
    return bounds["max_price"] is not None or bounds["min_price"] is not None


def _price_search(turn: TurnInput) -> RouteAction:
    bounds = extract_price_bounds(turn.message)
    args: Dict[str, Any] = {"query": turn.message.strip()}
    if bounds["max_price"] is not None:
        args["maxPrice"] = bounds["max_price"]
    if bounds["min_price"] is not None:
        args["minPrice"] = bounds["min_price"]
    return RouteAction(ROUTE_TOOL, "price_bounded_search", ToolCall("search_products", args))


def _is_comparison(turn: TurnInput) -> bool:
    return bool(_COMPARE_RE.search(turn.message or ""))


def _comparison(turn: TurnInput) -> RouteAction:
    return RouteAction(ROUTE_TOOL, "comparison", ToolCall("compare_products", {"query": turn.message.strip()}))


def _is_outfit_request(turn: TurnInput) -> bool:
    return bool(_OUTFIT_RE.search(turn.message or "")) and not _CART_INTENT_RE.search(turn.message or "")


def _outfit(turn: TurnInput) -> RouteAction:
    occasion = extract_occasion(turn.message) or occasion_from_history(turn.history)
    return RouteAction(
        ROUTE_TOOL, "outfit_request",
        ToolCall("recommend_outfit", {"occasion": occasion, "query": turn.message.strip()}),
    )


def _is_cheaper_followup(turn: TurnInput) -> bool:
    return bool(turn.recent_products) and is_asking_for_cheaper(turn.message)


def _cheaper(turn: TurnInput) -> RouteAction:
    cheapest = min(float(p.get("price") or 0) for p in turn.recent_products)
    category = turn.recent_products[0].get("category") or ""
    args = {"query": category or turn.message.strip(), "maxPrice": round(max(cheapest - 0.01, 0), 2)}
    return RouteAction(ROUTE_TOOL, "cheaper_followup", ToolCall("search_products", args))


def _greeting(turn: TurnInput) -> RouteAction:
    return RouteAction(ROUTE_GREETING, "greeting")


PRE_ROUTING_RULES = [
    RoutingRule("price_bounded_search", _has_price_bound, _price_search),
    RoutingRule("comparison", _is_comparison, _comparison),
    RoutingRule("outfit_request", _is_outfit_request, _outfit),
    RoutingRule("cheaper_followup", _is_cheaper_followup, _cheaper),
    RoutingRule("greeting", lambda t: is_greeting_only(t.message), _greeting),
]


# ---------------------------
# Post-decision rules
# ---------------------------

def _style_change(turn: TurnInput) -> RouteAction:
    args = {"occasion": occasion_from_history(turn.history), "preferences": turn.message.strip()}
    return RouteAction(ROUTE_TOOL, "style_change", ToolCall("recommend_outfit", args))


POST_DECISION_RULES = [
    RoutingRule("style_change", lambda t: is_style_change(t.message), _style_change),
]


def default_pre_rules() -> RuleSet:
    return RuleSet(PRE_ROUTING_RULES)


def default_post_rules() -> RuleSet:
    return RuleSet(POST_DECISION_RULES)
