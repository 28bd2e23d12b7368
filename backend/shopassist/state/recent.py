import re
from typing import Any, Dict, List, Optional

MAX_CONTEXT_PRODUCTS = 10

_ORDINALS = [
    (re.compile(r"\b(first|1st)\b"), 0),
    (re.compile(r"\b(second|2nd)\b"), 1),
    (re.compile(r"\b(third|3rd)\b"), 2),
    (re.compile(r"\b(fourth|4th)\b"), 3),
    (re.compile(r"\b(fifth|5th)\b"), 4),
    (re.compile(r"\b(sixth|6th)\b"), 5),
    (re.compile(r"\b(seventh|7th)\b"), 6),
    (re.compile(r"\b(eighth|8th)\b"), 7),
    (re.compile(r"\b(ninth|9th)\b"), 8),
    (re.compile(r"\b(tenth|10th)\b"), 9),
]
_DEICTIC_RE = re.compile(r"\b(that\s+one|this\s+one|it)\b")
_CHEAPER_RE = re.compile(r"\b(cheaper|cheapest|less expensive|lower price|budget|affordable|within.*budget)\b")


def _ordered_matches(products: List[Dict[str, Any]], matched_ids: List[str]) -> List[Dict[str, Any]]:
    by_id = {p.get("id"): p for p in products if isinstance(p, dict)}
    return [by_id[pid] for pid in matched_ids if pid in by_id]


def build_recent_products_context(products: List[Dict[str, Any]], matched_ids: List[str]) -> str:
    """
    Indexed list of the products last shown to the user, for the Stage 1
    system prompt, so "the second one" can be mapped to a real id.
    """
    if not products or not matched_ids:
        return ""
    matched = _ordered_matches(products, matched_ids)[:MAX_CONTEXT_PRODUCTS]
    if not matched:
        return ""

    lines = [
        "=== RECENT PRODUCTS SHOWN TO USER (indexed list) ===",
        'Use this list to resolve ordinal references like "the first", "the second", etc.',
        "",
    ]
    for idx, p in enumerate(matched, start=1):
        lines.append(f"{idx}. ID: {p.get('id')}")
        lines.append(f"   Name: {p.get('name')}")
        lines.append(f"   Category: {p.get('category') or 'unknown'}")
        lines.append(f"   Price: {p.get('price', 0)} {p.get('currency') or 'USD'}")
        if p.get("colors"):
            lines.append(f"   Colors: {', '.join(p['colors'])}")
        if p.get("tags"):
            lines.append(f"   Tags: {', '.join(p['tags'])}")
        lines.append("")

    lines += [
        "=== REFERENCE RESOLUTION RULES ===",
        '- "the first one", "first" -> Index 1 in the list above',
        '- "the second one", "second" -> Index 2 in the list above',
        '- "a cheaper option" -> products with a LOWER price in the same category',
        '- "more expensive", "premium" -> products with a HIGHER price in the same category',
        '- "similar to that one" -> products with similar category/tags',
        '- "within my budget of X" -> filter to products under price X',
        "=== END REFERENCE RULES ===",
    ]
    return "\n".join(lines)


def resolve_reference(message: str, recent_products: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Map "the third one" / "that one" to an entry of the recent product list."""
    if not message or not recent_products:
        return None
    lower = message.lower()
    for pattern, index in _ORDINALS:
        if pattern.search(lower) and index < len(recent_products):
            return recent_products[index]
    if _DEICTIC_RE.search(lower):
        return recent_products[0]
    return None


def is_asking_for_cheaper(message: str) -> bool:
    return bool(message) and bool(_CHEAPER_RE.search(message.lower()))

