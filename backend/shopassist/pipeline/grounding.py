"""
Stage 2 helpers: prompts built from the literal action result, template
replies for actions that need no phrasing, and the post-generation check
that real result names actually appear in the text.
"""
import logging
from typing import Any, Dict, List, Optional

from shopassist.pipeline.prompts import build_grounded_system_prompt

logger = logging.getLogger("shop.pipeline.grounding")

PROMPT_ITEM_LIMIT = 5
MIN_NAMED_ITEMS = 2

# Actions whose reply is phrased by the model from the result
PHRASED_ACTIONS = {"search_products", "recommend_products", "recommend_outfit", "compare_products"}

OUTFIT_RULES = """CRITICAL RULES:
1. ONLY describe the shirt, pant and shoe listed below
2. DO NOT add accessories, bags or watches unless they are listed
3. Use the exact product names provided"""

PRODUCT_RULES = """CRITICAL RULES:
1. ONLY describe products from the list below
2. Use the exact product names provided
3. Keep the response concise and helpful"""


def extract_products(result: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Product dicts from a result: items / results / products list, or outfit slots."""
    if not result:
        return []
    items = result.get("items") or result.get("results") or result.get("products") or []
    if isinstance(items, dict):
        items = [p for p in items.values() if isinstance(p, dict) and p.get("id")]
    return [p for p in items if isinstance(p, dict)] if isinstance(items, list) else []


def item_names(products: List[Dict[str, Any]], limit: int = PROMPT_ITEM_LIMIT) -> List[str]:
    names: List[str] = []
    for p in products[:limit]:
        name = (p.get("name") or "").strip()
        if name and name not in names:
            names.append(name)
    return names


def _fmt_product(p: Dict[str, Any]) -> List[str]:
    return [
        f"   - Price: {p.get('price')} {p.get('currency') or ''}".rstrip(),
        f"   - Category: {p.get('category') or ''}",
        f"   - Colors: {', '.join(p.get('colors') or [])}",
        f"   - Tags: {', '.join(p.get('tags') or [])}",
    ]


def build_grounded_messages(tenant: Any, action: str, user_message: str, result: Dict[str, Any]) -> List[Dict[str, str]]:
    lines = [f'User asked: "{user_message}"', ""]

    if action == "recommend_outfit":
        system = build_grounded_system_prompt(tenant, OUTFIT_RULES)
        outfit = result.get("items") or {}
        lines.append("Here is the outfit selected from our catalog. ONLY talk about these exact items:")
        lines.append("")
        for slot in ("shirt", "pant", "shoe"):
            p = outfit.get(slot)
            if p:
                lines.append(f"{slot.upper()}: {p.get('name')}")
                lines += _fmt_product(p)
                lines.append("")
        if result.get("occasion"):
            lines.append(f"Tie the outfit to the occasion: {result['occasion']}.")
        lines.append(
            "Write 2-3 friendly sentences on why these pieces work together. "
            "Mention each product by its exact name. Do not recommend anything else."
        )
    else:
        system = build_grounded_system_prompt(tenant, PRODUCT_RULES)
        products = extract_products(result)[:PROMPT_ITEM_LIMIT]
        intro = "Here are the products to compare" if action == "compare_products" else "Here are the products I found"
        lines.append(f"{intro}. ONLY talk about these exact items:")
        lines.append("")
        for idx, p in enumerate(products, start=1):
            lines.append(f"{idx}. {p.get('name')}")
            lines += _fmt_product(p)
            lines.append("")
        if action == "compare_products":
            lines.append("Write 2-3 sentences contrasting them on price and style, using their exact names.")
        else:
            lines.append(
                "Write 2-3 sentences introducing these products. Mention at least two by their exact names "
                "and say briefly why they fit the request. Do not mention any product not in this list."
            )

    return [{"role": "system", "content": system}, {"role": "user", "content": "\n".join(lines)}]


def ensure_grounded(text: str, names: List[str]) -> str:
    """
    For results with 2+ distinct names, make sure at least two appear
    verbatim; otherwise append a sentence naming the missing ones.
    """
    if len(names) < MIN_NAMED_ITEMS:
        return text
    present = _names_present(text, names)
    if len(present) >= MIN_NAMED_ITEMS:
        return text

    missing = [n for n in names if n not in present]
    # Name enough of the top results to reach the minimum, at least the top three.
    needed = max(MIN_NAMED_ITEMS - len(present), min(3, len(names)) - len(present))
    to_add = missing[:needed]
    logger.info(f"Grounding check: {len(present)} names present, appending {to_add}")
    clause = f"The results include {_join_names(to_add)}."
    return f"{text.rstrip()} {clause}".strip() if text else clause


def _names_present(text: str, names: List[str]) -> List[str]:
    # Longest first, consuming each match, so "Classic Tee" is not found inside "Classic Tee Black".
    remaining = text or ""
    found = set()
    for n in sorted(set(names), key=len, reverse=True):
        if n and n in remaining:
            found.add(n)
            remaining = remaining.replace(n, " ")
    return [n for n in names if n in found]


def _join_names(names: List[str]) -> str:
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]


# ---------------------------
# Template replies
# ---------------------------

def template_response(action: str, result: Dict[str, Any]) -> Optional[str]:
    """Deterministic reply, or None when the result should be phrased by the model."""
    if result.get("success") is False:
        return f"I couldn't complete that. {result.get('message') or 'Please try again.'}"

    if action in PHRASED_ACTIONS:
        products = extract_products(result)
        if not products:
            if action == "recommend_outfit":
                return "I couldn't put together an outfit for that request. Could you tell me a bit more?"
            return "I couldn't find any products matching your request. Try a different search?"
        if len(products) == 1 and action != "recommend_outfit":
            return f"I found {products[0]['name']} for you. Take a look!"
        return None

    summary = result.get("summary") or {}
    if action == "add_to_cart":
        item = result.get("addedItem") or {}
        qty = int(result.get("quantity") or 1)
        prefix = f"{qty} x " if qty > 1 else ""
        return (
            f"Added {prefix}{item.get('name', 'the item')} to your cart. "
            f"You now have {summary.get('totalItems', qty)} item(s) totalling {summary.get('totalAmount', 0):.2f}."
        )
    if action in ("add_outfit_to_cart", "add_multiple_to_cart"):
        names = [i.get("name") for i in result.get("addedItems") or []]
        return f"Added {_join_names(names)} to your cart. Your cart total is now {summary.get('totalAmount', 0):.2f}. Ready to checkout?"
    if action == "remove_from_cart":
        item = result.get("removedItem") or {}
        return f"Removed {item.get('name', 'the item')} from your cart."
    if action == "view_cart":
        lines = result.get("cart") or []
        if not lines:
            return "Your cart is empty. Want me to help you find something?"
        names = [line.get("name") for line in lines[:3]]
        more = f" and {len(lines) - 3} more" if len(lines) > 3 else ""
        return (
            f"You have {summary.get('totalItems', 0)} item(s) in your cart: {', '.join(names)}{more}. "
            f"Total: {summary.get('totalAmount', 0):.2f}."
        )
    if action == "checkout":
        order = result.get("order") or {}
        return (
            f"Order confirmed! Your order #{order.get('orderId')} for {order.get('totalAmount', 0):.2f} "
            f"({order.get('paymentMethod', 'COD')}) has been placed."
        )
    if action == "view_orders":
        orders = result.get("orders") or []
        if not orders:
            return "You don't have any orders yet."
        latest = orders[0]
        return f"You have {len(orders)} order(s). The latest, #{latest['orderId']}, is {latest['status']}."
    if action == "get_order_status":
        return f"Order #{result.get('orderId')} is {result.get('status')}."
    if action == "cancel_order":
        order = result.get("order") or {}
        return f"Order #{order.get('orderId')} has been cancelled."
    return "Done. Is there anything else I can help with?"


def fallback_explanation(action: str, result: Dict[str, Any]) -> str:
    """Used when no backend could phrase Stage 2."""
    names = item_names(extract_products(result), limit=3)
    if action == "recommend_outfit" and names:
        return f"I've put together an outfit for you: {_join_names(names)}. These pieces work well together."
    if action == "compare_products" and names:
        return f"Here's how {_join_names(names)} compare side by side."
    if names:
        return f"I found some great options for you, including {_join_names(names)}. Take a look!"
    return "Here's what I found. Let me know if you'd like more details."
