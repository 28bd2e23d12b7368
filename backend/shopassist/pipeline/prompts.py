from typing import Any, Dict, List, Optional

MAX_HISTORY_TURNS = 10

GREETING_RULES = """=== GREETINGS ===
If the message is only a greeting or filler ("hi", "thanks", "ok", "good morning"):
- reply with one short friendly sentence and ask what they are looking for
- do NOT mention products and do NOT call any tool"""

TOOL_RULES = """=== TOOLS FIRST ===
You MUST call the matching tool BEFORE claiming an action happened.
- find or browse products -> search_products / recommend_products
- complete look for an occasion -> recommend_outfit
- compare named products -> compare_products
- add one item -> add_to_cart; add a whole outfit -> add_outfit_to_cart
- remove an item -> remove_from_cart; see the cart -> view_cart
- buy now / place order -> checkout
- order history, status or cancellation -> view_orders / get_order_status / cancel_order
If the user asks to change style, formality or colours of an outfit, call recommend_outfit again.
Reply with text only for small talk, store questions, or to ask for clarification."""

ANTI_HALLUCINATION_RULES = """=== GROUNDING ===
1. NEVER invent product names, prices, ids or attributes.
2. ONLY mention products returned by a tool.
3. Use the EXACT product names from the data you are given.
4. If you are not sure, say so."""

TONE_RULES = """=== TONE ===
Short and confident: 2-3 sentences, friendly, no marketing fluff."""


def build_system_prompt(tenant: Any, profile_summary: str = "", recent_products: str = "", hint: str = "") -> str:
    persona = getattr(tenant, "persona", None)
    name = getattr(persona, "name", None) or "Aria"
    role = getattr(persona, "role", None) or "AI shopping assistant"
    tone = getattr(persona, "tone", None)
    store_name = getattr(tenant, "display_name", None) or "our store"

    parts = [
        f"You are {name}, {role} for {store_name}.",
        "The user already sees your introduction in the app. Answer the latest message directly.",
        "",
        GREETING_RULES,
        "",
        TOOL_RULES,
        "",
        ANTI_HALLUCINATION_RULES,
        "",
        TONE_RULES,
    ]
    if tone:
        parts.append(f"Tone: {tone}.")
    if profile_summary:
        parts += ["", f"USER PREFERENCES (learned): {profile_summary}"]
    if hint:
        parts.append(hint)
    if recent_products:
        parts += ["", recent_products]
    return "\n".join(parts)


def build_grounded_system_prompt(tenant: Any, rules: str) -> str:
    persona = getattr(tenant, "persona", None)
    name = getattr(persona, "name", None) or "Aria"
    tone = getattr(persona, "tone", None)
    parts = [f"You are {name}, a shopping assistant. You MUST ONLY talk about the exact products I give you."]
    if tone:
        parts.append(f"Your tone should be: {tone}.")
    parts += ["", ANTI_HALLUCINATION_RULES, "", TONE_RULES, "", rules]
    return "\n".join(parts)


def build_messages(
    system_prompt: str,
    user_message: str,
    history: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, str]]:
    """System prompt, the last few user/assistant turns, then the new user message."""
    messages = [{"role": "system", "content": system_prompt}]
    for msg in (history or [])[-MAX_HISTORY_TURNS:]:
        role = msg.get("role")
        content = msg.get("content")
        if role in ("user", "assistant") and isinstance(content, str) and content.strip():
            messages.append({"role": role, "content": content})
    messages.append({"role": "user", "content": user_message})
    return messages
