import json
from typing import Any, Dict, Iterable, List, Optional

from shopassist.state.models import PreferenceProfile

CATEGORY_WEIGHT = 2.0
COLOR_WEIGHT = 1.0
TAG_WEIGHT = 1.0
RECENT_IDS_LIMIT = 10


def _bump(counter: Dict[str, float], key: Any, amount: float) -> None:
    if not isinstance(key, str):
        return
    k = key.strip().lower()
    if not k:
        return
    counter[k] = counter.get(k, 0.0) + amount


def _top(counter: Dict[str, float], n: int) -> List[str]:
    return [k for k, _ in sorted(counter.items(), key=lambda kv: kv[1], reverse=True)[:n]]


def fold_products(profile: PreferenceProfile, products: Iterable[Dict[str, Any]], query: str = "") -> None:
    """
    Fold newly seen products into the running preference profile (in place).
    """
    seen_ids: List[str] = []
    for p in products:
        if not isinstance(p, dict):
            continue
        _bump(profile.categories, p.get("category"), CATEGORY_WEIGHT)
        for c in p.get("colors") or []:
            _bump(profile.colors, c, COLOR_WEIGHT)
        for t in p.get("tags") or []:
            _bump(profile.tags, t, TAG_WEIGHT)
        if p.get("id"):
            seen_ids.append(str(p["id"]))

    if not seen_ids:
        return

    profile.interaction_count += 1
    profile.recent_product_ids = (profile.recent_product_ids + seen_ids)[-RECENT_IDS_LIMIT:]
    if query:
        profile.last_query = query


def build_profile_summary(profile: Optional[PreferenceProfile]) -> str:
    """JSON summary of the strongest preferences, or "" when nothing is learned yet."""
    if profile is None:
        return ""
    top_categories = _top(profile.categories, 3)
    top_colors = _top(profile.colors, 3)
    top_tags = _top(profile.tags, 5)
    if not (top_categories or top_colors or top_tags):
        return ""
    return json.dumps({
        "preferredCategories": top_categories,
        "preferredColors": top_colors,
        "preferredTags": top_tags,
        "interactionCount": profile.interaction_count,
    })


def preference_hint(profile: Optional[PreferenceProfile]) -> str:
    if profile is None or profile.interaction_count < 2:
        return ""
    parts = []
    colors = _top(profile.colors, 2)
    categories = _top(profile.categories, 2)
    if colors:
        parts.append(f"colors like {' and '.join(colors)}")
    if categories:
        parts.append(" and ".join(categories))
    if not parts:
        return ""
    return f"The user seems to like {', '.join(parts)}."
