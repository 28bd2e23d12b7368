from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

logger = logging.getLogger("shop.catalog.search")

# ---------------------------
# Query parsing
# ---------------------------

_NUM = r"(\d+(?:,\d{3})*(?:\.\d{1,2})?)"
_CUR = r"[$₹€£]?"

# (pattern, strong). A weak cue ("within 2", "from 2023") only counts as a
# price when a currency symbol or a price word is present.
_MAX_PRICE_RES = [
    (re.compile(rf"(?:under|below|less than|cheaper than|budget(?: of)?)\s*{_CUR}\s*{_NUM}", re.I), True),
    (re.compile(rf"(?:max|maximum|up to|within)\s*{_CUR}\s*{_NUM}", re.I), False),
    (re.compile(rf"[$₹€£]\s*{_NUM}\s*(?:or less|max|maximum|budget)", re.I), True),
    (re.compile(rf"{_NUM}\s*(?:or less|and under|and below)", re.I), True),
]
_MIN_PRICE_RES = [
    (re.compile(rf"(?:over|above|more than)\s*{_CUR}\s*{_NUM}", re.I), True),
    (re.compile(rf"(?:at least|minimum|starting at|from)\s*{_CUR}\s*{_NUM}", re.I), False),
    (re.compile(rf"[$₹€£]\s*{_NUM}\s*(?:or more|minimum|and above|and up|\+)", re.I), True),
]
_RANGE_RES = [
    (re.compile(rf"between\s*{_CUR}\s*{_NUM}\s*and\s*{_CUR}\s*{_NUM}", re.I), True),
    (re.compile(rf"{_CUR}\s*{_NUM}\s*(?:-|–|to)\s*{_CUR}\s*{_NUM}", re.I), False),
]

_CURRENCY_RE = re.compile(r"[$₹€£]")
_PRICE_WORD_RE = re.compile(
    r"\b(?:price[sd]?|pricing|budget|cost|costs|spend|dollars?|bucks|usd|eur|euros?|rupees|inr|pounds|gbp)\b", re.I
)
# A number followed by a unit is a quantity, not a price.
_UNIT_RE = re.compile(
    r"\s*(?:%|days?\b|weeks?\b|months?\b|years?\b|hours?\b|hrs?\b|minutes?\b|mins?\b|items?\b|pieces?\b|"
    r"pcs\b|units?\b|people\b|colou?rs?\b|sizes?\b|inch(?:es)?\b|cm\b|mm\b|kg\b|lbs?\b|gb\b|tb\b|km\b|miles?\b)",
    re.I,
)

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "electronics": ["electronics", "electronic", "gadget", "tech", "device", "headphone", "speaker", "camera"],
    "accessories": ["accessories", "accessory", "watch", "jewelry", "bag", "belt", "wallet"],
    "beauty": ["beauty", "cosmetic", "skincare", "makeup", "fragrance", "perfume"],
    "grocery": ["grocery", "groceries", "food", "snack", "beverage", "drink"],
    "footwear": ["footwear", "shoe", "sneaker", "boot", "sandal", "slipper", "loafer"],
    "clothing": ["clothing", "clothes", "shirt", "pant", "trouser", "dress", "jacket", "apparel", "t-shirt", "tshirt", "jeans"],
    "fitness": ["fitness", "gym", "exercise", "workout", "athletic", "yoga"],
    "furniture": ["furniture", "chair", "table", "desk", "sofa"],
    "home": ["home", "kitchen", "decor", "appliance", "household"],
}

COLOR_KEYWORDS = [
    "red", "blue", "green", "yellow", "black", "white", "gray", "grey", "brown", "pink",
    "purple", "orange", "navy", "beige", "tan", "silver", "gold", "cream", "maroon", "teal",
    "olive", "khaki",
]

_STOP_WORDS = {
    "under", "below", "above", "over", "less", "more", "than", "budget", "cheap", "expensive",
    "affordable", "maximum", "minimum", "dollars", "dollar", "usd", "rupees", "inr", "between",
    "and", "the", "for", "with", "show", "find", "some", "any", "want", "need", "looking",
}

_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9-]+")


def _tokenize(q: str) -> List[str]:
    return [p for p in _TOKEN_SPLIT_RE.split((q or "").lower()) if p]


def _to_float(s: str) -> float:
    return float(s.replace(",", ""))


def _variants(word: str) -> List[str]:
    out = [word]
    if word.endswith("es") and len(word) > 4:
        out.append(word[:-2])
    if word.endswith("s") and len(word) > 3:
        out.append(word[:-1])
    else:
        out.append(word + "s")
    return out


@dataclass
class SearchFilters:
    max_price: Optional[float] = None
    min_price: Optional[float] = None
    category: Optional[str] = None
    colors: List[str] = field(default_factory=list)
    terms: List[str] = field(default_factory=list)

    def active(self) -> bool:
        return (
            self.max_price is not None
            or self.min_price is not None
            or bool(self.category)
            or bool(self.colors)
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out.pop("terms")
        return out


def _find_price(patterns, q: str, price_context: bool):
    for rx, strong in patterns:
        for m in rx.finditer(q):
            if any(_UNIT_RE.match(q, m.end(g)) for g in range(1, rx.groups + 1)):
                continue
            if not strong and not price_context and not _CURRENCY_RE.search(m.group(0)):
                continue
            return m
    return None


def extract_price_bounds(query: str) -> Dict[str, Optional[float]]:
    """
    Pull min/max price constraints out of free text. Ranges win over single bounds.

    Only numbers that read as prices count: "ships within 2 days" or
    "shirts from 2023" yield no bound.
    """
    q = query or ""
    price_context = bool(_CURRENCY_RE.search(q) or _PRICE_WORD_RE.search(q))

    m = _find_price(_RANGE_RES, q, price_context)
    if m:
        lo, hi = _to_float(m.group(1)), _to_float(m.group(2))
        return {"min_price": min(lo, hi), "max_price": max(lo, hi)}

    max_m = _find_price(_MAX_PRICE_RES, q, price_context)
    min_m = _find_price(_MIN_PRICE_RES, q, price_context)
    return {
        "min_price": _to_float(min_m.group(1)) if min_m else None,
        "max_price": _to_float(max_m.group(1)) if max_m else None,
    }


def detect_category(query: str) -> Optional[str]:
    tokens = set(_tokenize(query))
    for category, keywords in CATEGORY_KEYWORDS.items():
        for kw in keywords:
            if any(v in tokens for v in _variants(kw)):
                return category
    return None


def parse_query(query: str, max_price: Optional[float] = None, min_price: Optional[float] = None) -> SearchFilters:
    """Explicit bounds override anything parsed from the text."""
    bounds = extract_price_bounds(query)
    tokens = _tokenize(query)
    colors = [c for c in COLOR_KEYWORDS if c in tokens]
    terms = [
        t for t in tokens
        if len(t) > 2 and t not in _STOP_WORDS and not re.fullmatch(r"\d+(?:\.\d+)?", t)
    ]
    return SearchFilters(
        max_price=max_price if max_price is not None else bounds["max_price"],
        min_price=min_price if min_price is not None else bounds["min_price"],
        category=detect_category(query),
        colors=colors,
        terms=terms,
    )


# ---------------------------
# Scoring
# ---------------------------

def category_matches(product_category: str, category: str) -> bool:
    """A catalog category such as "shirts" belongs to the detected "clothing" group."""
    pc = (product_category or "").lower()
    if pc == category:
        return True
    return any(kw in pc for kw in CATEGORY_KEYWORDS.get(category, []))


def _passes(p: Dict[str, Any], f: SearchFilters) -> bool:
    price = float(p.get("price") or 0)
    if f.max_price is not None and price > f.max_price:
        return False
    if f.min_price is not None and price < f.min_price:
        return False
    if f.category and not category_matches(p.get("category") or "", f.category):
        return False
    if f.colors:
        pcolors = [c.lower() for c in p.get("colors") or []]
        if not any(c in pc or pc in c for c in f.colors for pc in pcolors):
            return False
    return True


def _score(p: Dict[str, Any], f: SearchFilters, phrase: str) -> float:
    haystack = " ".join(
        [p.get("name") or "", p.get("description") or "", p.get("category") or ""] + list(p.get("tags") or [])
    ).lower()
    score = 0.0
    for term in f.terms:
        if any(v in haystack for v in _variants(term)):
            score += 1.0
    if phrase and phrase in haystack:
        score += 2.0
    if f.max_price:
        ratio = float(p.get("price") or 0) / f.max_price
        if 0.7 <= ratio <= 1.0:
            score += 0.5
    return score


def search_products(
    products: List[Dict[str, Any]],
    query: str,
    *,
    max_price: Optional[float] = None,
    min_price: Optional[float] = None,
    limit: int = 10,
) -> Dict[str, Any]:
    """
    Lexical product search with price / category / colour filters.

    Without any filter a product needs at least one matching term.
    Returns {"items": [...], "filters": {...}}.
    """
    f = parse_query(query, max_price=max_price, min_price=min_price)
    phrase = (query or "").lower().strip()

    scored = []
    for p in products:
        if not _passes(p, f):
            continue
        s = _score(p, f, phrase)
        if s <= 0 and not f.active():
            continue
        scored.append((s, p))

    # Stable sort keeps catalog order for ties
    scored.sort(key=lambda x: x[0], reverse=True)
    items = [p for _, p in scored[:limit]]
    logger.info(f"Search '{query}' filters={f.to_dict()} -> {len(items)} items")
    return {"items": items, "filters": f.to_dict()}
