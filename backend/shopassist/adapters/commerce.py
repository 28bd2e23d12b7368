"""
Generic commerce adapter: catalog search, recommendations, comparison and
cart operations. Every handler takes (params, ctx) and returns a JSON-able
dict; parameter validation errors propagate to the dispatcher.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from shopassist.catalog.search import search_products
from shopassist.state.recent import resolve_reference
from shopassist.tools.base import ToolContext
from shopassist.tools.schemas import (
    AddMultipleParams,
    AddOutfitParams,
    AddToCartParams,
    CheckoutParams,
    CompareParams,
    OutfitParams,
    RecommendParams,
    RemoveFromCartParams,
    SearchParams,
)

logger = logging.getLogger("shop.adapters.commerce")

_COMPARE_SPLIT_RE = re.compile(r"\s+(?:and|vs\.?|versus|or|with)\s+|,", re.I)
_COMPARE_PREFIX_RE = re.compile(r"^\s*(?:please\s+)?(?:compare|comparison of|difference between)\s+", re.I)


def _cart_payload(lines, summary) -> Dict[str, Any]:
    return {"cart": [line.to_dict() for line in lines], "summary": summary}


def _find_product(ctx: ToolContext, product_ref: Optional[str]) -> Optional[Dict[str, Any]]:
    """Catalog id, then exact/partial name, then an ordinal reference to recent results."""
    tenant_id = ctx.tenant_id
    if product_ref:
        product = ctx.catalog.get_product(tenant_id, product_ref) or ctx.catalog.find_by_name(tenant_id, product_ref)
        if product:
            return product
    ref = resolve_reference(ctx.message, ctx.recent_products)
    if ref and ref.get("id"):
        return ctx.catalog.get_product(tenant_id, ref["id"])
    return None


async def search(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = SearchParams.model_validate(params)
    products = ctx.catalog.list_products(ctx.tenant_id)
    found = search_products(
        products, p.query, max_price=p.max_price, min_price=p.min_price, limit=p.limit or ctx.search_limit
    )
    items = found["items"]
    return {
        "success": True,
        "query": p.query,
        "items": items,
        "count": len(items),
        "filters": found["filters"],
        "message": (
            f"Found {len(items)} products matching \"{p.query}\""
            if items else f"No products found for \"{p.query}\". Try broadening your search."
        ),
    }


async def recommend(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = RecommendParams.model_validate(params)
    products = ctx.catalog.list_products(ctx.tenant_id)
    items = ctx.recommender.recommend(products, p.query, p.preferences, limit=p.limit)
    return {"success": True, "query": p.query, "preferences": p.preferences, "items": items, "count": len(items)}


async def recommend_outfit(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = OutfitParams.model_validate(params)
    products = ctx.catalog.list_products(ctx.tenant_id)
    query = " ".join(x for x in [p.occasion, p.query] if x).strip()
    outfit = ctx.recommender.recommend_outfit(products, query, p.preferences)
    total = round(sum(float(item.get("price") or 0) for item in outfit.values()), 2)
    return {
        "success": bool(outfit),
        "occasion": p.occasion or None,
        "items": outfit,
        "totalPrice": total,
        "complete": all(slot in outfit for slot in ("shirt", "pant", "shoe")),
    }


def _names_from_query(query: str) -> List[str]:
    text = _COMPARE_PREFIX_RE.sub("", query or "").strip(" ?.!")
    return [part.strip(" ?.!\"'") for part in _COMPARE_SPLIT_RE.split(text) if part and part.strip(" ?.!\"'")]


async def compare(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = CompareParams.model_validate(params)
    tenant_id = ctx.tenant_id

    refs = p.product_ids + p.product_names
    if not refs:
        refs = _names_from_query(p.query)

    items: List[Dict[str, Any]] = []
    missing: List[str] = []
    for ref in refs:
        product = ctx.catalog.get_product(tenant_id, ref) or ctx.catalog.find_by_name(tenant_id, ref)
        if product is None:
            missing.append(ref)
        elif all(product["id"] != it["id"] for it in items):
            items.append(product)

    if len(items) < 2:
        return {
            "success": False,
            "items": items,
            "products": items,
            "missing": missing,
            "message": "I need at least two catalog products to compare.",
        }

    attributes = ["price", "category", "colors", "tags"]
    rows = [{"attribute": attr, "values": {it["id"]: it.get(attr) for it in items}} for attr in attributes]
    cheapest = min(items, key=lambda it: float(it.get("price") or 0))
    return {
        "success": True,
        "items": items,
        "products": items,
        "missing": missing,
        "comparison": rows,
        "cheapestId": cheapest["id"],
    }


async def add_to_cart(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = AddToCartParams.model_validate(params)
    product = _find_product(ctx, p.product_id)
    if product is None:
        return {"success": False, "message": f"Product '{p.product_id or 'unknown'}' was not found in the catalog."}

    line, _ = await ctx.store.add_to_cart(ctx.tenant_id, ctx.session_id, product, p.quantity)
    lines, summary = ctx.store.view_cart(ctx.tenant_id, ctx.session_id)
    return {"success": True, "addedItem": line.to_dict(), "quantity": p.quantity, **_cart_payload(lines, summary)}


async def _add_products(ctx: ToolContext, refs: List[Any]) -> Dict[str, Any]:
    resolved = []
    missing = []
    for ref, qty in refs:
        product = ctx.catalog.get_product(ctx.tenant_id, ref) if ref else None
        if product is None:
            missing.append(ref)
        else:
            resolved.append((product, qty))
    if missing or not resolved:
        return {"success": False, "missing": missing, "message": "Some of those items are not in the catalog."}

    added, _ = await ctx.store.add_multiple(ctx.tenant_id, ctx.session_id, resolved)
    lines, summary = ctx.store.view_cart(ctx.tenant_id, ctx.session_id)
    return {"success": True, "addedItems": [line.to_dict() for line in added], **_cart_payload(lines, summary)}


async def add_multiple_to_cart(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = AddMultipleParams.model_validate(params)
    return await _add_products(ctx, [(item.product_id, item.quantity) for item in p.items])


async def add_outfit_to_cart(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = AddOutfitParams.model_validate(params)
    ids = [pid for pid in (p.shirt_id, p.pant_id, p.shoe_id) if pid]
    if not ids:
        # "add this outfit" right after a recommendation
        ids = [prod["id"] for prod in ctx.recent_products[:3] if prod.get("id")]
    return await _add_products(ctx, [(pid, 1) for pid in ids])


async def remove_from_cart(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = RemoveFromCartParams.model_validate(params)
    removed, _ = await ctx.store.remove_from_cart(ctx.tenant_id, ctx.session_id, p.product_id)
    lines, summary = ctx.store.view_cart(ctx.tenant_id, ctx.session_id)
    if removed is None:
        return {"success": False, "message": f"'{p.product_id}' is not in your cart.", **_cart_payload(lines, summary)}
    return {"success": True, "removedItem": removed.to_dict(), **_cart_payload(lines, summary)}


async def view_cart(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    lines, summary = ctx.store.view_cart(ctx.tenant_id, ctx.session_id)
    return {"success": True, **_cart_payload(lines, summary)}


async def checkout(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = CheckoutParams.model_validate(params)
    order = await ctx.store.checkout(ctx.tenant_id, ctx.session_id, p.payment_method)
    if order is None:
        return {"success": False, "message": "Your cart is empty."}
    return {"success": True, "order": order.to_dict()}


HANDLERS = {
    "search": search,
    "recommend": recommend,
    "recommend_outfit": recommend_outfit,
    "compare": compare,
    "add_to_cart": add_to_cart,
    "add_multiple_to_cart": add_multiple_to_cart,
    "add_outfit_to_cart": add_outfit_to_cart,
    "remove_from_cart": remove_from_cart,
    "view_cart": view_cart,
    "checkout": checkout,
}
