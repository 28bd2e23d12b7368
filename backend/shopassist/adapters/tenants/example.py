"""
Overrides for the "example" tenant. Only search is customised: results are
limited to products tagged "premium" when the shopper asks for premium
items, and premium products are ranked first otherwise. Everything else is
inherited from the generic commerce adapter.
"""
import logging
from typing import Any, Dict

from shopassist.adapters import commerce
from shopassist.tools.base import ToolContext

logger = logging.getLogger("shop.adapters.example")


def _is_premium(product: Dict[str, Any]) -> bool:
    return "premium" in [t.lower() for t in product.get("tags") or []]


async def search(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    logger.info(f"Custom search for tenant {ctx.tenant_id}: {params.get('query')!r}")
    out = await commerce.search(params, ctx)
    items = out["items"]
    if "premium" in (params.get("query") or "").lower():
        items = [p for p in items if _is_premium(p)]
    else:
        items = sorted(items, key=lambda p: not _is_premium(p))
    out.update(items=items, count=len(items), premiumFirst=True)
    return out


HANDLERS = {"search": search}
