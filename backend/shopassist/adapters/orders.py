import logging
from typing import Any, Dict

from shopassist.tools.base import ToolContext
from shopassist.tools.schemas import CancelOrderParams, OrderParams

logger = logging.getLogger("shop.adapters.orders")


async def view_orders(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    orders = ctx.store.get_orders(ctx.tenant_id, ctx.session_id)
    return {"success": True, "orders": [o.to_dict() for o in orders], "count": len(orders)}


async def get_order_status(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = OrderParams.model_validate(params)
    order = ctx.store.get_order(ctx.tenant_id, ctx.session_id, p.order_id)
    if order is None:
        return {"success": False, "message": f"Order {p.order_id} not found."}
    return {"success": True, "orderId": order.order_id, "status": order.status, "order": order.to_dict()}


async def cancel_order(params: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    p = CancelOrderParams.model_validate(params)
    order, error = await ctx.store.cancel_order(ctx.tenant_id, ctx.session_id, p.order_id, p.reason)
    if error:
        out = {"success": False, "message": f"Cannot cancel order {p.order_id}: {error}."}
        if order is not None:
            out["order"] = order.to_dict()
        return out
    return {"success": True, "order": order.to_dict()}


HANDLERS = {
    "view_orders": view_orders,
    "get_order_status": get_order_status,
    "cancel_order": cancel_order,
}
