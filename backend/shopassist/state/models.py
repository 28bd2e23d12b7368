from __future__ import annotations

import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
ORDER_CANCELLED = "cancelled"


@dataclass
class CartLine:
    """
    One cart line. price_snapshot is captured when the line is created and
    never re-read from the catalog afterwards.
    """
    product_id: str
    name: str
    quantity: int
    price_snapshot: float
    currency: str = "USD"
    category: str = ""

    @property
    def subtotal(self) -> float:
        return round(self.price_snapshot * self.quantity, 2)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["subtotal"] = self.subtotal
        return out


@dataclass
class Order:
    order_id: str
    lines: List[CartLine]
    total_amount: float
    total_items: int
    status: str = ORDER_PENDING
    payment_method: str = "COD"
    created_at: float = field(default_factory=time.time)
    cancelled_at: Optional[float] = None
    cancel_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "status": self.status,
            "items": [line.to_dict() for line in self.lines],
            "totalAmount": self.total_amount,
            "totalItems": self.total_items,
            "paymentMethod": self.payment_method,
            "createdAt": self.created_at,
            "cancelledAt": self.cancelled_at,
            "cancelReason": self.cancel_reason,
        }


@dataclass
class PreferenceProfile:
    # Lower-cased key -> accumulated weight
    categories: Dict[str, float] = field(default_factory=dict)
    colors: Dict[str, float] = field(default_factory=dict)
    tags: Dict[str, float] = field(default_factory=dict)
    interaction_count: int = 0
    recent_product_ids: List[str] = field(default_factory=list)
    last_query: str = ""


@dataclass
class SessionContext:
    """
    Per (tenant, session) state. Only SessionStateStore writes to it.
    """
    tenant_id: str
    session_id: str
    cart: List[CartLine] = field(default_factory=list)
    last_products: List[Dict[str, Any]] = field(default_factory=list)
    last_matched_ids: List[str] = field(default_factory=list)
    profile: PreferenceProfile = field(default_factory=PreferenceProfile)
    # Bumped on every write; lets callers detect concurrent modification.
    version: int = 0
    updated_at: float = field(default_factory=time.time)

    def cart_summary(self) -> Dict[str, Any]:
        return summarize_lines(self.cart)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "sessionId": self.session_id,
            "cart": [line.to_dict() for line in self.cart],
            "summary": self.cart_summary(),
            "lastProducts": self.last_products,
            "lastMatchedIds": self.last_matched_ids,
            "profile": asdict(self.profile),
            "version": self.version,
        }


def summarize_lines(lines: List[CartLine]) -> Dict[str, Any]:
    total_items = sum(line.quantity for line in lines)
    total_amount = round(sum(line.price_snapshot * line.quantity for line in lines), 2)
    return {"totalItems": total_items, "totalAmount": total_amount, "lineCount": len(lines)}
