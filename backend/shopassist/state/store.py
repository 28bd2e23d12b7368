from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from shopassist.state.models import (
    CartLine,
    Order,
    SessionContext,
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    summarize_lines,
)
from shopassist.state.profile import fold_products

logger = logging.getLogger("shop.state")

SessionKey = Tuple[str, str]

# Orders in these states can no longer be cancelled.
_FINAL_STATUSES = {ORDER_CANCELLED}


class SessionStateStore:
    """
    In-memory store for SessionContext keyed by (tenant_id, session_id).

    - LRU + TTL eviction of idle sessions (max_items / ttl_seconds).
    - Every read-modify-write runs under a per-key asyncio.Lock.
    - Each write bumps SessionContext.version.
    - Orders are kept apart from the context and are not evicted with it.
    """
    def __init__(self, max_items: int = 2000, ttl_seconds: int = 86400):
        self.max_items = max_items
        self.ttl_seconds = ttl_seconds
        self._store: Dict[SessionKey, SessionContext] = {}
        # Keys in access order (MRU at end)
        self._access_order: List[SessionKey] = []
        self._locks: Dict[SessionKey, asyncio.Lock] = {}
        self._orders: Dict[SessionKey, List[Order]] = {}
        self._order_seq = itertools.count(1)

    # ----------------------------
    # Internals
    # ----------------------------

    @staticmethod
    def _key(tenant_id: str, session_id: Optional[str]) -> SessionKey:
        return (tenant_id or "default", session_id or "anonymous")

    def _lock(self, key: SessionKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _touch(self, key: SessionKey) -> None:
        if key in self._access_order:
            self._access_order.remove(key)
        self._access_order.append(key)

    def _drop(self, key: SessionKey) -> None:
        self._store.pop(key, None)
        if key in self._access_order:
            self._access_order.remove(key)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def _evict(self) -> None:
        now = time.time()
        for key in list(self._access_order):
            ctx = self._store.get(key)
            if ctx is not None and now - ctx.updated_at > self.ttl_seconds:
                logger.info(f"Session expired: {key}")
                self._drop(key)
        while len(self._access_order) > self.max_items:
            oldest = self._access_order[0]
            logger.info(f"Session evicted (LRU): {oldest}")
            self._drop(oldest)

    def _context(self, key: SessionKey) -> SessionContext:
        ctx = self._store.get(key)
        if ctx is not None and time.time() - ctx.updated_at > self.ttl_seconds:
            self._drop(key)
            ctx = None
        if ctx is None:
            ctx = SessionContext(tenant_id=key[0], session_id=key[1])
            self._store[key] = ctx
            logger.debug(f"Session created: {key}")
        self._touch(key)
        self._evict()
        return ctx

    @staticmethod
    def _written(ctx: SessionContext) -> None:
        ctx.version += 1
        ctx.updated_at = time.time()

    # ----------------------------
    # Context
    # ----------------------------

    def get(self, tenant_id: str, session_id: Optional[str]) -> SessionContext:
        """
        Return a snapshot of the session, creating an empty one on first access.
        Mutating the snapshot has no effect on the store.
        """
        return copy.deepcopy(self._context(self._key(tenant_id, session_id)))

    async def save_context(
        self,
        tenant_id: str,
        session_id: Optional[str],
        *,
        last_products: Optional[List[Dict[str, Any]]] = None,
        last_matched_ids: Optional[List[str]] = None,
    ) -> SessionContext:
        """Merge recent-result fields. The cart is never touched here."""
        key = self._key(tenant_id, session_id)
        async with self._lock(key):
            ctx = self._context(key)
            if last_products is not None:
                ctx.last_products = copy.deepcopy(last_products)
            if last_matched_ids is not None:
                ctx.last_matched_ids = list(last_matched_ids)
            self._written(ctx)
            return copy.deepcopy(ctx)

    async def update_profile(
        self,
        tenant_id: str,
        session_id: Optional[str],
        products: List[Dict[str, Any]],
        query: str = "",
    ) -> SessionContext:
        key = self._key(tenant_id, session_id)
        async with self._lock(key):
            ctx = self._context(key)
            fold_products(ctx.profile, products, query=query)
            self._written(ctx)
            logger.info(
                f"Profile updated {key}: {ctx.profile.interaction_count} interactions, "
                f"{len(ctx.profile.colors)} colors"
            )
            return copy.deepcopy(ctx)

    # ----------------------------
    # Cart
    # ----------------------------

    @staticmethod
    def _add_line(ctx: SessionContext, product: Dict[str, Any], quantity: int) -> CartLine:
        pid = str(product["id"])
        for line in ctx.cart:
            if line.product_id == pid:
                # Existing line keeps its original price snapshot.
                line.quantity += quantity
                return line
        line = CartLine(
            product_id=pid,
            name=str(product.get("name") or pid),
            quantity=quantity,
            price_snapshot=float(product.get("price") or 0.0),
            currency=str(product.get("currency") or "USD"),
            category=str(product.get("category") or ""),
        )
        ctx.cart.append(line)
        return line

    async def add_to_cart(
        self, tenant_id: str, session_id: Optional[str], product: Dict[str, Any], quantity: int = 1
    ) -> Tuple[CartLine, Dict[str, Any]]:
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        key = self._key(tenant_id, session_id)
        async with self._lock(key):
            ctx = self._context(key)
            line = copy.deepcopy(self._add_line(ctx, product, quantity))
            self._written(ctx)
            logger.info(f"Cart add {key}: {line.product_id} x{quantity}")
            return line, ctx.cart_summary()

    async def add_multiple(
        self, tenant_id: str, session_id: Optional[str], items: List[Tuple[Dict[str, Any], int]]
    ) -> Tuple[List[CartLine], Dict[str, Any]]:
        """Add several products in one critical section (all or nothing)."""
        for _, qty in items:
            if qty < 1:
                raise ValueError("quantity must be at least 1")
        key = self._key(tenant_id, session_id)
        async with self._lock(key):
            ctx = self._context(key)
            added = [copy.deepcopy(self._add_line(ctx, product, qty)) for product, qty in items]
            self._written(ctx)
            logger.info(f"Cart add_multiple {key}: {[line.product_id for line in added]}")
            return added, ctx.cart_summary()

    async def remove_from_cart(
        self, tenant_id: str, session_id: Optional[str], product_id: str
    ) -> Tuple[Optional[CartLine], Dict[str, Any]]:
        key = self._key(tenant_id, session_id)
        async with self._lock(key):
            ctx = self._context(key)
            removed = None
            for line in ctx.cart:
                if line.product_id == product_id:
                    removed = line
                    break
            if removed is not None:
                ctx.cart.remove(removed)
                self._written(ctx)
            return removed, ctx.cart_summary()

    def view_cart(self, tenant_id: str, session_id: Optional[str]) -> Tuple[List[CartLine], Dict[str, Any]]:
        ctx = self.get(tenant_id, session_id)
        return ctx.cart, ctx.cart_summary()

    async def checkout(
        self, tenant_id: str, session_id: Optional[str], payment_method: str = "COD"
    ) -> Optional[Order]:
        """
        Convert the cart into an Order. Returns None when the cart is empty.
        The cart is cleared only after the order has been recorded.
        """
        key = self._key(tenant_id, session_id)
        async with self._lock(key):
            ctx = self._context(key)
            if not ctx.cart:
                return None

            lines = copy.deepcopy(ctx.cart)
            summary = summarize_lines(lines)
            order = Order(
                order_id=f"ORD-{int(time.time() * 1000)}-{next(self._order_seq)}",
                lines=lines,
                total_amount=summary["totalAmount"],
                total_items=summary["totalItems"],
                payment_method=payment_method or "COD",
            )
            self._orders.setdefault(key, []).append(order)

            ctx.cart = []
            order.status = ORDER_CONFIRMED
            self._written(ctx)
            logger.info(f"Checkout {key}: {order.order_id} total={order.total_amount}")
            return copy.deepcopy(order)

    # ----------------------------
    # Orders
    # ----------------------------

    def get_orders(self, tenant_id: str, session_id: Optional[str]) -> List[Order]:
        orders = self._orders.get(self._key(tenant_id, session_id), [])
        return copy.deepcopy(sorted(orders, key=lambda o: o.created_at, reverse=True))

    def get_order(self, tenant_id: str, session_id: Optional[str], order_id: str) -> Optional[Order]:
        for order in self._orders.get(self._key(tenant_id, session_id), []):
            if order.order_id == order_id:
                return copy.deepcopy(order)
        return None

    async def cancel_order(
        self, tenant_id: str, session_id: Optional[str], order_id: str, reason: str = ""
    ) -> Tuple[Optional[Order], Optional[str]]:
        """Returns (order, error). error is set when the order cannot be cancelled."""
        key = self._key(tenant_id, session_id)
        async with self._lock(key):
            for order in self._orders.get(key, []):
                if order.order_id != order_id:
                    continue
                if order.status in _FINAL_STATUSES:
                    return copy.deepcopy(order), f"Order is already {order.status}"
                order.status = ORDER_CANCELLED
                order.cancelled_at = time.time()
                order.cancel_reason = reason or "Cancelled by customer"
                logger.info(f"Order cancelled {key}: {order_id}")
                return copy.deepcopy(order), None
            return None, "Order not found"

    def __len__(self) -> int:
        return len(self._store)
