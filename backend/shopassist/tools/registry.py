# Action registry: which actions a tenant exposes, and which adapter function
# implements each one. Loaded from {registry_dir}/{tenant}.registry.json with
# default.registry.json as the fallback.

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from shopassist.errors import ConfigurationError, InvalidHandlerError
from shopassist.tenants.loader import sanitize_tenant_id

logger = logging.getLogger("shop.tools.registry")

DEFAULT_REGISTRY = "default"

_STR = {"type": "string"}
_STR_LIST = {"type": "array", "items": {"type": "string"}}

# JSON schema for every action the assistant knows how to call.
TOOL_PARAMETERS: Dict[str, Dict[str, Any]] = {
    "search_products": {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search text, may include price limits like 'under $100'"},
            "maxPrice": {"type": "number"},
            "minPrice": {"type": "number"},
        },
        "required": ["query"],
    },
    "compare_products": {
        "type": "object",
        "properties": {"productIds": _STR_LIST, "productNames": _STR_LIST, "query": _STR},
    },
    "recommend_products": {
        "type": "object",
        "properties": {"query": _STR, "preferences": _STR_LIST},
    },
    "recommend_outfit": {
        "type": "object",
        "properties": {"occasion": _STR, "query": _STR, "preferences": _STR_LIST},
    },
    "add_to_cart": {
        "type": "object",
        "properties": {"productId": _STR, "quantity": {"type": "integer", "minimum": 1}},
        "required": ["productId"],
    },
    "add_outfit_to_cart": {
        "type": "object",
        "properties": {"shirtId": _STR, "pantId": _STR, "shoeId": _STR},
    },
    "remove_from_cart": {
        "type": "object",
        "properties": {"productId": _STR},
        "required": ["productId"],
    },
    "view_cart": {"type": "object", "properties": {}},
    "checkout": {
        "type": "object",
        "properties": {"paymentMethod": {"type": "string", "enum": ["COD", "card", "upi", "wallet"]}},
    },
    "view_orders": {"type": "object", "properties": {}},
    "get_order_status": {
        "type": "object",
        "properties": {"orderId": _STR},
        "required": ["orderId"],
    },
    "cancel_order": {
        "type": "object",
        "properties": {"orderId": _STR, "reason": _STR},
        "required": ["orderId"],
    },
}


@dataclass(frozen=True)
class ActionDescriptor:
    """
    One registry entry.

    - handler: "namespace.function", resolved by AdapterResolver
    - parameters: JSON schema exposed to the model (defaults from TOOL_PARAMETERS)
    """
    name: str
    handler: Any
    enabled: bool = True
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)

    def split_handler(self) -> Tuple[str, str]:
        if not isinstance(self.handler, str):
            raise InvalidHandlerError(self.name, self.handler)
        parts = self.handler.split(".")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise InvalidHandlerError(self.name, self.handler)
        return parts[0], parts[1]

    def tool_parameters(self) -> Dict[str, Any]:
        return self.parameters or TOOL_PARAMETERS.get(self.name) or {"type": "object", "properties": {}}


@dataclass(frozen=True)
class ActionRegistry:
    tenant_id: str
    actions: Dict[str, ActionDescriptor]
    meta: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Optional[ActionDescriptor]:
        return self.actions.get(name)

    def enabled_actions(self) -> List[ActionDescriptor]:
        return [a for a in self.actions.values() if a.enabled]

    @property
    def loaded_from(self) -> str:
        return self.meta.get("loadedFrom", "")


class RegistryLoader:
    def __init__(self, registry_dir: str):
        self.registry_dir = os.path.abspath(registry_dir)

    def _path(self, name: str) -> str:
        return os.path.join(self.registry_dir, f"{name}.registry.json")

    @staticmethod
    def _parse(path: str) -> Tuple[str, Dict[str, ActionDescriptor]]:
        """Raises ValueError (or OSError) when the file is unusable."""
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict) or not raw.get("tenantId"):
            raise ValueError("missing required field 'tenantId'")
        actions_raw = raw.get("actions")
        if not isinstance(actions_raw, dict):
            raise ValueError("missing or invalid 'actions' object")

        actions: Dict[str, ActionDescriptor] = {}
        for name, cfg in actions_raw.items():
            if not isinstance(cfg, dict):
                raise ValueError(f"action '{name}' must be an object")
            actions[name] = ActionDescriptor(
                name=name,
                handler=cfg.get("handler"),
                enabled=bool(cfg.get("enabled", True)),
                description=str(cfg.get("description") or ""),
                parameters=cfg.get("parameters") or {},
            )
        return str(raw["tenantId"]), actions

    def load_default(self) -> ActionRegistry:
        path = self._path(DEFAULT_REGISTRY)
        if not os.path.exists(path):
            raise ConfigurationError(f"Default action registry missing: {path}")
        try:
            tenant, actions = self._parse(path)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Default action registry is malformed ({path}): {e}") from e
        return ActionRegistry(tenant_id=tenant, actions=actions)

    def load_registry(self, tenant_id: str) -> ActionRegistry:
        """
        Tenant-specific registry if present and valid, else the default.
        Only a missing or malformed default is fatal (ConfigurationError).
        """
        requested = tenant_id or DEFAULT_REGISTRY
        safe = sanitize_tenant_id(requested)

        tenant_path = self._path(safe) if safe and safe != DEFAULT_REGISTRY else None
        if tenant_path and os.path.exists(tenant_path):
            try:
                actual, actions = self._parse(tenant_path)
                return ActionRegistry(
                    tenant_id=actual,
                    actions=actions,
                    meta={"loadedFrom": "tenant-specific", "requestedTenant": requested, "actualTenant": actual},
                )
            except (OSError, ValueError) as e:
                logger.error(f"Registry for tenant '{requested}' is malformed, using default: {e}")

        default = self.load_default()
        logger.info(f"No usable registry for tenant '{requested}', using default")
        return ActionRegistry(
            tenant_id=default.tenant_id,
            actions=default.actions,
            meta={"loadedFrom": "default", "requestedTenant": requested, "actualTenant": default.tenant_id},
        )

    def list_registries(self) -> List[str]:
        if not os.path.isdir(self.registry_dir):
            return []
        return sorted(f[: -len(".registry.json")] for f in os.listdir(self.registry_dir) if f.endswith(".registry.json"))
