import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("shop.catalog")

FALLBACK_CATALOG = "example"


class Product(BaseModel):
    id: str
    name: str
    price: float = Field(ge=0)
    currency: str = "USD"
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    description: str = ""


def _load_json(filepath: str) -> Any:
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {filepath}: {e}")
        return {}


class JsonProductCatalog:
    """
    Reads products.{tenant}.json files ({"products": [...]}) from a directory.
    Tenants without their own file share products.example.json.
    """
    def __init__(self, products_dir: str):
        self.products_dir = os.path.abspath(products_dir)
        self._cache: Dict[str, List[Dict[str, Any]]] = {}

    def _path(self, tenant_id: str) -> str:
        safe = re.sub(r"[^a-zA-Z0-9_-]", "", tenant_id or "")
        return os.path.join(self.products_dir, f"products.{safe}.json")

    def _read(self, path: str) -> List[Dict[str, Any]]:
        data = _load_json(path)
        raw = data.get("products", []) if isinstance(data, dict) else data
        products: List[Dict[str, Any]] = []
        for item in raw or []:
            try:
                products.append(Product(**item).model_dump())
            except (ValidationError, TypeError) as e:
                logger.warning(f"Skipping invalid product in {path}: {e}")
        return products

    def list_products(self, tenant_id: str) -> List[Dict[str, Any]]:
        if tenant_id in self._cache:
            return self._cache[tenant_id]

        path = self._path(tenant_id)
        if not os.path.exists(path):
            path = self._path(FALLBACK_CATALOG)
        products = self._read(path)
        logger.info(f"Loaded {len(products)} products for tenant '{tenant_id}' from {os.path.basename(path)}")
        self._cache[tenant_id] = products
        return products

    def get_product(self, tenant_id: str, product_id: str) -> Optional[Dict[str, Any]]:
        for p in self.list_products(tenant_id):
            if p["id"] == str(product_id):
                return p
        return None

    def find_by_name(self, tenant_id: str, name: str) -> Optional[Dict[str, Any]]:
        """Exact (case-insensitive) name match first, then substring either way."""
        needle = re.sub(r"\s+", " ", (name or "").lower()).strip()
        if not needle:
            return None
        products = self.list_products(tenant_id)
        for p in products:
            if p["name"].lower() == needle:
                return p
        for p in products:
            pname = p["name"].lower()
            if needle in pname or pname in needle:
                return p
        return None

    def reload(self) -> None:
        self._cache.clear()
