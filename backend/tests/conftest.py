import os
import pytest
from unittest.mock import AsyncMock, MagicMock

from shopassist.adapters import commerce, orders
from shopassist.adapters.tenants import example as example_tenant
from shopassist.catalog.recommender import FeatureRecommender
from shopassist.catalog.store import JsonProductCatalog
from shopassist.llm.base import NativeReply
from shopassist.state.store import SessionStateStore
from shopassist.tenants.loader import TenantConfig, TenantConfigLoader
from shopassist.tools.base import ToolContext
from shopassist.tools.dispatcher import ActionDispatcher
from shopassist.tools.registry import RegistryLoader
from shopassist.tools.resolver import AdapterResolver

DATA_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "data"))


@pytest.fixture
def data_dir():
    return DATA_DIR


@pytest.fixture
def catalog():
    return JsonProductCatalog(os.path.join(DATA_DIR, "products"))


@pytest.fixture
def products(catalog):
    return catalog.list_products("default")


@pytest.fixture
def store():
    return SessionStateStore(max_items=100, ttl_seconds=3600)


@pytest.fixture
def registry_loader():
    return RegistryLoader(os.path.join(DATA_DIR, "registry"))


@pytest.fixture
def tenant_loader():
    return TenantConfigLoader(os.path.join(DATA_DIR, "tenants"))


@pytest.fixture
def resolver():
    return AdapterResolver(
        {"commerce": commerce.HANDLERS, "orders": orders.HANDLERS},
        {"example": {"commerce": example_tenant.HANDLERS}},
    )


@pytest.fixture
def dispatcher(resolver):
    return ActionDispatcher(resolver, event_sink=MagicMock())


@pytest.fixture
def make_ctx(store, catalog):
    def _make(tenant_id="default", session_id="s1", message="", recent_products=None):
        tenant = TenantConfig(tenantId=tenant_id, displayName=tenant_id.title())
        return ToolContext(
            tenant=tenant,
            store=store,
            catalog=catalog,
            recommender=FeatureRecommender(),
            session_id=session_id,
            message=message,
            recent_products=recent_products or [],
        )
    return _make


@pytest.fixture
def make_provider():
    """
    Fake LLM backend. `reply` is a NativeReply (or text) returned by every
    call; `error` makes every call raise instead.
    """
    def _make(provider_id, reply=None, error=None, available=True, supports_plain=True, tool_format="chat"):
        provider = MagicMock()
        provider.provider_id = provider_id
        provider.model = f"{provider_id}-model"
        provider.tool_format = tool_format
        provider.supports_plain = supports_plain
        provider.available.return_value = available
        if isinstance(reply, str):
            reply = NativeReply(text=reply)
        if error is not None:
            provider.complete = AsyncMock(side_effect=error)
        else:
            provider.complete = AsyncMock(return_value=reply or NativeReply(text=""))
        return provider
    return _make
