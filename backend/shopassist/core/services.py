from shopassist.core.config import settings
from shopassist.core.logging import EventSink
from shopassist.adapters import commerce, orders
from shopassist.adapters.tenants import example as example_tenant
from shopassist.catalog.recommender import FeatureRecommender
from shopassist.catalog.store import JsonProductCatalog
from shopassist.llm.litellm_provider import LiteLLMProvider
from shopassist.llm.mock_provider import MockProvider
from shopassist.llm.openai_provider import OpenAIProvider
from shopassist.llm.router import ProviderRouter
from shopassist.pipeline.orchestrator import Orchestrator
from shopassist.state.store import SessionStateStore
from shopassist.tenants.loader import TenantConfigLoader
from shopassist.tools.dispatcher import ActionDispatcher
from shopassist.tools.registry import RegistryLoader
from shopassist.tools.resolver import AdapterResolver

# Generic implementations per namespace, and per-tenant overrides.
GENERIC_ADAPTERS = {
    "commerce": commerce.HANDLERS,
    "orders": orders.HANDLERS,
}
TENANT_ADAPTERS = {
    "example": {"commerce": example_tenant.HANDLERS},
}


def build_providers(cfg=settings):
    known = {
        "openai": lambda: OpenAIProvider(cfg.openai_api_key, cfg.openai_model, base_url=cfg.openai_base_url),
        "groq": lambda: LiteLLMProvider("groq", cfg.groq_api_key, cfg.groq_model, api_base=cfg.litellm_api_base),
        "gemini": lambda: LiteLLMProvider("gemini", cfg.gemini_api_key, cfg.gemini_model),
        "mistral": lambda: LiteLLMProvider("mistral", cfg.mistral_api_key, cfg.mistral_model),
        "mock": lambda: MockProvider(),
    }
    providers = []
    for pid in cfg.provider_priority():
        factory = known.get(pid)
        if factory is not None:
            providers.append(factory())
    return providers


# Initialize Singletons
event_sink = EventSink()
catalog = JsonProductCatalog(settings.products_path())
recommender = FeatureRecommender(min_score=settings.recommend_min_score)
tenant_loader = TenantConfigLoader(settings.tenants_path())
registry_loader = RegistryLoader(settings.registry_path())
store = SessionStateStore(max_items=settings.session_max_items, ttl_seconds=settings.session_ttl_seconds)
resolver = AdapterResolver(GENERIC_ADAPTERS, TENANT_ADAPTERS)
dispatcher = ActionDispatcher(resolver, event_sink=event_sink)
router = ProviderRouter(
    build_providers(),
    timeout_seconds=settings.provider_timeout_seconds,
    temperature=settings.llm_temperature,
    event_sink=event_sink,
)
orchestrator = Orchestrator(
    router=router,
    dispatcher=dispatcher,
    registry_loader=registry_loader,
    tenant_loader=tenant_loader,
    store=store,
    catalog=catalog,
    recommender=recommender,
    settings=settings,
    event_sink=event_sink,
)
