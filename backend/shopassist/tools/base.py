from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_SEARCH_LIMIT = 10

@dataclass
class ToolContext:
    """
    Context passed to action handlers.
    Contains the tenant and references to the services a handler may use.
    """
    tenant: Any                  # TenantConfig
    store: Any                   # SessionStateStore
    catalog: Any                 # JsonProductCatalog
    recommender: Any = None      # FeatureRecommender
    session_id: Optional[str] = None
    message: str = ""            # raw user utterance, for reference resolution
    settings: Any = None
    recent_products: List[Dict[str, Any]] = field(default_factory=list)
    session_logger: Any = None

    @property
    def tenant_id(self) -> str:
        return getattr(self.tenant, "tenant_id", None) or "default"

    @property
    def search_limit(self) -> int:
        return getattr(self.settings, "search_limit", None) or DEFAULT_SEARCH_LIMIT
