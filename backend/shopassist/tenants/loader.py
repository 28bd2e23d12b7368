import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shopassist.errors import InvalidTenantConfigError, TenantNotFoundError

logger = logging.getLogger("shop.tenants")

_SAFE_ID_RE = re.compile(r"[^a-zA-Z0-9_-]")


class Persona(BaseModel):
    name: str = "Aria"
    role: str = "AI shopping assistant"
    tone: Optional[str] = None


class TenantConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tenant_id: str = Field(alias="tenantId")
    display_name: str = Field(alias="displayName")
    brand_color: str = Field(default="#111827", alias="brandColor")
    features: Dict[str, Any] = Field(default_factory=dict)
    api_gateway: Dict[str, Any] = Field(default_factory=dict, alias="apiGateway")
    persona: Persona = Field(default_factory=Persona)


def sanitize_tenant_id(tenant_id: str) -> str:
    return _SAFE_ID_RE.sub("", tenant_id or "")


class TenantConfigLoader:
    """
    Loads {tenants_dir}/{tenant_id}.json. The tenantId inside the file must
    match the file name.
    """
    def __init__(self, tenants_dir: str):
        self.tenants_dir = os.path.abspath(tenants_dir)
        self._cache: Dict[str, TenantConfig] = {}

    def load(self, tenant_id: str) -> TenantConfig:
        if not tenant_id or not isinstance(tenant_id, str):
            raise InvalidTenantConfigError("Tenant ID must be a non-empty string")
        if sanitize_tenant_id(tenant_id) != tenant_id:
            raise InvalidTenantConfigError(f"Tenant ID '{tenant_id}' contains invalid characters")
        if tenant_id in self._cache:
            return self._cache[tenant_id]

        path = os.path.join(self.tenants_dir, f"{tenant_id}.json")
        if not os.path.exists(path):
            raise TenantNotFoundError(tenant_id)

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidTenantConfigError(f"Tenant '{tenant_id}': failed to parse JSON: {e}") from e

        try:
            config = TenantConfig.model_validate(raw)
        except ValidationError as e:
            raise InvalidTenantConfigError(f"Tenant '{tenant_id}': {e}") from e

        if config.tenant_id != tenant_id:
            raise InvalidTenantConfigError(
                f"Tenant ID mismatch: file is '{tenant_id}' but config contains '{config.tenant_id}'"
            )

        self._cache[tenant_id] = config
        return config

    def list_tenants(self) -> List[str]:
        if not os.path.isdir(self.tenants_dir):
            return []
        return sorted(f[:-5] for f in os.listdir(self.tenants_dir) if f.endswith(".json"))
