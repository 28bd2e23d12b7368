from fastapi import APIRouter, HTTPException

from shopassist.core.services import registry_loader, resolver, router as provider_router, store, tenant_loader
from shopassist.errors import InvalidTenantConfigError, TenantNotFoundError

router = APIRouter()


@router.get("/health")
async def health():
    """
    Health check endpoint.
    """
    providers = provider_router.health()
    return {"status": "ok", "providers": providers["availableProviders"], "sessions": len(store)}


@router.get("/providers")
async def providers():
    return provider_router.health()


@router.get("/tenants/{tenant_id}")
async def get_tenant(tenant_id: str):
    try:
        tenant = tenant_loader.load(tenant_id)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTenantConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    registry = registry_loader.load_registry(tenant_id)
    return {
        "tenant": tenant.model_dump(by_alias=True),
        "registry": {"meta": registry.meta, "actions": [a.name for a in registry.enabled_actions()]},
        "adapters": resolver.overrides_for(tenant_id),
    }


@router.get("/sessions/{tenant_id}/{session_id}/cart")
async def get_cart(tenant_id: str, session_id: str):
    lines, summary = store.view_cart(tenant_id, session_id)
    return {"cart": [line.to_dict() for line in lines], "summary": summary}
