from typing import Any, Dict, Optional


class ShopAssistError(Exception):
    """Base class for all orchestration errors."""


class ConfigurationError(ShopAssistError):
    """Deployment defect that makes the process unusable (e.g. no default registry)."""


class TenantNotFoundError(ShopAssistError):
    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant '{tenant_id}' not found")


class InvalidTenantConfigError(ShopAssistError):
    pass


class ActionNotFoundError(ShopAssistError):
    def __init__(self, action: str, tenant_id: str):
        self.action = action
        self.tenant_id = tenant_id
        super().__init__(f"Action '{action}' is not registered for tenant '{tenant_id}'")


class ActionDisabledError(ShopAssistError):
    def __init__(self, action: str, tenant_id: str):
        self.action = action
        self.tenant_id = tenant_id
        super().__init__(f"Action '{action}' is disabled for tenant '{tenant_id}'")


class InvalidHandlerError(ShopAssistError):
    def __init__(self, action: str, handler: Any):
        self.action = action
        self.handler = handler
        super().__init__(
            f"Action '{action}' has invalid handler '{handler}' (expected 'namespace.function')"
        )


class AdapterNotFoundError(ShopAssistError):
    def __init__(self, namespace: str, tenant_id: str):
        self.namespace = namespace
        self.tenant_id = tenant_id
        super().__init__(f"No adapter registered for namespace '{namespace}' (tenant '{tenant_id}')")


class FunctionNotFoundError(ShopAssistError):
    def __init__(self, namespace: str, function: str, tenant_id: str):
        self.namespace = namespace
        self.function = function
        self.tenant_id = tenant_id
        super().__init__(
            f"Function '{function}' not found in adapter '{namespace}' (tenant '{tenant_id}')"
        )


class ProviderError(ShopAssistError):
    def __init__(self, provider_id: str, message: str):
        self.provider_id = provider_id
        super().__init__(f"[{provider_id}] {message}")


class HandlerExecutionError(ShopAssistError):
    """
    Raised when an action handler fails. The original exception is chained
    as __cause__; action, handler and timing are attached for the caller.
    """
    def __init__(self, action: str, handler: str, duration_ms: float, message: str,
                 context: Optional[Dict[str, Any]] = None):
        self.action = action
        self.handler = handler
        self.duration_ms = duration_ms
        self.context = context or {}
        super().__init__(f"Action '{action}' ({handler}) failed after {duration_ms:.1f}ms: {message}")
