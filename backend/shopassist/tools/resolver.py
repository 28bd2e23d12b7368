import logging
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

from shopassist.errors import AdapterNotFoundError, FunctionNotFoundError

logger = logging.getLogger("shop.tools.resolver")

SOURCE_TENANT = "tenant-specific"
SOURCE_GENERIC = "generic"

# namespace -> {function name -> callable}
AdapterTable = Mapping[str, Mapping[str, Callable]]


@dataclass(frozen=True)
class AdapterResolution:
    func: Callable
    source: str
    namespace: str
    function: str


class AdapterResolver:
    """
    Maps (tenant, namespace, function) to a callable.

    Both tables are supplied at startup, nothing is discovered at runtime.
    A tenant override wins per function; everything it does not override is
    inherited from the generic adapter of the same namespace.
    """
    def __init__(self, generic: AdapterTable, tenant_overrides: Optional[Mapping[str, AdapterTable]] = None):
        self._generic: Dict[Tuple[str, str], Callable] = {}
        self._namespaces = set()
        for namespace, funcs in generic.items():
            self._namespaces.add(namespace)
            for fname, func in funcs.items():
                self._generic[(namespace, fname)] = func

        self._tenant: Dict[Tuple[str, str, str], Callable] = {}
        self._tenant_namespaces = set()
        for tenant_id, table in (tenant_overrides or {}).items():
            for namespace, funcs in table.items():
                self._tenant_namespaces.add((tenant_id, namespace))
                for fname, func in funcs.items():
                    self._tenant[(tenant_id, namespace, fname)] = func

        logger.info(
            f"Adapters registered: {len(self._generic)} generic functions, "
            f"{len(self._tenant)} tenant overrides"
        )

    def resolve(self, namespace: str, function: str, tenant_id: str) -> AdapterResolution:
        func = self._tenant.get((tenant_id, namespace, function))
        if func is not None:
            return AdapterResolution(func, SOURCE_TENANT, namespace, function)

        has_tenant_ns = (tenant_id, namespace) in self._tenant_namespaces
        if namespace not in self._namespaces and not has_tenant_ns:
            raise AdapterNotFoundError(namespace, tenant_id)

        func = self._generic.get((namespace, function))
        if func is None:
            raise FunctionNotFoundError(namespace, function, tenant_id)
        return AdapterResolution(func, SOURCE_GENERIC, namespace, function)

    def overrides_for(self, tenant_id: str) -> Dict[str, str]:
        """'namespace.function' -> source, for every function the tenant can reach."""
        out = {f"{ns}.{fn}": SOURCE_GENERIC for ns, fn in self._generic}
        for tid, ns, fn in self._tenant:
            if tid == tenant_id:
                out[f"{ns}.{fn}"] = SOURCE_TENANT
        return out
