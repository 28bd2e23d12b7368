import pytest
from unittest.mock import MagicMock

from shopassist.adapters import commerce
from shopassist.adapters.tenants import example as example_tenant
from shopassist.errors import (
    ActionDisabledError,
    ActionNotFoundError,
    AdapterNotFoundError,
    FunctionNotFoundError,
    HandlerExecutionError,
    InvalidHandlerError,
)
from shopassist.tools.dispatcher import ActionDispatcher
from shopassist.tools.registry import ActionDescriptor, ActionRegistry
from shopassist.tools.resolver import AdapterResolver


def _registry(tenant_id="default", **handlers):
    actions = {}
    for name, handler in handlers.items():
        enabled = True
        if isinstance(handler, tuple):
            handler, enabled = handler
        actions[name] = ActionDescriptor(name, handler, enabled=enabled)
    return ActionRegistry(tenant_id=tenant_id, actions=actions)


# ---------------------------
# Resolver
# ---------------------------

def test_tenant_override_wins(resolver):
    resolution = resolver.resolve("commerce", "search", "example")
    assert resolution.func is example_tenant.search
    assert resolution.source == "tenant-specific"


def test_tenant_inherits_functions_it_does_not_override(resolver):
    resolution = resolver.resolve("commerce", "view_cart", "example")
    assert resolution.func is commerce.view_cart
    assert resolution.source == "generic"


def test_other_tenants_get_generic(resolver):
    resolution = resolver.resolve("commerce", "search", "acme")
    assert resolution.func is commerce.search
    assert resolution.source == "generic"


def test_unknown_namespace(resolver):
    with pytest.raises(AdapterNotFoundError):
        resolver.resolve("payments", "refund", "acme")


def test_unknown_function(resolver):
    with pytest.raises(FunctionNotFoundError):
        resolver.resolve("commerce", "refund", "acme")


def test_tenant_only_namespace_reports_missing_function():
    resolver = AdapterResolver({}, {"acme": {"loyalty": {"points": MagicMock()}}})
    with pytest.raises(FunctionNotFoundError):
        resolver.resolve("loyalty", "redeem", "acme")
    with pytest.raises(AdapterNotFoundError):
        resolver.resolve("loyalty", "points", "other")


def test_overrides_for(resolver):
    sources = resolver.overrides_for("example")
    assert sources["commerce.search"] == "tenant-specific"
    assert sources["orders.cancel_order"] == "generic"


# ---------------------------
# Dispatcher
# ---------------------------

@pytest.mark.asyncio
async def test_unknown_action(dispatcher, make_ctx):
    with pytest.raises(ActionNotFoundError):
        await dispatcher.run_action(_registry(), "teleport", {}, make_ctx())


@pytest.mark.asyncio
async def test_disabled_action_never_runs_handler(make_ctx):
    handler = MagicMock(return_value={"success": True})
    dispatcher = ActionDispatcher(AdapterResolver({"commerce": {"checkout": handler}}))
    registry = _registry(checkout=("commerce.checkout", False))

    with pytest.raises(ActionDisabledError):
        await dispatcher.run_action(registry, "checkout", {}, make_ctx())
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_malformed_handler(dispatcher, make_ctx):
    with pytest.raises(InvalidHandlerError):
        await dispatcher.run_action(_registry(view_cart="commerce"), "view_cart", {}, make_ctx())


@pytest.mark.asyncio
async def test_handler_failure_is_wrapped_and_chained(make_ctx):
    def explode(params, ctx):
        raise KeyError("price")

    sink = MagicMock()
    dispatcher = ActionDispatcher(AdapterResolver({"commerce": {"search": explode}}), event_sink=sink)

    with pytest.raises(HandlerExecutionError) as exc_info:
        await dispatcher.run_action(_registry(search_products="commerce.search"), "search_products", {}, make_ctx())

    err = exc_info.value
    assert err.action == "search_products"
    assert err.handler == "commerce.search"
    assert err.duration_ms >= 0
    assert isinstance(err.__cause__, KeyError)
    assert sink.record.call_args.args[0]["event"] == "action_failed"


@pytest.mark.asyncio
async def test_sync_handler_and_non_dict_result(make_ctx):
    dispatcher = ActionDispatcher(AdapterResolver({"misc": {"ping": lambda params, ctx: "pong"}}))

    result = await dispatcher.run_action(_registry(ping="misc.ping"), "ping", None, make_ctx())

    assert result.result == {"result": "pong"}
    assert result.source == "generic"


@pytest.mark.asyncio
async def test_result_carries_meta(dispatcher, make_ctx):
    result = await dispatcher.run_action(_registry(view_cart="commerce.view_cart"), "view_cart", {}, make_ctx())

    out = result.to_dict()
    assert out["success"] is True
    assert out["_meta"]["action"] == "view_cart"
    assert out["_meta"]["handler"] == "commerce.view_cart"
    assert out["_meta"]["source"] == "generic"
    assert "durationMs" in out["_meta"]
    assert "timestamp" in out["_meta"]
    assert dispatcher.event_sink.record.call_args.args[0]["event"] == "action_executed"


@pytest.mark.asyncio
async def test_raising_sink_keeps_successful_action(resolver, make_ctx, store):
    sink = MagicMock()
    sink.record.side_effect = RuntimeError("metrics backend down")
    dispatcher = ActionDispatcher(resolver, event_sink=sink)

    result = await dispatcher.run_action(
        _registry(add_to_cart="commerce.add_to_cart"), "add_to_cart", {"productId": "p4"}, make_ctx(),
    )

    assert result.result["success"] is True
    assert store.view_cart("default", "s1")[1]["totalAmount"] == 49.0
    sink.record.assert_called_once()


@pytest.mark.asyncio
async def test_search_limit_comes_from_settings(dispatcher, make_ctx):
    registry = _registry(search_products="commerce.search")
    ctx = make_ctx()
    ctx.settings = MagicMock(search_limit=2)

    default_limit = await dispatcher.run_action(registry, "search_products", {"query": "footwear"}, ctx)
    explicit = await dispatcher.run_action(registry, "search_products", {"query": "footwear", "limit": 3}, ctx)

    assert default_limit.result["count"] == 2
    assert explicit.result["count"] == 3


@pytest.mark.asyncio
async def test_read_only_action_is_repeatable(dispatcher, make_ctx):
    registry = _registry(search_products="commerce.search")
    ctx = make_ctx()
    params = {"query": "sneakers", "maxPrice": 100}

    first = await dispatcher.run_action(registry, "search_products", params, ctx)
    second = await dispatcher.run_action(registry, "search_products", params, ctx)

    assert first.result == second.result


@pytest.mark.asyncio
async def test_tenant_specific_search_ranks_premium_first(dispatcher, make_ctx):
    registry = _registry("example", search_products="commerce.search")

    result = await dispatcher.run_action(registry, "search_products", {"query": "leather"}, make_ctx("example"))

    assert result.source == "tenant-specific"
    assert result.result["premiumFirst"] is True
    assert "premium" in result.result["items"][0]["tags"]
