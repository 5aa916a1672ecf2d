"""Agent-facing tools for sheetplan.

Tools read the active PlanStore from a ContextVar so an agent loop can
install one store per workspace:

    token = set_context_plan_store(store)
    result = await plan_tools.get_next_task()

Tools return ``{"success": ...}`` dicts instead of raising for the errors
an agent can act on.
"""

import functools
from contextvars import ContextVar, Token
from typing import Any, Awaitable, Callable, TypeVar

ToolFunc = TypeVar("ToolFunc", bound=Callable[..., Awaitable[dict[str, Any]]])


def _make_context_accessors(name: str) -> tuple[Callable[..., Token], Callable[..., Any]]:
    """Create a (setter, getter) pair backed by a ContextVar."""
    var: ContextVar[Any] = ContextVar(f"{name}_context", default=None)

    def setter(value: Any) -> Token:
        return var.set(value)

    def getter() -> Any:
        return var.get()

    setter.__name__ = setter.__qualname__ = f"set_context_{name}"
    getter.__name__ = getter.__qualname__ = f"get_context_{name}"
    return setter, getter


set_context_plan_store, get_context_plan_store = _make_context_accessors("plan_store")


def require_context(
    getter: Callable[[], Any],
    error_message: str,
) -> Callable[[ToolFunc], ToolFunc]:
    """Return ``{"success": False, "error": error_message}`` when getter() is None.

    The wrapped tool only runs once its context value is installed.
    """

    def decorator(func: ToolFunc) -> ToolFunc:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> dict[str, Any]:
            if getter() is None:
                return {"success": False, "error": error_message}
            return await func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = [
    "require_context",
    "set_context_plan_store",
    "get_context_plan_store",
]
