"""Event dispatch by event type prefix.

Routes the raw inner object of a verified event to the handler registered
for the longest prefix of the event's type. Some domains share a prefix
(``payroll_item.`` and ``payroll.``), so the choice never depends on the
order in which routes were registered.

Example:
    dispatcher = EventDispatcher()
    dispatcher.register("payroll.", projector(Payroll, on_payroll))
    dispatcher.register("payroll_item.", projector(PayrollItem, on_item))

    result = dispatcher.dispatch(event)
    if not result.dispatched:
        # Unknown or unhandled event type; still a success
        pass
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel

from martianpay.errors import HandlerError
from martianpay.events import Event
from martianpay.models import PaymentIntent, Payout, Payroll, PayrollItem, Refund

logger = structlog.get_logger()

Handler = Callable[[bytes], Any]
"""Receives the exact bytes of the event's ``data.object``."""

ModelT = TypeVar("ModelT", bound=BaseModel)

DOMAIN_PROJECTIONS: dict[str, type[BaseModel]] = {
    "payment_intent.": PaymentIntent,
    "refund.": Refund,
    "payout.": Payout,
    "payroll_item.": PayrollItem,
    "payroll.": Payroll,
}


@dataclass(frozen=True)
class Route:
    """A registered prefix and its handler."""

    prefix: str
    handler: Handler


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of dispatching one event."""

    dispatched: bool
    """Whether a handler was invoked."""

    prefix: str | None = None
    """Prefix of the route that matched."""

    result: Any = None
    """Return value of the handler."""


def _ordered(routes: Iterable[Route]) -> tuple[Route, ...]:
    routes = tuple(routes)
    seen: set[str] = set()
    for route in routes:
        if not route.prefix:
            raise ValueError("route prefix must not be empty")
        if route.prefix in seen:
            raise ValueError(f"Route for prefix '{route.prefix}' already exists")
        seen.add(route.prefix)
    # Longest first, so the first match is the longest match
    return tuple(sorted(routes, key=lambda r: len(r.prefix), reverse=True))


class EventDispatcher:
    """Longest-prefix router from event types to handlers.

    The route table is an immutable tuple. Writers build a new table and
    swap it in under a lock; readers take a reference without locking.
    """

    def __init__(self, routes: Iterable[tuple[str, Handler]] | None = None) -> None:
        self._lock = threading.Lock()
        self._routes: tuple[Route, ...] = _ordered(
            Route(prefix, handler) for prefix, handler in (routes or ())
        )

    @property
    def routes(self) -> tuple[Route, ...]:
        """Registered routes, longest prefix first."""
        return self._routes

    def register(self, prefix: str, handler: Handler) -> None:
        """Add a route.

        Raises:
            ValueError: If the prefix is empty or already registered.
        """
        with self._lock:
            self._routes = _ordered((*self._routes, Route(prefix, handler)))

    def unregister(self, prefix: str) -> bool:
        """Remove the route for ``prefix``.

        Returns:
            True if removed, False if not found.
        """
        with self._lock:
            remaining = tuple(r for r in self._routes if r.prefix != prefix)
            if len(remaining) == len(self._routes):
                return False
            self._routes = remaining
            return True

    def replace(self, routes: Iterable[tuple[str, Handler]]) -> None:
        """Swap in a whole new route table."""
        table = _ordered(Route(prefix, handler) for prefix, handler in routes)
        with self._lock:
            self._routes = table

    def match(self, event_type: str) -> Route | None:
        """Find the route with the longest prefix of ``event_type``."""
        for route in self._routes:
            if event_type.startswith(route.prefix):
                return route
        return None

    def dispatch(self, event: Event) -> DispatchResult:
        """Route a verified event to its handler.

        Raises:
            HandlerError: If the handler raises.
        """
        route = self.match(event.type)
        if route is None:
            return DispatchResult(dispatched=False)

        try:
            result = route.handler(event.data.raw)
        except Exception as e:
            raise HandlerError(
                f"handler for '{route.prefix}' failed on {event.type}: {e}",
                prefix=route.prefix,
            ) from e

        return DispatchResult(dispatched=True, prefix=route.prefix, result=result)

    def __len__(self) -> int:
        return len(self._routes)


def projector(model: type[ModelT], consumer: Callable[[ModelT], Any]) -> Handler:
    """Build a handler that decodes raw bytes into ``model`` for ``consumer``."""

    def handle(raw: bytes) -> Any:
        return consumer(model.model_validate_json(raw))

    handle.__name__ = f"project_{model.__name__}"
    return handle


def log_projection(obj: BaseModel) -> BaseModel:
    """Default consumer: log the projected object and return it."""
    logger.info(
        "Webhook object received",
        kind=type(obj).__name__,
        id=getattr(obj, "id", None),
        status=getattr(obj, "status", None),
    )
    return obj


def create_dispatcher(
    consumer: Callable[[BaseModel], Any] | None = None,
    **overrides: Handler,
) -> EventDispatcher:
    """Create a dispatcher for the MartianPay domain types.

    Args:
        consumer: Receives every projected object (default: log it).
        **overrides: Handlers replacing a domain route, keyed by the prefix
            without its trailing dot (e.g. ``payroll_item=...``).

    Returns:
        EventDispatcher with the five domain projections registered.
    """
    consumer = consumer or log_projection
    routes = []
    for prefix, model in DOMAIN_PROJECTIONS.items():
        handler = overrides.pop(prefix.rstrip("."), None) or projector(model, consumer)
        routes.append((prefix, handler))
    if overrides:
        raise ValueError(f"Unknown event prefixes: {', '.join(sorted(overrides))}")
    return EventDispatcher(routes)
