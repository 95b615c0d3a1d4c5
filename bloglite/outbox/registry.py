"""Topic → (event type, handlers) table resolved once at start-up."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.domain import events
from bloglite.exceptions import UnknownEvent

Handler = Callable[[AsyncSession, events.DomainEvent, datetime], Awaitable[None]]


@dataclass
class Route:
    event_type: type[events.DomainEvent]
    handlers: list[Handler] = field(default_factory=list)


class EventRegistry:
    def __init__(self) -> None:
        self._routes: dict[str, Route] = {}

    def register(self, event_type: type[events.DomainEvent], handler: Handler) -> None:
        route = self._routes.setdefault(event_type.topic, Route(event_type))
        if route.event_type is not event_type:
            raise ValueError(f"Topic {event_type.topic!r} is already bound to {route.event_type}")
        route.handlers.append(handler)

    def resolve(self, topic: str) -> Route:
        try:
            return self._routes[topic]
        except KeyError:
            raise UnknownEvent(topic) from None

    @property
    def topics(self) -> list[str]:
        return sorted(self._routes)


def build_registry(projector, delete_policy) -> EventRegistry:
    """Wire the read-model projector and the aggregate delete policy."""
    registry = EventRegistry()
    registry.register(events.ArticleCreated, projector.on_created)
    registry.register(events.ArticleContentUpdated, projector.on_content_updated)
    registry.register(events.ArticleContentReverted, projector.on_content_reverted)
    registry.register(events.ArticleCategoryChanged, projector.on_category_changed)
    registry.register(events.ArticleStateChanged, projector.on_state_changed)
    registry.register(events.ArticleDeleted, projector.on_deleted)
    registry.register(events.ArticleDeleted, delete_policy.on_deleted)
    return registry
