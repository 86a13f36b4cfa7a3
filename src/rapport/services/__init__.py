"""Business logic: priority resolution, enrichment and dispatch."""

from rapport.services.dispatcher import Dispatcher
from rapport.services.enrichment import EnrichmentService, build_payload
from rapport.services.resolver import (
    CreateReminder,
    NoOp,
    PriorityResolver,
    ReplaceReminder,
    ResolverAction,
    ResolveReminder,
    thread_link,
)

__all__ = [
    "CreateReminder",
    "Dispatcher",
    "EnrichmentService",
    "NoOp",
    "PriorityResolver",
    "ReplaceReminder",
    "ResolveReminder",
    "ResolverAction",
    "build_payload",
    "thread_link",
]
