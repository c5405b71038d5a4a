"""Pure routing decisions for lifecycle events and intercepted requests.

Nothing in this module performs I/O. :func:`handle` turns an event into an
:class:`Action` describing what the manager should do, and
:func:`route_request` picks the caching strategy for a single request.
:class:`~offcache.manager.OfflineCacheManager` executes the actions.

Routing order for a request:

1. Not a ``GET``, not same-origin, or matching an excluded pattern:
   :attr:`ActionKind.PASS_THROUGH`.
2. Font asset: :attr:`ActionKind.CACHE_FIRST` on the fonts partition.
3. Anything else: :attr:`ActionKind.NETWORK_FIRST` on the shell partition.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from offcache.events import (
    GET_VERSION,
    ActivateEvent,
    ExtendableEvent,
    FetchEvent,
    InstallEvent,
    MessageEvent,
)
from offcache.exceptions import InvalidUsageError
from offcache.models import InterceptedRequest, ManagerConfig
from offcache.predicates import (
    is_excluded_path,
    is_font_asset,
    is_read_only,
    is_same_origin,
)


class ActionKind(str, enum.Enum):
    PRECACHE = "precache"
    CLEANUP = "cleanup"
    PASS_THROUGH = "pass-through"
    CACHE_FIRST = "cache-first"
    NETWORK_FIRST = "network-first"
    REPLY_VERSION = "reply-version"
    IGNORE = "ignore"


@dataclass(frozen=True)
class Action:
    """What the manager should do in response to one event.

    Attributes:
        kind: The strategy or lifecycle step to execute.
        cache_name: Target partition (precache, cache-first, network-first,
            reply-version).
        keep: Partition names that survive a cleanup.
        urls: Manifest URLs to precache.
        request: The request being routed, for fetch actions.
    """

    kind: ActionKind
    cache_name: Optional[str] = None
    keep: tuple[str, ...] = ()
    urls: tuple[str, ...] = ()
    request: Optional[InterceptedRequest] = None

    @property
    def intercepts(self) -> bool:
        """Whether the action produces a response for a fetch."""
        return self.kind in (ActionKind.CACHE_FIRST, ActionKind.NETWORK_FIRST)


def route_request(request: InterceptedRequest, config: ManagerConfig) -> Action:
    """Pick the caching strategy for *request*."""
    if (
        not is_read_only(request)
        or not is_same_origin(request.url, config.origin)
        or is_excluded_path(request.url, config.excluded_patterns)
    ):
        return Action(ActionKind.PASS_THROUGH, request=request)

    if is_font_asset(request.url, config.font_extensions):
        return Action(
            ActionKind.CACHE_FIRST,
            cache_name=config.fonts_cache_name,
            request=request,
        )

    return Action(
        ActionKind.NETWORK_FIRST,
        cache_name=config.shell_cache_name,
        request=request,
    )


def handle(event: ExtendableEvent, config: ManagerConfig) -> Action:
    """Map a lifecycle event to the :class:`Action` the manager must execute.

    Raises:
        InvalidUsageError: For event types the manager does not know.
    """
    if isinstance(event, InstallEvent):
        return Action(
            ActionKind.PRECACHE,
            cache_name=config.shell_cache_name,
            urls=tuple(config.precache_manifest),
        )
    if isinstance(event, ActivateEvent):
        return Action(
            ActionKind.CLEANUP,
            keep=(config.shell_cache_name, config.fonts_cache_name),
        )
    if isinstance(event, FetchEvent):
        return route_request(event.request, config)
    if isinstance(event, MessageEvent):
        if event.data == GET_VERSION:
            return Action(ActionKind.REPLY_VERSION, cache_name=config.shell_cache_name)
        return Action(ActionKind.IGNORE)
    raise InvalidUsageError(f"Unsupported event type: {type(event).__name__}")
