"""Lifecycle event objects delivered to the manager by its host.

The host (the CLI, a proxy, or a test) creates one event per lifecycle
transition or inbound request and hands it to
:meth:`~offcache.manager.OfflineCacheManager.dispatch`. The manager never
blocks on its own work; it registers coroutines through
:meth:`ExtendableEvent.wait_until` (and, for fetches,
:meth:`FetchEvent.respond_with`), and the host awaits
:meth:`ExtendableEvent.settle` before treating the event as finished.

Example::

    event = FetchEvent(InterceptedRequest(url="https://dagaz.example/blog"))
    manager.dispatch(event)
    response = await event.response()
"""

from __future__ import annotations

from typing import Any, Awaitable, Optional

import httpx

from offcache.exceptions import InvalidUsageError
from offcache.models import InterceptedRequest

GET_VERSION = "GET_VERSION"


class ExtendableEvent:
    """Base event carrying the "wait for this work before proceeding" handle."""

    type: str = ""

    def __init__(self) -> None:
        self._pending: list[Awaitable[Any]] = []

    def wait_until(self, awaitable: Awaitable[Any]) -> None:
        """Extend the event's lifetime until *awaitable* completes."""
        self._pending.append(awaitable)

    @property
    def pending(self) -> int:
        """Number of registered awaitables not yet settled."""
        return len(self._pending)

    async def settle(self) -> list[Any]:
        """Await every registered awaitable, in registration order.

        Returns:
            The results of the awaitables. The pending list is cleared so
            that settling twice does not re-await finished work.
        """
        pending, self._pending = self._pending, []
        results = []
        for awaitable in pending:
            results.append(await awaitable)
        return results


class InstallEvent(ExtendableEvent):
    type = "install"


class ActivateEvent(ExtendableEvent):
    type = "activate"


class FetchEvent(ExtendableEvent):
    """An intercepted request awaiting a response.

    If nobody calls :meth:`respond_with`, the host performs the request
    itself (pass-through).
    """

    type = "fetch"

    def __init__(self, request: InterceptedRequest) -> None:
        super().__init__()
        self.request = request
        self._response: Optional[Awaitable[httpx.Response]] = None

    @property
    def handled(self) -> bool:
        """Whether a response has been promised via :meth:`respond_with`."""
        return self._response is not None

    def respond_with(self, awaitable: Awaitable[httpx.Response]) -> None:
        """Promise the response for this request.

        Raises:
            InvalidUsageError: If a response was already promised.
        """
        if self._response is not None:
            raise InvalidUsageError(
                f"respond_with() already called for {self.request.url}"
            )
        self._response = awaitable

    async def response(self) -> Optional[httpx.Response]:
        """Await the promised response, or return ``None`` for pass-through."""
        if self._response is None:
            await self.settle()
            return None
        result = await self._response
        await self.settle()
        return result


class MessagePort:
    """Reply channel handed to a :class:`MessageEvent` by the requester."""

    def __init__(self) -> None:
        self.messages: list[Any] = []
        self._closed = False

    def post_message(self, value: Any) -> None:
        """Deliver *value* to the requester.

        Raises:
            InvalidUsageError: If the port has been closed.
        """
        if self._closed:
            raise InvalidUsageError("Message port is closed")
        self.messages.append(value)

    def close(self) -> None:
        self._closed = True


class MessageEvent(ExtendableEvent):
    """A message posted to the manager, with optional reply ports."""

    type = "message"

    def __init__(self, data: Any, ports: Optional[list[MessagePort]] = None) -> None:
        super().__init__()
        self.data = data
        self.ports = list(ports or [])
