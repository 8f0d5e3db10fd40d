import asyncio
import inspect
import json
import logging
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any

from starlette.concurrency import run_in_threadpool

from xihi.core.errors import MalformedPayload

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], Any]


def parse_payload(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.error(f"Could not parse webhook body: {e}")
        raise MalformedPayload(str(e)) from e


class EventDispatcher:
    """
    Fan a verified payload out to the subscribers registered for its event.

    The registry is fixed at construction and read-only afterwards, so one
    dispatcher can be shared by every connection without locking.
    """

    def __init__(self, subscribers: Mapping[str, Iterable[Subscriber]] | None = None):
        self._subscribers = MappingProxyType(
            {event: tuple(funcs) for event, funcs in (subscribers or {}).items()}
        )

    @property
    def events(self) -> frozenset[str]:
        return frozenset(self._subscribers)

    def subscribers_for(self, event: str) -> tuple[Subscriber, ...]:
        return self._subscribers.get(event, ())

    async def dispatch(self, event: str, payload: Any) -> int:
        """Run every subscriber for ``event``; return how many failed."""
        subscribers = self.subscribers_for(event)
        if not subscribers:
            logger.info(f"No subscribers for event {event!r}")
            return 0

        results = await asyncio.gather(
            *(self._invoke(event, subscriber, payload) for subscriber in subscribers)
        )
        return results.count(False)

    async def _invoke(self, event: str, subscriber: Subscriber, payload: Any) -> bool:
        # partials carry their bound settings; never log those
        func = getattr(subscriber, "func", subscriber)
        name = getattr(func, "__qualname__", type(func).__name__)
        try:
            if inspect.iscoroutinefunction(subscriber) or inspect.iscoroutinefunction(
                getattr(subscriber, "__call__", None)
            ):
                await subscriber(payload)
            else:
                await run_in_threadpool(subscriber, payload)
        except Exception:
            logger.exception(f"Subscriber {name} failed handling {event!r}")
            return False
        return True
