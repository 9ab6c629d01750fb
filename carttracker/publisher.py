"""Typed publish/subscribe channel for quote updates.

Subscribers (the status renderer, the last-quote store) register a
handler and receive every QuoteUpdate published after that point.
Delivery is synchronous and in subscription order on the caller's
thread of control. Nothing is buffered: a late subscriber never sees
earlier updates.

A handler that raises is logged and skipped; the remaining subscribers
still receive the update.
"""

from itertools import count
from typing import Callable

from pydantic import BaseModel, ConfigDict

from carttracker.logger import get_logger
from carttracker.validator import QuoteUpdate

log = get_logger(__name__)

QuoteHandler = Callable[[QuoteUpdate], None]


class Subscription(BaseModel):
    """Handle returned by subscribe(), used to unsubscribe.

    Attributes:
        id: Unique, monotonically increasing subscription id.
        name: Label used in log lines.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class UpdatePublisher:
    """Fan-out of quote updates to registered handlers.

    Example:
        publisher = UpdatePublisher()
        handle = publisher.subscribe(render, name="status")
        publisher.publish(update)
        publisher.unsubscribe(handle)
    """

    def __init__(self) -> None:
        # dicts keep insertion order, which is the delivery order
        self._handlers: dict[int, tuple[Subscription, QuoteHandler]] = {}
        self._ids = count(1)

    def subscribe(self, handler: QuoteHandler, name: str | None = None) -> Subscription:
        """Register a handler for all future updates.

        Args:
            handler: Callable receiving each published QuoteUpdate.
            name: Optional label for logs; defaults to the handler's name.

        Returns:
            Subscription handle for unsubscribe().
        """
        subscription = Subscription(
            id=next(self._ids),
            name=name or getattr(handler, "__qualname__", repr(handler)),
        )
        self._handlers[subscription.id] = (subscription, handler)
        log.debug("Subscriber registered", subscriber=subscription.name, id=subscription.id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription.

        Returns:
            True if the subscription was active, False if already removed.
        """
        removed = self._handlers.pop(subscription.id, None) is not None
        if removed:
            log.debug("Subscriber removed", subscriber=subscription.name, id=subscription.id)
        return removed

    def publish(self, update: QuoteUpdate) -> int:
        """Deliver an update to every current subscriber.

        Args:
            update: The quote to broadcast.

        Returns:
            Number of handlers that accepted the update without raising.
        """
        delivered = 0
        # Snapshot so handlers may (un)subscribe during delivery.
        for subscription, handler in list(self._handlers.values()):
            try:
                handler(update)
            except Exception:
                log.opt(exception=True).error(
                    "Subscriber failed to handle quote update",
                    subscriber=subscription.name,
                    symbol=update.symbol,
                )
                continue
            delivered += 1

        log.debug(
            "Quote update published",
            symbol=update.symbol,
            subscribers=len(self._handlers),
            delivered=delivered,
        )
        return delivered

    def __len__(self) -> int:
        return len(self._handlers)
