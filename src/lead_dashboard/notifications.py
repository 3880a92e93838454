"""In-process change notifications for stored tables.

Writes that go through the API publish a :class:`Change` after they commit;
views subscribe to a table and use each change only as a trigger to run
their fetch pipeline again.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ChangeEvent(str, Enum):
    """Kinds of row changes; ``*`` subscribes to all of them."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"


@dataclass(frozen=True)
class Change:
    table: str
    event: ChangeEvent
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None


ChangeHandler = Callable[[Change], None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`ChangeNotifier.subscribe`."""

    table: str
    event: ChangeEvent
    handler: ChangeHandler
    notifier: "ChangeNotifier" = field(repr=False)
    active: bool = True

    def matches(self, change: Change) -> bool:
        if not self.active or self.table != change.table:
            return False
        return self.event in (ChangeEvent.ALL, change.event)

    def unsubscribe(self) -> None:
        self.notifier.unsubscribe(self)


class ChangeNotifier:
    """Fan change events out to the handlers subscribed to a table."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        table: str,
        event: ChangeEvent,
        handler: ChangeHandler,
    ) -> Subscription:
        subscription = Subscription(table=table, event=event, handler=handler, notifier=self)
        self._subscriptions.append(subscription)
        logger.debug("Subscribed to %s %s (%d active)", event.value, table, len(self._subscriptions))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Release a subscription; releasing it again does nothing."""
        subscription.active = False
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug("Unsubscribed from %s %s", subscription.event.value, subscription.table)

    def publish(self, change: Change) -> int:
        """Deliver ``change`` to every matching handler.

        A failing handler is logged and does not stop delivery to the others.
        Returns the number of handlers that ran.
        """
        delivered = 0
        # Handlers may unsubscribe while we iterate
        for subscription in list(self._subscriptions):
            if not subscription.matches(change):
                continue
            try:
                subscription.handler(change)
            except Exception:
                logger.exception(
                    "Change handler failed for %s %s", change.event.value, change.table
                )
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, table: str | None = None) -> int:
        if table is None:
            return len(self._subscriptions)
        return sum(1 for subscription in self._subscriptions if subscription.table == table)


notifier = ChangeNotifier()
