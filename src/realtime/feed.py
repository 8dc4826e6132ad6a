"""
In-process change feed: row-level INSERT/UPDATE/DELETE events pushed to subscribers.

Repositories publish after commit, so subscribers only ever see durable changes.
Delivery is synchronous and in publish order. A subscriber that raises is logged and skipped, the others still get the event.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from src.core.models import ChangeEvent, Row
from src.core.shared_types import ChangeType, SubscriptionStatus

_LOGGER = logging.getLogger(__name__)

EventHandler = Callable[[ChangeEvent], None]
StatusHandler = Callable[[SubscriptionStatus], None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by `subscribe`. Pass it to `unsubscribe` to release it."""

    table: str
    filters: dict[str, Any]
    on_insert: Optional[EventHandler] = None
    on_update: Optional[EventHandler] = None
    on_delete: Optional[EventHandler] = None
    on_status: Optional[StatusHandler] = None
    status: SubscriptionStatus = field(default=SubscriptionStatus.CLOSED)

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        # DELETE events only carry the old row
        row = event.new if event.new is not None else event.old
        if row is None:
            return False
        return all(row.get(column) == value for column, value in self.filters.items())

    def handler_for(self, change: ChangeType) -> Optional[EventHandler]:
        return {
            ChangeType.INSERT: self.on_insert,
            ChangeType.UPDATE: self.on_update,
            ChangeType.DELETE: self.on_delete,
        }[change]

    def set_status(self, status: SubscriptionStatus) -> None:
        self.status = status
        if self.on_status is not None:
            self.on_status(status)


class ChangeFeed:
    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._event_ids = itertools.count(1)

    def subscribe(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        on_insert: Optional[EventHandler] = None,
        on_update: Optional[EventHandler] = None,
        on_delete: Optional[EventHandler] = None,
        on_status: Optional[StatusHandler] = None,
    ) -> Subscription:
        subscription = Subscription(
            table=table,
            filters=dict(filters or {}),
            on_insert=on_insert,
            on_update=on_update,
            on_delete=on_delete,
            on_status=on_status,
        )
        self._subscriptions.append(subscription)
        _LOGGER.debug("Subscribed to %s %s", table, subscription.filters)
        subscription.set_status(SubscriptionStatus.SUBSCRIBED)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            # releasing a handle is not an error: no status callback
            subscription.status = SubscriptionStatus.CLOSED

    def publish(
        self,
        table: str,
        change: ChangeType,
        new: Optional[Row] = None,
        old: Optional[Row] = None,
    ) -> ChangeEvent:
        event = ChangeEvent(next(self._event_ids), table, change, new, old)
        # copy: handlers may (un)subscribe while we iterate
        for subscription in list(self._subscriptions):
            if subscription not in self._subscriptions or not subscription.matches(event):
                continue
            handler = subscription.handler_for(change)
            if handler is None:
                continue
            try:
                handler(event)
            except Exception:
                _LOGGER.exception(
                    "Change handler failed for %s event %d on %s",
                    change.value,
                    event.event_id,
                    table,
                )
        return event

    def interrupt(
        self, status: SubscriptionStatus = SubscriptionStatus.CHANNEL_ERROR
    ) -> None:
        """Drop every subscription with an error status, the way a lost transport does."""
        dropped, self._subscriptions = self._subscriptions, []
        _LOGGER.warning(
            "Change feed interrupted (%s), %d subscriptions dropped",
            status.value,
            len(dropped),
        )
        for subscription in dropped:
            subscription.set_status(status)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)
