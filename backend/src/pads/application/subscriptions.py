import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from pads.application.store import SnapshotStore
from pads.domain.entities import Snapshot
from shared.exceptions import RegistryClosedError

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send(self, snapshot: Snapshot) -> None: ...


@dataclass(eq=False)
class Subscription:
    pad_id: str
    connection: Connection
    initial: Snapshot
    pending: asyncio.Queue[Snapshot | None] = field(repr=False)
    active: bool = True

    def offer(self, snapshot: Snapshot) -> bool:
        try:
            self.pending.put_nowait(snapshot)
        except asyncio.QueueFull:
            return False
        return True


class SubscriptionRegistry:
    """Live subscribers per pad and the fan-out of accepted snapshots.

    Every method runs on the event loop that owns the store. Membership only
    changes in synchronous sections, and `notify` is invoked from inside the
    store's critical section, so each subscriber's queue receives snapshots
    in version order. Sending happens in `deliver`, one loop per subscriber.
    """

    def __init__(self, store: SnapshotStore, *, send_timeout: float = 5.0, max_pending: int = 64):
        # The initial snapshot occupies one slot, so a queue of one drops on the first write
        if max_pending < 2:
            raise ValueError("max_pending must be at least 2")
        self._store = store
        self._send_timeout = send_timeout
        self._max_pending = max_pending
        self._subscriptions: dict[str, set[Subscription]] = {}
        self._closed = False
        store.add_listener(self.notify)

    def subscriber_count(self, pad_id: str) -> int:
        return len(self._subscriptions.get(pad_id, ()))

    async def subscribe(self, pad_id: str, connection: Connection) -> Subscription:
        """Register `connection` for pushes on `pad_id`.

        The current snapshot is queued as the first message and exposed as
        `Subscription.initial`.
        """
        if self._closed:
            raise RegistryClosedError()

        async with self._store.lock:
            # close() may have run while waiting for the lock
            if self._closed:
                raise RegistryClosedError()
            snapshot = self._store.get_or_create(pad_id)
            subscription = Subscription(
                pad_id=pad_id,
                connection=connection,
                initial=snapshot,
                pending=asyncio.Queue(maxsize=self._max_pending),
            )
            subscription.offer(snapshot)
            self._subscriptions.setdefault(pad_id, set()).add(subscription)

        logger.info("Subscriber joined pad %s (%d live)", pad_id, self.subscriber_count(pad_id))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False

        members = self._subscriptions.get(subscription.pad_id)
        if members is not None:
            members.discard(subscription)
            if not members:
                del self._subscriptions[subscription.pad_id]

        # Wake the delivery loop if it is waiting on an empty queue
        try:
            subscription.pending.put_nowait(None)
        except asyncio.QueueFull:
            pass

        logger.info(
            "Subscriber left pad %s (%d live)",
            subscription.pad_id,
            self.subscriber_count(subscription.pad_id),
        )

    def notify(self, pad_id: str, snapshot: Snapshot) -> None:
        for subscription in list(self._subscriptions.get(pad_id, ())):
            if not subscription.offer(snapshot):
                logger.warning(
                    "Dropping slow subscriber of pad %s: %d pushes pending",
                    pad_id,
                    subscription.pending.qsize(),
                )
                self.unsubscribe(subscription)

    async def deliver(self, subscription: Subscription) -> None:
        """Send queued snapshots to the subscriber until it is removed."""
        while subscription.active:
            snapshot = await subscription.pending.get()
            try:
                if snapshot is None:
                    continue
                try:
                    async with asyncio.timeout(self._send_timeout):
                        await subscription.connection.send(snapshot)
                except Exception:
                    logger.warning(
                        "Delivery of version %d to a subscriber of pad %s failed",
                        snapshot.version,
                        subscription.pad_id,
                        exc_info=True,
                    )
                    self.unsubscribe(subscription)
            finally:
                subscription.pending.task_done()

    def close(self) -> None:
        self._closed = True
        for members in list(self._subscriptions.values()):
            for subscription in list(members):
                self.unsubscribe(subscription)
