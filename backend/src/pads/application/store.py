import asyncio
import logging
from collections.abc import Callable

from pads.domain.entities import (
    SERVER_DEVICE_ID,
    Clock,
    Snapshot,
    SnapshotCandidate,
    utc_now,
)

logger = logging.getLogger(__name__)

Listener = Callable[[str, Snapshot], None]


class SnapshotStore:
    """In-memory pad snapshots with last-writer-wins resolution.

    `lock` guards the pad map and the global version counter. Listeners run
    inside the critical section of an accepted write, so they observe
    snapshots in version order and must not block.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        server_device_id: str = SERVER_DEVICE_ID,
        initial_version: int = 0,
    ):
        self.lock = asyncio.Lock()
        self._clock = clock
        self._server_device_id = server_device_id
        self._initial_version = initial_version
        self._version = initial_version
        self._pads: dict[str, Snapshot] = {}
        self._listeners: list[Listener] = []

    @property
    def version(self) -> int:
        return self._version

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def pad_ids(self) -> list[str]:
        return list(self._pads)

    def get_or_create(self, pad_id: str) -> Snapshot:
        """Return the pad's snapshot, creating the default one if missing.

        The default is empty text stamped with the clock at creation time,
        attributed to the server device id, at the initial counter value.
        Callers must hold `lock`.
        """
        snapshot = self._pads.get(pad_id)
        if snapshot is None:
            snapshot = Snapshot(
                text="",
                last_modified=self._clock(),
                device_id=self._server_device_id,
                version=self._initial_version,
            )
            self._pads[pad_id] = snapshot
            logger.debug("Created pad %s", pad_id)
        return snapshot

    async def get(self, pad_id: str) -> Snapshot:
        async with self.lock:
            return self.get_or_create(pad_id)

    async def put(self, pad_id: str, candidate: SnapshotCandidate) -> tuple[Snapshot, bool]:
        """Apply `candidate` if strictly newer than the current snapshot.

        Returns the canonical snapshot and whether the write was applied.
        Equal timestamps keep the existing snapshot.
        """
        async with self.lock:
            current = self.get_or_create(pad_id)
            if candidate.last_modified <= current.last_modified:
                logger.debug(
                    "Stale write to pad %s from %s (%s <= %s)",
                    pad_id,
                    candidate.device_id,
                    candidate.last_modified.isoformat(),
                    current.last_modified.isoformat(),
                )
                return current, False

            self._version += 1
            snapshot = Snapshot(
                text=candidate.text,
                last_modified=candidate.last_modified,
                device_id=candidate.device_id,
                version=self._version,
            )
            self._pads[pad_id] = snapshot
            logger.debug(
                "Applied write to pad %s from %s as version %d",
                pad_id,
                snapshot.device_id,
                snapshot.version,
            )

            for listener in self._listeners:
                listener(pad_id, snapshot)

            return snapshot, True
