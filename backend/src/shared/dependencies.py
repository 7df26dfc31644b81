from starlette.requests import HTTPConnection

from pads.application.store import SnapshotStore
from pads.application.subscriptions import SubscriptionRegistry


def get_store(connection: HTTPConnection) -> SnapshotStore:
    return connection.app.state.store


def get_registry(connection: HTTPConnection) -> SubscriptionRegistry:
    return connection.app.state.registry
