import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, status
from starlette.websockets import WebSocketState

from pads.application.subscriptions import SubscriptionRegistry
from pads.domain.entities import Snapshot
from pads.interfaces.schemas import PadId, SnapshotResponse
from shared.dependencies import get_registry
from shared.exceptions import RegistryClosedError

logger = logging.getLogger(__name__)

router = APIRouter()


class WebSocketConnection:
    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send(self, snapshot: Snapshot) -> None:
        payload = SnapshotResponse.from_entity(snapshot).model_dump(by_alias=True)
        await self.websocket.send_json(payload)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Consume inbound frames until the peer goes away. Clients never send updates here."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/pads/{pad_id}")
async def pad_updates(
    websocket: WebSocket,
    pad_id: PadId,
    registry: SubscriptionRegistry = Depends(get_registry),
):
    await websocket.accept()

    try:
        subscription = await registry.subscribe(pad_id, WebSocketConnection(websocket))
    except RegistryClosedError as exc:
        await websocket.close(code=status.WS_1001_GOING_AWAY, reason=exc.message)
        return

    logger.info("WebSocket client connected to pad %s", pad_id)

    receiver = asyncio.create_task(_wait_for_disconnect(websocket))
    delivery = asyncio.create_task(registry.deliver(subscription))
    try:
        # Either the peer left or the registry dropped this subscriber
        await asyncio.wait({receiver, delivery}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        registry.unsubscribe(subscription)
        for task in (receiver, delivery):
            task.cancel()
        for task in (receiver, delivery):
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.warning("WebSocket task for pad %s failed", pad_id, exc_info=True)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
        logger.info("WebSocket client disconnected from pad %s", pad_id)
