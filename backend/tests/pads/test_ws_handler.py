import time

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect, WebSocketState

from main import app
from pads.interfaces.ws_handler import pad_updates


def _payload(text, last_modified, device_id="d1"):
    return {"text": text, "lastModified": last_modified, "deviceID": device_id}


@pytest.fixture
def ws_client():
    with TestClient(app) as client:
        yield client


def test_connect_receives_current_snapshot(ws_client):
    ws_client.put("/pads/default", json=_payload("hi", "2024-01-01T00:00:00.000Z"))

    with ws_client.websocket_connect("/ws/pads/default") as ws:
        assert ws.receive_json() == ws_client.get("/pads/default").json()


def test_connect_to_new_pad_receives_default(ws_client):
    with ws_client.websocket_connect("/ws/pads/fresh") as ws:
        assert ws.receive_json() == {
            "text": "",
            "lastModified": "2000-01-01T00:00:00.000Z",
            "deviceID": "server",
            "version": 0,
        }


def test_accepted_write_is_pushed(ws_client):
    with ws_client.websocket_connect("/ws/pads/default") as ws:
        ws.receive_json()

        resp = ws_client.put("/pads/default", json=_payload("hi", "2024-01-01T00:00:00.000Z"))
        assert ws.receive_json() == resp.json()


def test_stale_and_foreign_writes_are_not_pushed(ws_client):
    with ws_client.websocket_connect("/ws/pads/default") as ws:
        ws.receive_json()
        ws_client.put("/pads/default", json=_payload("hi", "2024-01-01T00:00:00.000Z", "d1"))
        assert ws.receive_json()["text"] == "hi"

        ws_client.put("/pads/default", json=_payload("bye", "2023-12-31T23:59:59.000Z", "d2"))
        ws_client.put("/pads/default", json=_payload("hi again", "2024-01-01T00:00:00.000Z", "d3"))
        ws_client.put("/pads/other", json=_payload("elsewhere", "2024-01-05T00:00:00.000Z"))
        ws_client.put("/pads/default", json=_payload("final", "2024-01-02T00:00:00.000Z", "d1"))

        pushed = ws.receive_json()
        assert pushed["text"] == "final"
        assert pushed["version"] == 3


def test_every_subscriber_of_the_pad_is_pushed(ws_client):
    with ws_client.websocket_connect("/ws/pads/default") as first, ws_client.websocket_connect(
        "/ws/pads/default"
    ) as second:
        first.receive_json()
        second.receive_json()

        ws_client.put("/pads/default", json=_payload("shared", "2024-01-01T00:00:00.000Z"))
        assert first.receive_json()["text"] == "shared"
        assert second.receive_json()["text"] == "shared"


def test_inbound_frames_are_ignored(ws_client, store):
    with ws_client.websocket_connect("/ws/pads/default") as ws:
        ws.receive_json()
        ws.send_text("hello?")
        ws_client.put("/pads/default", json=_payload("hi", "2024-01-01T00:00:00.000Z"))
        assert ws.receive_json()["text"] == "hi"
    assert store.version == 1


def test_disconnect_removes_subscriber(ws_client, registry):
    with ws_client.websocket_connect("/ws/pads/default") as ws:
        ws.receive_json()
        assert registry.subscriber_count("default") == 1

    # The handler finishes on the app thread after the close frame
    for _ in range(100):
        if registry.subscriber_count("default") == 0:
            break
        time.sleep(0.01)
    assert registry.subscriber_count("default") == 0


def test_unroutable_path_is_rejected(ws_client):
    with pytest.raises(WebSocketDisconnect):
        with ws_client.websocket_connect("/ws/pads/default/extra"):
            pass


def test_closed_registry_rejects_connection(ws_client, registry):
    registry.close()
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect("/ws/pads/default") as ws:
            ws.receive_json()
    assert exc_info.value.code == 1001


def test_malformed_pad_id_is_rejected(ws_client, registry):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect("/ws/pads/bad%20id"):
            pass
    assert exc_info.value.code == 1008
    assert registry.subscriber_count("bad id") == 0


class BrokenTransportWebSocket:
    def __init__(self):
        self.client_state = WebSocketState.CONNECTED
        self.sent = []
        self.closed = False

    async def accept(self):
        pass

    async def receive(self):
        raise RuntimeError("transport failed")

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code=1000, reason=None):
        self.closed = True


async def test_receive_failure_still_cleans_up(registry):
    websocket = BrokenTransportWebSocket()

    await pad_updates(websocket=websocket, pad_id="default", registry=registry)

    assert websocket.closed
    assert registry.subscriber_count("default") == 0
