from fastapi import APIRouter, Depends

from pads.application.store import SnapshotStore
from pads.interfaces.schemas import PadId, SnapshotResponse, WriteSnapshotRequest
from shared.dependencies import get_store

router = APIRouter(prefix="/pads", tags=["pads"])


@router.get("/{pad_id}", response_model=SnapshotResponse)
async def read_pad(pad_id: PadId, store: SnapshotStore = Depends(get_store)):
    snapshot = await store.get(pad_id)
    return SnapshotResponse.from_entity(snapshot)


@router.put("/{pad_id}", response_model=SnapshotResponse)
async def write_pad(
    pad_id: PadId,
    body: WriteSnapshotRequest,
    store: SnapshotStore = Depends(get_store),
):
    # A stale write still answers 200 with the canonical snapshot
    snapshot, _ = await store.put(pad_id, body.to_candidate())
    return SnapshotResponse.from_entity(snapshot)
