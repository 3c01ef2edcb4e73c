from fastapi import APIRouter, Depends, HTTPException

from pinme.api.deps import get_runtime
from pinme.schemas.toy import ToyRead, ToyStatusUpdate
from pinme.services.runtime import ReminderRuntime

router = APIRouter()


@router.patch("/{toy_id}/status", response_model=ToyRead)
async def update_toy_status(
    toy_id: str,
    update: ToyStatusUpdate,
    runtime: ReminderRuntime = Depends(get_runtime),
):
    """Check a toy in or out. The change is broadcast to the reminder engines."""
    toy = await runtime.set_toy_status(toy_id, update.status, scanned=update.scanned)
    if not toy:
        raise HTTPException(status_code=404, detail="Toy not found")
    return toy
