from typing import List
from fastapi import APIRouter, Depends, status

from pinme.api.deps import get_runtime
from pinme.schemas.notification import NotificationHistoryItem
from pinme.services.runtime import ReminderRuntime

router = APIRouter()


@router.get("/", response_model=List[NotificationHistoryItem])
async def get_history(runtime: ReminderRuntime = Depends(get_runtime)):
    """Notification history, newest first"""
    items = await runtime.history.items()
    return sorted(items, key=lambda i: i.timestamp, reverse=True)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(runtime: ReminderRuntime = Depends(get_runtime)):
    await runtime.history.clear()
