from pydantic import BaseModel
from typing import List, Optional


class NotificationHistoryItem(BaseModel):
    id: str
    title: str
    body: Optional[str] = None
    timestamp: int  # epoch milliseconds
    source: Optional[str] = None


class IdleScanResponse(BaseModel):
    fired: List[NotificationHistoryItem]


class LongPlayScanResponse(BaseModel):
    title: str
    live: bool
    items: List[NotificationHistoryItem]


class MonitorStatus(BaseModel):
    subscribed: bool
