from pydantic import BaseModel, ConfigDict
from typing import Literal, Optional
from datetime import datetime


class ToyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    owner: Optional[str] = None
    status: str = "in"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ToyStatusUpdate(BaseModel):
    status: Literal["in", "out"]
    scanned: bool = False  # also append a play_sessions row (reader scan)
