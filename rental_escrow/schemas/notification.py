from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    recipient: str
    event: str
    payload: dict[str, Any]
    read: bool
    created_at: datetime | None
