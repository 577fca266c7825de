"""Attachment schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class LeaveFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_id: Optional[uuid.UUID] = None
    uploaded_by: uuid.UUID
    original_name: str
    url: str
    size: int
    content_type: str
    uploaded_at: datetime


class CleanupOut(BaseModel):
    removed: int
