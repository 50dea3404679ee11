"""
Activity log model.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ActivityLogEntry(BaseModel):
    """Append-only operational log line."""
    id: Optional[int] = None
    message: str
    created_at: datetime
