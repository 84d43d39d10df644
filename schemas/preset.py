"""Settings preset schemas."""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field

from schemas.message import utc_now


class Preset(BaseModel):
    """Named snapshot of settings."""

    name: str = Field(..., min_length=1, description="Unique preset name")
    created_at: datetime = Field(default_factory=utc_now)
    settings: Dict[str, Any] = Field(default_factory=dict, description="Settings snapshot")
