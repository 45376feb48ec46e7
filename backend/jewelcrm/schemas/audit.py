"""Pydantic schemas for the append-only compliance logs."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

Severity = Literal["low", "medium", "high", "critical"]


class AuditLogEntry(BaseModel):
    id: str
    user_id: str | None = None
    action: str
    resource_type: str
    resource_id: str | None = None
    old_values: dict | None = None
    new_values: dict | None = None
    success: bool
    error_message: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SecurityEventEntry(BaseModel):
    id: str
    user_id: str | None = None
    event_type: str
    severity: Severity
    description: str | None = None
    # ORM attribute is `event_metadata`; the column and the API field are `metadata`
    metadata: dict | None = Field(default=None, validation_alias="event_metadata")
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class AccessAttemptEntry(BaseModel):
    id: str
    user_id: str | None = None
    resource_type: str
    resource_id: str | None = None
    permission_required: str | None = None
    access_granted: bool
    created_at: datetime

    model_config = {"from_attributes": True}
