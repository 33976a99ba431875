"""PULSE — Message Log Models (Read-Only Source Rows).

One row per outbound message. The metrics engine only ever counts these rows;
ingestion happens elsewhere.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


class MessageLog(SQLModel, table=True):
    """A single message delivery record for a client."""

    __tablename__ = "message_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(index=True, description="Tenant the message belongs to")
    name: Optional[str] = Field(default=None, description="Contact name")
    phone: Optional[str] = Field(default=None, description="Contact phone")
    template_name: Optional[str] = Field(
        default=None, index=True, description="Message template used"
    )
    status_code: Optional[int] = Field(
        default=None, description="Provider response code, e.g. 200"
    )
    status_message: Optional[str] = Field(default=None)
    message_id: Optional[str] = Field(default=None, description="Provider message ID")
    message_status: Optional[str] = Field(
        default=None, description="sent | delivered | read | replied | failed"
    )
    message_status_detailed: Optional[str] = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
