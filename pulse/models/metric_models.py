"""PULSE — Metric Definition Models.

Tenant-authored metric configuration. Each row is either a classification
metric (``map_to_column`` + ``keywords``) or a calculated metric
(``formula``), selected by ``is_calculated``.
"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, UniqueConstraint


class ClientMetric(SQLModel, table=True):
    """Metric configuration row for one client."""

    __tablename__ = "client_metrics"
    __table_args__ = (
        UniqueConstraint("client_id", "name", name="uq_client_metric_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(index=True, description="Tenant partition key")
    name: str = Field(description="Display name, also the formula identifier")
    icon: str = Field(default="", description="Icon key for the stat card")
    color: str = Field(default="", description="Hex color for the stat card")
    map_to_column: Optional[str] = Field(
        default=None, description="Log column matched by keywords"
    )
    keywords: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True)
    is_calculated: bool = Field(default=False)
    formula: Optional[str] = Field(default=None)
    prefix: Optional[str] = Field(default=None, description="Shown before the value")
    unit: Optional[str] = Field(default=None, description="Shown after the value")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
