"""PULSE — Log Column Registry.

Defines the message-log columns a classification metric may map to, how each
column compares against keywords, and the special keyword tokens shared by
metrics and status mappings.
"""

from enum import Enum
from typing import Dict


class ColumnKind(str, Enum):
    """How a column's values compare against keyword literals."""

    TEXT = "text"  # Case-insensitive string equality
    NUMERIC = "numeric"  # Exact match on the value's decimal text


class LogColumn(str, Enum):
    """Matchable fields of a message log row."""

    STATUS_CODE = "status_code"
    STATUS_MESSAGE = "status_message"
    MESSAGE_STATUS = "message_status"
    MESSAGE_STATUS_DETAILED = "message_status_detailed"
    TEMPLATE_NAME = "template_name"
    NAME = "name"
    PHONE = "phone"
    MESSAGE_ID = "message_id"


class SpecialKeyword(str, Enum):
    """Keyword tokens with meaning beyond a literal match."""

    WILDCARD = "*"
    NOT_NULL = "$not_null"
    NULL = "$null"
    LEGACY_NULL = "null"
    EMPTY = "$empty"


class ColumnDefinition:
    """Describes a single matchable column."""

    def __init__(self, column: LogColumn, kind: ColumnKind, label: str, hint: str = ""):
        self.column = column
        self.kind = kind
        self.label = label
        self.hint = hint

    @property
    def is_numeric(self) -> bool:
        return self.kind == ColumnKind.NUMERIC

    def __repr__(self) -> str:
        return f"<Column {self.column.value} ({self.kind.value})>"


# ─────────────────────────────────────────────
# MESSAGE LOG COLUMNS — Canonical Registry
# ─────────────────────────────────────────────

LOG_COLUMNS: Dict[LogColumn, ColumnDefinition] = {
    LogColumn.MESSAGE_STATUS: ColumnDefinition(
        LogColumn.MESSAGE_STATUS,
        ColumnKind.TEXT,
        "Message Status",
        "Delivery state, e.g. sent, delivered, read, failed",
    ),
    LogColumn.STATUS_CODE: ColumnDefinition(
        LogColumn.STATUS_CODE,
        ColumnKind.NUMERIC,
        "Status Code",
        "Provider response code, e.g. 200, 400, 500",
    ),
    LogColumn.STATUS_MESSAGE: ColumnDefinition(
        LogColumn.STATUS_MESSAGE, ColumnKind.TEXT, "Status Message", "Provider response text"
    ),
    LogColumn.MESSAGE_STATUS_DETAILED: ColumnDefinition(
        LogColumn.MESSAGE_STATUS_DETAILED,
        ColumnKind.TEXT,
        "Detailed Status",
        "Provider-specific delivery detail",
    ),
    LogColumn.TEMPLATE_NAME: ColumnDefinition(
        LogColumn.TEMPLATE_NAME, ColumnKind.TEXT, "Template Name"
    ),
    LogColumn.NAME: ColumnDefinition(LogColumn.NAME, ColumnKind.TEXT, "Contact Name"),
    LogColumn.PHONE: ColumnDefinition(LogColumn.PHONE, ColumnKind.TEXT, "Phone"),
    LogColumn.MESSAGE_ID: ColumnDefinition(
        LogColumn.MESSAGE_ID, ColumnKind.TEXT, "Message ID"
    ),
}


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────


def get_column(name: str) -> ColumnDefinition | None:
    """Look up a column by its field name."""
    try:
        return LOG_COLUMNS[LogColumn(name)]
    except ValueError:
        return None


def columns_by_kind(kind: ColumnKind) -> list[ColumnDefinition]:
    """Return all columns of a given kind."""
    return [c for c in LOG_COLUMNS.values() if c.kind == kind]
