"""
Type definitions for the undo system.
"""

import base64
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

HISTORY_VERSION = "1.0"


class OperationType(str, Enum):
    """Type of tracked file operation."""

    CREATE = "create"
    DELETE = "delete"
    UPDATE = "update"
    MOVE = "move"
    COPY = "copy"
    RENAME = "rename"


# Operations whose pre-image is copied into the backup store
BACKUP_OPERATIONS = frozenset(
    {OperationType.DELETE, OperationType.UPDATE, OperationType.MOVE}
)

# Operations whose content is kept inline on the record
SNAPSHOT_OPERATIONS = frozenset({OperationType.CREATE, OperationType.UPDATE})

# Operations that need a destination path
TARGET_OPERATIONS = frozenset(
    {OperationType.MOVE, OperationType.COPY, OperationType.RENAME}
)


class EventType(str, Enum):
    """Lifecycle event emitted by the undo manager."""

    SESSION_CREATED = "session_created"
    OPERATION_TRACKED = "operation_tracked"
    OPERATION_UNDONE = "operation_undone"
    SESSION_UNDONE = "session_undone"
    ERROR = "error"


class UndoOperation(BaseModel):
    """A single tracked file operation that can be undone."""

    id: str = Field(description="Unique operation ID")
    type: OperationType = Field(description="Operation type")
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the operation was tracked",
    )
    original_path: Path = Field(description="Path before the operation")
    backup_path: Optional[Path] = Field(
        default=None, description="Backup copy of the pre-operation content"
    )
    new_path: Optional[Path] = Field(
        default=None, description="Destination for move/copy/rename"
    )
    content_snapshot: Optional[bytes] = Field(
        default=None, description="Inline pre-operation content (create/update)"
    )
    size: int = Field(default=0, description="File size in bytes")
    permissions: int = Field(default=0o644, description="File mode bits")
    mod_time: Optional[datetime] = Field(
        default=None, description="File modification time (UTC)"
    )
    checksum: Optional[str] = Field(
        default=None, description="SHA-256 of the pre-operation content"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)
    undone: bool = Field(default=False, description="Whether it has been undone")
    undone_at: Optional[datetime] = Field(
        default=None, description="When it was undone"
    )

    @field_serializer("content_snapshot", when_used="json")
    def _encode_snapshot(self, value: Optional[bytes]) -> Optional[str]:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @field_validator("content_snapshot", mode="before")
    @classmethod
    def _decode_snapshot(cls, value: Any) -> Any:
        if isinstance(value, str):
            return base64.b64decode(value.encode("ascii"))
        return value

    def mark_undone(self) -> None:
        """Flag the operation as undone. The flag never goes back to False."""
        self.undone = True
        self.undone_at = datetime.now()


class UndoSession(BaseModel):
    """A named, ordered group of operations undone together."""

    id: str = Field(description="Unique session ID")
    name: str = Field(description="Session name")
    description: str = Field(default="", description="Session description")
    operations: List[UndoOperation] = Field(
        default_factory=list, description="Operations in tracking order"
    )
    created_at: datetime = Field(
        default_factory=datetime.now,
        description="When the session started",
    )
    undone: bool = Field(default=False)
    undone_at: Optional[datetime] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def get_operation(self, operation_id: str) -> Optional[UndoOperation]:
        """
        Find an operation in this session.

        Args:
            operation_id: Operation ID

        Returns:
            The operation, or None if it is not part of this session
        """
        for op in self.operations:
            if op.id == operation_id:
                return op
        return None

    def get_statistics(self) -> Dict[str, int]:
        """
        Get session statistics.

        Returns:
            Dictionary with operation counts
        """
        undone = sum(1 for op in self.operations if op.undone)
        return {
            "total": len(self.operations),
            "undone": undone,
            "pending": len(self.operations) - undone,
        }

    def mark_undone(self) -> None:
        """Flag the session as undone."""
        self.undone = True
        self.undone_at = datetime.now()


class UndoEvent(BaseModel):
    """An event emitted by the undo system."""

    type: EventType
    session_id: Optional[str] = None
    operation: Optional[UndoOperation] = None
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


class UndoHistory(BaseModel):
    """On-disk history document."""

    sessions: List[UndoSession] = Field(default_factory=list)
    version: str = HISTORY_VERSION
    updated: datetime = Field(default_factory=datetime.now)
    current_session_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")
