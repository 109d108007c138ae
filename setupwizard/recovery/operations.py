"""
Operation Log

History of reconfiguration flows (add profiles, change settings, ...).
One flow runs at a time; finished flows stay in the log, newest first.
"""

import json
import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config.defaults import OPERATION_HISTORY_LIMIT

logger = logging.getLogger(__name__)


class OperationStatus(str, Enum):
    """Lifecycle of a reconfiguration flow."""
    STARTED = "started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ROLLED_BACK = "rolled-back"


FINISHED = frozenset({
    OperationStatus.COMPLETED,
    OperationStatus.FAILED,
    OperationStatus.CANCELLED,
    OperationStatus.ROLLED_BACK,
})


def generate_operation_id() -> str:
    return f"op_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


@dataclass
class OperationRecord:
    """A single reconfiguration flow."""
    id: str
    type: str
    title: str
    status: OperationStatus = OperationStatus.STARTED
    timestamp: str = ""
    completed_at: Optional[str] = None
    steps: int = 0
    step_names: List[str] = field(default_factory=list)
    message: Optional[str] = None
    progress: float = 0.0
    status_text: str = ""
    step_index: int = 0

    @property
    def finished(self) -> bool:
        return self.status in FINISHED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "completed_at": self.completed_at,
            "steps": self.steps,
            "step_names": self.step_names,
            "message": self.message,
            "progress": self.progress,
            "status_text": self.status_text,
            "step_index": self.step_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OperationRecord":
        return cls(
            id=data["id"],
            type=data.get("type", ""),
            title=data.get("title", ""),
            status=OperationStatus(data.get("status", "started")),
            timestamp=data.get("timestamp", ""),
            completed_at=data.get("completed_at"),
            steps=int(data.get("steps") or 0),
            step_names=list(data.get("step_names") or []),
            message=data.get("message"),
            progress=float(data.get("progress", 0.0)),
            status_text=data.get("status_text", ""),
            step_index=int(data.get("step_index", 0)),
        )


class OperationLog:
    """
    Persistent log of reconfiguration flows.

    Mirrored to a JSON file on every mutation when a path is given.
    """

    def __init__(self, path: Optional[Path] = None, limit: int = OPERATION_HISTORY_LIMIT):
        """
        Initialize the log.

        Args:
            path: JSON file backing the log
            limit: Maximum number of records kept
        """
        self.path = path
        self.limit = limit
        self.records: List[OperationRecord] = []
        self._current_id: Optional[str] = None
        self.load()

    @property
    def current(self) -> Optional[OperationRecord]:
        """The flow in progress, if any."""
        if self._current_id is None:
            return None
        return self.get(self._current_id)

    def get(self, operation_id: str) -> Optional[OperationRecord]:
        for record in self.records:
            if record.id == operation_id:
                return record
        return None

    def start(self, type: str, title: str, steps: Optional[List[str]] = None) -> OperationRecord:
        """
        Start a new flow.

        An unfinished flow still marked current is cancelled first.
        """
        if self.current is not None and not self.current.finished:
            logger.warning("Cancelling unfinished operation %s", self.current.id)
            self.cancel()

        record = OperationRecord(
            id=generate_operation_id(),
            type=type,
            title=title,
            timestamp=datetime.now().isoformat(),
            steps=len(steps or []),
            step_names=list(steps or []),
            status_text="Starting operation...",
        )
        self.records.insert(0, record)
        del self.records[self.limit:]
        self._current_id = record.id
        self.save()

        logger.info("Started operation %s: %s", record.id, title)
        return record

    def update_progress(
        self,
        percentage: float,
        status_text: str = "",
        step_index: Optional[int] = None,
    ) -> Optional[OperationRecord]:
        """Record progress for the current flow; no-op when none is running."""
        record = self.current
        if record is None:
            logger.debug("Progress update with no operation in progress")
            return None

        record.progress = max(0.0, min(100.0, float(percentage)))
        record.status_text = status_text
        if step_index is not None:
            record.step_index = step_index
        record.status = OperationStatus.IN_PROGRESS
        self.save()
        return record

    def complete(self, success: bool = True, message: Optional[str] = None) -> Optional[OperationRecord]:
        """Finish the current flow as completed or failed."""
        status = OperationStatus.COMPLETED if success else OperationStatus.FAILED
        default = "Operation completed successfully" if success else "Operation failed"
        return self._finish(status, message or default)

    def cancel(self) -> Optional[OperationRecord]:
        """Finish the current flow as cancelled."""
        return self._finish(OperationStatus.CANCELLED, "Operation cancelled by user")

    def _finish(self, status: OperationStatus, message: str) -> Optional[OperationRecord]:
        record = self.current
        if record is None:
            logger.debug("No operation in progress to finish")
            return None

        record.status = status
        record.message = message
        record.completed_at = datetime.now().isoformat()
        if status == OperationStatus.COMPLETED:
            record.progress = 100.0
        record.status_text = message
        self._current_id = None
        self.save()

        logger.info("Operation %s %s", record.id, status.value)
        return record

    def mark_rolled_back(self, operation_id: str) -> bool:
        """Mark a finished flow as rolled back."""
        record = self.get(operation_id)
        if record is None:
            return False
        record.status = OperationStatus.ROLLED_BACK
        self.save()
        return True

    def clear(self) -> None:
        """Drop every record."""
        self.records = []
        self._current_id = None
        self.save()

    def export(self) -> Dict[str, Any]:
        """Get the log as a JSON-serializable document."""
        return {
            "exported_at": datetime.now().isoformat(),
            "operations": [r.to_dict() for r in self.records],
        }

    # ============================================================
    # Persistence
    # ============================================================

    def save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump([r.to_dict() for r in self.records], f, indent=2)

    def load(self) -> bool:
        if self.path is None or not self.path.exists():
            return False

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            records = [OperationRecord.from_dict(item) for item in data]
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
            logger.warning("Error loading operation history from %s: %s", self.path, e)
            return False

        self.records = records[:self.limit]
        return True
