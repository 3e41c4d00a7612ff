from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class ItemResult:
    """Outcome of a single create-event or create-task call."""

    kind: str
    title: str
    ok: bool
    reference: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "ok": self.ok,
            "reference": self.reference,
            "error": self.error,
        }


@dataclass(slots=True)
class MessageReport:
    message_id: str
    subject: str = ""
    items: List[ItemResult] = field(default_factory=list)
    error: Optional[str] = None

    def _count(self, kind: str) -> int:
        return sum(1 for item in self.items if item.kind == kind and item.ok)

    @property
    def events_created(self) -> int:
        return self._count("event")

    @property
    def tasks_created(self) -> int:
        return self._count("task")

    @property
    def failures(self) -> int:
        return sum(1 for item in self.items if not item.ok) + (1 if self.error else 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "subject": self.subject,
            "error": self.error,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(slots=True)
class CycleReport:
    """Everything one poll cycle did, success or not, for logs and the status command."""

    trigger: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    listed: int = 0
    skipped: int = 0
    messages: List[MessageReport] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def events_created(self) -> int:
        return sum(message.events_created for message in self.messages)

    @property
    def tasks_created(self) -> int:
        return sum(message.tasks_created for message in self.messages)

    @property
    def failures(self) -> int:
        return sum(message.failures for message in self.messages) + (1 if self.error else 0)

    def summary(self) -> str:
        if self.error:
            return f"cycle failed: {self.error}"
        return (
            f"{len(self.messages)} processed, {self.skipped} skipped, "
            f"{self.events_created} event(s), {self.tasks_created} task(s), {self.failures} failure(s)"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trigger": self.trigger,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "success": self.success,
            "error": self.error,
            "listed": self.listed,
            "skipped": self.skipped,
            "events_created": self.events_created,
            "tasks_created": self.tasks_created,
            "failures": self.failures,
            "messages": [message.to_dict() for message in self.messages],
        }
