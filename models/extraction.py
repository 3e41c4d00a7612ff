from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(slots=True)
class EventDraft:
    """Calendar event proposed by the model, not yet written anywhere."""

    title: str
    description: str = ""
    start_date: str = ""
    start_time: str = ""
    end_date: str = ""
    end_time: str = ""
    location: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EventDraft":
        location = _text(data.get("location"))
        return cls(
            title=_text(data.get("title")),
            description=_text(data.get("description")),
            start_date=_text(data.get("start_date")),
            start_time=_text(data.get("start_time")),
            end_date=_text(data.get("end_date")),
            end_time=_text(data.get("end_time")),
            location=location or None,
        )


@dataclass(slots=True)
class TaskDraft:
    """Task proposed by the model. ``priority`` is free text (low/medium/high by convention)."""

    title: str
    description: str = ""
    due_date: str = ""
    priority: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskDraft":
        return cls(
            title=_text(data.get("title")),
            description=_text(data.get("description")),
            due_date=_text(data.get("due_date")),
            priority=_text(data.get("priority")),
        )


@dataclass(slots=True)
class ExtractionResult:
    events: List[EventDraft] = field(default_factory=list)
    tasks: List[TaskDraft] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.events and not self.tasks

    @classmethod
    def empty(cls, error: Optional[str] = None) -> "ExtractionResult":
        return cls(events=[], tasks=[], error=error)

    @classmethod
    def from_dict(cls, data: Any) -> "ExtractionResult":
        """Build a result from the decoded model reply.

        Raises ValueError when the reply is not an object or when ``events``/``tasks``
        are not arrays. Individual entries that are not objects are dropped.
        """

        if not isinstance(data, Mapping):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        events = data.get("events") or []
        tasks = data.get("tasks") or []
        if not isinstance(events, list) or not isinstance(tasks, list):
            raise ValueError("'events' and 'tasks' must be arrays")
        return cls(
            events=[EventDraft.from_dict(item) for item in events if isinstance(item, Mapping)],
            tasks=[TaskDraft.from_dict(item) for item in tasks if isinstance(item, Mapping)],
        )
