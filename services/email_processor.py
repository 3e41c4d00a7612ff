from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from models.email_message import EmailContent
from models.extraction import EventDraft, ExtractionResult, TaskDraft
from models.report import ItemResult, MessageReport
from services.gmail_service import extract_content

LOGGER = logging.getLogger(__name__)


class Extractor(Protocol):
    def extract(self, content: EmailContent) -> ExtractionResult: ...


class EventWriter(Protocol):
    def create_event(self, draft: EventDraft) -> ItemResult: ...


class TaskWriter(Protocol):
    def create_task(self, draft: TaskDraft) -> ItemResult: ...


class EmailProcessor:
    """Runs one fetched message through extraction and the two writers.

    Every event is written before any task. Writers report failures in their
    ``ItemResult`` instead of raising, so one bad item never stops the rest.
    """

    def __init__(self, extractor: Extractor, calendar: EventWriter, tasks: TaskWriter):
        self._extractor = extractor
        self._calendar = calendar
        self._tasks = tasks

    def process(self, message: Mapping[str, Any]) -> MessageReport:
        message_id = str(message.get("id", ""))
        content = extract_content(message)
        LOGGER.info("Processing email %s: %r", message_id, content.subject)

        result = self._extractor.extract(content)
        report = MessageReport(message_id=message_id, subject=content.subject, error=result.error)

        for event in result.events:
            report.items.append(self._calendar.create_event(event))
        for task in result.tasks:
            report.items.append(self._tasks.create_task(task))

        LOGGER.info(
            "Processed email %s: %s event(s), %s task(s), %s failure(s)",
            message_id,
            report.events_created,
            report.tasks_created,
            report.failures,
        )
        return report
