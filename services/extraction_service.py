"""Turn email text into event and task drafts with an OpenAI chat completion."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from openai import OpenAI, OpenAIError

from models.email_message import EmailContent
from models.extraction import ExtractionResult
from utils.config import AppConfig

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert at extracting calendar events and tasks from emails. "
    "Always respond with valid JSON only."
)

INSTRUCTIONS = """Please extract:
1. Events: meetings, appointments, social events, school events, etc.
2. Tasks: things that need to be done, assignments, deadlines, etc.

For events, include: title, description, start_date, start_time, end_date, end_time, location
For tasks, include: title, description, due_date, priority (low, medium or high)

Use ISO date format (YYYY-MM-DD) and 24-hour time format (HH:MM).
If specific times aren't mentioned, use reasonable defaults.
If dates are relative (like "next Friday"), calculate the actual date from the email date.

Return JSON in this format:
{
  "events": [
    {
      "title": "Event Title",
      "description": "Event Description",
      "start_date": "2024-01-15",
      "start_time": "15:00",
      "end_date": "2024-01-15",
      "end_time": "16:00",
      "location": "Location if mentioned"
    }
  ],
  "tasks": [
    {
      "title": "Task Title",
      "description": "Task Description",
      "due_date": "2024-01-20",
      "priority": "medium"
    }
  ]
}

If no events or tasks are found, return empty arrays."""


def build_prompt(content: EmailContent) -> str:
    """Embed the email verbatim into the fixed extraction instructions."""

    return (
        "Analyze this email and extract any calendar events and tasks. Respond with a JSON object.\n\n"
        f"Email Subject: {content.subject}\n"
        f"From: {content.sender}\n"
        f"Date: {content.date}\n"
        f"Body: {content.body}\n\n"
        f"{INSTRUCTIONS}\n"
    )


class ExtractionService:
    """Ask the completion service for events and tasks; never raises.

    Provider failures and unparseable replies are logged and collapse into an
    empty ``ExtractionResult`` whose ``error`` says what went wrong.
    """

    def __init__(self, config: AppConfig, client: Any = None):
        self._model = config.openai_model
        self._temperature = config.openai_temperature
        self._client = client or OpenAI(api_key=config.openai_api_key)

    def build_messages(self, content: EmailContent) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(content)},
        ]

    def extract(self, content: EmailContent) -> ExtractionResult:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=self.build_messages(content),
                temperature=self._temperature,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            LOGGER.error("Completion request failed for %r: %s", content.subject, exc)
            return ExtractionResult.empty(error=f"completion request failed: {exc}")

        try:
            raw = response.choices[0].message.content
            result = ExtractionResult.from_dict(json.loads(raw))
        except (IndexError, AttributeError, TypeError, ValueError) as exc:
            LOGGER.error("Could not parse extraction reply for %r: %s", content.subject, exc)
            return ExtractionResult.empty(error=f"unparseable model reply: {exc}")

        LOGGER.info(
            "Extracted %s event(s) and %s task(s) from %r",
            len(result.events),
            len(result.tasks),
            content.subject,
        )
        return result
