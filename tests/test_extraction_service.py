from __future__ import annotations

import json
import logging
from types import SimpleNamespace

from openai import OpenAIError

from models.email_message import EmailContent
from services.extraction_service import SYSTEM_PROMPT, ExtractionService, build_prompt


class FakeCompletions:
    def __init__(self, reply=None, error: Exception | None = None):
        self._reply = reply
        self._error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        message = SimpleNamespace(content=self._reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


DENTIST = EmailContent(
    subject="Dentist",
    sender="clinic@example.com",
    date="Mon, 8 Jan 2024 09:00:00 -0500",
    body="Appointment next Monday 3pm",
)


def test_prompt_embeds_email_verbatim_and_is_deterministic():
    prompt = build_prompt(DENTIST)

    assert "Email Subject: Dentist\n" in prompt
    assert "Body: Appointment next Monday 3pm\n" in prompt
    assert "From: clinic@example.com" in prompt
    assert "YYYY-MM-DD" in prompt and "HH:MM" in prompt
    assert "next Friday" in prompt
    assert build_prompt(DENTIST) == prompt


def test_body_with_braces_is_not_mangled():
    content = EmailContent(subject="{x}", body='{"events": 1} {0}')
    prompt = build_prompt(content)
    assert 'Body: {"events": 1} {0}' in prompt
    assert "Email Subject: {x}" in prompt


def test_extract_parses_events_and_tasks(config):
    reply = json.dumps(
        {
            "events": [
                {
                    "title": "Dentist",
                    "description": "Check-up",
                    "start_date": "2024-01-15",
                    "start_time": "15:00",
                    "end_date": "2024-01-15",
                    "end_time": "16:00",
                    "location": None,
                }
            ],
            "tasks": [{"title": "Submit form", "description": "", "due_date": "2024-01-20", "priority": "high"}],
        }
    )
    completions = FakeCompletions(reply=reply)
    result = ExtractionService(config, client=_client(completions)).extract(DENTIST)

    assert result.error is None
    assert [event.title for event in result.events] == ["Dentist"]
    assert result.events[0].location is None
    assert result.tasks[0].due_date == "2024-01-20"
    assert result.tasks[0].priority == "high"

    call = completions.calls[0]
    assert call["model"] == "gpt-3.5-turbo"
    assert call["temperature"] == 0.1
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert call["messages"][1]["content"] == build_prompt(DENTIST)


def test_invalid_json_returns_empty_result_and_logs(config, caplog):
    completions = FakeCompletions(reply="Sure! Here are your events: ...")
    with caplog.at_level(logging.ERROR, logger="services.extraction_service"):
        result = ExtractionService(config, client=_client(completions)).extract(DENTIST)

    assert result.events == [] and result.tasks == []
    assert result.error is not None
    assert "Could not parse extraction reply" in caplog.text


def test_provider_error_returns_empty_result(config, caplog):
    completions = FakeCompletions(error=OpenAIError("rate limited"))
    with caplog.at_level(logging.ERROR, logger="services.extraction_service"):
        result = ExtractionService(config, client=_client(completions)).extract(DENTIST)

    assert result.is_empty
    assert "rate limited" in result.error
    assert "Completion request failed" in caplog.text


def test_wrong_shapes_collapse_to_empty(config):
    for reply in ("[1, 2]", '{"events": "tomorrow"}', None):
        result = ExtractionService(config, client=_client(FakeCompletions(reply=reply))).extract(DENTIST)
        assert result.is_empty
        assert result.error is not None


def test_non_object_entries_are_dropped(config):
    reply = json.dumps({"events": ["oops", {"title": "Party", "start_date": "2024-02-01"}], "tasks": None})
    result = ExtractionService(config, client=_client(FakeCompletions(reply=reply))).extract(DENTIST)

    assert result.error is None
    assert [event.title for event in result.events] == ["Party"]
    assert result.tasks == []
