from __future__ import annotations

import base64
from pathlib import Path
from typing import Callable

import httplib2
import pytest
from googleapiclient.errors import HttpError

from utils.config import DEFAULT_REMINDERS, AppConfig, GoogleConfig, parse_reminders


def encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


class FakeRequest:
    """Stand-in for a googleapiclient HttpRequest."""

    def __init__(self, result=None, error: Exception | None = None):
        self._result = result if result is not None else {}
        self._error = error

    def execute(self):
        if self._error is not None:
            raise self._error
        return self._result


class FakeMailbox:
    """Paged stand-in for the Gmail ``users().messages()`` resource.

    ``list`` honours the ``after:<epoch>`` query and returns ids newest first,
    ``maxResults`` per page, like the real API.
    """

    def __init__(self, messages=(), list_error: Exception | None = None):
        self._by_id = {message["id"]: message for message in messages}
        self.list_error = list_error
        self.list_calls = []

    def users(self):
        return self

    def messages(self):
        return self

    def list(self, userId, q, maxResults, pageToken=None):
        self.list_calls.append({"userId": userId, "q": q, "maxResults": maxResults, "pageToken": pageToken})
        after = int(q.split(":", 1)[1])
        matching = sorted(
            (m for m in self._by_id.values() if int(m["internalDate"]) // 1000 >= after),
            key=lambda m: int(m["internalDate"]),
            reverse=True,
        )
        start = int(pageToken or 0)
        response = {"messages": [{"id": m["id"], "threadId": m["id"]} for m in matching[start : start + maxResults]]}
        if start + maxResults < len(matching):
            response["nextPageToken"] = str(start + maxResults)
        return FakeRequest(response, self.list_error)

    def get(self, userId, id, format):
        return FakeRequest(self._by_id[id])


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., AppConfig]:
    def factory(**overrides) -> AppConfig:
        values = dict(
            account_name="test",
            google=GoogleConfig(
                client_id="client-id",
                client_secret="client-secret",
                redirect_uri="http://localhost/callback",
                refresh_token="refresh-token",
            ),
            openai_api_key="sk-test",
            openai_model="gpt-3.5-turbo",
            openai_temperature=0.1,
            poll_interval_minutes=15,
            initial_delay_seconds=5,
            lookback_minutes=60,
            max_messages_per_cycle=10,
            calendar_id="primary",
            timezone="America/New_York",
            reminders=parse_reminders(DEFAULT_REMINDERS),
            task_list=None,
            db_path=tmp_path / "emails.db",
            stats_file=tmp_path / "stats.json",
            log_dir=tmp_path / "logs",
        )
        values.update(overrides)
        return AppConfig(**values)

    return factory


@pytest.fixture
def config(config_factory) -> AppConfig:
    return config_factory()


@pytest.fixture
def http_error() -> Callable[..., HttpError]:
    def factory(status: int = 500, content: bytes = b"backend error") -> HttpError:
        return HttpError(httplib2.Response({"status": status}), content)

    return factory


ENV_NAMES = (
    "ACCOUNT_NAME",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REDIRECT_URI",
    "GOOGLE_REFRESH_TOKEN",
    "GMAIL_USER_ID",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_TEMPERATURE",
    "POLL_INTERVAL_MINUTES",
    "INITIAL_DELAY_SECONDS",
    "LOOKBACK_MINUTES",
    "MAX_MESSAGES_PER_CYCLE",
    "CALENDAR_ID",
    "CALENDAR_TIMEZONE",
    "EVENT_REMINDERS",
    "TASK_LIST",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_NAMES:
        # setenv first so values loaded from .env files are undone after the test
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("DB_PATH", str(tmp_path / "data" / "emails.db"))
    monkeypatch.setenv("STATS_FILE", str(tmp_path / "data" / "stats.json"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    return monkeypatch
