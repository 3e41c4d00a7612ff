from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_REMINDERS = "email:1440,popup:30"
REMINDER_METHODS = ("email", "popup")


class ConfigError(RuntimeError):
    """Raised when required settings are missing or malformed."""


@dataclass(slots=True)
class GoogleConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    refresh_token: str
    user_id: str = "me"

    def missing_client_settings(self) -> List[str]:
        pairs = [
            ("GOOGLE_CLIENT_ID", self.client_id),
            ("GOOGLE_CLIENT_SECRET", self.client_secret),
            ("GOOGLE_REDIRECT_URI", self.redirect_uri),
        ]
        return [name for name, value in pairs if not value]

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)


@dataclass(slots=True)
class AppConfig:
    account_name: str
    google: GoogleConfig
    openai_api_key: str
    openai_model: str
    openai_temperature: float
    poll_interval_minutes: int
    initial_delay_seconds: int
    lookback_minutes: int
    max_messages_per_cycle: int
    calendar_id: str
    timezone: str
    reminders: List[Dict[str, object]]
    task_list: Optional[str]
    db_path: Path
    stats_file: Path
    log_dir: Path
    log_level: str = "INFO"

    def require_google(self) -> None:
        missing = [
            name
            for name, value in (
                ("GOOGLE_CLIENT_ID", self.google.client_id),
                ("GOOGLE_CLIENT_SECRET", self.google.client_secret),
                ("GOOGLE_REFRESH_TOKEN", self.google.refresh_token),
            )
            if not value
        ]
        if missing:
            raise ConfigError(
                f"Missing Google credentials: {', '.join(missing)}. Run the 'authorize' command first."
            )

    def require_openai(self) -> None:
        if not self.openai_api_key:
            raise ConfigError("Missing OPENAI_API_KEY")

    def service_status(self) -> Dict[str, bool]:
        google_ready = self.google.is_configured
        return {
            "gmail": google_ready,
            "calendar": google_ready,
            "openai": bool(self.openai_api_key),
        }


def _resolve_path(value: str | None, fallback: str) -> Path:
    candidate = Path(value or fallback)
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def _int_setting(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float_setting(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def parse_reminders(value: str) -> List[Dict[str, object]]:
    """Parse ``method:minutes`` pairs, e.g. ``email:1440,popup:30``."""

    overrides: List[Dict[str, object]] = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        method, sep, minutes = chunk.partition(":")
        method = method.strip().lower()
        if not sep or method not in REMINDER_METHODS:
            raise ConfigError(f"Invalid reminder {chunk!r}; expected email:<minutes> or popup:<minutes>")
        try:
            minutes_before = int(minutes)
        except ValueError as exc:
            raise ConfigError(f"Invalid reminder minutes in {chunk!r}") from exc
        if minutes_before < 0:
            raise ConfigError(f"Reminder minutes must not be negative: {chunk!r}")
        overrides.append({"method": method, "minutes": minutes_before})
    return overrides


def load_config(env_file: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load configuration values from a .env file and environment variables."""

    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    db_path = _resolve_path(os.getenv("DB_PATH"), "data/email_automation.db")
    stats_file = _resolve_path(os.getenv("STATS_FILE"), "data/stats.json")
    log_dir = _resolve_path(os.getenv("LOG_DIR"), "logs")

    log_dir.mkdir(parents=True, exist_ok=True)
    stats_file.parent.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    google = GoogleConfig(
        client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
        client_secret=os.getenv("GOOGLE_CLIENT_SECRET", ""),
        redirect_uri=os.getenv("GOOGLE_REDIRECT_URI", ""),
        refresh_token=os.getenv("GOOGLE_REFRESH_TOKEN", ""),
        user_id=os.getenv("GMAIL_USER_ID", "me"),
    )

    return AppConfig(
        account_name=os.getenv("ACCOUNT_NAME", "default"),
        google=google,
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
        openai_temperature=_float_setting("OPENAI_TEMPERATURE", 0.1),
        poll_interval_minutes=_int_setting("POLL_INTERVAL_MINUTES", 15, minimum=1),
        initial_delay_seconds=_int_setting("INITIAL_DELAY_SECONDS", 5, minimum=1),
        lookback_minutes=_int_setting("LOOKBACK_MINUTES", 60, minimum=1),
        max_messages_per_cycle=_int_setting("MAX_MESSAGES_PER_CYCLE", 10, minimum=1),
        calendar_id=os.getenv("CALENDAR_ID", "primary"),
        timezone=os.getenv("CALENDAR_TIMEZONE", "America/New_York"),
        reminders=parse_reminders(os.getenv("EVENT_REMINDERS", DEFAULT_REMINDERS)),
        task_list=os.getenv("TASK_LIST") or None,
        db_path=db_path,
        stats_file=stats_file,
        log_dir=log_dir,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
