from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass

import click
import schedule
from google.auth.exceptions import GoogleAuthError
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
from rich.console import Console
from rich.table import Table

from models.report import CycleReport
from services.auth_service import AuthService
from services.calendar_service import CalendarService
from services.email_processor import EmailProcessor
from services.extraction_service import ExtractionService
from services.gmail_service import GmailService
from services.persistence_service import ProcessedStore
from services.poller import Poller
from services.statistics_service import COUNTERS, StatisticsService
from services.tasks_service import TasksService
from utils.config import AppConfig, ConfigError, load_config
from utils.logger import configure_logging


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    auth: AuthService
    stats: StatisticsService
    processed_store: ProcessedStore
    console: Console


def build_context(env_file: str) -> AppContext:
    config = load_config(env_file)
    configure_logging(config.log_dir, config.log_level)
    return AppContext(
        config=config,
        auth=AuthService(config.google),
        stats=StatisticsService(config.stats_file),
        processed_store=ProcessedStore(config.db_path),
        console=Console(),
    )


def build_poller(app: AppContext) -> Poller:
    """Authenticate once and wire every provider client to the same session."""

    app.config.require_google()
    app.config.require_openai()
    try:
        session = app.auth.open_session()
    except GoogleAuthError as exc:
        raise ConfigError(f"Could not refresh Google credentials: {exc}") from exc
    LOGGER.info("Google services initialized")

    processor = EmailProcessor(
        extractor=ExtractionService(app.config),
        calendar=CalendarService(app.config, session),
        tasks=TasksService(app.config, session),
    )
    return Poller(
        app.config,
        gmail=GmailService(app.config, session),
        processor=processor,
        store=app.processed_store,
        stats=app.stats,
    )


def schedule_cycles(scheduler: schedule.Scheduler, poller: Poller, config: AppConfig) -> None:
    """One cycle shortly after start, then one every poll interval."""

    def scheduled() -> None:
        try:
            poller.run_cycle("schedule")
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Scheduled cycle crashed: %s", exc, exc_info=True)

    def initial() -> type[schedule.CancelJob]:
        scheduled()
        return schedule.CancelJob

    scheduler.every(config.initial_delay_seconds).seconds.do(initial)
    scheduler.every(config.poll_interval_minutes).minutes.do(scheduled)


@click.group()
@click.option("--env-file", default=".env", show_default=True, help="Path to the .env file")
@click.pass_context
def cli(ctx: click.Context, env_file: str) -> None:
    """Turn incoming Gmail messages into Google Calendar events and Tasks."""

    try:
        ctx.obj = build_context(env_file)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("authorize")
@click.pass_obj
def authorize(app: AppContext) -> None:
    """One-time OAuth setup: print a consent URL and exchange the pasted code."""

    try:
        url = app.auth.authorization_url()
    except ConfigError as exc:
        raise click.ClickException(
            f"{exc}. Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REDIRECT_URI in your .env file."
        ) from exc

    app.console.print("[bold]Google OAuth setup[/bold]")
    app.console.print("1. Open this URL in your browser:")
    app.console.print(url, soft_wrap=True)
    app.console.print("2. Complete the authorization flow")
    app.console.print("3. Copy the authorization code from the redirect URL and paste it below")
    code = click.prompt("Authorization code", default="", show_default=False).strip()
    if not code:
        raise click.ClickException("No code provided")

    try:
        creds = app.auth.exchange_code(code)
    except (OAuth2Error, ValueError, ConfigError) as exc:
        raise click.ClickException(f"Token exchange failed: {exc}") from exc

    app.console.print("[bold green]Success.[/bold green] Add this line to your .env file and keep it private:")
    app.console.print(f"GOOGLE_REFRESH_TOKEN={creds.refresh_token}", soft_wrap=True)


@cli.command("process")
@click.pass_obj
def process(app: AppContext) -> None:
    """Run one poll cycle now, outside the schedule."""

    try:
        poller = build_poller(app)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    try:
        report = poller.run_cycle("manual")
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("Manual cycle crashed: %s", exc, exc_info=True)
        raise click.ClickException(f"cycle crashed: {exc}") from exc
    app.console.print(_build_report_table(report))
    if not report.success:
        raise click.ClickException(report.error or "cycle failed")
    app.console.print("[bold green]Email processing triggered manually.[/bold green]")


@cli.command("run")
@click.pass_obj
def run(app: AppContext) -> None:
    """Poll on a fixed interval until interrupted."""

    try:
        poller = build_poller(app)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    scheduler = schedule.Scheduler()
    schedule_cycles(scheduler, poller, app.config)
    app.console.print(
        f"Checking email every {app.config.poll_interval_minutes} minute(s); "
        f"first check in {app.config.initial_delay_seconds}s. Press Ctrl+C to stop."
    )
    try:
        while True:
            scheduler.run_pending()
            time.sleep(1)
    except KeyboardInterrupt:
        app.console.print("Scheduler stopped.")


@cli.command("status")
@click.option("--json", "as_json", is_flag=True, help="Print the status payload as JSON")
@click.pass_obj
def status(app: AppContext, as_json: bool) -> None:
    """Show which services are configured and what the last cycle did."""

    snapshot = app.stats.snapshot()
    services = app.config.service_status()
    payload = {"status": "ready" if all(services.values()) else "incomplete", "services": services}
    if as_json:
        payload["stats"] = {key: snapshot.get(key, 0) for key in COUNTERS}
        payload["last_cycle"] = snapshot.get("last_cycle")
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(title="Services")
    table.add_column("Service")
    table.add_column("Configured")
    for name, ready in payload["services"].items():
        table.add_row(name, "[green]yes[/green]" if ready else "[red]no[/red]")
    app.console.print(table)

    if not snapshot.get("cycles"):
        app.console.print("No cycles recorded yet.")
        return

    totals = Table(title="Totals")
    totals.add_column("Metric")
    totals.add_column("Value")
    for key in COUNTERS:
        totals.add_row(key.replace("_", " ").capitalize(), str(snapshot.get(key, 0)))
    app.console.print(totals)

    last = snapshot.get("last_cycle")
    if last:
        outcome = "ok" if last.get("success") else f"failed: {last.get('error')}"
        app.console.print(
            f"Last cycle ({last.get('trigger')}) finished {last.get('finished_at')}: {outcome}; "
            f"{len(last.get('messages', []))} processed, {last.get('skipped', 0)} skipped."
        )


def main() -> None:
    cli(standalone_mode=True)


def _build_report_table(report: CycleReport) -> Table:
    table = Table(title=f"Cycle report ({report.trigger})", show_lines=False)
    table.add_column("Message", overflow="fold")
    table.add_column("Subject")
    table.add_column("Events")
    table.add_column("Tasks")
    table.add_column("Problems")

    for message in report.messages:
        problems = [message.error] if message.error else []
        problems.extend(f"{item.kind} {item.title!r}: {item.error}" for item in message.items if not item.ok)
        table.add_row(
            message.message_id,
            message.subject or "-",
            str(message.events_created),
            str(message.tasks_created),
            "; ".join(problems) or "-",
        )
    table.caption = report.summary()
    return table


if __name__ == "__main__":
    main()
