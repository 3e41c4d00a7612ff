from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from models.report import CycleReport, MessageReport
from services.auth_service import PROVIDER_ERRORS
from services.email_processor import EmailProcessor
from services.gmail_service import GmailService, message_received_at
from services.persistence_service import ProcessedStore
from services.statistics_service import StatisticsService
from utils.config import AppConfig

LOGGER = logging.getLogger(__name__)
WATERMARK_OVERLAP = timedelta(seconds=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Poller:
    """One poll cycle: list recent mail, then process unseen messages oldest first.

    The listing starts just before the persisted low-water-mark, or at
    ``now - lookback`` on the very first cycle. Ids recorded in the
    ``ProcessedStore`` are never processed twice, whichever run saw them.
    """

    def __init__(
        self,
        config: AppConfig,
        gmail: GmailService,
        processor: EmailProcessor,
        store: ProcessedStore,
        stats: Optional[StatisticsService] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._account = config.account_name
        self._lookback = timedelta(minutes=config.lookback_minutes)
        self._max_messages = config.max_messages_per_cycle
        self._gmail = gmail
        self._processor = processor
        self._store = store
        self._stats = stats
        self._clock = clock

    def lower_bound(self, now: datetime) -> datetime:
        watermark = self._store.get_watermark(self._account)
        if watermark is None:
            return now - self._lookback
        return watermark - WATERMARK_OVERLAP

    def run_cycle(self, trigger: str = "schedule") -> CycleReport:
        report = CycleReport(trigger=trigger, started_at=self._clock())
        LOGGER.info("Starting %s cycle", trigger)
        try:
            self._run(report)
        except Exception as exc:
            report.error = f"cycle crashed: {exc}"
            raise
        finally:
            report.finished_at = self._clock()
            LOGGER.info("Finished %s cycle: %s", trigger, report.summary())
            if self._stats is not None:
                self._stats.record_cycle(self._account, report)
        return report

    def _run(self, report: CycleReport) -> None:
        after = self.lower_bound(report.started_at)
        try:
            ids = self._gmail.list_message_ids(after)
        except PROVIDER_ERRORS as exc:
            report.error = f"listing messages failed: {exc}"
            return

        report.listed = len(ids)
        if not ids:
            LOGGER.info("No new emails since %s", after.isoformat())
            return

        pending: List[str] = []
        for message_id in reversed(ids):
            if self._store.is_processed(self._account, message_id):
                report.skipped += 1
            else:
                pending.append(message_id)

        if len(pending) > self._max_messages:
            LOGGER.info(
                "%s unseen email(s); handling the oldest %s this cycle", len(pending), self._max_messages
            )

        # The mark only moves across an unbroken run of fetched messages, so a
        # message whose fetch failed is listed again next cycle.
        hold_watermark = False
        for message_id in pending[: self._max_messages]:
            if not self._store.claim(self._account, message_id):
                report.skipped += 1
                continue
            try:
                message = self._gmail.get_message(message_id)
            except PROVIDER_ERRORS as exc:
                LOGGER.error("Failed to fetch message %s: %s", message_id, exc)
                self._store.release(self._account, message_id)
                report.messages.append(MessageReport(message_id=message_id, error=f"fetch failed: {exc}"))
                hold_watermark = True
                continue
            except BaseException:
                self._store.release(self._account, message_id)
                raise

            report.messages.append(self._process(message_id, message))
            received_at = message_received_at(message)
            if received_at is not None and not hold_watermark:
                self._store.advance_watermark(self._account, received_at)

    def _process(self, message_id: str, message: dict) -> MessageReport:
        try:
            return self._processor.process(message)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Processor failed on email %s: %s", message_id, exc, exc_info=True)
            return MessageReport(message_id=message_id, error=f"processing failed: {exc}")
