from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Mapping

from models.report import CycleReport

LOGGER = logging.getLogger(__name__)
COUNTERS = ("cycles", "messages_processed", "events_created", "tasks_created", "failures")


def _bump(bucket: Dict, increments: Mapping[str, int]) -> None:
    for key, amount in increments.items():
        bucket[key] = bucket.get(key, 0) + amount


class StatisticsService:
    """Cumulative cycle counters and the latest cycle report, kept in one JSON file.

    The file is created on the first recorded cycle. Writes go through a
    sibling temp file and ``os.replace`` so ``status`` never reads half a file.
    """

    def __init__(self, stats_file: Path):
        self._stats_file = stats_file

    def snapshot(self) -> Dict:
        if not self._stats_file.exists():
            return {}
        raw = self._stats_file.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        try:
            stats = json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning("Ignoring unreadable stats file %s", self._stats_file)
            return {}
        return stats if isinstance(stats, dict) else {}

    def _save(self, stats: Dict) -> None:
        self._stats_file.parent.mkdir(parents=True, exist_ok=True)
        staging = self._stats_file.with_name(self._stats_file.name + ".tmp")
        staging.write_text(json.dumps(stats, indent=2), encoding="utf-8")
        os.replace(staging, self._stats_file)

    def record_cycle(self, account: str, report: CycleReport) -> None:
        stats = self.snapshot()
        increments = {
            "cycles": 1,
            "messages_processed": len(report.messages),
            "events_created": report.events_created,
            "tasks_created": report.tasks_created,
            "failures": report.failures,
        }
        per_account = stats.setdefault("accounts", {}).setdefault(account, {})
        _bump(stats, increments)
        _bump(per_account, increments)
        _bump(stats.setdefault("triggers", {}), {report.trigger: 1})

        stats["last_cycle"] = report.to_dict()
        per_account["last_cycle_at"] = stats["last_cycle"]["finished_at"]
        self._save(stats)
