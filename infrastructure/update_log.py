"""Persistence sink writing every group update to a CSV audit log."""

from __future__ import annotations

import csv
from datetime import datetime
import json
import os
from pathlib import Path

from loguru import logger

from core.models import GroupUpdate
from core.services.interfaces import IPersistenceSink
from infrastructure.logging import get_update_log_directory

CSV_HEADERS = ["Timestamp", "Action", "GroupId", "PhotoId", "Payload"]


class CsvUpdateLog(IPersistenceSink):
    """Appends one CSV row per update under `log_dir` (one file per instance)."""

    def __init__(self, log_dir: str | None = None) -> None:
        base_dir = os.path.expandvars(log_dir) if log_dir else get_update_log_directory()
        Path(base_dir).mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_path = os.path.join(base_dir, f"updates_{ts}.csv")
        with open(self.log_path, "w", encoding="utf-8", newline="") as f:
            csv.writer(f).writerow(CSV_HEADERS)

    def apply(self, update: GroupUpdate) -> None:
        try:
            with open(self.log_path, "a", encoding="utf-8", newline="") as f:
                csv.writer(f).writerow(
                    [
                        datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
                        update.action,
                        update.group_id,
                        update.photo_id or "",
                        json.dumps(update.payload, sort_keys=True),
                    ]
                )
        except OSError as ex:
            logger.error("Write update log failed: {}", ex)
