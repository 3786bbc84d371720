# src/storage/report_archive.py

"""Saves trust reports and moderation exports to disk."""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.product import Product
from src.models.review import Review

logger = logging.getLogger("trustmart.storage")


class ReportArchive:
    """Handles saving analysis reports and dashboard exports."""

    def __init__(self, reports_dir: Path | None = None) -> None:
        self.reports_dir: Path = reports_dir or Settings.REPORTS_DIR
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(
            "ReportArchive initialised (reports_dir=%s)", self.reports_dir,
        )

    def save_report(
        self, kind: str, entity_id: str, report: dict[str, Any],
    ) -> Path:
        """Save one report dict to a timestamped JSON file."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = self.reports_dir / f"{kind}_{entity_id}_{timestamp}.json"

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(report, f, ensure_ascii=False, indent=2)

        logger.info("Saved %s report for %s to %s", kind, entity_id, filepath)
        return filepath

    def export_flagged_csv(
        self, products: list[Product], reviews: list[Review],
    ) -> Path:
        """Export the flagged dashboard to CSV, lowest trust first."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = self.reports_dir / f"flagged_{timestamp}.csv"

        rows: list[list[object]] = [
            [
                "product", p.id, p.name, p.trust_score,
                p.approved_by_moderator, p.ratings.count,
            ]
            for p in products
        ] + [
            [
                "review", r.id, r.comment[:80], r.trust_score,
                r.approved_by_moderator, r.rating,
            ]
            for r in reviews
        ]
        rows.sort(key=lambda row: (row[3], row[0]))

        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(
                ["Kind", "ID", "Name/Comment", "Trust Score",
                 "Approved", "Reviews/Rating"]
            )
            writer.writerows(rows)

        logger.info(
            "Exported %d flagged products and %d flagged reviews to %s",
            len(products), len(reviews), filepath,
        )
        return filepath
