import csv
import logging
from pathlib import Path

from .models import RunSummary


class ReportGenerator:
    HEADERS = [
        "Source Path",
        "Status",
        "Bucket",
        "Attempts",
        "HTTP Status",
        "Notes",
    ]

    def __init__(self, summary: RunSummary):
        self.summary = summary

    def write_csv(self, output_csv: Path) -> int:
        """
        Writes one row per uploaded, failed or skipped file.
        Returns the number of rows written (excluding the header).
        """
        rows = 0
        failed_buckets = set(self.summary.failed_buckets)

        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)

            for outcome in sorted(self.summary.outcomes, key=lambda o: str(o.job.path)):
                notes = outcome.error or ""
                if outcome.job.bucket in failed_buckets:
                    notes = f"{notes}; folder creation failed".lstrip("; ")
                writer.writerow([
                    str(outcome.job.path),
                    outcome.status.value,
                    outcome.job.bucket,
                    outcome.attempts,
                    outcome.http_status if outcome.http_status is not None else "",
                    notes,
                ])
                rows += 1

            for item in self.summary.skipped:
                writer.writerow([str(item.path), "skipped", "", 0, "", item.reason])
                rows += 1

        logging.info(f"Report written: {output_csv} ({rows} rows)")
        return rows
