from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

METRIC_KEYS = ("submitted", "succeeded", "failed", "retried", "dlq", "transactions_extracted")


@dataclass(frozen=True)
class JobRecord:
    job_id: str
    status: str
    attempts: int
    source: str
    summary: dict[str, object] = field(default_factory=dict)
    error: str = ""


class PersistentJobStore:
    """File-backed store for statement jobs: one JSON per job, metrics and a DLQ."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.jobs_dir = root / "jobs"
        self.dlq_dir = root / "dlq"
        self.metrics_file = root / "metrics.json"
        self.jobs_dir.mkdir(parents=True, exist_ok=True)
        self.dlq_dir.mkdir(parents=True, exist_ok=True)
        if not self.metrics_file.exists():
            self._write_metrics({key: 0 for key in METRIC_KEYS})

    def upsert(self, record: JobRecord) -> None:
        path = self.jobs_dir / f"{record.job_id}.json"
        path.write_text(json.dumps(asdict(record), indent=2), encoding="utf-8")

    def get(self, job_id: str) -> JobRecord | None:
        path = self.jobs_dir / f"{job_id}.json"
        if not path.exists():
            return None
        return JobRecord(**json.loads(path.read_text(encoding="utf-8")))

    def list_jobs(self, status: str | None = None) -> list[JobRecord]:
        records = [JobRecord(**json.loads(p.read_text(encoding="utf-8"))) for p in sorted(self.jobs_dir.glob("*.json"))]
        return [r for r in records if status is None or r.status == status]

    def review_queue(self) -> list[JobRecord]:
        """Completed statements whose extraction was flagged for manual review."""
        return [r for r in self.list_jobs("completed") if r.summary.get("requires_manual_review")]

    def statement_totals(self) -> dict[str, int]:
        completed = self.list_jobs("completed")
        return {
            "statements": len(completed),
            "transactions": sum(int(r.summary.get("transactions", 0)) for r in completed),
            "pages_processed": sum(int(r.summary.get("pages_processed", 0)) for r in completed),
            "needs_review": sum(1 for r in completed if r.summary.get("requires_manual_review")),
        }

    def move_to_dlq(self, record: JobRecord) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        dlq_path = self.dlq_dir / f"{stamp}_{record.job_id}.json"
        dlq_path.write_text(json.dumps(asdict(record), indent=2), encoding="utf-8")
        self.bump_metric("dlq")
        return dlq_path

    def bump_metric(self, key: str, amount: int = 1) -> None:
        metrics = self.read_metrics()
        metrics[key] = int(metrics.get(key, 0)) + amount
        self._write_metrics(metrics)

    def read_metrics(self) -> dict[str, int]:
        return json.loads(self.metrics_file.read_text(encoding="utf-8"))

    def _write_metrics(self, metrics: dict[str, int]) -> None:
        self.metrics_file.write_text(json.dumps(metrics, indent=2), encoding="utf-8")
