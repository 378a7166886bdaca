from __future__ import annotations

import hashlib
import json
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from club_statements.config import ExtractionSettings
from club_statements.errors import ClubStatementsError
from club_statements.exporters.excel_writer import write_transactions_excel
from club_statements.extractors.pdf_fragments import count_pages, iter_page_fragments
from club_statements.logging_setup import configure_logging, get_logger
from club_statements.models.contracts import PositionedFragment
from club_statements.pipelines.classifier import KeywordClassifier
from club_statements.pipelines.job_store import JobRecord, PersistentJobStore
from club_statements.pipelines.session import extract_document
from club_statements.validators.schema_validator import SCHEMA_VERSION, SchemaValidator
from club_statements.validators.transaction_rules import TransactionValidator, summarize_findings

logger = get_logger("club_statements.pipelines.job_runner")

PageReader = Callable[[Path, int], Iterable[list[PositionedFragment]]]
PageCounter = Callable[[Path], int]

ENVELOPE_SCHEMA = "extraction_envelope.schema.json"


class StatementJobRunner:
    def __init__(
        self,
        output_root: Path,
        max_retries: int = 2,
        settings: ExtractionSettings | None = None,
        classifier: KeywordClassifier | None = None,
        page_reader: PageReader = iter_page_fragments,
        page_counter: PageCounter = count_pages,
    ) -> None:
        self.output_root = output_root
        self.output_root.mkdir(parents=True, exist_ok=True)
        self.max_retries = max_retries
        self.settings = settings or ExtractionSettings()
        self.classifier = classifier or KeywordClassifier()
        self.page_reader = page_reader
        self.page_counter = page_counter
        self.job_store = PersistentJobStore(self.output_root / "job_store")
        self.schema_validator = SchemaValidator()
        self.transaction_validator = TransactionValidator(self.settings)

    def _hash_file(self, file_path: Path) -> str:
        return hashlib.sha256(file_path.read_bytes()).hexdigest()

    def _job_dir(self, job_id: str) -> Path:
        path = self.output_root / job_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def run(self, pdf_path: Path) -> dict[str, object]:
        job_id = str(uuid4())
        self.job_store.bump_metric("submitted")
        self.job_store.upsert(JobRecord(job_id=job_id, status="submitted", attempts=0, source=pdf_path.name))

        for attempt in range(1, self.max_retries + 2):
            try:
                envelope = self._run_once(job_id=job_id, pdf_path=pdf_path)
            except Exception as exc:  # noqa: BLE001
                retryable = not isinstance(exc, ClubStatementsError) and attempt <= self.max_retries
                self.job_store.upsert(
                    JobRecord(
                        job_id=job_id,
                        status="retrying" if retryable else "failed",
                        attempts=attempt,
                        source=pdf_path.name,
                        error=str(exc),
                    )
                )
                if retryable:
                    logger.warning("job %s attempt %s failed, retrying: %s", job_id, attempt, exc)
                    self.job_store.bump_metric("retried")
                    continue
                logger.error("job %s failed for %s: %s", job_id, pdf_path.name, exc)
                self.job_store.bump_metric("failed")
                self.job_store.move_to_dlq(
                    JobRecord(job_id=job_id, status="failed", attempts=attempt, source=pdf_path.name, error=str(exc))
                )
                raise

            result = envelope["result"]
            summary = {
                "transactions": len(result["transactions"]),
                "pages_processed": result["pages_processed"],
                "requires_manual_review": envelope["validation"]["requires_manual_review"],
            }
            self.job_store.upsert(
                JobRecord(job_id=job_id, status="completed", attempts=attempt, source=pdf_path.name, summary=summary)
            )
            self.job_store.bump_metric("succeeded")
            self.job_store.bump_metric("transactions_extracted", len(result["transactions"]))
            return envelope
        raise ClubStatementsError(f"Job {job_id} ended without a result")

    def _run_once(self, job_id: str, pdf_path: Path) -> dict[str, object]:
        created_at = datetime.now(timezone.utc).isoformat()
        page_count = self.page_counter(pdf_path)
        pages = self.page_reader(pdf_path, self.settings.max_pages)
        extraction = extract_document(pages, self.settings, self.classifier, page_count=page_count)

        findings = [finding for tx in extraction.transactions for finding in self.transaction_validator.check(tx)]
        validation = summarize_findings(findings)
        if not extraction.transactions:
            validation["requires_manual_review"] = True
            validation["review_reasons"] = validation["review_reasons"] + ["NO_TRANSACTIONS_FOUND"]

        envelope: dict[str, object] = {
            "schema_version": SCHEMA_VERSION,
            "job": {
                "job_id": job_id,
                "source_file": {
                    "filename": pdf_path.name,
                    "size_bytes": pdf_path.stat().st_size,
                    "sha256": self._hash_file(pdf_path),
                    "page_count": page_count,
                },
                "created_at": created_at,
                "processed_at": datetime.now(timezone.utc).isoformat(),
            },
            "result": extraction.as_record(),
            "validation": validation,
        }

        errors = self.schema_validator.validate(envelope, ENVELOPE_SCHEMA)
        if errors:
            raise ClubStatementsError(f"Extraction envelope failed schema validation: {'; '.join(errors)}")

        job_dir = self._job_dir(job_id)
        (job_dir / "transactions.json").write_text(json.dumps(envelope, indent=2), encoding="utf-8")
        write_transactions_excel(job_dir / "transactions.xlsx", extraction.transactions)
        (job_dir / "job_log.jsonl").write_text(
            json.dumps(
                {
                    "event": "job_completed",
                    "job_id": job_id,
                    "transactions": len(extraction.transactions),
                    "pages_processed": extraction.pages_processed,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            )
            + "\n",
            encoding="utf-8",
        )
        return envelope


def _collect_pdfs(input_path: Path) -> list[Path]:
    if input_path.is_file() and input_path.suffix.lower() == ".pdf":
        return [input_path]
    if input_path.is_dir():
        return sorted(input_path.glob("*.pdf"))
    return []


def main(argv: list[str] | None = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Extract club transactions from PDF bank statements.")
    parser.add_argument("--input", required=True, help="PDF file or folder containing PDFs")
    parser.add_argument("--out", required=True, help="Output root folder for job artifacts")
    parser.add_argument("--max-pages", type=int, default=None, help="Pages processed per document")
    parser.add_argument("--max-retries", type=int, default=2, help="Retries for transient job failures")
    parser.add_argument("--text-fallback", action="store_true", help="Scan text lines on pages without columns")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    input_path = Path(args.input)
    output_root = Path(args.out)

    pdfs = _collect_pdfs(input_path)
    if not pdfs:
        raise SystemExit(f"No PDFs found at: {input_path}")

    settings = ExtractionSettings.from_env().with_overrides(
        max_pages=args.max_pages,
        text_fallback=True if args.text_fallback else None,
    )
    runner = StatementJobRunner(output_root=output_root, max_retries=args.max_retries, settings=settings)

    failures = 0
    for pdf in pdfs:
        try:
            envelope = runner.run(pdf)
        except ClubStatementsError as exc:
            failures += 1
            print(f"FAILED: {pdf.name}: {exc}")
            continue
        job_id = envelope["job"]["job_id"]
        count = len(envelope["result"]["transactions"])
        print(f"OK: {pdf.name} -> {output_root / job_id} ({count} transactions)")

    totals = runner.job_store.statement_totals()
    print(
        f"Totals: {totals['statements']} statements, {totals['transactions']} transactions, "
        f"{totals['needs_review']} flagged for review"
    )
    for record in runner.job_store.review_queue():
        print(f"REVIEW: {record.source} ({record.job_id})")

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
