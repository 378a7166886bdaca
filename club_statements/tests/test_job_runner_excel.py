from __future__ import annotations

import json
from pathlib import Path
from zipfile import ZipFile

import pytest

from club_statements.errors import ClubStatementsError, DocumentReadError
from club_statements.models.contracts import PositionedFragment
from club_statements.pipelines.job_runner import StatementJobRunner, _collect_pdfs


def _frag(text: str, x: float, y: float) -> PositionedFragment:
    return PositionedFragment(text=text, x=x, y=y)


PAGE = [
    _frag("Date", 50, 700),
    _frag("Description", 120, 700),
    _frag("Cash In", 400, 700),
    _frag("Cash Out", 480, 700),
    _frag("18/04/2025", 50, 680),
    _frag("Welsh 3000s Registration", 120, 680),
    _frag("1610.00", 402, 680),
    _frag("15/04/2025", 50, 660),
    _frag("YHA Snowdon hostel", 120, 660),
    _frag("320.50", 478, 660),
]


def _reader(pages: list[list[PositionedFragment]]):
    def read(pdf_path: Path, max_pages: int):
        return iter(pages[:max_pages])

    return read


def _pdf(tmp_path: Path, name: str = "statement.pdf") -> Path:
    pdf = tmp_path / name
    pdf.write_bytes(b"%PDF-1.4 fake")
    return pdf


def test_job_runner_writes_json_and_excel(tmp_path: Path) -> None:
    runner = StatementJobRunner(
        output_root=tmp_path / "out", page_reader=_reader([PAGE]), page_counter=lambda path: 1
    )
    envelope = runner.run(_pdf(tmp_path))

    job_dir = tmp_path / "out" / str(envelope["job"]["job_id"])
    assert (job_dir / "transactions.json").exists()
    assert (job_dir / "transactions.xlsx").exists()
    assert (job_dir / "job_log.jsonl").exists()

    saved = json.loads((job_dir / "transactions.json").read_text(encoding="utf-8"))
    assert [tx["type"] for tx in saved["result"]["transactions"]] == ["Income", "Expense"]
    assert saved["job"]["source_file"]["page_count"] == 1
    assert saved["validation"]["validation_status"] == "PASSED"

    with ZipFile(job_dir / "transactions.xlsx") as zf:
        names = set(zf.namelist())
        assert "[Content_Types].xml" in names
        assert "xl/workbook.xml" in names
        assert "xl/worksheets/sheet1.xml" in names
        assert 'name="Transactions"' in zf.read("xl/workbook.xml").decode("utf-8")
        sheet = zf.read("xl/worksheets/sheet1.xml").decode("utf-8")
        assert "Welsh 3000s Registration" in sheet
        assert "<v>1610.00</v>" in sheet

    metrics = runner.job_store.read_metrics()
    assert metrics["submitted"] == 1
    assert metrics["succeeded"] == 1
    assert metrics["transactions_extracted"] == 2
    record = runner.job_store.get(str(envelope["job"]["job_id"]))
    assert record is not None
    assert record.status == "completed"


def test_empty_statement_is_flagged_for_review(tmp_path: Path) -> None:
    runner = StatementJobRunner(
        output_root=tmp_path / "out", page_reader=_reader([[]]), page_counter=lambda path: 1
    )
    envelope = runner.run(_pdf(tmp_path))

    assert envelope["result"]["transactions"] == []
    assert envelope["validation"]["requires_manual_review"] is True
    assert "NO_TRANSACTIONS_FOUND" in envelope["validation"]["review_reasons"]


def test_unreadable_document_goes_straight_to_dlq(tmp_path: Path) -> None:
    def broken_counter(path: Path) -> int:
        raise DocumentReadError("Cannot open PDF", source=str(path))

    runner = StatementJobRunner(
        output_root=tmp_path / "out", max_retries=2, page_reader=_reader([PAGE]), page_counter=broken_counter
    )
    with pytest.raises(DocumentReadError):
        runner.run(_pdf(tmp_path))

    metrics = runner.job_store.read_metrics()
    assert metrics["retried"] == 0
    assert metrics["failed"] == 1
    assert metrics["dlq"] == 1
    assert len(list(runner.job_store.dlq_dir.glob("*.json"))) == 1


def test_transient_failures_are_retried(tmp_path: Path) -> None:
    calls = {"count": 0}

    def flaky_reader(pdf_path: Path, max_pages: int):
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("temporary glitch")
        return iter([PAGE])

    runner = StatementJobRunner(output_root=tmp_path / "out", page_reader=flaky_reader, page_counter=lambda path: 1)
    envelope = runner.run(_pdf(tmp_path))

    assert len(envelope["result"]["transactions"]) == 2
    metrics = runner.job_store.read_metrics()
    assert metrics["retried"] == 1
    assert metrics["succeeded"] == 1
    assert metrics["dlq"] == 0


def test_retries_exhausted_moves_job_to_dlq(tmp_path: Path) -> None:
    def failing_reader(pdf_path: Path, max_pages: int):
        raise RuntimeError("still broken")

    runner = StatementJobRunner(
        output_root=tmp_path / "out", max_retries=1, page_reader=failing_reader, page_counter=lambda path: 1
    )
    with pytest.raises(RuntimeError):
        runner.run(_pdf(tmp_path))

    metrics = runner.job_store.read_metrics()
    assert metrics["retried"] == 1
    assert metrics["failed"] == 1
    assert metrics["dlq"] == 1


def test_collect_pdfs_from_folder(tmp_path: Path) -> None:
    _pdf(tmp_path, "b.pdf")
    _pdf(tmp_path, "a.pdf")
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")

    assert [p.name for p in _collect_pdfs(tmp_path)] == ["a.pdf", "b.pdf"]
    assert _collect_pdfs(tmp_path / "notes.txt") == []


def test_schema_rejection_is_not_retried(tmp_path: Path) -> None:
    class RejectingSchemaValidator:
        def validate(self, payload: dict, schema_name: str) -> list[str]:
            return ["result/transactions/0/date: does not match"]

    runner = StatementJobRunner(
        output_root=tmp_path / "out", max_retries=2, page_reader=_reader([PAGE]), page_counter=lambda path: 1
    )
    runner.schema_validator = RejectingSchemaValidator()

    with pytest.raises(ClubStatementsError, match="schema validation"):
        runner.run(_pdf(tmp_path))

    metrics = runner.job_store.read_metrics()
    assert metrics["retried"] == 0
    assert metrics["failed"] == 1
    assert metrics["dlq"] == 1


def test_job_store_reports_statement_totals_and_review_queue(tmp_path: Path) -> None:
    full = StatementJobRunner(output_root=tmp_path / "out", page_reader=_reader([PAGE]), page_counter=lambda path: 1)
    full.run(_pdf(tmp_path, "april.pdf"))
    empty = StatementJobRunner(output_root=tmp_path / "out", page_reader=_reader([[]]), page_counter=lambda path: 1)
    empty.run(_pdf(tmp_path, "blank.pdf"))

    store = empty.job_store
    assert store.statement_totals() == {
        "statements": 2,
        "transactions": 2,
        "pages_processed": 2,
        "needs_review": 1,
    }
    assert [record.source for record in store.review_queue()] == ["blank.pdf"]
    assert len(store.list_jobs()) == 2
    assert store.list_jobs("failed") == []
