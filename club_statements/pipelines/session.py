from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Protocol

from club_statements.config import ExtractionSettings
from club_statements.extractors.columns import detect_column_structure
from club_statements.extractors.row_parser import RowParser
from club_statements.extractors.rows import group_rows, row_text
from club_statements.extractors.text_patterns import extract_from_text
from club_statements.logging_setup import get_logger
from club_statements.models.contracts import (
    ColumnStructure,
    ExtractionResult,
    PageDiagnostics,
    PositionedFragment,
    Transaction,
)
from club_statements.pipelines.classifier import KeywordClassifier
from club_statements.validators.transaction_rules import TransactionValidator

logger = get_logger("club_statements.pipelines.session")


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


class ExtractionSession:
    """State for extracting one document.

    Holds the column structure carried between pages and the running list of
    transactions. Create a new session per document; sessions share nothing.
    """

    def __init__(
        self,
        settings: ExtractionSettings | None = None,
        classifier: KeywordClassifier | None = None,
        today: date | None = None,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self.classifier = classifier or KeywordClassifier()
        self.today = today
        self.row_parser = RowParser(self.settings, self.classifier, today=today)
        self.validator = TransactionValidator(self.settings)
        self.carried_structure: ColumnStructure | None = None
        self.transactions: list[Transaction] = []
        self.pages: list[PageDiagnostics] = []

    @property
    def pages_processed(self) -> int:
        return len(self.pages)

    def process_page(self, page: int, fragments: list[PositionedFragment]) -> list[Transaction]:
        detected = detect_column_structure(fragments, self.settings)
        rows = group_rows(fragments, self.settings.row_threshold, self.settings.same_line_epsilon)

        if detected.has_valid_structure:
            structure: ColumnStructure | None = detected
            source = "detected"
        elif self.carried_structure is not None:
            structure = self.carried_structure
            source = "carried"
            logger.info("page %s: no column headers found, reusing structure from an earlier page", page)
        else:
            structure = None
            source = "none"

        page_transactions: list[Transaction] = []
        if structure is not None:
            for row in rows:
                transaction = self.row_parser.parse(row, structure, page)
                if transaction is not None and self.validator.is_valid(transaction):
                    page_transactions.append(transaction)
        elif self.settings.text_fallback:
            source = "fallback"
            page_text = "\n".join(row_text(row, separator="   ") for row in rows)
            page_transactions = [
                tx
                for tx in extract_from_text(page_text, page, self.settings, self.classifier, today=self.today)
                if self.validator.is_valid(tx)
            ]
        else:
            logger.warning("page %s: no column structure available, skipping page", page)

        if detected.has_valid_structure:
            self.carried_structure = detected

        self.transactions.extend(page_transactions)
        self.pages.append(
            PageDiagnostics(
                page=page,
                fragments=len(fragments),
                rows=len(rows),
                transactions=len(page_transactions),
                structure_source=source,
            )
        )
        logger.info("page %s: %s transactions (structure: %s)", page, len(page_transactions), source)
        return page_transactions

    def deduplicated(self) -> list[Transaction]:
        seen: set[tuple[str, str, str]] = set()
        unique: list[Transaction] = []
        for transaction in self.transactions:
            key = transaction.dedupe_key(self.settings.dedupe_prefix_length)
            if key in seen:
                continue
            seen.add(key)
            unique.append(transaction)
        return unique

    def result(self, page_count: int = 0, cancelled: bool = False) -> ExtractionResult:
        return ExtractionResult(
            transactions=self.deduplicated(),
            pages_processed=self.pages_processed,
            page_count=page_count or self.pages_processed,
            cancelled=cancelled,
            pages=list(self.pages),
        )


def extract_document(
    pages: Iterable[list[PositionedFragment]],
    settings: ExtractionSettings | None = None,
    classifier: KeywordClassifier | None = None,
    cancel: CancelToken | None = None,
    page_count: int = 0,
    today: date | None = None,
) -> ExtractionResult:
    """Run a fresh session over ``pages`` in order.

    Errors raised while reading a page propagate unchanged; a page without a
    usable layout only contributes nothing.
    """
    session = ExtractionSession(settings, classifier, today=today)
    max_pages = session.settings.max_pages
    cancelled = False
    if page_count > max_pages:
        logger.warning("document has %s pages, only the first %s are processed", page_count, max_pages)

    remaining = iter(pages)
    for page_number in range(1, max_pages + 1):
        if cancel is not None and cancel.is_set():
            logger.info("extraction cancelled before page %s", page_number)
            cancelled = True
            break
        fragments = next(remaining, None)
        if fragments is None:
            break
        session.process_page(page_number, list(fragments))

    result = session.result(page_count=page_count, cancelled=cancelled)
    logger.info(
        "document extracted: %s transactions from %s pages", len(result.transactions), result.pages_processed
    )
    return result
