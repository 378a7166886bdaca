from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

INCOME = "Income"
EXPENSE = "Expense"


@dataclass(frozen=True)
class PositionedFragment:
    """One piece of text on a page. ``y`` grows towards the top of the page."""

    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True)
class ColumnStructure:
    has_valid_structure: bool
    date_column_x: float | None = None
    description_column_x: float | None = None
    cash_in_column_x: float | None = None
    cash_out_column_x: float | None = None
    source: str = "headers"
    ambiguous: bool = False

    @property
    def amount_columns(self) -> list[tuple[str, float]]:
        columns: list[tuple[str, float]] = []
        if self.cash_in_column_x is not None:
            columns.append((INCOME, self.cash_in_column_x))
        if self.cash_out_column_x is not None:
            columns.append((EXPENSE, self.cash_out_column_x))
        return columns


@dataclass(frozen=True)
class Transaction:
    date: str
    description: str
    amount: Decimal
    type: str
    category: str = "Uncategorized"
    event: str = "General"
    confidence: float = 0.9
    page: int = 1
    reference: str = ""
    method: str = "spatial"

    def dedupe_key(self, prefix_length: int = 20) -> tuple[str, str, str]:
        return (self.date, f"{self.amount:.2f}", self.description[:prefix_length])

    def as_record(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "description": self.description,
            "amount": float(self.amount),
            "type": self.type,
            "category": self.category,
            "event": self.event,
            "confidence": self.confidence,
            "page": self.page,
            "reference": self.reference,
            "method": self.method,
        }


@dataclass(frozen=True)
class PageDiagnostics:
    page: int
    fragments: int
    rows: int
    transactions: int
    structure_source: str


@dataclass(frozen=True)
class ExtractionResult:
    transactions: list[Transaction]
    pages_processed: int
    page_count: int = 0
    cancelled: bool = False
    pages: list[PageDiagnostics] = field(default_factory=list)

    def as_record(self) -> dict[str, Any]:
        return {
            "transactions": [tx.as_record() for tx in self.transactions],
            "pages_processed": self.pages_processed,
            "page_count": self.page_count,
            "cancelled": self.cancelled,
            "pages": [page.__dict__ for page in self.pages],
        }


@dataclass(frozen=True)
class ValidationFinding:
    validation_status: str
    rule: str
    field: str
    severity: str
    message: str
