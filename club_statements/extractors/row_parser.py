from __future__ import annotations

from datetime import date
from decimal import Decimal

from club_statements.config import ExtractionSettings
from club_statements.extractors.rows import Row, row_text
from club_statements.logging_setup import get_logger
from club_statements.models.contracts import EXPENSE, INCOME, ColumnStructure, PositionedFragment, Transaction
from club_statements.normalizers.tokens import (
    clean_description,
    find_repaired_date_token,
    looks_like_currency,
    normalize_date,
    parse_currency_amount,
)
from club_statements.pipelines.classifier import KeywordClassifier

logger = get_logger("club_statements.extractors.row_parser")

_NO_COLUMN = float("inf")


class RowParser:
    """Turn one grouped row into a ``Transaction`` using a page's column structure."""

    def __init__(
        self,
        settings: ExtractionSettings | None = None,
        classifier: KeywordClassifier | None = None,
        today: date | None = None,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self.classifier = classifier or KeywordClassifier()
        self.today = today

    def parse(self, row: Row, structure: ColumnStructure, page: int) -> Transaction | None:
        date_fragment = self._find_date_fragment(row)
        if date_fragment is None:
            return None

        amounts = self._column_amounts(row, structure, exclude=date_fragment)
        cash_in = amounts.get(INCOME)
        cash_out = amounts.get(EXPENSE)

        if cash_in is not None and cash_out is not None:
            logger.warning(
                "page %s: row has both cash in (%s) and cash out (%s); keeping cash in: %s",
                page,
                cash_in,
                cash_out,
                row_text(row),
            )
            amount, tx_type = cash_in, INCOME
        elif cash_in is not None:
            amount, tx_type = cash_in, INCOME
        elif cash_out is not None:
            amount, tx_type = cash_out, EXPENSE
        else:
            return None

        description = clean_description(
            row_text(self._description_fragments(row, structure, exclude=date_fragment)),
            self.settings.description_max_length,
        )
        if len(description) < self.settings.min_description_length:
            return None

        normalized_date = normalize_date(
            find_repaired_date_token(date_fragment.text),
            today=self.today,
            max_future_years=self.settings.max_future_years,
        )
        if normalized_date is None:
            return None

        category, event = self.classifier.classify(description)
        confidence = self.settings.ambiguous_confidence if structure.ambiguous else self.settings.spatial_confidence
        return Transaction(
            date=normalized_date,
            description=description,
            amount=abs(amount),
            type=tx_type,
            category=category,
            event=event,
            confidence=confidence,
            page=page,
        )

    @staticmethod
    def _find_date_fragment(row: Row) -> PositionedFragment | None:
        for fragment in row:
            if find_repaired_date_token(fragment.text):
                return fragment
        return None

    def _description_fragments(
        self, row: Row, structure: ColumnStructure, exclude: PositionedFragment
    ) -> list[PositionedFragment]:
        left = (structure.date_column_x or 0.0) + self.settings.date_column_gap
        right = (
            min(
                structure.cash_in_column_x if structure.cash_in_column_x is not None else _NO_COLUMN,
                structure.cash_out_column_x if structure.cash_out_column_x is not None else _NO_COLUMN,
            )
            - self.settings.description_margin
        )
        return [f for f in row if f is not exclude and left < f.x < right]

    def _column_amounts(
        self, row: Row, structure: ColumnStructure, exclude: PositionedFragment
    ) -> dict[str, Decimal]:
        """First currency token per column, parsed; each fragment belongs to its nearest column."""
        columns = structure.amount_columns
        found: dict[str, Decimal] = {}
        seen: set[str] = set()
        for fragment in row:
            if fragment is exclude or not looks_like_currency(fragment.text):
                continue
            side, column_x = min(columns, key=lambda column: abs(column[1] - fragment.x), default=(None, None))
            if side is None or side in seen or abs(column_x - fragment.x) >= self.settings.column_tolerance:
                continue
            seen.add(side)
            value = parse_currency_amount(fragment.text, max_amount=self.settings.max_amount)
            if value is not None:
                found[side] = value
        return found
