"""Line-oriented fallback extraction for pages without a usable column layout.

Each strategy is a pure function ``(line, context) -> Transaction | None``.
``STRATEGIES`` lists them in priority order; the first one that yields a
transaction for a line wins. Records produced here always score below the
spatial extractor's confidence.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from club_statements.config import ExtractionSettings
from club_statements.models.contracts import EXPENSE, INCOME, Transaction
from club_statements.normalizers.tokens import (
    clean_description,
    fix_character_confusions,
    normalize_date,
    parse_currency_amount,
)
from club_statements.pipelines.classifier import KeywordClassifier

_DATE = r"(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})"
_AMOUNT = r"(\(?-?[£$€]?\s*[\d,]+[.,]\d{2}\)?)"

PIPE_COLUMNS_RE = re.compile(
    rf"^\s*{_DATE}\s*\|\s*([^|]+?)\s*\|\s*([£$€]?\s*[\d,]+\.\d{{2}})?\s*\|\s*([£$€]?\s*[\d,]+\.\d{{2}})?\s*\|?\s*$"
)
TABULAR_RE = re.compile(rf"^\s*{_DATE}\s{{2,}}([^\d£$€|]+?)\s{{2,}}{_AMOUNT}\s*$")
WITH_REFERENCE_RE = re.compile(rf"^\s*{_DATE}\s+(.+?)\s+\((\d+)\)\s+{_AMOUNT}\s*$")
TRAILING_AMOUNT_RE = re.compile(rf"^\s*{_DATE}\s+(.+?)\s+{_AMOUNT}\s*$")

_CANONICAL_DATE_RE = re.compile(r"\d{2}/\d{2}/\d{4}")


@dataclass(frozen=True)
class PatternContext:
    page: int = 1
    settings: ExtractionSettings = field(default_factory=ExtractionSettings)
    today: date | None = None


Strategy = Callable[[str, PatternContext], Transaction | None]


def score_confidence(raw: str, description: str, amount: Decimal, settings: ExtractionSettings) -> float:
    confidence = 0.5
    if _CANONICAL_DATE_RE.search(raw):
        confidence += 0.2
    if 5 < len(description) < 50:
        confidence += 0.1
    if re.search(r"[A-Za-z]", description):
        confidence += 0.1
    if amount != 0:
        confidence += 0.2
    if len(raw.split()) >= 3:
        confidence += 0.1
    ceiling = max(settings.spatial_confidence - 0.1, 0.0)
    return round(min(confidence, 1.0, ceiling), 2)


def _build(
    raw: str,
    raw_date: str,
    raw_description: str,
    amount: Decimal | None,
    tx_type: str,
    method: str,
    context: PatternContext,
    reference: str = "",
) -> Transaction | None:
    settings = context.settings
    normalized_date = normalize_date(raw_date, today=context.today, max_future_years=settings.max_future_years)
    description = clean_description(raw_description, settings.description_max_length)
    if normalized_date is None or amount is None or len(description) < settings.min_description_length:
        return None
    return Transaction(
        date=normalized_date,
        description=description,
        amount=abs(amount),
        type=tx_type,
        confidence=score_confidence(raw, description, amount, settings),
        page=context.page,
        reference=reference,
        method=method,
    )


def _signed_type(amount: Decimal | None) -> str:
    return EXPENSE if amount is not None and amount < 0 else INCOME


def pipe_columns(line: str, context: PatternContext) -> Transaction | None:
    """``Date | Description | Cash In | Cash Out``"""
    match = PIPE_COLUMNS_RE.match(line)
    if not match:
        return None
    raw_date, raw_description, raw_in, raw_out = match.groups()
    max_amount = context.settings.max_amount
    cash_in = parse_currency_amount(raw_in, max_amount) if raw_in else None
    cash_out = parse_currency_amount(raw_out, max_amount) if raw_out else None
    if cash_in is not None:
        return _build(line, raw_date, raw_description, cash_in, INCOME, "pipe_columns", context)
    if cash_out is not None:
        return _build(line, raw_date, raw_description, cash_out, EXPENSE, "pipe_columns", context)
    return None


def tabular(line: str, context: PatternContext) -> Transaction | None:
    match = TABULAR_RE.match(line)
    if not match:
        return None
    raw_date, raw_description, raw_amount = match.groups()
    amount = parse_currency_amount(raw_amount, context.settings.max_amount)
    return _build(line, raw_date, raw_description, amount, _signed_type(amount), "tabular", context)


def with_reference(line: str, context: PatternContext) -> Transaction | None:
    match = WITH_REFERENCE_RE.match(line)
    if not match:
        return None
    raw_date, raw_description, reference, raw_amount = match.groups()
    amount = parse_currency_amount(raw_amount, context.settings.max_amount)
    return _build(
        line, raw_date, raw_description, amount, _signed_type(amount), "with_reference", context, reference=reference
    )


def trailing_amount(line: str, context: PatternContext) -> Transaction | None:
    match = TRAILING_AMOUNT_RE.match(line)
    if not match:
        return None
    raw_date, raw_description, raw_amount = match.groups()
    amount = parse_currency_amount(raw_amount, context.settings.max_amount)
    return _build(line, raw_date, raw_description, amount, _signed_type(amount), "trailing_amount", context)


STRATEGIES: list[Strategy] = [pipe_columns, tabular, with_reference, trailing_amount]


def preprocess_line(line: str) -> str:
    line = fix_character_confusions(line.replace("\t", "   "))
    line = re.sub(r"[│∣║¦]", "|", line)
    line = re.sub(r"(\d{1,2})\s*([/\-.])\s*(\d{1,2})\s*\2\s*(\d{2,4})", r"\1/\3/\4", line)
    return line.rstrip()


def parse_line(line: str, context: PatternContext, strategies: list[Strategy] | None = None) -> Transaction | None:
    prepared = preprocess_line(line)
    for strategy in strategies or STRATEGIES:
        transaction = strategy(prepared, context)
        if transaction is not None:
            return transaction
    return None


def extract_from_text(
    text: str,
    page: int = 1,
    settings: ExtractionSettings | None = None,
    classifier: KeywordClassifier | None = None,
    today: date | None = None,
) -> list[Transaction]:
    """Scan plain text line by line and return classified, de-duplicated records."""
    settings = settings or ExtractionSettings()
    classifier = classifier or KeywordClassifier()
    context = PatternContext(page=page, settings=settings, today=today)

    transactions: list[Transaction] = []
    seen: set[tuple[str, str, str]] = set()
    for line in text.splitlines():
        transaction = parse_line(line, context)
        if transaction is None:
            continue
        key = transaction.dedupe_key(settings.dedupe_prefix_length)
        if key in seen:
            continue
        seen.add(key)
        category, event = classifier.classify(transaction.description)
        transactions.append(replace(transaction, category=category, event=event))
    return transactions
