from __future__ import annotations

import re

from club_statements.config import ExtractionSettings
from club_statements.extractors.rows import sort_fragments
from club_statements.logging_setup import get_logger
from club_statements.models.contracts import ColumnStructure, PositionedFragment
from club_statements.normalizers.tokens import is_strict_currency

logger = get_logger("club_statements.extractors.columns")

DATE = "date"
DESCRIPTION = "description"
CASH_IN = "cash_in"
CASH_OUT = "cash_out"
AMOUNT = "amount"

# Checked in order; the first keyword found in a fragment decides its role.
HEADER_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("cash in", CASH_IN),
    ("cash out", CASH_OUT),
    ("description", DESCRIPTION),
    ("date", DATE),
    ("amount", AMOUNT),
)
_HEADER_PATTERNS = [(re.compile(rf"\b{re.escape(keyword)}\b"), role) for keyword, role in HEADER_KEYWORDS]


def match_header_role(text: str) -> str | None:
    lowered = " ".join(text.lower().split())
    if not lowered or any(ch.isdigit() for ch in lowered):
        return None
    for pattern, role in _HEADER_PATTERNS:
        if pattern.search(lowered):
            return role
    return None


def find_header_positions(fragments: list[PositionedFragment], settings: ExtractionSettings) -> dict[str, float]:
    """Map column roles to the x of the top-most fragment carrying their label."""
    positions: dict[str, float] = {}
    for fragment in sort_fragments(fragments, settings.same_line_epsilon):
        role = match_header_role(fragment.text)
        if role is not None:
            positions.setdefault(role, fragment.x)
    # A lone "Amount" column holds payments unless a "Cash Out" label exists.
    if AMOUNT in positions:
        positions.setdefault(CASH_OUT, positions.pop(AMOUNT))
    return positions


def infer_amount_columns(fragments: list[PositionedFragment], bucket_width: float) -> tuple[float | None, float | None]:
    """Guess (cash_in_x, cash_out_x) from where currency tokens line up."""
    buckets = sorted({round(f.x / bucket_width) * bucket_width for f in fragments if is_strict_currency(f.text)})
    if not buckets:
        return None, None
    if len(buckets) == 1:
        return None, buckets[0]
    return buckets[-2], buckets[-1]


def _near_known_column(x: float, known: list[float | None], bucket_width: float) -> bool:
    return any(k is not None and abs(k - x) <= bucket_width for k in known)


def detect_column_structure(
    fragments: list[PositionedFragment],
    settings: ExtractionSettings | None = None,
) -> ColumnStructure:
    settings = settings or ExtractionSettings()
    headers = find_header_positions(fragments, settings)

    date_x = headers.get(DATE)
    description_x = headers.get(DESCRIPTION)
    cash_in_x = headers.get(CASH_IN)
    cash_out_x = headers.get(CASH_OUT)
    source = "headers"
    ambiguous = False

    if cash_in_x is None or cash_out_x is None:
        inferred_in, inferred_out = infer_amount_columns(fragments, settings.bucket_width)
        had_amount_header = cash_in_x is not None or cash_out_x is not None
        if inferred_in is not None and cash_in_x is None and not _near_known_column(
            inferred_in, [cash_out_x], settings.bucket_width
        ):
            cash_in_x = inferred_in
            source = "headers+clusters" if had_amount_header else "clusters"
        if inferred_out is not None and cash_out_x is None and not _near_known_column(
            inferred_out, [cash_in_x], settings.bucket_width
        ):
            cash_out_x = inferred_out
            source = "headers+clusters" if had_amount_header else "clusters"
            ambiguous = inferred_in is None and not had_amount_header

    has_valid = date_x is not None and (cash_in_x is not None or cash_out_x is not None)
    structure = ColumnStructure(
        has_valid_structure=has_valid,
        date_column_x=date_x,
        description_column_x=description_x,
        cash_in_column_x=cash_in_x,
        cash_out_column_x=cash_out_x,
        source=source,
        ambiguous=ambiguous,
    )
    logger.debug(
        "column structure valid=%s date=%s description=%s cash_in=%s cash_out=%s source=%s",
        has_valid,
        date_x,
        description_x,
        cash_in_x,
        cash_out_x,
        source,
    )
    return structure
