from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pdfplumber
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from club_statements.errors import DocumentReadError
from club_statements.logging_setup import get_logger
from club_statements.models.contracts import PositionedFragment

logger = get_logger("club_statements.extractors.pdf_fragments")


def count_pages(pdf_path: Path) -> int:
    """Open the document with pypdf; corrupt or missing input becomes ``DocumentReadError``."""
    try:
        reader = PdfReader(str(pdf_path))
        return len(reader.pages)
    except (OSError, PdfReadError) as exc:
        raise DocumentReadError(f"Cannot open PDF {pdf_path.name}: {exc}", source=str(pdf_path)) from exc


def words_to_fragments(words: list[dict[str, object]], page_height: float) -> list[PositionedFragment]:
    """Convert pdfplumber words (top-left origin) into bottom-up fragments."""
    fragments: list[PositionedFragment] = []
    for word in words:
        text = str(word.get("text", "")).strip()
        if not text:
            continue
        x0 = float(word["x0"])
        x1 = float(word["x1"])
        top = float(word["top"])
        bottom = float(word["bottom"])
        fragments.append(
            PositionedFragment(
                text=text,
                x=x0,
                y=page_height - bottom,
                width=x1 - x0,
                height=bottom - top,
            )
        )
    return fragments


def iter_page_fragments(pdf_path: Path, max_pages: int | None = None) -> Iterator[list[PositionedFragment]]:
    """Yield one fragment list per page, in page order.

    Words keep their inner spaces (``keep_blank_chars``) so multi-word cells
    such as "Cash In" stay one fragment, while column gaps split fragments.
    """
    count_pages(pdf_path)
    try:
        with pdfplumber.open(str(pdf_path)) as pdf:
            pages = pdf.pages if max_pages is None else pdf.pages[:max_pages]
            for page in pages:
                words = page.extract_words(keep_blank_chars=True, use_text_flow=False)
                yield words_to_fragments(words, float(page.height))
    except Exception as exc:  # noqa: BLE001
        raise DocumentReadError(f"Cannot read PDF {pdf_path.name}: {exc}", source=str(pdf_path)) from exc
