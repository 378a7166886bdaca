from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation

# Letter/digit look-alikes produced by OCR and poorly embedded fonts.
_CONFUSIONS: tuple[tuple[str, str], ...] = (
    ("Oo", "0"),
    ("Il|", "1"),
    ("S", "5"),
    ("Z", "2"),
    ("G", "6"),
)
_CONFUSION_RES = [
    (re.compile(rf"[{re.escape(chars)}](?=\d)|(?<=\d)[{re.escape(chars)}]"), digit) for chars, digit in _CONFUSIONS
]

DATE_TOKEN_RE = re.compile(r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}")
CURRENCY_TOKEN_RE = re.compile(r"\d+\.\d{2}")
STRICT_CURRENCY_RE = re.compile(r"^\d{1,6}\.\d{2}$")
CURRENCY_SYMBOLS_RE = re.compile(r"[£$€\s]")
_DESCRIPTION_JUNK_RE = re.compile(r"[^\w\s£$€.,()&-]")
_NEGATIVE_WORDS = ("out", "debit")

MIN_AMOUNT = Decimal("0.01")
DEFAULT_MAX_AMOUNT = Decimal("50000.00")


@dataclass(frozen=True)
class ParsedAmount:
    raw: str
    value: Decimal | None
    parse_status: str
    parse_warnings: list[str] = field(default_factory=list)


def fix_character_confusions(text: str) -> str:
    """Replace look-alike letters with digits where they touch a digit.

    Runs to a fixpoint so runs such as ``1OO5`` are fully repaired.
    """
    previous = None
    while previous != text:
        previous = text
        for pattern, digit in _CONFUSION_RES:
            text = pattern.sub(digit, text)
    return text


def strip_currency(text: str) -> str:
    return CURRENCY_SYMBOLS_RE.sub("", text).replace(",", "")


def looks_like_currency(text: str) -> bool:
    return CURRENCY_TOKEN_RE.search(strip_currency(text)) is not None


def is_strict_currency(text: str) -> bool:
    return STRICT_CURRENCY_RE.match(strip_currency(text)) is not None


def find_date_token(text: str) -> str | None:
    match = DATE_TOKEN_RE.search(text)
    return match.group(0) if match else None


def find_repaired_date_token(text: str) -> str | None:
    """Date token of ``text`` after look-alike repair, so ``20l5`` reads as ``2015``."""
    return find_date_token(fix_character_confusions(text))


def _add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def normalize_date(raw: str | None, *, today: date | None = None, max_future_years: int = 2) -> str | None:
    """Return ``DD/MM/YYYY`` for a day-first date string, or ``None``."""
    if not raw:
        return None

    cleaned = fix_character_confusions(raw.strip())
    cleaned = re.sub(r"\s+", "", cleaned)
    cleaned = re.sub(r"[-.]", "/", cleaned)
    cleaned = re.sub(r"[^\d/]", "", cleaned)

    parts = cleaned.split("/")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None

    day, month, year = (int(part) for part in parts)
    if year < 100:
        year = 1900 + year if year > 50 else 2000 + year

    if month > 12 and day <= 12:
        day, month = month, day

    if not (1 <= day <= 31 and 1 <= month <= 12 and 1900 <= year <= 2100):
        return None

    try:
        parsed = date(year, month, day)
    except ValueError:
        return None

    cutoff = _add_years(today or date.today(), max_future_years)
    if parsed > cutoff:
        return None

    return f"{parsed.day:02d}/{parsed.month:02d}/{parsed.year}"


def parse_currency(raw: str | None, max_amount: Decimal = DEFAULT_MAX_AMOUNT) -> ParsedAmount:
    text = (raw or "").strip()
    if text == "":
        return ParsedAmount(raw=raw or "", value=None, parse_status="blank")

    warnings: list[str] = []
    cleaned = CURRENCY_SYMBOLS_RE.sub("", fix_character_confusions(text))
    if cleaned != text:
        warnings.append("CLEANED")

    if not re.search(r"\d", cleaned) or not re.search(r"[.,]", cleaned):
        return ParsedAmount(raw=raw, value=None, parse_status="invalid", parse_warnings=warnings + ["NO_DECIMAL_POINT"])

    lowered = text.lower()
    negative = (
        cleaned.startswith("(")
        or cleaned.startswith("-")
        or any(word in lowered for word in _NEGATIVE_WORDS)
    )

    digits = re.sub(r"[^0-9.,]", "", cleaned)
    if "," in digits and "." in digits:
        if digits.rfind(",") > digits.rfind("."):
            digits = digits.replace(".", "").replace(",", ".")
            warnings.append("COMMA_DECIMAL")
        else:
            digits = digits.replace(",", "")
    elif "," in digits:
        whole, sep, fraction = digits.partition(",")
        if "," in fraction or len(fraction) != 2:
            return ParsedAmount(raw=raw, value=None, parse_status="invalid", parse_warnings=warnings + ["AMBIGUOUS_COMMA"])
        digits = f"{whole}.{fraction}"
        warnings.append("COMMA_DECIMAL")

    if not STRICT_CURRENCY_RE.match(digits):
        return ParsedAmount(raw=raw, value=None, parse_status="invalid", parse_warnings=warnings + ["NOT_CURRENCY"])

    try:
        value = Decimal(digits)
    except InvalidOperation:
        return ParsedAmount(raw=raw, value=None, parse_status="invalid", parse_warnings=warnings + ["UNPARSABLE"])

    if value < MIN_AMOUNT or value > max_amount:
        return ParsedAmount(raw=raw, value=None, parse_status="out_of_range", parse_warnings=warnings)

    if negative:
        value = -value
    return ParsedAmount(raw=raw, value=value, parse_status="parsed", parse_warnings=warnings)


def parse_currency_amount(raw: str | None, max_amount: Decimal = DEFAULT_MAX_AMOUNT) -> Decimal | None:
    return parse_currency(raw, max_amount=max_amount).value


def clean_description(description: str, max_length: int = 100) -> str:
    text = re.sub(r"\s+", " ", description)
    text = re.sub(r"\|+|_{2,}|\*{2,}", " ", text)
    text = _DESCRIPTION_JUNK_RE.sub("", text)
    return re.sub(r"\s+", " ", text).strip()[:max_length].strip()
