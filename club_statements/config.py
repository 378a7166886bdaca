from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from decimal import Decimal

ENV_PREFIX = "CLUB_STATEMENTS_"


def getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    try:
        return int(v) if v is not None else default
    except ValueError:
        return default


def getenv_float(name: str, default: float) -> float:
    v = os.getenv(name)
    try:
        return float(v) if v is not None else default
    except ValueError:
        return default


def getenv_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ExtractionSettings:
    """Tunables for the spatial extractor.

    Distances are in page layout units (PDF points for pdfplumber input).
    """

    max_pages: int = 10
    row_threshold: float = 10.0
    same_line_epsilon: float = 5.0
    bucket_width: float = 20.0
    column_tolerance: float = 50.0
    date_column_gap: float = 50.0
    description_margin: float = 20.0
    description_max_length: int = 100
    min_description_length: int = 3
    max_amount: Decimal = Decimal("50000.00")
    max_future_years: int = 2
    dedupe_prefix_length: int = 20
    spatial_confidence: float = 0.9
    ambiguous_confidence: float = 0.7
    text_fallback: bool = False

    @classmethod
    def from_env(cls) -> ExtractionSettings:
        defaults = cls()
        overrides: dict[str, object] = {}
        for f in fields(cls):
            name = ENV_PREFIX + f.name.upper()
            current = getattr(defaults, f.name)
            if isinstance(current, bool):
                overrides[f.name] = getenv_bool(name, current)
            elif isinstance(current, int):
                overrides[f.name] = getenv_int(name, current)
            elif isinstance(current, Decimal):
                overrides[f.name] = Decimal(str(getenv_float(name, float(current))))
            else:
                overrides[f.name] = getenv_float(name, current)
        return cls(**overrides)

    def with_overrides(self, **changes: object) -> ExtractionSettings:
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
