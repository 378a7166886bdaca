from __future__ import annotations

import re
from decimal import Decimal

from club_statements.config import ExtractionSettings
from club_statements.models.contracts import EXPENSE, INCOME, Transaction, ValidationFinding

_CANONICAL_DATE_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")


class TransactionValidator:
    def __init__(self, settings: ExtractionSettings | None = None) -> None:
        self.settings = settings or ExtractionSettings()

    def _make_finding(self, rule: str, field: str, ok: bool, message: str, severity: str = "HIGH") -> ValidationFinding:
        return ValidationFinding(
            validation_status="PASSED" if ok else "FAILED",
            rule=rule,
            field=field,
            severity=severity,
            message=f"{message} {'ok' if ok else 'failed'}",
        )

    def check_date(self, tx: Transaction) -> ValidationFinding:
        return self._make_finding("TX_DATE", "date", bool(_CANONICAL_DATE_RE.match(tx.date)), "date is DD/MM/YYYY")

    def check_description(self, tx: Transaction) -> ValidationFinding:
        ok = len(tx.description) >= self.settings.min_description_length
        return self._make_finding("TX_DESCRIPTION", "description", ok, "description length")

    def check_amount(self, tx: Transaction) -> ValidationFinding:
        ok = Decimal("0") < tx.amount <= self.settings.max_amount and tx.amount == tx.amount.quantize(Decimal("0.01"))
        return self._make_finding("TX_AMOUNT", "amount", ok, "amount in range with two decimals")

    def check_type(self, tx: Transaction) -> ValidationFinding:
        return self._make_finding("TX_TYPE", "type", tx.type in (INCOME, EXPENSE), "type is Income or Expense")

    def check_confidence(self, tx: Transaction) -> ValidationFinding:
        return self._make_finding(
            "TX_CONFIDENCE", "confidence", 0.0 <= tx.confidence <= 1.0, "confidence within [0, 1]", severity="MEDIUM"
        )

    def check(self, tx: Transaction) -> list[ValidationFinding]:
        return [
            self.check_date(tx),
            self.check_description(tx),
            self.check_amount(tx),
            self.check_type(tx),
            self.check_confidence(tx),
        ]

    def is_valid(self, tx: Transaction) -> bool:
        return all(f.validation_status == "PASSED" for f in self.check(tx))


def summarize_findings(findings: list[ValidationFinding]) -> dict[str, object]:
    failures = [f for f in findings if f.validation_status == "FAILED"]
    return {
        "validation_status": "FAILED" if failures else "PASSED",
        "findings": [f.__dict__ for f in failures],
        "requires_manual_review": bool(failures),
        "review_reasons": sorted({f.rule for f in failures}),
    }
