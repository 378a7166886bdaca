from dataclasses import replace
from decimal import Decimal

from club_statements.config import ExtractionSettings
from club_statements.models.contracts import Transaction
from club_statements.pipelines.classifier import KeywordClassifier, rules_to_table
from club_statements.validators.transaction_rules import TransactionValidator, summarize_findings


def _tx(**changes: object) -> Transaction:
    base = Transaction(date="18/04/2025", description="Welsh 3000s Registration", amount=Decimal("1610.00"), type="Income")
    return replace(base, **changes)


def test_classifier_labels_category_and_event() -> None:
    classifier = KeywordClassifier()
    assert classifier.classify("Welsh 3000s Registration") == ("Event Registration", "Welsh 3000s 2025")
    assert classifier.classify("BBQ supplies") == ("Social Events", "Social Events")
    assert classifier.classify("Brecon hostel booking") == ("Accommodation", "Brecon Beacons Trip")
    assert classifier.classify("Miscellaneous") == ("Uncategorized", "General")


def test_classifier_first_matching_keyword_wins() -> None:
    assert KeywordClassifier().category("Train tickets") == "Event Registration"
    assert KeywordClassifier().category("Training weekend") == "Transport"


def test_custom_tables_replace_defaults() -> None:
    classifier = KeywordClassifier(
        category_table=rules_to_table({"Kayaking": ["paddle", "kayak"]}),
        event_table=rules_to_table({"River Trip": ["Wye"]}),
    )
    assert classifier.classify("Wye kayak hire") == ("Kayaking", "River Trip")
    assert classifier.category("Membership") == "Uncategorized"


def test_valid_transaction_passes_every_rule() -> None:
    validator = TransactionValidator()
    findings = validator.check(_tx())
    assert all(f.validation_status == "PASSED" for f in findings)
    assert validator.is_valid(_tx())


def test_validator_rejects_malformed_records() -> None:
    validator = TransactionValidator(ExtractionSettings(max_amount=Decimal("1000.00")))
    assert not validator.is_valid(_tx(date="2025-04-18"))
    assert not validator.is_valid(_tx(description="ab"))
    assert not validator.is_valid(_tx(amount=Decimal("1610.00")))
    assert not validator.is_valid(_tx(amount=Decimal("10.005")))
    assert not validator.is_valid(_tx(amount=Decimal("12.00"), type="Transfer"))
    assert not validator.is_valid(_tx(amount=Decimal("12.00"), confidence=1.5))


def test_validation_summary_fails_when_rule_fails() -> None:
    validator = TransactionValidator()
    findings = validator.check(_tx(date="18-04-2025")) + validator.check(_tx(type="Refund"))
    summary = summarize_findings(findings)

    assert summary["validation_status"] == "FAILED"
    assert summary["requires_manual_review"] is True
    assert summary["review_reasons"] == ["TX_DATE", "TX_TYPE"]
    assert len(summary["findings"]) == 2


def test_validation_summary_passes_clean_findings() -> None:
    summary = summarize_findings(TransactionValidator().check(_tx()))
    assert summary == {
        "validation_status": "PASSED",
        "findings": [],
        "requires_manual_review": False,
        "review_reasons": [],
    }
