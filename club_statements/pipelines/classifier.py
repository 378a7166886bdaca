from __future__ import annotations

from dataclasses import dataclass, field

UNCATEGORIZED = "Uncategorized"
GENERAL_EVENT = "General"

CATEGORY_RULES: dict[str, list[str]] = {
    "Membership": ["membership", "member", "umhc", "club fee"],
    "Event Registration": ["welsh 3000", "ticket", "registration", "event", "trip"],
    "Transport": ["minibus", "fuel", "diesel", "petrol", "transport", "coach", "train", "bus"],
    "Accommodation": ["hostel", "hotel", "yha", "lodge", "accommodation", "camping"],
    "Equipment": ["equipment", "gear", "rope", "helmet", "boots", "tent", "compass"],
    "Food & Catering": ["food", "catering", "meal", "lunch", "dinner", "snack"],
    "Insurance": ["insurance", "cover", "policy"],
    "Training": ["training", "course", "instructor", "guide", "lesson"],
    "Grants & Funding": ["grant", "fund", "funding", "award", "sponsorship"],
    "Administration": ["admin", "fee", "charge", "bank", "statement"],
    "Social Events": ["social", "party", "bbq", "barbecue", "drink", "pub"],
    "External Memberships": ["bmc", "mountaineering council", "outdoor", "climbing"],
}

EVENT_RULES: dict[str, list[str]] = {
    "Welsh 3000s 2025": ["welsh 3000", "welsh3000"],
    "Snowdonia Trip": ["snowdon", "snowdonia"],
    "Peak District Trip": ["peak district", "peaks"],
    "Lake District Trip": ["lake district", "lakes"],
    "Scotland Trip": ["scotland", "highland"],
    "Brecon Beacons Trip": ["brecon", "beacon"],
    "Freshers Events": ["fresher", "welcome"],
    "Social Events": ["social", "bbq", "party"],
    "Training Events": ["training", "course"],
}


def rules_to_table(rules: dict[str, list[str]]) -> dict[str, str]:
    """Flatten ``label -> keywords`` rules into an ordered ``keyword -> label`` table."""
    table: dict[str, str] = {}
    for label, keywords in rules.items():
        for keyword in keywords:
            table.setdefault(keyword.lower(), label)
    return table


def lookup(text: str, table: dict[str, str], default: str) -> str:
    t = text.lower()
    for keyword, label in table.items():
        if keyword in t:
            return label
    return default


@dataclass(frozen=True)
class KeywordClassifier:
    """Keyword-table lookup for transaction category and event labels."""

    category_table: dict[str, str] = field(default_factory=lambda: rules_to_table(CATEGORY_RULES))
    event_table: dict[str, str] = field(default_factory=lambda: rules_to_table(EVENT_RULES))

    def category(self, description: str) -> str:
        return lookup(description, self.category_table, UNCATEGORIZED)

    def event(self, description: str) -> str:
        return lookup(description, self.event_table, GENERAL_EVENT)

    def classify(self, description: str) -> tuple[str, str]:
        return self.category(description), self.event(description)
