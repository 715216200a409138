"""WCAG 2.2 success criteria referenced by the analyzers."""
from typing import Iterable, Optional

WCAG_CRITERIA: dict = {
    "1.3.1": {
        "title": "Info and Relationships",
        "level": "A",
        "category": "Perceivable",
        "help_url": "https://www.w3.org/WAI/WCAG22/Understanding/info-and-relationships",
    },
    "2.1.1": {
        "title": "Keyboard",
        "level": "A",
        "category": "Operable",
        "help_url": "https://www.w3.org/WAI/WCAG22/Understanding/keyboard",
    },
    "2.1.2": {
        "title": "No Keyboard Trap",
        "level": "A",
        "category": "Operable",
        "help_url": "https://www.w3.org/WAI/WCAG22/Understanding/no-keyboard-trap",
    },
    "2.1.3": {
        "title": "Keyboard (No Exception)",
        "level": "AAA",
        "category": "Operable",
        "help_url": "https://www.w3.org/WAI/WCAG22/Understanding/keyboard-no-exception",
    },
    "2.4.3": {
        "title": "Focus Order",
        "level": "A",
        "category": "Operable",
        "help_url": "https://www.w3.org/WAI/WCAG22/Understanding/focus-order",
    },
    "2.4.7": {
        "title": "Focus Visible",
        "level": "AA",
        "category": "Operable",
        "help_url": "https://www.w3.org/WAI/WCAG22/Understanding/focus-visible",
    },
    "2.4.11": {
        "title": "Focus Not Obscured (Minimum)",
        "level": "AA",
        "category": "Operable",
        "help_url": "https://www.w3.org/WAI/WCAG22/Understanding/focus-not-obscured-minimum",
    },
    "4.1.1": {
        "title": "Parsing (obsolete in 2.2, kept for duplicate ids)",
        "level": "A",
        "category": "Robust",
        "help_url": "https://www.w3.org/WAI/WCAG21/Understanding/parsing",
    },
    "4.1.2": {
        "title": "Name, Role, Value",
        "level": "A",
        "category": "Robust",
        "help_url": "https://www.w3.org/WAI/WCAG22/Understanding/name-role-value",
    },
}

LEVEL_SEVERITY = {"A": "error", "AA": "warning", "AAA": "info"}
_LEVEL_RANK = {"A": 0, "AA": 1, "AAA": 2}


def level_of(criterion: str) -> Optional[str]:
    entry = WCAG_CRITERIA.get(criterion)
    return entry["level"] if entry else None


def severity_for(criteria: Iterable[str]) -> str:
    """Severity of the strictest level among the criteria; 'info' if none is known."""
    levels = [lvl for lvl in (level_of(c) for c in criteria) if lvl]
    if not levels:
        return "info"
    return LEVEL_SEVERITY[min(levels, key=_LEVEL_RANK.__getitem__)]
