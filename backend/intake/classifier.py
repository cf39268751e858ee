"""Scenario classifier – lightweight, rule-based membership test.

Maps request text onto zero or more scenario categories from the decision
table in ``intake.guidelines``. A category matches when any of its keywords
occurs anywhere in the text, ignoring case. Matching is plain substring
search, so "subsystem" matches ``system`` and "closing" also matches ``LOS``.
There is no scoring. Several categories can match at once and no match at all
is a valid outcome (the request is then treated as "general").
"""
import re

from intake.guidelines import DECISION_TABLE

# ---------------------------------------------------------------------------
# Keyword patterns, one per category, compiled once in table order
# ---------------------------------------------------------------------------

_CATEGORY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (
        guideline.category,
        re.compile("|".join(re.escape(k) for k in guideline.keywords), re.IGNORECASE),
    )
    for guideline in DECISION_TABLE
)


# ---------------------------------------------------------------------------
# Public classifier function
# ---------------------------------------------------------------------------

def classify_scenarios(text: str) -> tuple[str, ...]:
    """Return every scenario category whose keywords appear in ``text``.

    Example:
        >>> classify_scenarios("New TRID rule for wire transfers")
        ('compliance', 'closing')
    """
    if not text:
        return ()
    return tuple(category for category, pattern in _CATEGORY_PATTERNS if pattern.search(text))
