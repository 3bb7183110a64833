"""
Post-redaction scanner.

Re-runs every built-in detector plus the entropy detector over text that has
already been redacted, and reports what still matches. It never modifies the
text; it is the last check before an export leaves the machine.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .entropy import ENTROPY_THRESHOLD, MIN_HIGH_ENTROPY_LENGTH, find_high_entropy_tokens
from .patterns import BUILT_IN_PATTERNS, iter_matches

HIT_PREVIEW_LENGTH = 80

_HIT_CATEGORY = re.compile(r"^\[([^\]]+)\]")


def format_hit(category: str, match: str) -> str:
    """Format one hit as ``[category] <first 80 chars>``."""
    return f"[{category}] {match[:HIT_PREVIEW_LENGTH]}"


def scan_for_remaining(
    text: str,
    entropy_threshold: float = ENTROPY_THRESHOLD,
    entropy_min_length: int = MIN_HIGH_ENTROPY_LENGTH,
) -> list[str]:
    """
    Scan already-redacted text for anything that still looks sensitive.

    Pattern allow-predicates are honoured (private IPs and test emails are
    not reported). High-entropy detection always runs here.

    Returns:
        Hit descriptions, pattern hits first (in pattern order) then
        high-entropy hits
    """
    hits: list[str] = []

    for rule in BUILT_IN_PATTERNS:
        for match in iter_matches(rule, text):
            hits.append(format_hit(rule.name, match))

    for token in find_high_entropy_tokens(
        text, threshold=entropy_threshold, min_length=entropy_min_length
    ):
        hits.append(format_hit("high-entropy", token))

    return hits


def summarize_hits(hits: Iterable[str]) -> dict[str, int]:
    """Count hits per category, most frequent first."""
    counts: dict[str, int] = {}
    for hit in hits:
        match = _HIT_CATEGORY.match(hit)
        category = match.group(1) if match else "unknown"
        counts[category] = counts.get(category, 0) + 1
    return dict(sorted(counts.items(), key=lambda x: (-x[1], x[0])))
