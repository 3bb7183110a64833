"""
Entropy-based secret detection.

A statistical fallback for secrets that no fixed pattern knows about. It is
the noisiest detector in the package, so it is opt-in for redaction and only
always-on inside the read-only post-redaction scan.

The threshold and minimum length are empirical tuning values. They can be
overridden per call (and from the config file) but the defaults should not
change without evidence from real transcripts.
"""

from __future__ import annotations

import math
import re
from collections import Counter

# Shannon entropy (bits/char) at or above which a token is suspicious
ENTROPY_THRESHOLD = 3.5

# Shorter runs are too common in ordinary text to be worth flagging
MIN_HIGH_ENTROPY_LENGTH = 32

# Version strings and domain names carry more dots than real tokens do
MAX_TOKEN_DOTS = 2

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def shannon_entropy(s: str) -> float:
    """
    Calculate the Shannon entropy of a string.

    Args:
        s: String to analyze

    Returns:
        Entropy in bits per character (0.0 for an empty string)
    """
    if not s:
        return 0.0

    length = len(s)
    entropy = 0.0
    for count in Counter(s).values():
        p = count / length
        entropy -= p * math.log2(p)
    return entropy


def looks_like_secret(token: str) -> bool:
    """
    Secondary checks for a high-entropy candidate.

    Rejects UUIDs, dotted strings (versions, hostnames) and anything without
    an uppercase letter, a lowercase letter and a digit.
    """
    if UUID_PATTERN.match(token):
        return False

    if token.count(".") > MAX_TOKEN_DOTS:
        return False

    has_upper = any(c.isascii() and c.isupper() for c in token)
    has_lower = any(c.isascii() and c.islower() for c in token)
    has_digit = any(c in "0123456789" for c in token)
    return has_upper and has_lower and has_digit


def _candidate_pattern(min_length: int) -> re.Pattern[str]:
    return re.compile(r"[A-Za-z0-9+/=_\-]{" + str(min_length) + r",}")


def find_high_entropy_tokens(
    text: str,
    threshold: float = ENTROPY_THRESHOLD,
    min_length: int = MIN_HIGH_ENTROPY_LENGTH,
) -> list[str]:
    """
    Find base64/hex-like runs that look like secrets.

    Args:
        text: Text to search
        threshold: Minimum entropy in bits per character
        min_length: Minimum run length

    Returns:
        Flagged tokens in order of appearance (repeats included)
    """
    suspicious: list[str] = []
    for match in _candidate_pattern(min_length).finditer(text):
        token = match.group(0)
        if (
            len(token) >= min_length
            and shannon_entropy(token) >= threshold
            and looks_like_secret(token)
        ):
            suspicious.append(token)
    return suspicious
