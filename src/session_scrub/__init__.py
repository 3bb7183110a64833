"""session-scrub: redact secrets and personal data from AI-agent chat transcripts."""

from .entropy import find_high_entropy_tokens, shannon_entropy
from .patterns import BUILT_IN_PATTERNS, is_allowed_email, is_allowed_ip
from .redactor import (
    RedactionOptions,
    RedactionResult,
    Redactor,
    SessionRedaction,
    create_redactor,
    redact_session,
    redact_text,
)
from .scanner import scan_for_remaining
from .usernames import Identity, detect_usernames, hash_username

__version__ = "0.1.0"

__all__ = [
    "BUILT_IN_PATTERNS",
    "Identity",
    "RedactionOptions",
    "RedactionResult",
    "Redactor",
    "SessionRedaction",
    "create_redactor",
    "detect_usernames",
    "find_high_entropy_tokens",
    "hash_username",
    "is_allowed_email",
    "is_allowed_ip",
    "redact_session",
    "redact_text",
    "scan_for_remaining",
    "shannon_entropy",
    "__version__",
]
