"""
Configuration models and defaults for session-scrub.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .entropy import ENTROPY_THRESHOLD, MIN_HIGH_ENTROPY_LENGTH

# Current report schema version
REPORT_SCHEMA_VERSION = "1.0.0"

DEFAULT_REDACT_SECRETS = True
DEFAULT_REDACT_HIGH_ENTROPY = False
DEFAULT_ENTROPY_THRESHOLD = ENTROPY_THRESHOLD
DEFAULT_ENTROPY_MIN_LENGTH = MIN_HIGH_ENTROPY_LENGTH

# How many post-scan hits the CLI prints before summarizing the rest
DEFAULT_SCAN_PREVIEW_LIMIT = 5


class InputFormat(str, Enum):
    """How the input file is interpreted."""

    AUTO = "auto"
    TEXT = "text"
    SESSION = "session"


@dataclass
class RedactionReport:
    """Summary of one redaction run, written as report JSON by the CLI."""

    input_path: str
    output_path: str | None
    input_format: str
    redaction_enabled: bool
    redacted_count: int = 0
    types: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    remaining_hits: list[str] = field(default_factory=list)
    processing_time_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization.

        Output is deterministic: keys sorted, counts sorted by (-count, name).
        """
        return {
            "counts": dict(sorted(self.counts.items(), key=lambda x: (-x[1], x[0]))),
            "input_format": self.input_format,
            "input_path": self.input_path,
            "output_path": self.output_path,
            "processing_time_seconds": round(self.processing_time_seconds, 3),
            "redacted_count": self.redacted_count,
            "redaction_enabled": self.redaction_enabled,
            "remaining_hits": list(self.remaining_hits),
            "schema_version": REPORT_SCHEMA_VERSION,
            "types": list(self.types),
        }
