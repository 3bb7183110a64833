"""
Redaction engine for session-scrub.

Detects and replaces secrets and PII in conversation text.

Stages, applied cumulatively to one string:
1. Built-in patterns (vendor keys, PEM blocks, connection strings, PII...)
2. User-supplied custom regexes -> ``[REDACTED:custom]``
3. User-supplied literal strings -> ``[REDACTED:user-specified]``
4. Username pseudonymization -> ``user_<8 hex>``
5. High-entropy tokens (opt-in) -> ``[REDACTED:high-entropy]``

Every stage sees the previous stage's output. Category names are reported
in first-seen order.
"""

from __future__ import annotations

import re
import warnings
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .entropy import ENTROPY_THRESHOLD, MIN_HIGH_ENTROPY_LENGTH, find_high_entropy_tokens
from .patterns import BUILT_IN_PATTERNS, apply_pattern, placeholder_for
from .session import Message, Session, ToolUse
from .usernames import Identity, dedupe_names, replace_username, system_identity

CUSTOM_TYPE = "custom"
USER_SPECIFIED_TYPE = "user-specified"
USERNAME_TYPE = "username"
HIGH_ENTROPY_TYPE = "high-entropy"

# re.compile raises more than re.error for some malformed expressions
# (huge repetition counts overflow, deep nesting recurses)
INVALID_PATTERN_ERRORS = (re.error, OverflowError, RecursionError)


@dataclass(frozen=True)
class RedactionOptions:
    """
    Settings for one redaction run.

    Built once per CLI invocation from configuration and never mutated.
    List-valued settings are stored as tuples.
    """

    enabled: bool
    custom_patterns: tuple[str, ...] = ()
    redact_usernames: tuple[str, ...] = ()
    redact_strings: tuple[str, ...] = ()
    redact_high_entropy: bool = False

    # Entropy tuning (only used when redact_high_entropy is set)
    entropy_threshold: float = ENTROPY_THRESHOLD
    entropy_min_length: int = MIN_HIGH_ENTROPY_LENGTH

    def __post_init__(self) -> None:
        for name in ("custom_patterns", "redact_usernames", "redact_strings"):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RedactionOptions:
        """
        Create RedactionOptions from a dictionary (e.g., a config file section).

        Accepts snake_case keys and the camelCase keys of the JSON config
        format. Invalid custom regexes are dropped with a RuntimeWarning.
        """

        def pick(snake: str, camel: str, default: Any) -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        custom_patterns: list[str] = []
        for raw in _as_list(pick("custom_patterns", "customPatterns", [])):
            try:
                re.compile(raw)
            except INVALID_PATTERN_ERRORS as e:
                warnings.warn(
                    f"Invalid redaction regex pattern {raw!r}: {e}",
                    RuntimeWarning,
                    stacklevel=2,
                )
                continue
            custom_patterns.append(raw)

        entropy = data.get("entropy") or {}

        return cls(
            enabled=bool(data.get("enabled", True)),
            custom_patterns=tuple(custom_patterns),
            redact_usernames=tuple(_as_list(pick("redact_usernames", "redactUsernames", []))),
            redact_strings=tuple(_as_list(pick("redact_strings", "redactStrings", []))),
            redact_high_entropy=bool(pick("redact_high_entropy", "redactHighEntropy", False)),
            entropy_threshold=float(entropy.get("threshold", ENTROPY_THRESHOLD)),
            entropy_min_length=int(entropy.get("min_length", MIN_HIGH_ENTROPY_LENGTH)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (sorted keys for determinism)."""
        return {
            "custom_patterns": list(self.custom_patterns),
            "enabled": self.enabled,
            "entropy": {
                "min_length": self.entropy_min_length,
                "threshold": self.entropy_threshold,
            },
            "redact_high_entropy": self.redact_high_entropy,
            "redact_strings": list(self.redact_strings),
            "redact_usernames": list(self.redact_usernames),
        }


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


@dataclass
class RedactionResult:
    """Output of redacting a single string."""

    text: str
    redacted_count: int = 0
    types: list[str] = field(default_factory=list)
    # Per-category event counts, in first-seen order
    counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_counts(cls, text: str, counts: dict[str, int]) -> RedactionResult:
        return cls(
            text=text,
            redacted_count=sum(counts.values()),
            types=list(counts),
            counts=dict(counts),
        )


@dataclass
class SessionRedaction:
    """Output of redacting every text field of a session."""

    session: Session
    total_redacted: int = 0
    types: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)


def _tally(counts: dict[str, int], name: str, hits: int) -> None:
    if hits:
        counts[name] = counts.get(name, 0) + hits


def _compile_custom(raw: str) -> re.Pattern[str] | None:
    try:
        return re.compile(raw)
    except INVALID_PATTERN_ERRORS:
        return None


def _redact_custom(text: str, patterns: Iterable[str], counts: dict[str, int]) -> str:
    placeholder = placeholder_for(CUSTOM_TYPE)

    for raw in patterns:
        pattern = _compile_custom(raw)
        if pattern is None:
            continue

        hits = 0

        def replace_match(match: re.Match[str]) -> str:
            nonlocal hits
            # Empty matches would splice placeholders between every character
            if not match.group(0):
                return ""
            hits += 1
            return placeholder

        text = pattern.sub(replace_match, text)
        _tally(counts, CUSTOM_TYPE, hits)

    return text


def _redact_literals(text: str, literals: Iterable[str], counts: dict[str, int]) -> str:
    placeholder = placeholder_for(USER_SPECIFIED_TYPE)
    for literal in literals:
        if literal and literal in text:
            text = text.replace(literal, placeholder)
            _tally(counts, USER_SPECIFIED_TYPE, 1)
    return text


def _redact_usernames(text: str, names: Iterable[str], counts: dict[str, int]) -> str:
    for name in names:
        replaced = replace_username(text, name)
        if replaced != text:
            text = replaced
            _tally(counts, USERNAME_TYPE, 1)
    return text


def _redact_high_entropy(text: str, options: RedactionOptions, counts: dict[str, int]) -> str:
    placeholder = placeholder_for(HIGH_ENTROPY_TYPE)
    tokens = find_high_entropy_tokens(
        text,
        threshold=options.entropy_threshold,
        min_length=options.entropy_min_length,
    )
    for token in dict.fromkeys(tokens):
        if token in text:
            text = text.replace(token, placeholder)
            _tally(counts, HIGH_ENTROPY_TYPE, 1)
    return text


def redact_text(
    text: str,
    options: RedactionOptions,
    identity: Identity | None = None,
) -> RedactionResult:
    """
    Redact secrets and PII from a single string.

    Args:
        text: Text to redact
        options: Redaction settings
        identity: OS identity to anonymize; queried from the system if None

    Returns:
        RedactionResult with the new text and what was found
    """
    if not options.enabled:
        return RedactionResult(text=text)

    counts: dict[str, int] = {}
    result = text

    for rule in BUILT_IN_PATTERNS:
        result, hits = apply_pattern(rule, result)
        _tally(counts, rule.name, hits)

    result = _redact_custom(result, options.custom_patterns, counts)
    result = _redact_literals(result, options.redact_strings, counts)

    if identity is None:
        identity = system_identity()
    names = dedupe_names([*identity.candidates(), *options.redact_usernames])
    result = _redact_usernames(result, names, counts)

    if options.redact_high_entropy:
        result = _redact_high_entropy(result, options, counts)

    return RedactionResult.from_counts(result, counts)


def redact_session(
    session: Session,
    options: RedactionOptions,
    identity: Identity | None = None,
) -> SessionRedaction:
    """
    Redact every text field of a session.

    Message content, thinking text, tool input summaries and tool results
    are redacted independently. Identifiers, roles, timestamps and stats are
    copied unchanged. The input session is never mutated.
    """
    if not options.enabled:
        return SessionRedaction(session=session)

    if identity is None:
        identity = system_identity()

    counts: dict[str, int] = {}

    def scrub(value: str) -> str:
        result = redact_text(value, options, identity)
        for name, hits in result.counts.items():
            _tally(counts, name, hits)
        return result.text

    def scrub_tool_use(tool_use: ToolUse) -> ToolUse:
        return replace(
            tool_use,
            input_summary=scrub(tool_use.input_summary),
            result=scrub(tool_use.result) if tool_use.result else tool_use.result,
        )

    messages: list[Message] = []
    for message in session.messages:
        content = scrub(message.content)
        thinking = scrub(message.thinking) if message.thinking else message.thinking
        tool_uses = message.tool_uses
        if tool_uses is not None:
            tool_uses = [scrub_tool_use(t) for t in tool_uses]
        messages.append(
            replace(message, content=content, thinking=thinking, tool_uses=tool_uses)
        )

    redacted = replace(
        session,
        messages=messages,
        stats=replace(session.stats),
        metadata=replace(session.metadata, files_touched=list(session.metadata.files_touched)),
    )
    return SessionRedaction(
        session=redacted,
        total_redacted=sum(counts.values()),
        types=list(counts),
        counts=counts,
    )


class Redactor:
    """
    Redacts secrets from conversation text and keeps running statistics.

    Wraps :func:`redact_text` and :func:`redact_session` with a fixed set of
    options and accumulates per-category counts across calls, for the CLI
    summary and report.
    """

    def __init__(
        self,
        options: RedactionOptions,
        identity: Identity | None = None,
    ):
        """
        Initialize the redactor.

        Args:
            options: Redaction settings
            identity: Fixed OS identity; queried per call when None
        """
        self.options = options
        self.identity = identity
        self.redaction_counts: dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return self.options.enabled

    def _record(self, counts: Mapping[str, int]) -> None:
        for name, hits in counts.items():
            _tally(self.redaction_counts, name, hits)

    def redact(self, text: str) -> RedactionResult:
        """Redact a single string."""
        result = redact_text(text, self.options, self.identity)
        self._record(result.counts)
        return result

    def redact_session(self, session: Session) -> SessionRedaction:
        """Redact every text field of a session."""
        result = redact_session(session, self.options, self.identity)
        self._record(result.counts)
        return result

    def get_stats(self) -> dict[str, int]:
        """Get redaction statistics (most frequent first)."""
        return dict(sorted(self.redaction_counts.items(), key=lambda x: -x[1]))

    def reset_stats(self) -> None:
        """Reset redaction statistics."""
        self.redaction_counts.clear()


def create_redactor(
    options: RedactionOptions | None = None,
    *,
    enabled: bool = True,
    identity: Identity | None = None,
) -> Redactor:
    """Factory function to create a redactor instance."""
    if options is None:
        options = RedactionOptions(enabled=enabled)
    return Redactor(options=options, identity=identity)
