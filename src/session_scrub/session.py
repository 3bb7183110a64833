"""
Normalized conversation record.

This is the session document produced by the log readers: a list of messages,
each with free text, optional thinking text and tool invocations. Only this
normalized form is handled here; the raw agent log dialects are not.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .utils import read_file_safe

MESSAGE_ROLES = ("user", "assistant", "system")


class SessionFormatError(Exception):
    """Error raised when a session document is malformed."""

    pass


@dataclass
class ToolUse:
    """A single tool invocation inside a message."""

    tool: str
    input_summary: str
    result: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolUse:
        if not isinstance(data, dict):
            raise SessionFormatError("tool use must be an object")
        result = data.get("result")
        return cls(
            tool=_require_str(data, "tool"),
            input_summary=_require_str(data, "input_summary"),
            result=None if result is None else str(result),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"tool": self.tool, "input_summary": self.input_summary}
        if self.result is not None:
            result["result"] = self.result
        return result


@dataclass
class Message:
    """One conversation turn."""

    role: str
    content: str
    thinking: str | None = None
    timestamp: str | None = None
    tool_uses: list[ToolUse] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        if not isinstance(data, dict):
            raise SessionFormatError("message must be an object")

        role = _require_str(data, "role")
        if role not in MESSAGE_ROLES:
            raise SessionFormatError(f"unknown message role: {role!r}")

        tool_uses = data.get("tool_uses")
        if tool_uses is not None and not isinstance(tool_uses, list):
            raise SessionFormatError("'tool_uses' must be a list")

        return cls(
            role=role,
            content=_require_str(data, "content"),
            thinking=_optional_str(data, "thinking"),
            timestamp=_optional_str(data, "timestamp"),
            tool_uses=None if tool_uses is None else [ToolUse.from_dict(t) for t in tool_uses],
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.thinking is not None:
            result["thinking"] = self.thinking
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp
        if self.tool_uses is not None:
            result["tool_uses"] = [t.to_dict() for t in self.tool_uses]
        return result


@dataclass
class SessionStats:
    """Counters computed when the session was normalized."""

    user_messages: int = 0
    assistant_messages: int = 0
    tool_uses: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SessionStats:
        stats = cls()
        for key, value in (data or {}).items():
            if hasattr(stats, key) and isinstance(value, (int, float)):
                setattr(stats, key, int(value))
        return stats

    def to_dict(self) -> dict[str, int]:
        return {
            "user_messages": self.user_messages,
            "assistant_messages": self.assistant_messages,
            "tool_uses": self.tool_uses,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }


@dataclass
class SessionMetadata:
    files_touched: list[str] = field(default_factory=list)
    uploader_version: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SessionMetadata:
        data = data or {}
        files = data.get("files_touched") or []
        return cls(
            files_touched=[str(f) for f in files],
            uploader_version=str(data.get("uploader_version", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_touched": list(self.files_touched),
            "uploader_version": self.uploader_version,
        }


@dataclass
class Session:
    """A normalized conversation record."""

    id: str
    tool: str
    workspace: str
    messages: list[Message] = field(default_factory=list)
    captured_at: str = ""
    git_branch: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    model: str | None = None
    stats: SessionStats = field(default_factory=SessionStats)
    metadata: SessionMetadata = field(default_factory=SessionMetadata)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        """Create a Session from a parsed JSON document."""
        if not isinstance(data, dict):
            raise SessionFormatError("session document must be a JSON object")

        messages = data.get("messages")
        if not isinstance(messages, list):
            raise SessionFormatError("session document has no 'messages' list")

        return cls(
            id=str(data.get("id", "")),
            tool=str(data.get("tool", "")),
            workspace=str(data.get("workspace", "")),
            messages=[Message.from_dict(m) for m in messages],
            captured_at=str(data.get("captured_at", "")),
            git_branch=_optional_str(data, "git_branch"),
            start_time=_optional_str(data, "start_time"),
            end_time=_optional_str(data, "end_time"),
            model=_optional_str(data, "model"),
            stats=SessionStats.from_dict(data.get("stats")),
            metadata=SessionMetadata.from_dict(data.get("metadata")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary (optional keys omitted when unset)."""
        result: dict[str, Any] = {
            "id": self.id,
            "tool": self.tool,
            "workspace": self.workspace,
        }
        if self.git_branch is not None:
            result["git_branch"] = self.git_branch
        result["captured_at"] = self.captured_at
        if self.start_time is not None:
            result["start_time"] = self.start_time
        if self.end_time is not None:
            result["end_time"] = self.end_time
        if self.model is not None:
            result["model"] = self.model
        result["messages"] = [m.to_dict() for m in self.messages]
        result["stats"] = self.stats.to_dict()
        result["metadata"] = self.metadata.to_dict()
        return result


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise SessionFormatError(f"'{key}' must be a string")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SessionFormatError(f"'{key}' must be a string")
    return value


def is_session_document(data: Any) -> bool:
    """Check whether parsed JSON looks like a session document."""
    return isinstance(data, dict) and isinstance(data.get("messages"), list)


def parse_session(text: str) -> Session:
    """Parse a session document from JSON text."""
    try:
        data = json.loads(text.lstrip("\ufeff"))
    except json.JSONDecodeError as e:
        raise SessionFormatError(f"invalid JSON: {e}") from e
    return Session.from_dict(data)


def load_session(path: Path) -> Session:
    """Load a session document from disk."""
    content, _ = read_file_safe(path)
    return parse_session(content)


def dump_session(session: Session) -> str:
    """Serialize a session as pretty-printed JSON."""
    return json.dumps(session.to_dict(), indent=2, ensure_ascii=False) + "\n"
