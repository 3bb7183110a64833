"""
Configuration file loader for session-scrub.

Supports loading configuration from:
- session-scrub.toml / .session-scrub.toml / scrub.toml / .scrub.toml
- scrub.yml / .scrub.yml / scrub.yaml / .scrub.yaml

CLI flags override config file values.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .config import (
    DEFAULT_ENTROPY_MIN_LENGTH,
    DEFAULT_ENTROPY_THRESHOLD,
    DEFAULT_REDACT_HIGH_ENTROPY,
    DEFAULT_REDACT_SECRETS,
    DEFAULT_SCAN_PREVIEW_LIMIT,
)
from .redactor import RedactionOptions

# Optional imports for config file parsing
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # type: ignore
    except ImportError:
        tomllib = None  # type: ignore

try:
    import yaml
except ImportError:
    yaml = None  # type: ignore


# Config file search order (first found wins)
CONFIG_FILE_NAMES = [
    "session-scrub.toml",
    ".session-scrub.toml",
    "scrub.toml",
    ".scrub.toml",
    "scrub.yml",
    ".scrub.yml",
    "scrub.yaml",
    ".scrub.yaml",
]

# Nested section names accepted in config files
SECTION_NAMES = ("session-scrub", "scrub")


@dataclass
class ProjectConfig:
    """
    Configuration loaded from a config file.

    All fields are optional - CLI flags will override any values set here.
    """

    redact_secrets: bool | None = None
    scan_preview_limit: int | None = None

    # Raw [redaction] section
    redaction_config: dict[str, Any] = field(default_factory=dict)

    # Source file path (for debugging)
    _config_file: Path | None = field(default=None, repr=False)

    def get_redaction_options(self) -> RedactionOptions:
        """Build RedactionOptions from the [redaction] section."""
        options = RedactionOptions.from_dict(self.redaction_config)
        if self.redact_secrets is not None:
            options = replace(options, enabled=self.redact_secrets)
        return options

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization (sorted keys for determinism)."""
        result: dict[str, Any] = {}

        if self.redact_secrets is not None:
            result["redact_secrets"] = self.redact_secrets
        if self.scan_preview_limit is not None:
            result["scan_preview_limit"] = self.scan_preview_limit
        if self.redaction_config:
            result["redaction"] = self.redaction_config
        if self._config_file is not None:
            result["_loaded_from"] = str(self._config_file)

        return dict(sorted(result.items()))


def find_config_file(root: Path) -> Path | None:
    """
    Find a configuration file in a directory.

    Args:
        root: Directory to search (usually the working directory)

    Returns:
        Path to the config file, or None if not found
    """
    for name in CONFIG_FILE_NAMES:
        config_path = root / name
        if config_path.exists() and config_path.is_file():
            return config_path
    return None


def _unwrap_section(data: dict[str, Any]) -> dict[str, Any]:
    # Support both flat and nested [session-scrub] section
    for section in SECTION_NAMES:
        if isinstance(data.get(section), dict):
            return data[section]
    return data


def _parse_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML config file."""
    if tomllib is None:
        raise ImportError(
            "TOML support requires 'tomli' package (Python < 3.11) or Python 3.11+. "
            "Install with: pip install tomli"
        )

    with open(path, "rb") as f:
        data = tomllib.load(f)

    return _unwrap_section(data)


def _parse_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML config file."""
    if yaml is None:
        raise ImportError(
            "YAML support requires 'pyyaml' package. Install with: pip install pyyaml"
        )

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        return {}

    return _unwrap_section(data)


def load_config(root: Path, config_path: Path | None = None) -> ProjectConfig:
    """
    Load configuration from a config file.

    Args:
        root: Directory searched when no explicit path is given
        config_path: Explicit path to config file (optional)

    Returns:
        ProjectConfig with loaded values (unset values remain None)
    """
    if config_path is None:
        config_path = find_config_file(root)

    if config_path is None or not config_path.exists():
        return ProjectConfig()

    suffix = config_path.suffix.lower()
    try:
        if suffix == ".toml":
            data = _parse_toml(config_path)
        elif suffix in (".yml", ".yaml"):
            data = _parse_yaml(config_path)
        else:
            return ProjectConfig()
    except Exception:
        # Silently ignore parse errors - CLI will work without config
        return ProjectConfig()

    config = ProjectConfig(_config_file=config_path)

    if "redact_secrets" in data:
        config.redact_secrets = bool(data["redact_secrets"])
    elif "redact" in data and isinstance(data["redact"], bool):
        config.redact_secrets = data["redact"]

    if "scan_preview_limit" in data:
        config.scan_preview_limit = int(data["scan_preview_limit"])

    redaction_data = data.get("redaction") or {}
    if isinstance(redaction_data, dict) and redaction_data:
        config.redaction_config = redaction_data

    return config


def merge_cli_with_config(
    config: ProjectConfig,
    *,
    # CLI arguments (None / empty means not specified on CLI)
    no_redact: bool = False,
    redact_high_entropy: bool | None = None,
    usernames: list[str] | None = None,
    strings: list[str] | None = None,
    patterns: list[str] | None = None,
    scan_preview_limit: int | None = None,
) -> dict[str, Any]:
    """
    Merge CLI arguments with config file values.

    Scalar CLI arguments take precedence over config file values. List
    arguments (usernames, strings, patterns) are appended to the config
    file's lists.

    Returns:
        Dictionary with merged configuration values
    """
    options = config.get_redaction_options()
    has_redaction_section = bool(config.redaction_config)
    result: dict[str, Any] = {}

    # Redact secrets (CLI --no-redact sets False)
    if no_redact:
        result["redact_secrets"] = False
    elif config.redact_secrets is not None or "enabled" in config.redaction_config:
        result["redact_secrets"] = options.enabled
    else:
        result["redact_secrets"] = DEFAULT_REDACT_SECRETS

    # High-entropy redaction
    if redact_high_entropy is not None:
        result["redact_high_entropy"] = redact_high_entropy
    elif has_redaction_section:
        result["redact_high_entropy"] = options.redact_high_entropy
    else:
        result["redact_high_entropy"] = DEFAULT_REDACT_HIGH_ENTROPY

    result["custom_patterns"] = [*options.custom_patterns, *(patterns or [])]
    result["redact_usernames"] = [*options.redact_usernames, *(usernames or [])]
    result["redact_strings"] = [*options.redact_strings, *(strings or [])]

    # Entropy tuning (config only, no CLI override)
    if has_redaction_section:
        result["entropy_threshold"] = options.entropy_threshold
        result["entropy_min_length"] = options.entropy_min_length
    else:
        result["entropy_threshold"] = DEFAULT_ENTROPY_THRESHOLD
        result["entropy_min_length"] = DEFAULT_ENTROPY_MIN_LENGTH

    # Scan preview limit
    if scan_preview_limit is not None:
        result["scan_preview_limit"] = scan_preview_limit
    elif config.scan_preview_limit is not None:
        result["scan_preview_limit"] = config.scan_preview_limit
    else:
        result["scan_preview_limit"] = DEFAULT_SCAN_PREVIEW_LIMIT

    return result


def options_from_merged(merged: dict[str, Any]) -> RedactionOptions:
    """Build the RedactionOptions passed to every redaction call."""
    return RedactionOptions(
        enabled=merged["redact_secrets"],
        custom_patterns=tuple(merged["custom_patterns"]),
        redact_usernames=tuple(merged["redact_usernames"]),
        redact_strings=tuple(merged["redact_strings"]),
        redact_high_entropy=merged["redact_high_entropy"],
        entropy_threshold=merged["entropy_threshold"],
        entropy_min_length=merged["entropy_min_length"],
    )
