"""
Username pseudonymization for session-scrub.

Operator-identifying strings (OS account, home directory, git identity,
GitHub handle) are replaced by a stable ``user_<8 hex>`` pseudonym. The hash
is unsalted on purpose: sessions from the same contributor stay linkable
without revealing who they are.
"""

from __future__ import annotations

import configparser
import getpass
import hashlib
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass

USERNAME_PREFIX = "user_"
HASH_LENGTH = 8

# Redaction placeholders and existing pseudonyms are never rewritten
PROTECTED_SPAN_PATTERN = re.compile(
    r"(\[REDACTED:[^\]]*\]|\b" + USERNAME_PREFIX + r"[0-9a-f]{" + str(HASH_LENGTH) + r"}\b)"
)

# github.com only; handles from other hosts are never extracted
GITHUB_REMOTE_PATTERN = re.compile(
    r"^(?:"
    r"(?:https?|ssh|git)://(?:[^@/\s]+@)?(?:www\.)?github\.com(?::[0-9]+)?/"
    r"|[^@/\s]+@github\.com:"
    r")([^/\s]+)/"
)


@dataclass(frozen=True)
class Identity:
    """The operator's OS identity: account name and home directory."""

    username: str = ""
    home_dir: str = ""

    def candidates(self) -> list[str]:
        """Return the identity strings to anonymize, in lookup order."""
        return [self.username, self.home_dir]


@dataclass(frozen=True)
class GitIdentity:
    """Identity details read from git configuration."""

    name: str = ""
    email: str = ""
    remote_url: str = ""

    @property
    def email_local_part(self) -> str:
        return self.email.split("@", 1)[0] if self.email else ""


def system_identity() -> Identity:
    """
    Query the current OS account.

    Called fresh on every redaction so a changed environment is picked up.
    A home directory of ``/`` is ignored since replacing it would rewrite
    every path separator.
    """
    try:
        username = getpass.getuser()
    except (KeyError, OSError):
        username = ""

    home_dir = os.path.expanduser("~")
    if home_dir in ("~", os.sep):
        home_dir = ""

    return Identity(username=username, home_dir=home_dir)


def hash_username(name: str) -> str:
    """Return the stable pseudonym for a username."""
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()
    return USERNAME_PREFIX + digest[:HASH_LENGTH]


def replace_username(text: str, name: str) -> str:
    """
    Replace every occurrence of ``name`` with its pseudonym.

    Also rewrites the ``-name-`` form that shows up in project directory
    names built by replacing ``/`` with ``-``. Text inside ``[REDACTED:...]``
    placeholders and existing ``user_<hex>`` pseudonyms is left alone.
    """
    if not name:
        return text
    hashed = hash_username(name)

    # Odd indexes are placeholders and earlier pseudonyms, left untouched
    parts = PROTECTED_SPAN_PATTERN.split(text)
    for i in range(0, len(parts), 2):
        part = parts[i].replace(name, hashed)
        parts[i] = part.replace(f"-{name}-", f"-{hashed}-")
    return "".join(parts)


def sanitize_usernames(text: str, names: Iterable[str]) -> str:
    """Apply :func:`replace_username` for every name, unconditionally."""
    for name in names:
        text = replace_username(text, name)
    return text


def dedupe_names(names: Iterable[str | None]) -> list[str]:
    """Strip, drop empties and deduplicate, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        trimmed = (name or "").strip()
        if trimmed and trimmed not in seen:
            seen.add(trimmed)
            result.append(trimmed)
    return result


def extract_github_handle(remote_url: str) -> str | None:
    """
    Extract the account name from a GitHub remote URL.

    Supports formats:
    - https://github.com/USER/repo(.git)
    - git@github.com:USER/repo(.git)
    - ssh://git@github.com/USER/repo(.git)

    Returns:
        The handle, or None for other hosts and unrecognized URLs
    """
    match = GITHUB_REMOTE_PATTERN.match(remote_url.strip())
    if match:
        return match.group(1)
    return None


def read_git_identity(cwd: str | os.PathLike[str]) -> GitIdentity:
    """
    Read ``user.name``, ``user.email`` and the ``origin`` URL for a directory.

    Anything that cannot be read (not a repository, git not installed,
    unset keys, no origin remote) is returned as an empty string.
    """
    try:
        import git
    except ImportError:
        return GitIdentity()

    try:
        repo = git.Repo(cwd, search_parent_directories=True)
    except (git.exc.GitError, OSError):
        return GitIdentity()

    with repo:
        try:
            reader = repo.config_reader()
            name = reader.get_value("user", "name", default="")
            email = reader.get_value("user", "email", default="")
        except (configparser.Error, git.exc.GitError, OSError):
            name, email = "", ""

        try:
            remote_url = repo.remote("origin").url
        except (ValueError, configparser.Error, git.exc.GitError):
            remote_url = ""

    return GitIdentity(name=str(name), email=str(email), remote_url=str(remote_url))


def detect_usernames(
    cwd: str | os.PathLike[str] | None = None,
    extra: Iterable[str] | None = None,
    identity: Identity | None = None,
) -> list[str]:
    """
    Collect every string that should be anonymized.

    Always includes the OS username and home directory. When ``cwd`` is
    given, also the git display name, the local part of the git email and
    the GitHub handle of the ``origin`` remote.

    Args:
        cwd: Working directory used for git lookups (optional)
        extra: Additional names from configuration
        identity: OS identity override; queried from the system if None

    Returns:
        Deduplicated, non-empty names in first-seen order
    """
    if identity is None:
        identity = system_identity()

    candidates: list[str | None] = list(identity.candidates())

    if cwd is not None:
        git_identity = read_git_identity(cwd)
        candidates.append(git_identity.name)
        candidates.append(git_identity.email_local_part)
        if git_identity.remote_url:
            candidates.append(extract_github_handle(git_identity.remote_url))

    candidates.extend(extra or [])
    return dedupe_names(candidates)
