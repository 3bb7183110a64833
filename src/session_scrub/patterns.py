"""
Secret and PII pattern library for session-scrub.

Each detector is a small record: a compiled regex, a function that builds the
replacement text from the matched text, and an optional allow-predicate that
can veto a single match (private IPs, test email domains).

ORDER MATTERS: patterns are applied one after another to the already
partially-redacted text. A bearer token that happens to be a JWT is consumed
by ``bearer-token`` before ``jwt`` runs, and vendor-prefixed keys are replaced
before the generic assignment patterns see them.

Placeholders use the ``[REDACTED:<name>]`` form. The value-capturing patterns
(password, cli-secret, url-secret, env-secret) refuse to start a value at an
existing placeholder, so ``GITHUB_TOKEN=[REDACTED:github-token]`` is not
counted twice.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

# Well-known public resolvers that show up constantly in network debugging output
PUBLIC_RESOLVER_IPS: frozenset[str] = frozenset({
    "8.8.8.8",
    "8.8.4.4",
    "1.1.1.1",
    "1.0.0.1",
})

ALLOWED_EMAIL_DOMAINS: frozenset[str] = frozenset({
    "example.com",
    "example.org",
    "example.net",
    "example.io",
    "test.com",
    "test.org",
    "localhost.com",
    # Known bot / service domains
    "github.com",
    "dependabot.com",
    "users.noreply.github.com",
    "noreply.github.com",
    "renovatebot.com",
    "snyk.io",
})


def is_allowed_ip(ip: str) -> bool:
    """
    Check whether an IPv4 address is known-safe and should not be redacted.

    Loopback, unspecified, RFC 1918 private, link-local and a handful of
    public DNS resolvers are allowed. Anything that is not a dotted quad of
    integers is not allowed.
    """
    parts = ip.split(".")
    if len(parts) != 4:
        return False
    try:
        a, b, c, d = (int(part) for part in parts)
    except ValueError:
        return False

    # Loopback
    if a == 127:
        return True
    # Unspecified
    if a == 0 and b == 0 and c == 0 and d == 0:
        return True
    # RFC 1918 private ranges
    if a == 10:
        return True
    if a == 172 and 16 <= b <= 31:
        return True
    if a == 192 and b == 168:
        return True
    # Link-local
    if a == 169 and b == 254:
        return True

    return ip in PUBLIC_RESOLVER_IPS


def is_allowed_email(email: str) -> bool:
    """Check whether an email address belongs to an example/test or bot domain."""
    at = email.rfind("@")
    if at == -1:
        return False
    return email[at + 1:].lower() in ALLOWED_EMAIL_DOMAINS


@dataclass(frozen=True)
class SecretPattern:
    """A named detector for one category of sensitive content."""

    name: str
    pattern: re.Pattern[str]
    placeholder: Callable[[str], str]
    # Returns True for matches that must be left untouched
    allow: Callable[[str], bool] | None = None


def placeholder_for(name: str) -> str:
    """Return the standard placeholder text for a category."""
    return f"[REDACTED:{name}]"


def _fixed(label: str) -> Callable[[str], str]:
    text = placeholder_for(label)
    return lambda _match: text


def _keep_flag(label: str) -> Callable[[str], str]:
    """Keep ``--flag `` (and its whitespace), redact the value."""
    text = placeholder_for(label)

    def build(match: str) -> str:
        head = re.match(r"\S+\s+", match)
        return (head.group(0) if head else "") + text

    return build


def _keep_through_equals(label: str) -> Callable[[str], str]:
    """Keep everything up to and including the first ``=``, redact the value."""
    text = placeholder_for(label)

    def build(match: str) -> str:
        return match[: match.index("=") + 1] + text

    return build


# Value-capturing patterns must not start a value at a previous substitution
_NOT_PLACEHOLDER = r"(?!\[REDACTED)"

BUILT_IN_PATTERNS: list[SecretPattern] = [
    # GitHub
    SecretPattern(
        name="github-token",
        pattern=re.compile(r"\bghp_[A-Za-z0-9]{36,}\b"),
        placeholder=_fixed("github-token"),
    ),
    SecretPattern(
        name="github-oauth",
        pattern=re.compile(r"\bgho_[A-Za-z0-9]{36,}\b"),
        placeholder=_fixed("github-oauth-token"),
    ),
    SecretPattern(
        name="github-app-token",
        pattern=re.compile(r"\bghs_[A-Za-z0-9]{36,}\b"),
        placeholder=_fixed("github-app-token"),
    ),

    # LLM vendors (Anthropic before OpenAI: both start with "sk-")
    SecretPattern(
        name="anthropic-key",
        pattern=re.compile(r"\bsk-ant-[A-Za-z0-9\-_]{32,}\b"),
        placeholder=_fixed("anthropic-api-key"),
    ),
    SecretPattern(
        name="openai-key",
        pattern=re.compile(r"\bsk-[A-Za-z0-9]{32,}\b"),
        placeholder=_fixed("openai-api-key"),
    ),
    SecretPattern(
        name="huggingface-token",
        pattern=re.compile(r"\bhf_[A-Za-z0-9]{32,}\b"),
        placeholder=_fixed("huggingface-token"),
    ),

    # AWS
    SecretPattern(
        name="aws-access-key",
        pattern=re.compile(r"\b(?:AKIA|ASIA|AROA|AIDA)[A-Z0-9]{16}\b"),
        placeholder=_fixed("aws-access-key"),
    ),
    SecretPattern(
        name="aws-secret-key",
        pattern=re.compile(
            r"aws[_\-]?secret[_\-]?(?:access[_\-]?)?key[\"']?\s*[:=]\s*[\"']?[A-Za-z0-9/+=]{40}",
            re.IGNORECASE,
        ),
        placeholder=_fixed("aws-secret-key"),
    ),

    # Authorization headers
    SecretPattern(
        name="bearer-token",
        pattern=re.compile(r"\bBearer\s+(?:[A-Za-z0-9\-._~+/]=*){20,}", re.IGNORECASE),
        placeholder=lambda _match: "Bearer " + placeholder_for("bearer-token"),
    ),

    # PEM blocks: private keys, certificates, public keys
    SecretPattern(
        name="private-key",
        pattern=re.compile(
            r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |PGP )?(?:PRIVATE KEY|CERTIFICATE|PUBLIC KEY)-----"
            r"[\s\S]*?"
            r"-----END (?:RSA |EC |DSA |OPENSSH |PGP )?(?:PRIVATE KEY|CERTIFICATE|PUBLIC KEY)-----"
        ),
        placeholder=_fixed("private-key"),
    ),

    # password= / passwd: / pwd= assignments, quoted or bare
    SecretPattern(
        name="password",
        pattern=re.compile(
            r"(?:password|passwd|pwd)\s*[:=]\s*"
            r"(?:[\"']" + _NOT_PLACEHOLDER + r"[^\"'\s]{8,}[\"']"
            r"|" + _NOT_PLACEHOLDER + r"[^\s\"',;}{]{8,})",
            re.IGNORECASE,
        ),
        placeholder=_fixed("password"),
    ),

    # Connection strings with embedded credentials
    SecretPattern(
        name="connection-string",
        pattern=re.compile(
            r"(?:mongodb|postgres|postgresql|mysql|redis)://[^:\s]+:[^@\s]+@[^\s\"')]+",
            re.IGNORECASE,
        ),
        placeholder=_fixed("connection-string"),
    ),

    SecretPattern(
        name="jwt",
        pattern=re.compile(r"\beyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+"),
        placeholder=_fixed("jwt"),
    ),

    # Package registries
    SecretPattern(
        name="pypi-token",
        pattern=re.compile(r"\bpypi-[A-Za-z0-9\-_]{32,}\b"),
        placeholder=_fixed("pypi-token"),
    ),
    SecretPattern(
        name="npm-token",
        pattern=re.compile(r"\bnpm_[A-Za-z0-9]{36,}\b"),
        placeholder=_fixed("npm-token"),
    ),

    # Chat-ops webhooks
    SecretPattern(
        name="slack-webhook",
        pattern=re.compile(r"https://hooks\.slack\.com/services/[A-Za-z0-9/]+"),
        placeholder=_fixed("slack-webhook"),
    ),
    SecretPattern(
        name="discord-webhook",
        pattern=re.compile(r"https://discord(?:app)?\.com/api/webhooks/[0-9]+/[A-Za-z0-9\-_]+"),
        placeholder=_fixed("discord-webhook"),
    ),

    # --token VALUE, --api-key VALUE, ...
    SecretPattern(
        name="cli-secret",
        pattern=re.compile(
            r"--(?:token|api[_-]?key|secret|password|passwd|api[_-]?secret)\s+"
            + _NOT_PLACEHOLDER
            + r"[^\s'\"]{8,}",
            re.IGNORECASE,
        ),
        placeholder=_keep_flag("cli-secret"),
    ),

    # ?token=abc, &api_key=xyz
    SecretPattern(
        name="url-secret",
        pattern=re.compile(
            r"[?&](?:token|api[_-]?key|secret|password|access[_-]?token)="
            + _NOT_PLACEHOLDER
            + r"[^&\s'\"]{8,}",
            re.IGNORECASE,
        ),
        placeholder=_keep_through_equals("url-secret"),
    ),

    # export GH_TOKEN=abc, MY_API_KEY=xyz cmd
    SecretPattern(
        name="env-secret",
        pattern=re.compile(
            r"\b(?:export\s+)?[A-Za-z][A-Za-z0-9_]{2,}"
            r"(?:_TOKEN|_KEY|_SECRET|_PASSWORD|_API_KEY|_CREDENTIALS?|_ACCESS_TOKEN|_PRIVATE_KEY)"
            r"\s*=\s*" + _NOT_PLACEHOLDER + r"[^\s'\"]{8,}"
        ),
        placeholder=_keep_through_equals("env-secret"),
    ),

    # PII
    SecretPattern(
        name="email",
        pattern=re.compile(r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b"),
        placeholder=_fixed("email"),
        allow=is_allowed_email,
    ),
    SecretPattern(
        name="ipv4",
        pattern=re.compile(r"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b"),
        placeholder=_fixed("ipv4"),
        allow=is_allowed_ip,
    ),
    SecretPattern(
        name="phone",
        pattern=re.compile(
            r"\b(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}\b"
        ),
        placeholder=_fixed("phone"),
    ),
    SecretPattern(
        name="credit-card",
        pattern=re.compile(
            r"\b(?:4[0-9]{12}(?:[0-9]{3})?"
            r"|5[1-5][0-9]{14}"
            r"|3[47][0-9]{13}"
            r"|6(?:011|5[0-9]{2})[0-9]{12})\b"
        ),
        placeholder=_fixed("credit-card"),
    ),
]

PATTERN_NAMES: tuple[str, ...] = tuple(p.name for p in BUILT_IN_PATTERNS)


def apply_pattern(rule: SecretPattern, text: str) -> tuple[str, int]:
    """
    Apply one pattern to a string.

    Matches vetoed by ``rule.allow`` are left as-is and not counted. Every
    other match is replaced by ``rule.placeholder(match)``.

    Returns:
        Tuple of (new_text, number_of_replacements)
    """
    count = 0

    def replace(match: re.Match[str]) -> str:
        nonlocal count
        value = match.group(0)
        if rule.allow is not None and rule.allow(value):
            return value
        count += 1
        return rule.placeholder(value)

    return rule.pattern.sub(replace, text), count


def iter_matches(rule: SecretPattern, text: str) -> Iterator[str]:
    """Yield every match of ``rule`` in ``text`` that its allow-predicate does not veto."""
    for match in rule.pattern.finditer(text):
        value = match.group(0)
        if rule.allow is not None and rule.allow(value):
            continue
        yield value


def get_pattern(name: str) -> SecretPattern:
    """Look up a built-in pattern by category name."""
    for rule in BUILT_IN_PATTERNS:
        if rule.name == name:
            return rule
    raise KeyError(name)
