"""Sensitive-file patterns.

Paths matching these patterns are never read, and are redacted before they
reach the audit log. Structural patterns (key files, credential folders) are
matched against the whole path; keyword patterns (``password``, ``secret``,
...) only against the basename so that an innocuous file inside a folder
named e.g. ``private`` stays readable.
"""

import re
from pathlib import Path

__all__ = [
    "REDACTED",
    "SENSITIVE_DIRECTORIES",
    "SENSITIVE_KEYWORDS",
    "SENSITIVE_PATTERNS",
    "is_sensitive",
    "matched_pattern",
    "redact_path",
]

REDACTED = "[REDACTED_SENSITIVE]"


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


SENSITIVE_PATTERNS = _compile(
    # Environment files
    r"\.env$",
    r"\.env\.[a-z]+$",
    # SSH and key material
    r"\.ssh/",
    r"id_(rsa|ed25519|ecdsa|dsa)$",
    r"\.pem$",
    r"\.key$",
    r"ssh_key",
    # Cloud and container credentials
    r"\.aws/",
    r"\.docker/config\.json$",
    r"kubeconfig$",
    r"\.kube/config$",
    # Package manager auth
    r"\.npmrc$",
    r"\.pypirc$",
    r"\.gemrc$",
    r"\.netrc$",
    # Password databases
    r"(^|/)shadow$",
    r"(^|/)passwd$",
    r"master\.passwd$",
    r"\.htpasswd$",
    # Certificates and keystores
    r"\.pfx$",
    r"\.p12$",
    r"\.crt$",
    r"\.cert$",
    r"\.csr$",
    # Shell history
    r"\.(bash|zsh|sh)_history$",
)

SENSITIVE_KEYWORDS = _compile(
    r"password",
    r"secret",
    r"token",
    r"credential",
    r"api[_-]?key",
    r"private.*key",
)

SENSITIVE_DIRECTORIES = _compile(
    r"/\.ssh$",
    r"/\.aws$",
    r"/\.gnupg(/|$)",
    r"/\.kube$",
    r"/\.docker$",
    r"Keychains(/|$)",
)


def _normalize(path: str | Path) -> str:
    return str(path).replace("\\", "/")


def matched_pattern(path: str | Path) -> str | None:
    """Return the first sensitive pattern ``path`` matches, or ``None``."""

    normalized = _normalize(path)
    if not normalized:
        return None
    for pattern in SENSITIVE_PATTERNS:
        if pattern.search(normalized):
            return pattern.pattern
    basename = normalized.rstrip("/").rsplit("/", 1)[-1]
    for pattern in SENSITIVE_KEYWORDS:
        if pattern.search(basename):
            return pattern.pattern
    for pattern in SENSITIVE_DIRECTORIES:
        if pattern.search(normalized):
            return f"directory:{pattern.pattern}"
    return None


def is_sensitive(path: str | Path) -> bool:
    return matched_pattern(path) is not None


def redact_path(path: str | Path) -> str:
    """Replace the basename of a sensitive path with a redaction marker.

    Example:
        >>> redact_path("/home/user/.env")
        '/home/user/[REDACTED_SENSITIVE]'
    """

    raw = str(path)
    if not is_sensitive(raw):
        return raw
    normalized = _normalize(raw)
    cut = normalized.rfind("/") + 1
    return f"{raw[:cut]}{REDACTED}"
