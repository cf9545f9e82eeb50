"""Tests for sensitive-path detection and redaction."""

import pytest

from sortguard.security.sensitive import (
    REDACTED,
    is_sensitive,
    matched_pattern,
    redact_path,
)


class TestIsSensitive:
    @pytest.mark.parametrize(
        "path",
        [
            "/home/u/project/.env",
            "/home/u/project/.env.production",
            "/home/u/.ssh/config",
            "/home/u/keys/id_rsa",
            "/home/u/keys/server.pem",
            "/home/u/.aws/credentials",
            "/home/u/.docker/config.json",
            "/home/u/.npmrc",
            "/home/u/.netrc",
            "/etc/shadow",
            "/home/u/cert.p12",
            "/home/u/.bash_history",
            "/home/u/Documents/passwords.txt",
            "/home/u/Documents/My-Secret-Plans.md",
            "/home/u/Documents/github_token",
            "/home/u/Documents/API_KEY.txt",
            "/home/u/Documents/private_signing_key.txt",
            "C:\\Users\\u\\.ssh\\known_hosts",
        ],
    )
    def test_flags_sensitive_paths(self, path: str) -> None:
        assert is_sensitive(path)

    @pytest.mark.parametrize(
        "path",
        [
            "/home/u/Documents/report.pdf",
            "/home/u/Pictures/photo.jpg",
            "/home/u/project/environment.md",
            "/home/u/secret-project/notes.txt",
            "",
        ],
    )
    def test_leaves_ordinary_paths_alone(self, path: str) -> None:
        assert not is_sensitive(path)

    def test_matched_pattern_names_the_rule(self) -> None:
        assert matched_pattern("/srv/app/.env") == r"\.env$"
        assert matched_pattern("/srv/app/readme.md") is None

    def test_matching_is_case_insensitive(self) -> None:
        assert is_sensitive("/home/u/PASSWORD.TXT")


class TestRedactPath:
    def test_redacts_basename_of_sensitive_path(self) -> None:
        assert redact_path("/home/user/.env") == f"/home/user/{REDACTED}"

    def test_ordinary_path_is_returned_unchanged(self) -> None:
        assert redact_path("/home/user/notes.txt") == "/home/user/notes.txt"

    def test_bare_sensitive_name(self) -> None:
        assert redact_path("secrets.yaml") == REDACTED
