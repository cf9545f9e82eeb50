"""Core constants for SortGuard.

This module defines constants used throughout the application:
- File categories and their extensions
- Read, scan and retry limits
- Directory skip lists and reserved device names
"""

import re

# ============================================================================
# File Categories
# ============================================================================

#: Extension to category mapping (first match wins, lowercase with dot)
CATEGORIES: dict[str, tuple[str, ...]] = {
    "Executables": (".exe", ".msi", ".bat", ".cmd"),
    "Videos": (".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm", ".m4v"),
    "Documents": (".pdf", ".doc", ".docx", ".txt", ".rtf", ".odt", ".md", ".tex"),
    "Presentations": (".ppt", ".pptx", ".odp", ".key"),
    "Spreadsheets": (".xls", ".xlsx", ".csv", ".ods"),
    "Images": (
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".bmp",
        ".svg",
        ".ico",
        ".webp",
        ".tiff",
        ".heic",
    ),
    "Audio": (".mp3", ".flac", ".aac", ".ogg", ".wma", ".m4a", ".wav"),
    "Archives": (".zip", ".rar", ".7z", ".tar", ".gz", ".bz2", ".xz"),
    "Code": (
        ".py",
        ".js",
        ".ts",
        ".java",
        ".cpp",
        ".c",
        ".html",
        ".css",
        ".php",
        ".rb",
        ".go",
        ".json",
    ),
    "Installers": (".dmg", ".pkg", ".deb", ".rpm", ".apk"),
    "Ebooks": (".epub", ".mobi", ".azw", ".azw3"),
    "Fonts": (".ttf", ".otf", ".woff", ".woff2"),
    "Scripts": (".sh", ".ps1"),
    "Logs": (".log",),
}

#: Category for anything not matched above
FALLBACK_CATEGORY: str = "Others"

# ============================================================================
# Reader Limits
# ============================================================================

#: Default ceiling for a single read (10 MiB)
DEFAULT_MAX_READ_BYTES: int = 10 * 1024 * 1024

#: Files larger than this are streamed in chunks (100 KiB)
STREAMING_THRESHOLD: int = 100 * 1024

#: Chunk size for streamed reads and hashing (64 KiB)
READ_CHUNK_SIZE: int = 64 * 1024

#: Longest accepted path string
MAX_PATH_LENGTH: int = 4096

# ============================================================================
# Rate Limits
# ============================================================================

DEFAULT_RATE_PER_MINUTE: int = 60
DEFAULT_RATE_PER_HOUR: int = 500

# ============================================================================
# Organize Limits
# ============================================================================

#: Exclusive-create attempts before giving up on a destination
MAX_COLLISION_RETRIES: int = 100

#: Consecutive per-file failures before a batch is aborted
MAX_CONSECUTIVE_ERRORS: int = 10

#: Default recursion depth for directory scans
DEFAULT_MAX_SCAN_DEPTH: int = 10

#: Default maximum number of files returned by a scan
DEFAULT_MAX_SCAN_FILES: int = 10000

#: Directory names never descended into
SKIP_DIRECTORIES: frozenset[str] = frozenset(
    {"node_modules", ".git", "__pycache__", ".venv"}
)

#: OS-reserved device names, with or without an extension
RESERVED_NAME_PATTERN: re.Pattern[str] = re.compile(
    r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\..*)?$", re.IGNORECASE
)

# ============================================================================
# Manifests
# ============================================================================

MANIFEST_ID_PATTERN: re.Pattern[str] = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
