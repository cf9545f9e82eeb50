"""Tests for extension-based categorization."""

import pytest

from sortguard.core.categorizer import Categorizer
from sortguard.core.organizer import is_reserved_name


@pytest.mark.parametrize(
    ("filename", "category"),
    [
        ("report.pdf", "Documents"),
        ("photo.JPG", "Images"),
        ("movie.mkv", "Videos"),
        ("song.flac", "Audio"),
        ("backup.tar", "Archives"),
        ("budget.xlsx", "Spreadsheets"),
        ("main.py", "Code"),
        ("setup.exe", "Executables"),
        ("deploy.sh", "Scripts"),
        ("server.log", "Logs"),
        ("mystery.qqq", "Others"),
        ("Makefile", "Others"),
    ],
)
def test_category_for(filename: str, category: str) -> None:
    assert Categorizer().category_for(filename) == category


def test_custom_categories() -> None:
    categorizer = Categorizer({"Raw": (".CR2", ".nef")})

    assert categorizer.category_for("IMG_001.cr2") == "Raw"
    assert categorizer.category_for("photo.jpg") == "Others"


@pytest.mark.parametrize("name", ["CON", "con.txt", "LPT1.log", "nul", "COM9.dat"])
def test_reserved_names(name: str) -> None:
    assert is_reserved_name(name)


@pytest.mark.parametrize("name", ["console.txt", "COM10", "photo.jpg", "CONx"])
def test_ordinary_names(name: str) -> None:
    assert not is_reserved_name(name)
