"""Tests for name derivation helpers."""

import pytest

from upkg.utils.naming import (
    clean_app_name,
    extract_version_from_filename,
    format_display_name,
    generate_name_variants,
    normalize_filename,
    strip_package_extension,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("My Cool_App!", "my-cool-app"),
        ("CustomApp", "customapp"),
        ("  spaced  out ", "spaced-out"),
        ("a--b__c", "a-b-c"),
        ("-leading-", "leading"),
        ("Ünïcode App", "ncode-app"),
        ("version1.2", "version1.2"),
    ],
)
def test_normalize_filename(raw: str, expected: str) -> None:
    """Test names are lowercased and reduced to [a-z0-9._-]."""
    assert normalize_filename(raw) == expected


def test_normalize_filename_is_deterministic() -> None:
    """Test the same input always yields the same identifier."""
    assert normalize_filename("Some App") == normalize_filename("Some App")


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("app-1.0.tar.gz", "app-1.0"),
        ("Tool.AppImage", "Tool"),
        ("pkg_1.0_amd64.DEB", "pkg_1.0_amd64"),
        ("archive.tgz", "archive"),
        ("binary", "binary"),
    ],
)
def test_strip_package_extension(filename: str, expected: str) -> None:
    """Test the longest known extension is removed case-insensitively."""
    assert strip_package_extension(filename) == expected


@pytest.mark.parametrize(
    ("base", "expected"),
    [
        ("Obsidian-1.5.3-x86_64", "Obsidian"),
        ("app-v2.0-linux-amd64", "app"),
        ("tool-beta2", "tool"),
        ("single", "single"),
        ("1.0", "1.0"),
    ],
)
def test_clean_app_name(base: str, expected: str) -> None:
    """Test trailing version, arch and platform tokens are removed."""
    assert clean_app_name(base) == expected


def test_generate_name_variants() -> None:
    """Test variants go from most to least specific without duplicates."""
    variants = generate_name_variants("My-App-1.2-linux")

    assert variants[0] == "my-app-1.2-linux"
    assert "my-app" in variants
    assert "myapp" in variants
    assert len(variants) == len(set(variants))
    assert generate_name_variants("--") == []


@pytest.mark.parametrize(
    ("normalized", "expected"),
    [
        ("firefox-esr", "Firefox ESR"),
        ("my-cool-app", "My Cool App"),
        ("vscode", "Vscode"),
        ("gui_tool", "GUI Tool"),
    ],
)
def test_format_display_name(normalized: str, expected: str) -> None:
    """Test title casing keeps known acronyms uppercase."""
    assert format_display_name(normalized) == expected


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("app-v2.4.1-x86_64.AppImage", "2.4.1"),
        ("tool_1.0.3_amd64.deb", "1.0.3"),
        ("thing-v7.tar.gz", "7"),
        ("noversion.AppImage", None),
    ],
)
def test_extract_version_from_filename(filename: str, expected: str | None) -> None:
    """Test embedded version numbers are found."""
    assert extract_version_from_filename(filename) == expected
