"""Tests for version comparison."""

import pytest

from upkg.utils.version import compare_versions


@pytest.mark.parametrize(
    ("left", "right", "expected"),
    [
        ("1.0.0", "1.0.0", 0),
        ("v1.2.0", "1.2.0", 0),
        ("1.10.0", "1.9.0", 1),
        ("2.0", "2.0.1", -1),
        ("1.0.0rc1", "1.0.0", -1),
    ],
)
def test_compare_versions(left: str, right: str, expected: int) -> None:
    """Test PEP 440 ordering and the v prefix."""
    assert compare_versions(left, right) == expected
