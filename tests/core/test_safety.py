"""Tests for extraction path and symlink containment checks."""

from pathlib import Path

import pytest

from upkg.core.safety import (
    ensure_real_path_within,
    is_path_within_directory,
    rebase_link_target,
    validate_extract_path,
    validate_path,
    validate_symlink,
    validate_tree,
)
from upkg.exceptions import SafetyViolationError


class TestValidateExtractPath:
    """Test cases for validate_extract_path."""

    def test_rejects_parent_traversal(self) -> None:
        """Test ../ segments are reported as path traversal."""
        with pytest.raises(SafetyViolationError, match="path traversal"):
            validate_extract_path("/dest", "../../etc/passwd")

    def test_rejects_traversal_hidden_after_normalization(self) -> None:
        """Test a path that climbs out after cleaning is rejected."""
        with pytest.raises(SafetyViolationError, match="path traversal"):
            validate_extract_path("/dest", "app/../../etc/passwd")

    def test_rejects_absolute_path(self) -> None:
        """Test absolute entry names are reported as absolute paths."""
        with pytest.raises(SafetyViolationError, match="absolute path"):
            validate_extract_path("/dest", "/etc/passwd")

    def test_accepts_nested_path(self) -> None:
        """Test a normal entry resolves under the destination."""
        assert validate_extract_path("/dest", "app/bin/file") == Path(
            "/dest/app/bin/file"
        )

    def test_accepts_dot_prefixed_and_inner_dotdot(self) -> None:
        """Test entries that normalize to a safe path are accepted."""
        assert validate_extract_path("/dest", "./app/x/../bin") == Path(
            "/dest/app/bin"
        )

    def test_accepts_destination_root(self) -> None:
        """Test the ./ entry of tarballs maps to the root itself."""
        assert validate_extract_path("/dest", "./") == Path("/dest")

    def test_prefix_sibling_is_not_contained(self, tmp_path: Path) -> None:
        """Test /dest-evil is not considered inside /dest."""
        assert not is_path_within_directory(tmp_path / "dest", tmp_path / "dest-evil")
        assert is_path_within_directory(tmp_path / "dest", tmp_path / "dest" / "a")


class TestValidateSymlink:
    """Test cases for validate_symlink."""

    def test_rejects_escaping_target(self) -> None:
        """Test a relative target climbing out of the root is rejected."""
        with pytest.raises(SafetyViolationError, match="escapes"):
            validate_symlink("/dest", "/dest/app/link", "../../../etc/shadow")

    def test_accepts_contained_target(self) -> None:
        """Test a target inside the root is accepted."""
        validate_symlink("/dest", "/dest/app/link", "bin/file.txt")

    def test_rejects_absolute_target_outside(self) -> None:
        """Test absolute targets are taken as is."""
        with pytest.raises(SafetyViolationError):
            validate_symlink("/dest", "/dest/app/link", "/etc/shadow")

    def test_rebase_turns_absolute_target_relative(self) -> None:
        """Test system package links are rebased onto the root."""
        target = rebase_link_target("/dest", "/dest/usr/bin/app", "/opt/app/app")
        assert target == "../../opt/app/app"
        validate_symlink("/dest", "/dest/usr/bin/app", target)

    def test_rebase_keeps_relative_target(self) -> None:
        """Test relative targets are not rewritten."""
        assert rebase_link_target("/dest", "/dest/a/link", "../b") == "../b"


class TestValidatePath:
    """Test cases for the baseline path sanity checks."""

    def test_rejects_null_byte(self) -> None:
        """Test embedded NUL bytes are rejected."""
        with pytest.raises(SafetyViolationError, match="null"):
            validate_path("app\x00/bin")

    def test_rejects_overlong_path(self) -> None:
        """Test paths beyond 4096 bytes are rejected."""
        with pytest.raises(SafetyViolationError, match="too long"):
            validate_path("a" * 4097)

    def test_accepts_limit_length(self) -> None:
        """Test exactly 4096 bytes is allowed."""
        validate_path("a" * 4096)


def test_ensure_real_path_within_detects_symlinked_parent(tmp_path: Path) -> None:
    """Test an earlier symlink cannot redirect later writes."""
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    (root / "escape").symlink_to(outside)

    with pytest.raises(SafetyViolationError):
        ensure_real_path_within(root, root / "escape" / "file")
    ensure_real_path_within(root, root / "inside" / "file")


def test_validate_tree_counts_entries(tmp_path: Path) -> None:
    """Test a clean tree is walked completely."""
    (tmp_path / "usr" / "bin").mkdir(parents=True)
    (tmp_path / "usr" / "bin" / "app").write_text("x")
    (tmp_path / "app").symlink_to("usr/bin/app")

    assert validate_tree(tmp_path) == 4


def test_validate_tree_rejects_escaping_symlink(tmp_path: Path) -> None:
    """Test an unpacked tree with an outward link is rejected."""
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "evil").symlink_to("../../../etc/shadow")

    with pytest.raises(SafetyViolationError):
        validate_tree(tmp_path)
