"""Tests for desktop entry generation and parsing."""

from pathlib import Path

import pytest

from tests.conftest import FakeRunner
from upkg.constants import WAYLAND_ENV_VARS
from upkg.infrastructure.commands import CommandResult
from upkg.infrastructure.desktop_entry import (
    DesktopEntry,
    build_exec_command,
    inject_wayland_env,
    parse_desktop_entry,
    quote_exec_argument,
    render_desktop_entry,
    split_list_field,
    validate_desktop_file,
    write_desktop_file,
)


@pytest.mark.parametrize(
    ("arg", "expected"),
    [
        ("/home/u/.local/bin/app", "/home/u/.local/bin/app"),
        ("/home/u/My Apps/app", '"/home/u/My Apps/app"'),
        ("/opt/$HOME/app", '"/opt/\\$HOME/app"'),
        ('say"hi"', '"say\\"hi\\""'),
        ("100%", "100%%"),
    ],
)
def test_quote_exec_argument(arg: str, expected: str) -> None:
    """Test reserved characters force quoting and escaping."""
    assert quote_exec_argument(arg) == expected


def test_build_exec_command_keeps_field_codes() -> None:
    """Test only the executable is quoted."""
    command = build_exec_command(Path("/a b/app"), "--no-sandbox", "%U")
    assert command == '"/a b/app" --no-sandbox %U'


def test_inject_wayland_env() -> None:
    """Test env assignments prefix the Exec command."""
    command = inject_wayland_env("/bin/app %U", list(WAYLAND_ENV_VARS))

    assert command.startswith("env GDK_BACKEND=wayland,x11 ")
    assert "QT_QPA_PLATFORM=wayland:xcb" in command
    assert command.endswith(" /bin/app %U")
    assert inject_wayland_env("/bin/app", []) == "/bin/app"


def test_inject_env_quotes_values() -> None:
    """Test values with spaces are quoted."""
    command = inject_wayland_env("/bin/app", ["FOO=a b"])
    assert command == 'env FOO="a b" /bin/app'


def test_render_desktop_entry() -> None:
    """Test the generated entry carries the required keys."""
    text = render_desktop_entry(
        DesktopEntry(
            name="My\nApp",
            exec_command="/bin/app %U",
            icon="my-app",
            comment="Does things",
            categories=["Development", "IDE"],
            startup_wm_class="MyApp",
        )
    )
    lines = text.splitlines()

    assert lines[0] == "[Desktop Entry]"
    assert "Type=Application" in lines
    assert "Name=My App" in lines
    assert "Exec=/bin/app %U" in lines
    assert "Icon=my-app" in lines
    assert "Comment=Does things" in lines
    assert "Categories=Development;IDE;" in lines
    assert "StartupWMClass=MyApp" in lines
    assert "Terminal=false" in lines


def test_render_defaults_categories() -> None:
    """Test entries without categories fall back to Utility."""
    text = render_desktop_entry(
        DesktopEntry(name="X", exec_command="x", icon="x", categories=[])
    )
    assert "Categories=Utility;" in text.splitlines()
    assert "Comment=" not in text


def test_write_desktop_file(tmp_path: Path) -> None:
    """Test the entry path is derived from the install id."""
    applications = tmp_path / "applications"
    entry = DesktopEntry(name="App", exec_command="/bin/app", icon="app")

    path = write_desktop_file(entry, applications, "app")

    assert path == applications / "app.desktop"
    assert parse_desktop_entry(path)["Exec"] == "/bin/app"
    assert path.stat().st_mode & 0o777 == 0o755


class TestParseDesktopEntry:
    """Test cases for reading bundled entries."""

    def test_reads_main_group_only(self, tmp_path: Path) -> None:
        """Test action groups and comments are ignored."""
        path = tmp_path / "app.desktop"
        path.write_text(
            "# comment\n"
            "[Desktop Entry]\n"
            "Name=App\n"
            "Name[de]=Anwendung\n"
            "Exec=app %F\n"
            "Categories=Graphics;Viewer;\n"
            "[Desktop Action new]\n"
            "Name=New Window\n"
        )

        fields = parse_desktop_entry(path)

        assert fields["Name"] == "App"
        assert fields["Name[de]"] == "Anwendung"
        assert split_list_field(fields["Categories"]) == ["Graphics", "Viewer"]

    def test_missing_file_yields_empty(self, tmp_path: Path) -> None:
        """Test unreadable entries degrade to no metadata."""
        assert parse_desktop_entry(tmp_path / "missing.desktop") == {}

    def test_oversized_file_ignored(self, tmp_path: Path) -> None:
        """Test very large bundled entries are skipped."""
        path = tmp_path / "big.desktop"
        path.write_text("[Desktop Entry]\nName=x\n" + "#" * 300_000)
        assert parse_desktop_entry(path) == {}

    def test_split_list_field_empty(self) -> None:
        """Test None and blanks give an empty list."""
        assert split_list_field(None) == []
        assert split_list_field(" ; ;") == []


class TestValidateDesktopFile:
    """Test cases for the optional validator call."""

    @pytest.mark.asyncio
    async def test_skipped_without_tool(self, tmp_path: Path) -> None:
        """Test a missing validator is not an error."""
        runner = FakeRunner()
        assert await validate_desktop_file(tmp_path / "a.desktop", runner)
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_rejection_is_reported(self, tmp_path: Path, caplog) -> None:
        """Test a failed validation logs a warning and returns False."""
        runner = FakeRunner({"desktop-file-validate"})
        runner.on(
            "desktop-file-validate",
            lambda *a, cwd=None: CommandResult(1, "", "error: bad key"),
        )

        assert not await validate_desktop_file(tmp_path / "a.desktop", runner)
        assert "bad key" in caplog.text
