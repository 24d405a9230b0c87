"""Tests for CLI status output."""

import pytest

from protoql.core.progress import is_console_suppressed, pluralize, spinner, status, suppress_console_logs


class TestPluralize:
    """Count wording."""

    @pytest.mark.parametrize(
        ("count", "singular", "plural", "expected"),
        [
            (1, "file", None, "1 file"),
            (0, "file", None, "0 files"),
            (3, "diagnostic", None, "3 diagnostics"),
            (2, "entry", "entries", "2 entries"),
        ],
    )
    def test_pluralize(self, count: int, singular: str, plural: str | None, expected: str) -> None:
        """Singular only for exactly one."""
        assert pluralize(count, singular, plural) == expected


class TestStatus:
    """Styled messages on stderr."""

    def test_success_prefix(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Success messages get a check mark."""
        status("Loaded 2 files", style="success")

        err = capsys.readouterr().err
        assert "✓" in err
        assert "Loaded 2 files" in err

    def test_indent(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Indented lines start with spaces."""
        status("- detail", indent=2, style="none")

        assert capsys.readouterr().err.startswith("  - detail")


class TestSuppression:
    """Console log suppression."""

    def test_suppress_is_scoped(self) -> None:
        """The flag is only set inside the block."""
        assert not is_console_suppressed()
        with suppress_console_logs():
            assert is_console_suppressed()
        assert not is_console_suppressed()

    def test_spinner_without_tty_runs_body(self) -> None:
        """Non-interactive runs just execute the block."""
        ran = []
        with spinner("Compiling"):
            ran.append(True)

        assert ran == [True]
