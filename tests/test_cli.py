"""Tests for git_brief CLI module."""
import os
import re
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from colorama import Fore

from git_brief.cli import LogConfig, display_width, main, parse_args, render_table
from git_brief.diffstat import DiffStat
from git_brief.log import format_row
from git_brief.repository import InvalidRevisionError, NotAGitRepositoryError

NOW = datetime(2024, 1, 10, tzinfo=timezone.utc)
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


@pytest.fixture
def rows(make_commit):
    """Provide two formatted rows, one with a stat and refs."""
    head = make_commit("abcdef1" + "0" * 33, message="Add parser\n", author="Jane Doe",
                       authored_at=NOW - timedelta(days=3))
    base = make_commit("1234567" + "0" * 33, message="Initial commit\n", author="Al",
                       authored_at=NOW - timedelta(weeks=3))
    return [
        format_row(head, DiffStat(3, 10, 2), ["feature"], now=NOW),
        format_row(base, None, ["main", "v1.0"], now=NOW),
    ]


class TestParseArgs:
    """Tests for parse_args function."""

    def test_defaults(self):
        """Test defaults when no flags are given."""
        config = parse_args([])

        assert config.repo_path == os.getcwd()
        assert config.base == ""
        assert config.num_commits == 30
        assert config.exclude == ()
        assert config.diff_strategy == "tree"

    def test_short_forms(self):
        config = parse_args(["-r", "/src/repo", "-b", "develop", "-n", "5", "-e", "*.lock"])

        assert config == LogConfig(
            repo_path="/src/repo", base="develop", num_commits=5, exclude=("*.lock",),
            color=config.color,
        )

    def test_long_form_wins(self):
        """Test the long form is preferred when both are given."""
        config = parse_args([
            "--base", "release", "-b", "develop",
            "-n", "5", "--num-commits", "12",
            "--repo-path", "/long", "-r", "/short",
        ])

        assert config.base == "release"
        assert config.num_commits == 12
        assert config.repo_path == "/long"

    def test_exclude_repeatable(self):
        """Test every exclusion is kept, long-form values first."""
        config = parse_args(["-e", "a", "--exclude", "b", "-e", "c", "--exclude", "d"])
        assert config.exclude == ("b", "d", "a", "c")

    def test_no_color_and_strategy(self):
        config = parse_args(["--no-color", "--diff-strategy", "shortstat", "-v"])

        assert config.color is False
        assert config.diff_strategy == "shortstat"
        assert config.verbose is True

    def test_unknown_strategy(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--diff-strategy", "magic"])
        assert exc_info.value.code == 2


class TestRenderTable:
    """Tests for render_table function."""

    def test_plain_columns(self, rows):
        """Test columns are padded to the widest cell with no borders."""
        lines = render_table(rows, color=False)

        assert lines == [
            "abcdef1  3 days ago   Jane Doe  3(~),10(+),2(-)  (feature) Add parser",
            "1234567  3 weeks ago  Al                         (main)(v1.0) Initial commit",
        ]

    def test_colors_do_not_change_layout(self, rows):
        """Test styled output strips back to the plain layout."""
        colored = render_table(rows, color=True)

        assert Fore.YELLOW in colored[0]
        assert Fore.RED + "(main)" in colored[1]
        assert [ANSI_RE.sub("", line) for line in colored] == render_table(rows, color=False)

    def test_no_rows(self):
        assert render_table([]) == []

    def test_wide_characters_align(self, make_commit):
        """Test double-width names pad by display columns, not characters."""
        commits = [
            make_commit("abcdef1" + "0" * 33, message="Add parser\n", author="山田太郎",
                        authored_at=NOW - timedelta(days=3)),
            make_commit("1234567" + "0" * 33, message="Initial commit\n", author="Al",
                        authored_at=NOW - timedelta(days=3)),
        ]
        lines = render_table([format_row(c, DiffStat(1, 1, 0), now=NOW) for c in commits])

        assert lines == [
            "abcdef1  3 days ago  山田太郎  1(~),1(+)  Add parser",
            "1234567  3 days ago  Al        1(~),1(+)  Initial commit",
        ]


class TestDisplayWidth:
    """Tests for display_width function."""

    @pytest.mark.parametrize(
        "text, width",
        [
            ("Jane Doe", 8),
            ("山田太郎", 8),
            ("Jose\u0301", 4),
            ("José", 4),
            ("", 0),
        ],
    )
    def test_columns(self, text, width):
        assert display_width(text) == width


class TestMain:
    """Tests for main CLI function."""

    @patch("git_brief.cli.condensed_log")
    def test_prints_rows(self, mock_log, rows, capsys):
        """Test one line per commit, most recent first."""
        mock_log.return_value = rows

        main(["--no-color", "-b", "main", "-n", "2", "-e", "*.lock"])

        out = capsys.readouterr().out.splitlines()
        assert len(out) == 2
        assert out[0].startswith("abcdef1")
        assert out[1].endswith("(main)(v1.0) Initial commit")
        kwargs = mock_log.call_args.kwargs
        assert kwargs["base"] == "main"
        assert kwargs["num_commits"] == 2
        assert kwargs["exclude"] == ("*.lock",)
        assert kwargs["diff_strategy"] == "tree"

    @patch("git_brief.cli.condensed_log")
    def test_invalid_base(self, mock_log, capsys):
        """Test an unresolvable base exits non-zero with no table."""
        mock_log.side_effect = InvalidRevisionError("The provided base 'doesnotexist' is invalid")

        with pytest.raises(SystemExit) as exc_info:
            main(["--base", "doesnotexist"])

        assert exc_info.value.code == 1
        captured = capsys.readouterr()
        assert "Error" in captured.err
        assert "doesnotexist" in captured.err
        assert captured.out == ""

    @patch("git_brief.cli.condensed_log")
    def test_not_a_repository(self, mock_log, capsys):
        mock_log.side_effect = NotAGitRepositoryError("/tmp is not a git repository.")

        with pytest.raises(SystemExit) as exc_info:
            main(["-r", "/tmp"])

        assert exc_info.value.code == 1
        assert "not a git repository" in capsys.readouterr().err

    @patch("git_brief.cli.condensed_log")
    def test_keyboard_interrupt(self, mock_log, capsys):
        """Test handling of KeyboardInterrupt."""
        mock_log.side_effect = KeyboardInterrupt()

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 130
        assert "Interrupted" in capsys.readouterr().err
