"""
End-to-end CLI tests using subprocess.

Each test runs `python -m kura` in a scratch HOME with commands on stdin,
the way a script would drive it. Nothing here needs a running server: the
connection is only opened by commands that reach the database, and those
point at a closed port with a short timeout.

Run with: pytest tests/test_cli_e2e.py -v
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

from kura.history import History

ROOT = Path(__file__).resolve().parent.parent
UNREACHABLE = "mongodb://127.0.0.1:1/?serverSelectionTimeoutMS=200&connectTimeoutMS=200"


def kura(*args, home, stdin=""):
    """Run kura CLI and return (returncode, stdout, stderr)."""
    env = dict(os.environ)
    env["HOME"] = str(home)
    env["PYTHONPATH"] = str(ROOT) + os.pathsep + env.get("PYTHONPATH", "")
    result = subprocess.run(
        [sys.executable, "-m", "kura", *args],
        cwd=home,
        env=env,
        input=stdin,
        capture_output=True,
        text=True,
        timeout=60,
    )
    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def home(tmp_path):
    """A HOME whose config points at a server that is not there."""
    (tmp_path / ".kura").write_text(UNREACHABLE + "\n")
    return tmp_path


# ── Start-up ────────────────────────────────────────────────────────────────


class TestStartup:
    def test_version(self, home):
        rc, out, err = kura("--version", home=home)
        assert rc == 0
        assert "kura 0.1.0" in out

    def test_usage(self, home):
        rc, out, err = kura("--help", home=home)
        assert rc == 0
        assert "aggregate <pipeline>" in out

    def test_pretty_and_single_line_exclusive(self, home):
        rc, out, err = kura("-p", "-s", home=home)
        assert rc == 2

    def test_empty_input(self, home):
        rc, out, err = kura(home=home)
        assert rc == 0
        assert out == ""

    def test_no_config_uses_default(self, tmp_path):
        rc, out, err = kura(home=tmp_path, stdin="help\n")
        assert rc == 0
        assert "find" in out

    def test_config_url_too_long(self, tmp_path):
        (tmp_path / ".kura").write_text("m" * 201 + "\n")
        rc, out, err = kura(home=tmp_path, stdin="help\n")
        assert rc == 1
        assert "kura: can't start" in err

    def test_empty_config(self, tmp_path):
        (tmp_path / ".kura").write_text("")
        rc, out, err = kura(home=tmp_path)
        assert rc == 1
        assert "can't start" in err

    def test_start_path(self, home):
        rc, out, err = kura("/shop/orders", home=home, stdin="insert\n")
        assert rc == 0
        assert "no database selected" not in err
        assert "illegal document" in err

    def test_start_path_too_long(self, home):
        rc, out, err = kura("/" + "x" * 300, home=home)
        assert rc == 1
        assert "illegal path spec" in err


# ── Commands ────────────────────────────────────────────────────────────────


class TestCommands:
    def test_help(self, home):
        rc, out, err = kura(home=home, stdin="help\n")
        assert out.split() == [
            "ls", "cd", "count", "find", "insert", "update", "upsert", "remove", "aggregate", "help",
        ]

    def test_help_command(self, home):
        rc, out, err = kura(home=home, stdin="help upd\n")
        assert "COMMAND: update" in out

    def test_unknown(self, home):
        rc, out, err = kura(home=home, stdin="frobnicate\n")
        assert rc == 0
        assert err == "kura: unknown command\n"

    def test_ambiguous(self, home):
        rc, out, err = kura(home=home, stdin="c\n")
        assert out == "cd\ncount\n"

    def test_needs_database(self, home):
        rc, out, err = kura(home=home, stdin="find\n")
        assert "no database selected" in err

    def test_needs_collection(self, home):
        rc, out, err = kura(home=home, stdin="cd /shop\nfind\n")
        assert "no collection selected" in err

    def test_cd_arity(self, home):
        rc, out, err = kura(home=home, stdin="cd\ncd a b\n")
        assert err.count("illegal syntax") == 2

    def test_errors_do_not_stop_the_session(self, home):
        rc, out, err = kura(home=home, stdin="frob\nfind\nhelp\n")
        assert rc == 0
        assert "unknown command" in err
        assert "no database selected" in err
        assert "help" in out.split()

    def test_unreachable_server(self, home):
        rc, out, err = kura(home=home, stdin="ls\nhelp\n")
        assert rc == 0
        assert "execution failed" in err
        assert "help" in out.split()

    def test_line_too_long(self, home):
        rc, out, err = kura(home=home, stdin="find " + "x" * 2000 + "\n")
        assert "line too long" in err

    def test_verbose_logs_to_stderr(self, home):
        rc, out, err = kura("-v", home=home, stdin="cd /shop\n")
        assert "DEBUG" in err


# ── History ─────────────────────────────────────────────────────────────────


class TestHistory:
    def test_piped_lines_not_recorded(self, home):
        rc, out, err = kura(home=home, stdin="help\ncd /shop\n")
        assert rc == 0
        h = History(str(home / ".kura_history"))
        try:
            assert h.lines() == []
        finally:
            h.close()
