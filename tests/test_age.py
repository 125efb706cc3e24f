"""Tests for running and interpreting git blame."""

import os
import shutil
import subprocess
from datetime import datetime, timedelta, timezone

import pytest

from pass_age import age
from pass_age.age import (
    AgeRecord,
    AuthorTimeNotFoundError,
    BlameError,
    GitNotFoundError,
    OutputDecodeError,
    QueryError,
    TimestampParseError,
    blame_command,
    get_password_age,
    parse_blame,
    run_blame,
    strip_suffix,
)

SHA = "8d2c6d1f5e0b4b3a9f7e6d5c4b3a29180f1e2d3c"
PARENT_SHA = "1a2b3c4d5e6f708192a3b4c5d6e7f8091a2b3c4d"
T = 1600000000
NOW = datetime.fromtimestamp(T, tz=timezone.utc) + timedelta(days=400)


def porcelain(author_time=f"author-time {T}", previous=True):
    lines = [
        f"{SHA} 1 1 1",
        "author Jane Doe",
        "author-mail <jane@example.com>",
        author_time,
        "author-tz +0000",
        "committer Jane Doe",
        "committer-mail <jane@example.com>",
        f"committer-time {T}",
        "committer-tz +0000",
        "summary Edit password for Email/work using editor.",
    ]
    if previous:
        lines.append(f"previous {PARENT_SHA} Email/work.gpg")
    lines += ["filename Email/work.gpg", "\thunter2"]
    return "\n".join(line for line in lines if line is not None) + "\n"


class TestParseBlame:
    """Tests for turning porcelain blame output into an AgeRecord."""

    def test_previous_means_history(self):
        """A previous line marks the password as changed since it was added."""
        record = parse_blame(porcelain(), "Email/work.gpg", now=NOW)
        assert record == AgeRecord("Email/work", timedelta(days=400), True)

    def test_no_previous_means_never_modified(self):
        """Without a previous line the password is the one that was added."""
        record = parse_blame(porcelain(previous=False), "Email/work.gpg", now=NOW)
        assert record.has_history is False
        assert record.elapsed == timedelta(days=400)

    def test_default_now_is_current_time(self):
        """Elapsed time is measured against the current UTC time."""
        record = parse_blame(porcelain(previous=False), "Email/work.gpg")
        expected = datetime.now(timezone.utc) - datetime.fromtimestamp(T, tz=timezone.utc)
        assert abs(record.elapsed - expected) < timedelta(seconds=5)

    def test_missing_author_time(self):
        """Output without author-time is reported as such."""
        with pytest.raises(AuthorTimeNotFoundError, match="author-time"):
            parse_blame(porcelain(author_time=None), "Email/work.gpg", now=NOW)

    def test_empty_output(self):
        """An empty blame (empty file) has no author-time."""
        with pytest.raises(AuthorTimeNotFoundError):
            parse_blame("", "Email/work.gpg", now=NOW)

    def test_non_numeric_author_time(self):
        """A malformed author-time line is named in the error."""
        with pytest.raises(TimestampParseError, match="author-time yesterday"):
            parse_blame(porcelain(author_time="author-time yesterday"), "Email/work.gpg", now=NOW)

    def test_author_time_without_value(self):
        """An author-time line with no value is malformed, not missing."""
        with pytest.raises(TimestampParseError):
            parse_blame(porcelain(author_time="author-time"), "Email/work.gpg", now=NOW)

    def test_future_commit_is_negative(self):
        """Clock skew gives a negative age, which is kept as is."""
        now = datetime.fromtimestamp(T, tz=timezone.utc) - timedelta(hours=1)
        record = parse_blame(porcelain(), "Email/work.gpg", now=now)
        assert record.elapsed == timedelta(hours=-1)

    def test_last_author_time_wins(self):
        """With several author-time lines the last one is used."""
        text = porcelain() + f"author-time {T + 3600}\n"
        record = parse_blame(text, "Email/work.gpg", now=NOW)
        assert record.elapsed == timedelta(days=400, hours=-1)

    def test_author_tz_is_not_author_time(self):
        """Only the author-time header carries the timestamp."""
        text = porcelain().replace("author-tz +0000", "author-tz -0500")
        record = parse_blame(text, "Email/work.gpg", now=NOW)
        assert record.elapsed == timedelta(days=400)


class TestStripSuffix:
    """Tests for pass-name derivation."""

    def test_strips_gpg(self):
        assert strip_suffix("Email/work.gpg") == "Email/work"

    def test_keeps_other_dots(self):
        assert strip_suffix("sites/example.com.gpg") == "sites/example.com"

    def test_without_suffix(self):
        assert strip_suffix("notes") == "notes"


class TestRunBlame:
    """Tests for the git blame invocation."""

    def test_command_line(self, tmp_path):
        """Ignore options go before the file separator."""
        command = blame_command(
            "Email/work.gpg",
            ["abc123", "def456"],
            [tmp_path / "ignore-revs"],
        )
        assert command == [
            "git", "blame", "-pL", ",1",
            "--ignore-rev", "abc123",
            "--ignore-rev", "def456",
            "--ignore-revs-file", str(tmp_path / "ignore-revs"),
            "--", "Email/work.gpg",
        ]

    def test_runs_in_store(self, monkeypatch, tmp_path):
        """git runs with the store as its working directory."""
        calls = []

        def fake_run(command, **kwargs):
            calls.append((command, kwargs))
            return subprocess.CompletedProcess(command, 0, stdout=porcelain().encode(), stderr=b"")

        monkeypatch.setattr(age.subprocess, "run", fake_run)

        output = run_blame(tmp_path, "Email/work.gpg")

        assert output == porcelain()
        assert calls[0][1]["cwd"] == tmp_path

    def test_nonzero_exit_uses_stderr(self, monkeypatch, tmp_path):
        """git's own message is the error message."""
        def fake_run(command, **kwargs):
            return subprocess.CompletedProcess(
                command, 128, stdout=b"", stderr=b"fatal: no such path 'x.gpg' in HEAD\n"
            )

        monkeypatch.setattr(age.subprocess, "run", fake_run)

        with pytest.raises(BlameError, match="no such path"):
            run_blame(tmp_path, "x.gpg")

    def test_git_missing(self, monkeypatch, tmp_path):
        """A missing git executable is its own error."""
        def fake_run(command, **kwargs):
            raise FileNotFoundError(2, "No such file or directory", "git")

        monkeypatch.setattr(age.subprocess, "run", fake_run)

        with pytest.raises(GitNotFoundError):
            run_blame(tmp_path, "x.gpg")

    def test_git_not_executable(self, monkeypatch, tmp_path):
        """Other failures to start git are query errors, not crashes."""
        def fake_run(command, **kwargs):
            raise PermissionError(13, "Permission denied", "git")

        monkeypatch.setattr(age.subprocess, "run", fake_run)

        with pytest.raises(QueryError, match="Permission denied"):
            run_blame(tmp_path, "x.gpg")

    def test_invalid_utf8(self, monkeypatch, tmp_path):
        """Output that is not text is rejected."""
        def fake_run(command, **kwargs):
            return subprocess.CompletedProcess(command, 0, stdout=b"author-time \xff\xfe", stderr=b"")

        monkeypatch.setattr(age.subprocess, "run", fake_run)

        with pytest.raises(OutputDecodeError):
            run_blame(tmp_path, "x.gpg")


def git(store, *args, when=None):
    env = dict(os.environ, GIT_CONFIG_GLOBAL=os.devnull, GIT_CONFIG_NOSYSTEM="1")
    if when is not None:
        env["GIT_AUTHOR_DATE"] = env["GIT_COMMITTER_DATE"] = f"@{when} +0000"
    result = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=store, env=env, capture_output=True, text=True, check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def store(tmp_path):
    """A git-backed store with one edited and one untouched password."""
    git(tmp_path, "init", "-q")
    (tmp_path / ".gpg-id").write_text("test@example.com\n")
    git(tmp_path, "add", ".gpg-id")
    git(tmp_path, "commit", "-q", "-m", "Set GPG id", when=T)

    (tmp_path / "Email").mkdir()
    (tmp_path / "Email" / "work.gpg").write_text("correct horse battery staple\n")
    (tmp_path / "bank.gpg").write_text("untouched\n")
    git(tmp_path, "add", ".")
    git(tmp_path, "commit", "-q", "-m", "Add passwords", when=T + 100)

    (tmp_path / "Email" / "work.gpg").write_text("correct horse battery stapler\n")
    git(tmp_path, "commit", "-q", "-am", "Edit password", when=T + 200)
    return tmp_path


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
class TestGitStore:
    """End to end against a real repository."""

    def test_edited_password(self, store):
        record = get_password_age(store, "Email/work.gpg", now=NOW)
        assert record.path == "Email/work"
        assert record.has_history is True
        assert record.elapsed == NOW - datetime.fromtimestamp(T + 200, tz=timezone.utc)

    def test_added_password(self, store):
        record = get_password_age(store, "bank.gpg", now=NOW)
        assert record.path == "bank"
        assert record.has_history is False
        assert record.elapsed == NOW - datetime.fromtimestamp(T + 100, tz=timezone.utc)

    def test_ignore_rev(self, store):
        """Ignoring the edit blames the commit that added the password."""
        edit = git(store, "rev-parse", "HEAD")
        record = get_password_age(store, "Email/work.gpg", ignore_revs=[edit], now=NOW)
        assert record.elapsed == NOW - datetime.fromtimestamp(T + 100, tz=timezone.utc)

    def test_unknown_file(self, store):
        """Blaming a file git doesn't know about fails."""
        with pytest.raises(BlameError):
            get_password_age(store, "missing.gpg", now=NOW)
