"""Core password age functionality: run git blame and interpret its output."""

import logging
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

GPG_SUFFIX = ".gpg"

AUTHOR_TIME_MARKER = "author-time"
PREVIOUS_MARKER = "previous"

_TIMESTAMP_RE = re.compile(r"-?[0-9]+")


class PassAgeError(Exception):
    """Base exception for pass-age errors."""
    pass


class QueryError(PassAgeError):
    """Running git blame for a password failed."""
    pass


class GitNotFoundError(QueryError):
    """The git executable is not available."""
    pass


class BlameError(QueryError):
    """git blame exited with a non-zero status."""
    pass


class OutputDecodeError(QueryError):
    """git blame produced output that is not valid text."""
    pass


class ParseError(PassAgeError):
    """git blame output could not be interpreted."""
    pass


class AuthorTimeNotFoundError(ParseError):
    """No author-time line in the blame output."""
    pass


class TimestampParseError(ParseError):
    """The author-time line does not hold a usable timestamp."""
    pass


class ConfigError(PassAgeError):
    """Invalid configuration, fatal for the whole run."""
    pass


class StoreNotFoundError(ConfigError):
    """Password store directory not found."""
    pass


class GitDirNotFoundError(ConfigError):
    """Password store is not a git repository."""
    pass


@dataclass(frozen=True)
class AgeRecord:
    """How long ago a single password was last changed."""

    path: str
    elapsed: timedelta
    has_history: bool


def strip_suffix(pass_name: str) -> str:
    """Turn a store-relative .gpg file name into a pass-name."""
    name = PurePosixPath(pass_name).as_posix()
    if name.endswith(GPG_SUFFIX):
        return name[: -len(GPG_SUFFIX)]
    return name


def blame_command(
    gpg_file: str,
    ignore_revs: Sequence[str] = (),
    ignore_revs_files: Sequence[Path] = (),
) -> list[str]:
    """Build the git blame command line for the first line of a file."""
    command = ["git", "blame", "-pL", ",1"]

    for rev in ignore_revs:
        command.extend(["--ignore-rev", rev])

    for revs_file in ignore_revs_files:
        command.extend(["--ignore-revs-file", str(revs_file)])

    command.extend(["--", gpg_file])
    return command


def run_blame(
    store_dir: Path,
    gpg_file: str,
    ignore_revs: Sequence[str] = (),
    ignore_revs_files: Sequence[Path] = (),
) -> str:
    """
    Run porcelain git blame on the first line of a password file.

    `gpg_file` is relative to `store_dir`, which is used as the working
    directory of git. Returns git's standard output.
    """
    command = blame_command(gpg_file, ignore_revs, ignore_revs_files)
    logger.debug("Running %s in %s", " ".join(command), store_dir)

    try:
        result = subprocess.run(command, capture_output=True, cwd=store_dir)
    except FileNotFoundError as e:
        raise GitNotFoundError(f"Unable to run git: {e}") from e
    except OSError as e:
        raise QueryError(f"Unable to run git: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise BlameError(stderr or f"git blame exited with status {result.returncode}")

    try:
        return result.stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise OutputDecodeError(f"git blame output is not valid UTF-8: {e}") from e


def parse_author_time(line: str) -> datetime:
    """Extract the UTC timestamp from an `author-time <seconds>` line."""
    fields = line.split()
    token = fields[-1] if len(fields) > 1 else ""

    if not _TIMESTAMP_RE.fullmatch(token):
        raise TimestampParseError(f"Unable to get author-time value from: {line}")

    try:
        return datetime.fromtimestamp(int(token), tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise TimestampParseError(f"Unable to parse timestamp: {token}") from e


def parse_blame(output: str, pass_name: str, now: Optional[datetime] = None) -> AgeRecord:
    """
    Interpret porcelain blame output for a single line.

    The age comes from the `author-time` header. A `previous` header means
    the line was carried over from an earlier commit; without one the
    password is still the one that was added to the store.
    """
    author_time = None
    found_previous = False

    for line in output.splitlines():
        if line.startswith(AUTHOR_TIME_MARKER):
            author_time = parse_author_time(line)
        elif line.startswith(PREVIOUS_MARKER):
            found_previous = True

    if author_time is None:
        raise AuthorTimeNotFoundError("Unable to find the author-time")

    now = now or datetime.now(timezone.utc)
    return AgeRecord(
        path=strip_suffix(pass_name),
        elapsed=now - author_time,
        has_history=found_previous,
    )


def get_password_age(
    store_dir: Path,
    gpg_file: str,
    ignore_revs: Sequence[str] = (),
    ignore_revs_files: Sequence[Path] = (),
    now: Optional[datetime] = None,
) -> AgeRecord:
    """Blame a password file and turn the result into an AgeRecord."""
    output = run_blame(store_dir, gpg_file, ignore_revs, ignore_revs_files)
    return parse_blame(output, gpg_file, now)
