"""Locating the password store and the .gpg files in it."""

import logging
from pathlib import Path
from typing import Iterator, Optional, Sequence

from .age import GPG_SUFFIX, GitDirNotFoundError, StoreNotFoundError

logger = logging.getLogger(__name__)

ALL_PASSWORDS = f"**/*{GPG_SUFFIX}"


def check_store(store_dir: Path) -> None:
    """Make sure the store exists and is tracked by git."""
    if not store_dir.is_dir():
        raise StoreNotFoundError(f"Unable to find the password store at {store_dir}")

    git_dir = store_dir / ".git"
    if not git_dir.exists():
        raise GitDirNotFoundError(f"Unable to find {git_dir}")


def _relative_target(store_dir: Path, target: str) -> Optional[str]:
    path = Path(target).expanduser()
    if not path.is_absolute():
        return target
    try:
        return path.resolve().relative_to(store_dir.resolve()).as_posix()
    except ValueError:
        return None


def search_pattern(store_dir: Path, target: str) -> Optional[str]:
    """
    Turn a pass-name into a glob pattern relative to the store.

    Directories match every password beneath them; anything else is
    treated as a pass-name (glob characters allowed) and gets the .gpg
    suffix appended. Returns None for paths outside the store.
    """
    relative = _relative_target(store_dir, target)
    if relative is None:
        return None

    relative = relative.rstrip("/")
    if not relative or relative == ".":
        return ALL_PASSWORDS

    if (store_dir / relative).is_dir():
        return f"{relative}/{ALL_PASSWORDS}"
    return f"{relative}{GPG_SUFFIX}"


def find_passwords(store_dir: Path, pattern: str) -> list[str]:
    """Store-relative .gpg files matching `pattern`, sorted by name."""
    logger.info("Searching %s", pattern)

    try:
        matches = sorted(store_dir.glob(pattern))
    except (ValueError, NotImplementedError) as e:
        logger.warning("Invalid search pattern %s: %s", pattern, e)
        return []

    files = []
    for match in matches:
        if not match.is_file():
            continue
        relative = match.relative_to(store_dir)
        if ".." in relative.parts:
            continue
        files.append(relative.as_posix())
    return files


def discover(
    store_dir: Path, targets: Sequence[str]
) -> Iterator[tuple[str, bool, list[str]]]:
    """
    Yield `(target, matched, files)` for every target, in the order given.

    No targets means the whole store. `matched` is False when a target
    is not in the store. A file matched by more than one target is only
    listed the first time.
    """
    seen = set()

    for target in targets or [""]:
        pattern = search_pattern(store_dir, target)
        files = find_passwords(store_dir, pattern) if pattern else []

        new_files = [f for f in files if f not in seen]
        seen.update(new_files)
        yield target, bool(files), new_files
