"""CLI for pass-age - how old are the passwords in your pass store?"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from . import age
from .config import (
    RunConfiguration,
    SortBy,
    StateFilter,
    get_store_dir,
    load_config_file,
    parse_duration,
)
from .report import build_report
from .store import check_store, discover

console = Console(soft_wrap=True, emoji=False)
err_console = Console(stderr=True, soft_wrap=True, emoji=False)

logger = logging.getLogger(__name__)


def setup_logging(verbosity: int) -> None:
    """Send log records to stderr through rich."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(console=err_console, show_time=False, show_path=False)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pass-age",
        description="Show how long ago the passwords in your pass store were changed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pass-age                              # Every password, sorted by name
  pass-age -s last-modified Email/      # Passwords under Email/, newest first
  pass-age --only-unmodified --since=365days Financial/
                                        # Never changed, added over a year ago

Environment:
  PASSWORD_STORE_DIR    Password store location (default: ~/.password-store)
  PASS_AGE_CONFIG       Config file (default: ~/.config/pass-age/config.yaml)
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--store-dir", type=Path, help="Password store (overrides PASSWORD_STORE_DIR)")
    parser.add_argument("--config", type=Path, help="Config file (overrides PASS_AGE_CONFIG)")
    parser.add_argument("--ignore-rev", action="append", default=[], metavar="REV",
                        help="Ignore changes made by the revision when assigning blame (can repeat)")
    parser.add_argument("--ignore-revs-file", action="append", default=[], type=Path, metavar="FILE",
                        help="Ignore revisions listed in FILE, in fsck.skipList format (can repeat)")

    state = parser.add_mutually_exclusive_group()
    state.add_argument("--only-unmodified", action="store_true",
                       help="Only show passwords that have not been modified since they were added")
    state.add_argument("--only-modified", action="store_true",
                       help="Only show passwords that have been modified")

    parser.add_argument("--since", metavar="DURATION",
                        help="With --only-unmodified: added longer ago than DURATION. "
                             "With --only-modified: modified within DURATION (e.g. 30days, 1year)")
    parser.add_argument("-s", "--sort-by", choices=[s.value for s in SortBy], default=None,
                        help="Sort order (default: name)")
    parser.add_argument("-r", "--reverse", action="store_true", default=None, help="Reverse the sort order")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More output (repeat for debug)")
    parser.add_argument("pass_names", nargs="*", metavar="pass-names",
                        help="Passwords or folders to report on (default: the whole store)")
    return parser


def build_configuration(args: argparse.Namespace) -> RunConfiguration:
    """Merge command line arguments over the config file."""
    settings = load_config_file(args.config.expanduser() if args.config else None)

    store_dir = (args.store_dir or get_store_dir()).expanduser().resolve()

    if args.only_unmodified:
        state_filter = StateFilter.UNMODIFIED
    elif args.only_modified:
        state_filter = StateFilter.MODIFIED
    else:
        state_filter = StateFilter.NONE

    since = parse_duration(args.since) if args.since is not None else None
    if since is not None and state_filter is StateFilter.NONE:
        logger.debug("--since has no effect without --only-unmodified or --only-modified")

    ignore_revs_files = settings.get("ignore_revs_files", []) + [
        p.expanduser() for p in args.ignore_revs_file
    ]
    for revs_file in ignore_revs_files:
        if not revs_file.is_file():
            raise age.ConfigError(f"Ignore revs file not found: {revs_file}")

    return RunConfiguration(
        store_dir=store_dir,
        ignore_revs=settings.get("ignore_revs", []) + args.ignore_rev,
        ignore_revs_files=[p.resolve() for p in ignore_revs_files],
        since=since,
        state_filter=state_filter,
        sort_by=SortBy(args.sort_by) if args.sort_by else settings.get("sort_by", SortBy.NAME),
        reverse=args.reverse if args.reverse is not None else settings.get("reverse", False),
        targets=list(args.pass_names),
    )


def collect_ages(config: RunConfiguration) -> list[age.AgeRecord]:
    """Blame every matching password, reporting and skipping failures."""
    records = []

    for target, matched, files in discover(config.store_dir, config.targets):
        if not matched:
            if target:
                message = f"{escape(target)} is not in the password store."
            else:
                message = f"No passwords found in {escape(str(config.store_dir))}"
            err_console.print(f"[yellow]Warning:[/yellow] {message}")
            continue

        for gpg_file in files:
            try:
                records.append(age.get_password_age(
                    config.store_dir,
                    gpg_file,
                    config.ignore_revs,
                    config.ignore_revs_files,
                ))
            except age.PassAgeError as e:
                logger.info("Skipping %s", gpg_file)
                err_console.print(
                    f"[red]Error:[/red] {escape(age.strip_suffix(gpg_file))}: {escape(str(e))}"
                )

    return records


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        config = build_configuration(args)
        check_store(config.store_dir)

    except age.GitDirNotFoundError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        err_console.print("[dim]Please make sure you've run 'pass git init'![/dim]")
        return 1
    except age.ConfigError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1

    records = collect_ages(config)

    for line in build_report(records, config):
        console.print(escape(line), highlight=False)

    return 0


if __name__ == "__main__":
    sys.exit(main())
