"""Command-line entry point for contact-migrate.

Subcommands:

- ``export`` -- read every contact from the source directory into the
  intermediate record file.
- ``import`` -- reconcile the record file against the destination
  directory (``--dry-run`` makes no changes).
- ``init-config`` -- write a starter config file.

Exit codes: 0 when the run completed (per-record failures are listed in
the summary), 1 on a critical error, 130 when interrupted.
"""

import argparse
import json
import logging
import sys

from . import __version__
from .config_loader import ensure_config
from .config_schema import UnifiedConfig
from .core.session import (
    directory_session,
    load_unified_config,
    resolve_directory_config,
)
from .errors import MigrationError, RunAbortedError
from .file_handler import validate_file_path, validate_output_path
from .logger import setup_logging
from .migrate.engine import ReconciliationEngine
from .migrate.exporter import Exporter
from .migrate.record_set import dump_record_set, load_record_set
from .migrate.reporter import (
    format_dry_run_preview,
    format_export_summary,
    format_run_summary,
    report_to_json,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CRITICAL = 1
EXIT_INTERRUPTED = 130


def _add_directory_args(parser: argparse.ArgumentParser, flag: str, role: str) -> None:
    """Connection override options for one directory."""
    parser.add_argument(
        f"--{flag}-url",
        help=f"Override {role} directory URL (ldap:// or ldaps://)",
    )
    parser.add_argument(
        f"--{flag}-username",
        help=f"Override {role} bind user",
    )
    parser.add_argument(
        f"--{flag}-password",
        help=f"Override {role} bind password"
        " (visible in process list -- prefer the environment variable)",
    )
    parser.add_argument(
        f"--{flag}-base-dn",
        help=f"Override {role} contact container DN",
    )
    parser.add_argument(
        f"--{flag}-insecure",
        action="store_true",
        help=f"Skip TLS certificate verification for the {role} directory",
    )


def _directory_overrides(args: argparse.Namespace, flag: str) -> dict:
    """Collect the set CLI connection overrides for one directory."""
    prefix = flag.replace("-", "_")
    overrides = {}
    for key in ("url", "username", "password", "base_dn"):
        value = getattr(args, f"{prefix}_{key}", None)
        if value:
            overrides[key] = value
    if getattr(args, f"{prefix}_insecure", False):
        overrides["insecure"] = True
    return overrides


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contact-migrate",
        description="Migrate mail contacts between directories via an intermediate file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export all source contacts
  contact-migrate export --output contacts.json

  # Preview the import without changing anything
  contact-migrate import --input contacts.json --dry-run

  # Run the import and write a JSON report to stdout
  contact-migrate import --input contacts.json --json > report.json

Connection settings come from CLI args, CONTACT_SOURCE_* / CONTACT_DEST_*
environment variables (.env supported), or .contact_migrate/config.yml.
        """,
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also append log lines to this file")
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"contact-migrate version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Export source contacts to a file")
    export.add_argument(
        "--output", "-o", help="Record file to write (default: migration.record_file)"
    )
    export.add_argument(
        "--source-system",
        help="Source label stored with each record (default: source URL)",
    )
    _add_directory_args(export, "source", "source")

    imp = sub.add_parser("import", help="Reconcile a record file into the destination")
    imp.add_argument(
        "--input", "-i", help="Record file to read (default: migration.record_file)"
    )
    imp.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Report what would change without writing to the destination",
    )
    imp.add_argument(
        "--json",
        action="store_true",
        help="Print the run report as JSON instead of text",
    )
    _add_directory_args(imp, "dest", "destination")

    sub.add_parser("init-config", help="Write a starter config file")

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def run_export(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    output = validate_output_path(args.output or unified.migration.record_file)
    config = resolve_directory_config(
        "source", unified, _directory_overrides(args, "source")
    )
    source_system = (
        args.source_system or unified.migration.source_system or config.url
    )

    with directory_session(config, "source") as source:
        result = Exporter(source).export(
            exported_by=config.username, source_system=source_system
        )

    dump_record_set(result.record_set, output)
    logger.info("Wrote %d records to %s", result.exported, output)
    print(format_export_summary(result, str(output)))
    return EXIT_OK


def run_import(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    path = validate_file_path(args.input or unified.migration.record_file)
    dry_run = (
        args.dry_run if args.dry_run is not None else unified.migration.dry_run
    )

    record_set = load_record_set(path)
    logger.info(
        "Loaded %d records from %s (exported %s from %s)",
        len(record_set.records),
        path,
        record_set.exported_at or "unknown",
        record_set.source_system or "unknown",
    )

    config = resolve_directory_config(
        "destination", unified, _directory_overrides(args, "dest")
    )
    with directory_session(config, "destination") as destination:
        engine = ReconciliationEngine(destination, dry_run=dry_run)
        try:
            report = engine.run(record_set.records, source_file=str(path))
        except RunAbortedError as exc:
            _print_report(exc.report, args.json)
            raise

    _print_report(report, args.json)
    return EXIT_OK


def _print_report(report, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report_to_json(report), indent=2))
    elif report.dry_run:
        print(format_dry_run_preview(report))
        print()
        print(format_run_summary(report))
    else:
        print(format_run_summary(report))


def run_init_config(args: argparse.Namespace) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run one command, and return the exit code."""
    args = build_parser().parse_args(argv)

    try:
        unified = load_unified_config()
    except Exception as e:
        print(f"ERROR: Cannot load configuration: {e}", file=sys.stderr)
        return EXIT_CRITICAL

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        log_format=args.log_format or unified.logging.format,
        level=unified.logging.level,
    )

    try:
        if args.command == "export":
            return run_export(args, unified)
        if args.command == "import":
            return run_import(args, unified)
        return run_init_config(args)
    except (MigrationError, ValueError, OSError) as e:
        logger.error("%s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CRITICAL
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
