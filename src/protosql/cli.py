"""protosql CLI: validate a database schema against protobuf message definitions."""

import argparse
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path

REPORT_FILENAME = "validation_report.json"

# exit status when the report contains Error-severity issues
EXIT_MISMATCH = 2


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", stream=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    # Get version for --version argument (handle PackageNotFoundError)
    try:
        protosql_version = get_version("protosql")
    except PackageNotFoundError:
        protosql_version = "dev"

    parser = argparse.ArgumentParser(
        prog="protosql",
        description="Validate a live database schema against protobuf message definitions",
    )
    parser.add_argument("--version", action="version", version=f"protosql {protosql_version}")
    parser.add_argument(
        "--uri",
        required=True,
        help="Database URI (SQLAlchemy URL, e.g. postgresql://user@host/db)",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--file",
        type=Path,
        action="append",
        default=None,
        help="Proto file to validate (repeatable; all files are parsed as one set)",
    )
    source.add_argument(
        "--dir",
        type=Path,
        default=None,
        help="Directory of *.proto files to validate",
    )
    parser.add_argument(
        "--schema",
        default=None,
        help="Database schema (defaults to the proto package if it exists, else the connection default)",
    )
    parser.add_argument(
        "--message",
        default=None,
        help="Only validate this message",
    )
    parser.add_argument(
        "--table",
        default=None,
        help="Table for --message (overrides the naming convention)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON validation config",
    )
    parser.add_argument(
        "--reader",
        choices=["inspector", "information_schema"],
        default="inspector",
        help="Catalog reader used for introspection",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help=f"Write {REPORT_FILENAME} to this directory",
    )
    parser.add_argument(
        "--no-extra-columns",
        action="store_true",
        help="Do not report columns without a corresponding field",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only print warnings and errors")
    return parser


def _effective_config(args):
    """Config file (or defaults) with command line options applied on top."""
    from .api import load_config

    config = load_config(args.config)
    updates = {}
    if args.message:
        updates["messages"] = (args.message,)
        if args.table:
            overrides = dict(config.name_overrides)
            overrides[args.message] = args.table
            updates["name_overrides"] = overrides
    if args.no_extra_columns:
        updates["report_extra_columns"] = False
    return config.model_copy(update=updates) if updates else config


def _print_report(report, quiet: bool) -> None:
    for issue in report.issues:
        if quiet and issue.severity.value != "error":
            continue
        print(f"[{issue.severity.value.upper()}] {issue.kind.value} {issue.location}: {issue.detail}")
    if quiet:
        return
    for pairing in report.pairings:
        print(f"  {pairing.message} -> {pairing.table or '(missing)'}")
    print(f"[{'OK' if report.ok else 'FAILED'}] Validation complete")
    print(f"  Status: {'OK' if report.ok else 'MISMATCH'}")
    print(f"  Errors: {report.summary.errors}")
    print(f"  Warnings: {report.summary.warnings}")


def main():
    """Main CLI entry point for protosql."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.table and not args.message:
        print("Error: --table requires --message.", file=sys.stderr)
        sys.exit(1)

    _configure_logging(args.verbose, args.quiet)

    # Lazy import: only import SQLAlchemy and the kernel once arguments are valid
    from sqlalchemy import create_engine
    from sqlalchemy.exc import ArgumentError

    from ._internal.canonical_json import canonical_dumps
    from .api import check, discover_proto_files
    from .kernel.errors import ProtosqlError

    try:
        config = _effective_config(args)
        if args.dir is not None:
            proto_paths = discover_proto_files(args.dir)
            if not proto_paths:
                print(f"Error: No .proto files found in {args.dir}", file=sys.stderr)
                sys.exit(1)
        else:
            proto_paths = args.file

        try:
            engine = create_engine(args.uri)
        except ArgumentError as e:
            print(f"Error: Invalid database URI: {e}", file=sys.stderr)
            sys.exit(1)
        try:
            report = check(proto_paths, engine, schema=args.schema, config=config, reader=args.reader)
        finally:
            engine.dispose()

        _print_report(report, args.quiet)
        if args.output_dir is not None:
            output_dir = Path(args.output_dir).resolve()
            output_dir.mkdir(parents=True, exist_ok=True)
            report_out = output_dir / REPORT_FILENAME
            report_out.write_text(canonical_dumps(report.to_dict()) + "\n", encoding="utf-8")
            if not args.quiet:
                print(f"  Report: {report_out}")

        sys.exit(0 if report.ok else EXIT_MISMATCH)
    except (ProtosqlError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
