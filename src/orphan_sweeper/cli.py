"""Command-line entry point.

Runs one reconciliation pass against the configured metadata store and
prints the result to stdout. Logs go to stderr.

Exit status:
    0  pass completed
    1  store or metadata failure, or the pass was cancelled
    2  invalid configuration
    130  interrupted
"""

from __future__ import annotations

import argparse
import json
import sys

from orphan_sweeper import __version__
from orphan_sweeper.application.gc_job import GarbageCollectionJob
from orphan_sweeper.domain.services.reconciliation import (
    ReconciliationCancelled,
    ReconciliationReport,
)
from orphan_sweeper.infrastructure.config import Config
from orphan_sweeper.infrastructure.container import Container
from orphan_sweeper.ports.inbound import MetadataError
from orphan_sweeper.ports.outbound.kv_store import StoreError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orphan-sweeper",
        description="Report multipart fragment records that no live or deleted object references.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  # scan a TiKV cluster
  CLEANER_PD=pd-0:2379,pd-1:2379 orphan-sweeper

  # full JSON report, including every orphaned fragment
  orphan-sweeper --pd pd-0:2379 --json

environment:
  CLEANER_PD       comma-separated placement driver addresses
  CLEANER_MASTER   blob store master (used by the deletion step)
  CLEANER_METADATA__KEY_NAMESPACE, CLEANER_OBSERVABILITY__LOG_LEVEL, ...
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--backend",
        choices=["tikv", "memory"],
        help="metadata store backend (default from CLEANER_METADATA__BACKEND or tikv)",
    )
    parser.add_argument("--pd", metavar="ADDRS", help="placement driver addresses, comma-separated")
    parser.add_argument("--namespace", metavar="PREFIX", help="key namespace, e.g. YDS3_")
    parser.add_argument("--json", action="store_true", help="print the report as JSON")
    parser.add_argument(
        "--list-orphans",
        action="store_true",
        help="print one line per orphaned fragment before the summary",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument("--log-format", choices=["json", "console"])
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Read the environment and apply command-line overrides.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    config = Config()

    metadata: dict[str, object] = {}
    if args.backend:
        metadata["backend"] = args.backend
    if args.pd:
        metadata["pd_endpoints"] = args.pd
    if args.namespace is not None:
        metadata["key_namespace"] = args.namespace

    observability: dict[str, object] = {}
    if args.log_level:
        observability["log_level"] = args.log_level
    if args.log_format:
        observability["log_format"] = args.log_format

    config = config.model_copy(
        update={
            "metadata": config.metadata.model_copy(update=metadata),
            "observability": config.observability.model_copy(update=observability),
        }
    )
    config.validate_backend()
    return config


def render(report: ReconciliationReport, args: argparse.Namespace) -> str:
    if args.json:
        return json.dumps(report.to_dict(), indent=2)
    lines = []
    if args.list_orphans:
        for orphan in report.orphans:
            lines.append(f"{orphan.key.decode(errors='replace')}\t{orphan.size}")
    lines.append(report.summary_line())
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """Run the sweeper and return its exit status."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return 2

    try:
        with Container.create(config) as container:
            report = GarbageCollectionJob(container).run()
    except (StoreError, MetadataError, ReconciliationCancelled) as e:
        print(f"fatal: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130

    print(render(report, args))
    return 0


def main_entry() -> None:
    """Console script wrapper around main()."""
    sys.exit(main())
