"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the risk analytics engine.

- init-db          create tables
- score-scan ID    run the scoring pipeline for one scan
- backfill-audit   create audit entries for historical scans
- backtest         print backtest metrics as JSON
- model-info       print governance metadata of a model version
- show-stages      print the scoring stages in order

============================================================
USAGE
============================================================
python -m orchestrator.cli init-db
python -m orchestrator.cli score-scan 2b6f0c0e-...
python -m orchestrator.cli backfill-audit --dry-run
python -m orchestrator.cli backtest

============================================================
"""

import argparse
import json
import logging
import sys
from typing import List, Optional
from uuid import UUID

from audit_trail.backfill import run_backfill
from backtesting import run_backtest
from core.exceptions import RiskAnalyticsError
from core.settings import get_settings
from database.engine import get_db_session, initialize_database, transaction_scope
from risk_index.governance import get_risk_model_metadata
from storage.repositories.exceptions import RepositoryException

from .models import ScoringStage
from .pipeline import score_scan


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# sysexits EX_TEMPFAIL: the storage failure is transient, re-running may succeed
EXIT_RETRYABLE = 75


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cre-risk",
        description="Deterministic risk analytics engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init-db
  %(prog)s score-scan 2b6f0c0e-8d0b-4a4e-9d1c-1f1f7c9d0a11
  %(prog)s backfill-audit --dry-run
  %(prog)s backtest
        """,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL env or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    score = subparsers.add_parser("score-scan", help="Score one scan")
    score.add_argument("scan_id", type=UUID, help="Scan identifier")

    backfill = subparsers.add_parser("backfill-audit", help="Backfill the risk audit log")
    backfill.add_argument(
        "--dry-run",
        action="store_true",
        help="Report counts only, insert nothing",
    )

    subparsers.add_parser("backtest", help="Print backtest metrics")

    model = subparsers.add_parser("model-info", help="Print risk model governance metadata")
    model.add_argument("--version", dest="model_version", default=None, help="Model version")

    subparsers.add_parser("show-stages", help="Print scoring stages")

    return parser


def setup_logging(level: Optional[str]) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or get_settings().log_level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


# ============================================================
# COMMANDS
# ============================================================

def cmd_init_db(args: argparse.Namespace) -> int:
    initialize_database()
    return 0


def cmd_score_scan(args: argparse.Namespace) -> int:
    result = score_scan(args.scan_id)
    _print_json(result.to_dict())
    return 0


def cmd_backfill_audit(args: argparse.Namespace) -> int:
    with transaction_scope() as session:
        report = run_backfill(session, dry_run=args.dry_run)
    _print_json(report.to_dict())
    return 0


def cmd_backtest(args: argparse.Namespace) -> int:
    with get_db_session() as session:
        metrics = run_backtest(session)
    _print_json(metrics.to_dict())
    return 0


def cmd_model_info(args: argparse.Namespace) -> int:
    _print_json(get_risk_model_metadata(args.model_version))
    return 0


def cmd_show_stages(args: argparse.Namespace) -> int:
    print("\nScan scoring stages")
    print("=" * 60)
    for stage in ScoringStage.get_ordered_stages():
        print(f"  [{stage.order:02d}] {stage.stage_id:20s} - {stage.description}")
    print()
    return 0


COMMANDS = {
    "init-db": cmd_init_db,
    "score-scan": cmd_score_scan,
    "backfill-audit": cmd_backfill_audit,
    "backtest": cmd_backtest,
    "model-info": cmd_model_info,
    "show-stages": cmd_show_stages,
}


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code: 0 on success, 75 when a storage failure is
        retryable, 1 on any other failure
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130
    except RepositoryException as e:
        if e.retryable:
            logging.error(f"{args.command} failed, safe to re-run: {e}")
            return EXIT_RETRYABLE
        logging.error(f"{args.command} failed: {e}")
        return 1
    except RiskAnalyticsError as e:
        logging.error(f"{args.command} failed: {e}")
        return 1


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
