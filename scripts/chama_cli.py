#!/usr/bin/env python3
"""
Chama command line.

Runs the batch jobs and prints the derived reports against a database.
Every command runs in one transaction, committed on success.

Usage:
    python3 scripts/chama_cli.py init-db
    python3 scripts/chama_cli.py seed
    python3 scripts/chama_cli.py run-monthly --start 2025-06-01 --end 2025-08-01
    python3 scripts/chama_cli.py run-dividends --rate 10 [--period 2025] [--cap-to-profit]
    python3 scripts/chama_cli.py portfolio
    python3 scripts/chama_cli.py active-loans [--overdue]
    python3 scripts/chama_cli.py verify
"""

import argparse
import sys
from datetime import date
from pathlib import Path
from uuid import uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from chama_batch.jobs.dividends import DividendDistributionJob  # noqa: E402
from chama_batch.jobs.monthly_contributions import MonthlyContributionJob  # noqa: E402
from chama_config import get_active_config  # noqa: E402
from chama_kernel.db.engine import create_tables, init_engine_from_url, session_scope  # noqa: E402
from chama_kernel.exceptions import ChamaKernelError  # noqa: E402
from chama_kernel.logging_config import LogContext, configure_logging  # noqa: E402
from chama_kernel.selectors.ledger_selector import LedgerSelector  # noqa: E402
from chama_kernel.selectors.loan_selector import LoanSelector  # noqa: E402
from chama_kernel.selectors.portfolio_selector import PortfolioSelector  # noqa: E402
from chama_kernel.services.auditor_service import AuditorService  # noqa: E402
from chama_kernel.services.config_service import ConfigService  # noqa: E402

ACTOR = "cli"


def _fmt(value) -> str:
    return f"{value:,.2f}"


def cmd_init_db(args, config) -> int:
    create_tables()
    with session_scope() as session:
        created = ConfigService(session).seed_defaults(config.parameters, ACTOR)
    print(f"Tables created; parameters seeded: {', '.join(created) or 'none'}")
    return 0


def cmd_seed(args, config) -> int:
    from scripts.seed_data import seed_group

    create_tables()
    with session_scope() as session:
        seeded = seed_group(session, config=config)
    print(f"Seeded {len(seeded['members'])} members, {len(seeded['loans'])} loans")
    return 0


def cmd_run_monthly(args, config) -> int:
    with session_scope() as session:
        snapshot = ConfigService(session).snapshot()
        result = MonthlyContributionJob(session).run(args.start, args.end, snapshot, ACTOR)
    print(f"Run {result.run_key}: {result.created_count} created, {result.skipped_count} skipped")
    print(f"Total: {config.currency} {_fmt(result.total_amount)}")
    return 0


def cmd_run_dividends(args, config) -> int:
    with session_scope() as session:
        snapshot = ConfigService(session).snapshot()
        result = DividendDistributionJob(session).run(
            args.rate,
            snapshot,
            ACTOR,
            period_key=args.period,
            cap_to_profit=args.cap_to_profit,
        )
    print(f"{'Member':<24}{'Shares':>8}{'Dividend':>14}")
    for line in result.dividend_lines:
        note = "  (already paid)" if line.skipped else ""
        print(f"{line.member_name:<24}{line.shares_owned:>8}{_fmt(line.amount):>14}{note}")
    print(f"Total distributed: {config.currency} {_fmt(result.total_amount)}")
    print(f"Total profit:      {config.currency} {_fmt(result.total_profit)}")
    return 0


def cmd_portfolio(args, config) -> int:
    with session_scope() as session:
        portfolios = PortfolioSelector(session).all_portfolios()
    print(f"{'Member':<24}{'Contributed':>14}{'Repaid':>12}{'Penalties':>12}{'Dividends':>12}{'Loans':>12}")
    for p in portfolios:
        print(
            f"{p.name:<24}{_fmt(p.total_contributions):>14}{_fmt(p.total_repayments):>12}"
            f"{_fmt(p.total_penalties):>12}{_fmt(p.total_dividends):>12}{_fmt(p.total_loans_taken):>12}"
        )
    return 0


def cmd_active_loans(args, config) -> int:
    with session_scope() as session:
        selector = LoanSelector(session)
        positions = selector.overdue_loans() if args.overdue else selector.active_loans()
    print(f"{'Member':<24}{'Principal':>12}{'Due':>12}{'Repaid':>12}{'Outstanding':>14}{'Overdue':>9}")
    for p in positions:
        print(
            f"{p.member_name:<24}{_fmt(p.principal):>12}{_fmt(p.total_due):>12}"
            f"{_fmt(p.amount_repaid):>12}{_fmt(p.outstanding_balance):>14}{p.days_overdue:>9}"
        )
    return 0


def cmd_verify(args, config) -> int:
    with session_scope() as session:
        report = LedgerSelector(session).verify_mirroring()
        discrepancies = LedgerSelector(session).reconcile_member_totals()
        chain_ok = AuditorService(session).validate_chain()
    print(f"Sources checked:   {report.sources_checked}")
    print(f"Missing mirrors:   {len(report.missing)}")
    print(f"Orphaned rows:     {len(report.orphaned)}")
    print(f"Duplicated:        {len(report.duplicated)}")
    print(f"Mismatched fields: {len(report.mismatches)}")
    print(f"Member totals off: {len(discrepancies)}")
    print(f"Audit chain:       {'intact' if chain_ok else 'broken'}")
    return 0 if report.is_consistent and not discrepancies and chain_ok else 1


def build_parser(config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Chama ledger tools.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-url", type=str, default=config.database_url,
        help=f"Database URL (default: {config.database_url})",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and seed parameters").set_defaults(func=cmd_init_db)
    sub.add_parser("seed", help="Load the sample history").set_defaults(func=cmd_seed)

    monthly = sub.add_parser("run-monthly", help="Generate monthly contributions")
    monthly.add_argument("--start", type=date.fromisoformat, required=True)
    monthly.add_argument("--end", type=date.fromisoformat, required=True)
    monthly.set_defaults(func=cmd_run_monthly)

    dividends = sub.add_parser("run-dividends", help="Distribute dividends")
    dividends.add_argument("--rate", type=str, required=True, help="Percent of share value")
    dividends.add_argument("--period", type=str, default=None, help="Period key (default: run year)")
    dividends.add_argument("--cap-to-profit", action="store_true")
    dividends.set_defaults(func=cmd_run_dividends)

    sub.add_parser("portfolio", help="Member portfolio report").set_defaults(func=cmd_portfolio)

    loans = sub.add_parser("active-loans", help="Active loans with balances")
    loans.add_argument("--overdue", action="store_true", help="Only overdue loans")
    loans.set_defaults(func=cmd_active_loans)

    sub.add_parser("verify", help="Check ledger mirroring and the audit chain").set_defaults(func=cmd_verify)
    return parser


def main(argv=None) -> int:
    config = get_active_config()
    args = build_parser(config).parse_args(argv)

    configure_logging(level=config.log_level)
    init_engine_from_url(args.db_url)
    with LogContext.bind(correlation_id=uuid4().hex, actor=ACTOR):
        try:
            return args.func(args, config)
        except ChamaKernelError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 2


if __name__ == "__main__":
    sys.exit(main())
