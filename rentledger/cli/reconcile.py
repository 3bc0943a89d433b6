"""CLI entry point for the monthly billing run.

Bills every active account up to the as-of date, the same way a payment
batch would before applying its payments.

Usage:
    python -m rentledger.cli.reconcile [--as-of YYYY-MM-DD] [--init-db]
    rentledger-reconcile  (installed script)

Exit Codes:
    0 - Every account reconciled
    1 - Configuration error, or at least one account failed

Logging:
    Console and LOG_FILE (default logs/rentledger.log) at LOG_LEVEL
"""

import argparse
import logging
import sys
from datetime import date

from rentledger.services.config import load_config
from rentledger.services.logging import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bill all active accounts up to a date")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Billing date as YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before the run",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Run reconciliation for every active account.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = parse_args(argv)
    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_file, config.log_level)

    from rentledger.models import Base
    from rentledger.services import SessionLocal, engine
    from rentledger.services.account_service import AccountService

    if args.init_db:
        Base.metadata.create_all(engine)

    as_of = args.as_of or date.today()
    logger.info(f"Starting billing run as of {as_of.isoformat()}")
    db = SessionLocal()
    try:
        result = AccountService(db, config).reconcile_all(as_of)
    except Exception as e:
        logger.error(f"Billing run failed: {e}", exc_info=True)
        return 1
    finally:
        db.close()

    for tenant_id, reason in result.failures.items():
        logger.warning(f"Account {tenant_id} not reconciled: {reason}")
    return 1 if result.failures else 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
