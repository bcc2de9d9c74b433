import argparse
import logging
import sys

from init import Session, engine, init_tables
from ledger_system import (
    QuotaPoolLedger, DuesBillingEngine, LedgerNotifier, LedgerError, eventBus, timeMachine
)
import config

logger = logging.getLogger(__name__)


# region Commands

def cmd_init_db(args: argparse.Namespace) -> int:
    init_tables(engine)
    logger.info("Database tables created")
    return 0


def cmd_expire_pools(args: argparse.Namespace) -> int:
    session = Session()
    try:
        count = QuotaPoolLedger(session).expirePools()
        print(f"Expired pools: {count}")
        return 0
    finally:
        session.close()


def _period(args: argparse.Namespace):
    month, year = timeMachine.currentPeriod
    return args.month or month, args.year or year


def cmd_generate_kas(args: argparse.Namespace) -> int:
    month, year = _period(args)
    session = Session()
    try:
        created = DuesBillingEngine(session).generateMonthly(args.group, month, year)
        print(f"Kas {month}/{year} for group {args.group}: {created} new bills")
        return 0
    finally:
        session.close()


def cmd_kas_reminders(args: argparse.Namespace) -> int:
    month, year = _period(args)
    session = Session()
    try:
        sent = DuesBillingEngine(session).sendReminders(args.group, month, year)
        print(f"Kas reminders {month}/{year} for group {args.group}: {sent}")
        return 0
    finally:
        session.close()

# endregion


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger",
        description="Quota, commission and kas ledger jobs",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    expire_parser = subparsers.add_parser("expire-pools", help="Mark expired quota pools as EXPIRED")
    expire_parser.set_defaults(func=cmd_expire_pools)

    for name, handler, helpText in (
            ("generate-kas", cmd_generate_kas, "Bill monthly kas for every active group member"),
            ("kas-reminders", cmd_kas_reminders, "Queue reminders for unpaid kas"),
    ):
        kas_parser = subparsers.add_parser(name, help=helpText)
        kas_parser.add_argument("--group", type=int, required=True, help="Trade group ID")
        kas_parser.add_argument("--month", type=int, help="Month 1-12 (default: current local month)")
        kas_parser.add_argument("--year", type=int, help="Year (default: current local year)")
        kas_parser.set_defaults(func=handler)

    return parser


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)

    notifier = LedgerNotifier(Session)
    notifier.register(eventBus)

    try:
        return args.func(args)
    except LedgerError as e:
        logger.error(f"{args.command} failed: {e.code}: {e.message}")
        return 1
    except ValueError as e:
        logger.error(f"{args.command} failed: {e}")
        return 2
    finally:
        notifier.unregister(eventBus)


if __name__ == '__main__':
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    sys.exit(main())
