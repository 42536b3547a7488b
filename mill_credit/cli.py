"""Command line entry point: ``mill-credit``."""

from __future__ import annotations

import argparse
import logging
from decimal import Decimal
from typing import Any

from mill_credit.config import MillCreditConfig
from mill_credit.exceptions import ConfigurationError, MillCreditError, ValidationError
from mill_credit.generators import CustomerGenerator
from mill_credit.logging import setup_logging
from mill_credit.models.base import to_money
from mill_credit.service import CreditLedgerService
from mill_credit.sinks import ConsoleSink, JsonFileSink, KafkaSink
from mill_credit.store import BaseCustomerStore, InMemoryCustomerStore

logger = logging.getLogger(__name__)

# The memory store starts empty on every run
PERSISTENT_COMMANDS = ("init-db", "check", "charge", "pay", "overview", "top")


def build_store(kind: str, config: MillCreditConfig) -> BaseCustomerStore:
    """Create the customer store selected on the command line."""
    if kind == "postgres":
        from mill_credit.store.postgres import PostgresCustomerStore

        return PostgresCustomerStore(
            config.postgres,
            number_prefix=config.ledger.customer_number_prefix,
            number_width=config.ledger.customer_number_width,
        )
    return InMemoryCustomerStore(
        number_prefix=config.ledger.customer_number_prefix,
        number_width=config.ledger.customer_number_width,
    )


def build_sink(kind: str, config: MillCreditConfig) -> Any | None:
    """Create the output sink selected on the command line, if any."""
    if kind == "console":
        return ConsoleSink(pretty=config.output.pretty_json)
    if kind == "json":
        return JsonFileSink(config.output.json_output_dir, pretty=config.output.pretty_json)
    if kind == "kafka":
        return KafkaSink(config.kafka)
    return None


def _amount(value: str) -> Decimal:
    try:
        return to_money(value, "amount")
    except ValidationError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mill-credit",
        description="Customer credit ledger for the mill",
    )
    parser.add_argument(
        "--store",
        choices=["memory", "postgres"],
        default="memory",
        help="Customer store backend (default: memory)",
    )
    parser.add_argument(
        "--sink",
        choices=["none", "console", "json", "kafka"],
        default="none",
        help="Where ledger entries and seeded customers are published (default: none)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level; overrides LOG_LEVEL",
    )
    parser.add_argument(
        "--log-format",
        choices=["standard", "json"],
        default="standard",
        help="Log output format (default: standard)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the PostgreSQL schema")

    seed = commands.add_parser("seed", help="Register generated sample customers")
    seed.add_argument(
        "--count",
        type=int,
        default=10,
        help="Number of customers to generate (default: 10)",
    )
    seed.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility; overrides SEED",
    )

    check = commands.add_parser("check", help="Check whether a credit sale would be approved")
    check.add_argument("customer_id")
    check.add_argument("amount", type=_amount)

    charge = commands.add_parser("charge", help="Record a sale for a customer")
    charge.add_argument("customer_id")
    charge.add_argument("amount", type=_amount)
    charge.add_argument(
        "--cash",
        action="store_true",
        help="Paid in cash: updates the sales summary without touching the balance",
    )
    charge.add_argument("--reference", default="", help="Invoice or order number")

    pay = commands.add_parser("pay", help="Record a payment or return against the balance")
    pay.add_argument("customer_id")
    pay.add_argument("amount", type=_amount)
    pay.add_argument(
        "--return",
        dest="is_return",
        action="store_true",
        help="Record goods returned instead of a payment",
    )
    pay.add_argument("--reference", default="", help="Receipt or return number")

    commands.add_parser("overview", help="Print portfolio credit and sales totals")

    top = commands.add_parser("top", help="Rank Active customers by spend and total spend per type")
    top.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Number of customers to list (default: 10)",
    )

    return parser


def run(args: argparse.Namespace, config: MillCreditConfig) -> None:
    """Execute one parsed command."""
    if args.command in PERSISTENT_COMMANDS and args.store != "postgres":
        raise ConfigurationError(
            f"{args.command} requires --store postgres; the memory store is empty on every run"
        )
    store = build_store(args.store, config)

    if args.command == "init-db":
        store.init_schema()
        logger.info("Schema ready on %s", config.postgres.host)
        return

    sink = build_sink(args.sink, config)
    service = CreditLedgerService(
        store,
        sink=sink,
        max_retries=config.ledger.max_retries,
        ledger_topic=config.ledger.ledger_topic,
    )
    try:
        _dispatch(args, config, service, sink)
    finally:
        if sink is not None:
            sink.close()


def _dispatch(
    args: argparse.Namespace,
    config: MillCreditConfig,
    service: CreditLedgerService,
    sink: Any | None,
) -> None:
    if args.command == "seed":
        seed = args.seed if args.seed is not None else config.seed
        generator = CustomerGenerator(
            seed=seed, default_credit_terms=config.ledger.default_credit_terms
        )
        customers = [
            service.register_customer(customer)
            for customer in generator.generate_batch(args.count)
        ]
        logger.info("Seeded %d customers (seed=%s)", len(customers), seed)
        if sink is not None:
            sink.write_batch("customers", customers)
        _print_overview(service)

    elif args.command == "check":
        decision = service.check_credit(args.customer_id, args.amount)
        print(
            f"Approved: requested {decision.requested_amount}, "
            f"available {decision.available_credit}, "
            f"remaining {decision.remaining_credit}"
        )

    elif args.command == "charge":
        entry = service.record_sale(
            args.customer_id, args.amount, on_credit=not args.cash, reference=args.reference
        )
        if entry is None:
            print(f"Cash sale of {args.amount} recorded")
        else:
            print(f"Charged {entry.applied_amount}: balance {entry.balance_after}")

    elif args.command == "pay":
        if args.is_return:
            entry = service.record_return(args.customer_id, args.amount, args.reference)
        else:
            entry = service.record_payment(args.customer_id, args.amount, args.reference)
        print(f"Credited {entry.applied_amount}: balance {entry.balance_after}")

    elif args.command == "overview":
        _print_overview(service)

    elif args.command == "top":
        for rank, customer in enumerate(service.top_customers(args.limit), start=1):
            print(
                f"{rank:>3}. {customer.customer_number}  {customer.full_name:<30} "
                f"{customer.sales.total_spent}"
            )
        for summary in service.customers_by_type():
            print(
                f"{summary.customer_type.value}: {summary.count} customers, "
                f"spent {summary.total_spent}"
            )


def _print_overview(service: CreditLedgerService) -> None:
    overview = service.credit_overview()
    print(f"Customers:          {overview.total_customers}")
    print(f"Active:             {overview.active_customers}")
    print(f"With credit:        {overview.customers_with_credit}")
    print(f"Over limit:         {overview.customers_over_limit}")
    print(f"Total credit limit: {overview.total_credit_limit}")
    print(f"Total outstanding:  {overview.total_outstanding}")
    print(f"Total revenue:      {overview.total_revenue}")
    print(f"Avg order value:    {overview.average_order_value}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns
    -------
    int
        Process exit code: 0 on success, 1 when the command was rejected.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = MillCreditConfig.from_env()
    except ConfigurationError as e:
        setup_logging(args.log_level or "INFO", args.log_format)
        logger.error("%s", e)
        return 1

    setup_logging(args.log_level or config.log_level, args.log_format)

    try:
        run(args, config)
    except MillCreditError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
