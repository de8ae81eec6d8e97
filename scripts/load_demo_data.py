#!/usr/bin/env python3
"""Seed the ledger database with generated clients, loans and payments.

Payments go through the ledger service, so every loan gets its receipts
and a derived status exactly as an operator-entered payment would.
Optionally every write is also published to the Kafka change topics.
"""

import argparse
import logging
import random
import sys
import time
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loan_ledger.config import LedgerConfig
from loan_ledger.exceptions import InvalidEntityStateError, LedgerError, ReceiptGenerationError
from loan_ledger.generators import ClientGenerator, LoanGenerator, PaymentHistoryGenerator
from loan_ledger.logging import setup_logging
from loan_ledger.models import PaymentKind, PaymentType
from loan_ledger.realtime import KafkaChangePublisher
from loan_ledger.service import LedgerService
from loan_ledger.store import InMemoryLedgerStore, PostgresLedgerStore, PublishingStore

logger = logging.getLogger(__name__)


def seed_ledger(
    service: LedgerService,
    clients: int,
    loans_per_client: int,
    max_payments: int,
    seed: int,
) -> dict[str, int]:
    """Generate and register demo data through the service.

    Returns
    -------
    dict[str, int]
        Counts of generated entities and receipt failures.
    """
    client_gen = ClientGenerator(seed=seed)
    loan_gen = LoanGenerator(seed=seed + 1)
    payment_gen = PaymentHistoryGenerator(seed=seed + 2)

    counts = {"clients": 0, "loans": 0, "payments": 0, "receipt_failures": 0}
    for client in client_gen.generate_batch(clients):
        service.create_client(client)
        counts["clients"] += 1

        for _ in range(random.randint(1, loans_per_client)):
            loan = service.create_loan(loan_gen.generate(client.client_id))
            counts["loans"] += 1

            history = payment_gen.generate(loan, random.randint(0, max_payments))
            for payment in history:
                settle = payment.kind == PaymentKind.FULL and loan.payment_type == PaymentType.DIARIO
                try:
                    service.register_payment(
                        loan.loan_id,
                        payment.amount,
                        installment_number=payment.installment_number,
                        settle=settle,
                        paid_at=payment.date,
                    )
                except InvalidEntityStateError:
                    # Loan completed before the generated history ran out
                    break
                except ReceiptGenerationError as e:
                    logger.warning("Unreceipted payment left for reconciliation: %s", e)
                    counts["receipt_failures"] += 1
                counts["payments"] += 1

    return counts


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed the loan ledger with demo data")
    parser.add_argument(
        "--clients",
        type=int,
        default=20,
        help="Number of clients to generate (default: 20)",
    )
    parser.add_argument(
        "--loans-per-client",
        type=int,
        default=3,
        help="Maximum loans per client (default: 3)",
    )
    parser.add_argument(
        "--max-payments",
        type=int,
        default=12,
        help="Maximum payments per loan (default: 12)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility (default: SEED env or 42)",
    )
    parser.add_argument(
        "--postgres-url",
        type=str,
        default=None,
        help="PostgreSQL connection string (default: from POSTGRES_* env)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate into memory only, without PostgreSQL",
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish every write to the Kafka change topics",
    )
    args = parser.parse_args()

    config = LedgerConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    seed = args.seed if args.seed is not None else (config.seed if config.seed is not None else 42)

    if args.dry_run:
        repository = InMemoryLedgerStore()
    else:
        repository = PostgresLedgerStore(args.postgres_url or config.postgres.connection_string)
        repository.create_tables()

    publisher = None
    if args.publish or config.publish_changes:
        publisher = KafkaChangePublisher(config.kafka)
        repository = PublishingStore(repository, publisher)

    service = LedgerService(repository, settings=config.settings, rng=random.Random(seed))

    start = time.perf_counter()
    try:
        counts = seed_ledger(service, args.clients, args.loans_per_client, args.max_payments, seed)
        summaries = service.refresh_all()
    except LedgerError as e:
        logger.error("Seeding failed: %s", e)
        sys.exit(1)
    finally:
        if publisher is not None:
            publisher.close()
    elapsed = time.perf_counter() - start

    logger.info("=" * 60)
    logger.info("Seeding complete in %.2fs", elapsed)
    for name, count in counts.items():
        logger.info("  %-18s %d", name, count)
    by_status: dict[str, int] = {}
    for summary in summaries:
        by_status[summary.status.value] = by_status.get(summary.status.value, 0) + 1
    for status, count in sorted(by_status.items()):
        logger.info("  loans %-12s %d", status, count)
    logger.info("Store totals: %s", repository.summary())


if __name__ == "__main__":
    main()
