#!/usr/bin/env python3
"""Replay a CSV of transactions and print the resulting client accounts."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import structlog

from config import get_settings, get_settings_for_environment
from csv_io import read_transactions, write_clients
from errors import MalformedRecordError, TransactionRejected
from logging_config import configure_logging
from repositories import InMemoryAccountRepository, InMemoryAdjustmentRepository
from services import TransactionEngine

logger = structlog.get_logger()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Apply deposits, withdrawals and disputes from a CSV file "
                    "and write the final client accounts to stdout as CSV."
    )
    parser.add_argument("csv_file_path", type=Path, help="Path to transactions CSV")
    parser.add_argument("--environment", help="Settings preset: development, production or testing")
    parser.add_argument("--log-level", help="Override the configured log level")
    args = parser.parse_args(argv)

    settings = get_settings_for_environment(args.environment) if args.environment else get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})
    configure_logging(settings)

    engine = TransactionEngine(InMemoryAccountRepository(), InMemoryAdjustmentRepository())
    applied = rejected = 0

    logger.info("Replaying transactions", path=str(args.csv_file_path))
    try:
        with args.csv_file_path.open(newline="", encoding="utf-8") as stream:
            for record in read_transactions(stream):
                try:
                    engine.apply(record)
                except TransactionRejected as e:
                    rejected += 1
                    print(f"{e.code}: {e.detail} [{record}]", file=sys.stderr)
                else:
                    applied += 1
    except OSError as e:
        logger.error("Cannot read transactions file", path=str(args.csv_file_path), error=str(e))
        return 1
    except MalformedRecordError as e:
        logger.error("Malformed transaction record", line=e.line, error=e.reason)
        return 1

    clients = engine.clients()
    write_clients(sys.stdout, clients)
    sys.stdout.flush()

    logger.info("Replay finished", applied=applied, rejected=rejected, clients=len(clients))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
