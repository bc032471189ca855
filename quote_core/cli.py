"""Command line entry points."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from catalog_repository import CatalogRepository

from .config import load_settings
from .errors import MalformedInputError
from .reporter import build_catalog_report, build_quote_report
from .workflow import build_catalog_snapshot, run_quote

LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quote-agent", description="Travel insurance quote agent")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("scrape-catalog", help="Build and store a fresh catalog")

    importer = subcommands.add_parser("import-catalog", help="Store a catalog JSON file")
    importer.add_argument("file")

    quote = subcommands.add_parser("quote", help="Request a quote and print the plans")
    quote.add_argument("--trip-type", default="daily")
    quote.add_argument("--origin", required=True)
    quote.add_argument("--destination", required=True)
    quote.add_argument("--departure", required=True, help="DD/MM/YYYY or YYYY-MM-DD")
    quote.add_argument("--return", dest="return_date", required=True, help="DD/MM/YYYY or YYYY-MM-DD")
    quote.add_argument("--ages", required=True, help="Comma separated passenger ages")
    quote.add_argument("--agent")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    repository = CatalogRepository(settings.catalog_db_path)

    if args.command == "scrape-catalog":
        result = build_catalog_snapshot(settings)
        if not result.success or result.catalog is None:
            print(f"Error: {result.error}", file=sys.stderr)
            return 1
        record = repository.save(result.catalog)
        print(build_catalog_report(record.catalog))
        return 0

    if args.command == "import-catalog":
        try:
            record = repository.import_file(args.file)
        except MalformedInputError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        print(build_catalog_report(record.catalog))
        return 0

    try:
        record = repository.latest() or repository.import_latest_file(settings.data_dir)
    except MalformedInputError as exc:
        LOGGER.warning("Ignoring catalog file: %s", exc)
        record = None
    ages = [age.strip() for age in args.ages.split(",") if age.strip()]
    form_data = {
        "tripType": args.trip_type,
        "origin": args.origin,
        "destination": args.destination,
        "departureDate": args.departure,
        "returnDate": args.return_date,
        "passengerCount": len(ages),
        "ages": ages,
        "agent": args.agent,
    }
    result = run_quote(form_data, record.catalog if record else None, settings)
    if not result.success or result.quote_data is None or result.config is None:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    print(build_quote_report(result.config, result.quote_data.plans, result.warnings))
    print(f"\nURL: {result.quote_data.url}")
    return 0
