"""CLI entrypoint for HTTP lookup enrichment."""

from __future__ import annotations

import argparse
import contextlib
import json
import sys
import uuid
from typing import Dict, List, Optional, Sequence

from .config import load_config
from .enrichment import LookupEnricher
from .logging_setup import setup_logging
from .polling_client import RestLookupPollingClient
from .request_builder import LookupArg
from .retry_config import ConfigError, create
from .schema import SchemaError, load_schema


def _parse_pairs(values: Optional[Sequence[str]], option: str) -> List[tuple[str, str]]:
    pairs = []
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"{option} expects NAME=VALUE, got {item!r}")
        pairs.append((name, value))
    return pairs


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Enrich records with REST lookups")
    subparsers = parser.add_subparsers(dest="command", required=True)

    lookup_parser = subparsers.add_parser("lookup", help="Run a single lookup")
    lookup_parser.add_argument("--arg", action="append", help="Lookup argument NAME=VALUE")

    enrich_parser = subparsers.add_parser("enrich", help="Enrich JSON-lines records")
    enrich_parser.add_argument("--input", default="-", help="Input JSON-lines file, - for stdin")
    enrich_parser.add_argument("--output", default="-", help="Output JSON-lines file, - for stdout")
    enrich_parser.add_argument(
        "--key",
        action="append",
        help="Map lookup argument to record field ARG=FIELD (default: same name)",
    )
    enrich_parser.add_argument("--target", help="Nest the looked up row under this field")
    enrich_parser.add_argument("--inner", action="store_true", help="Drop records without a match")
    enrich_parser.add_argument("--workers", type=int, default=1, help="Concurrent lookups")

    subparsers.add_parser("validate-config", help="Validate lookup configuration")

    args = parser.parse_args(argv)

    try:
        config = load_config()
    except ConfigError as exc:
        print(f"Configuration invalid: {exc}")
        return 2

    run_id = str(uuid.uuid4())
    logger = setup_logging(config.log_file, config.log_level, run_id)

    try:
        if args.command == "validate-config":
            create(config.retry_options)
            if config.schema_file:
                load_schema(config.schema_file)
            print("Configuration: OK")
            return 0
        client = RestLookupPollingClient.from_config(config, logger)
    except (ConfigError, SchemaError) as exc:
        logger.error("config_invalid", extra={"event": "config_invalid", "detail": str(exc)})
        print(f"Configuration invalid: {exc}")
        return 2

    try:
        if args.command == "lookup":
            lookup_args = [LookupArg(name, value) for name, value in _parse_pairs(args.arg, "--arg")]
            row = client.pull(lookup_args)
            if row is None:
                print("No enrichment")
                return 1
            print(json.dumps(row, ensure_ascii=True, default=str))
            return 0

        if args.command == "enrich":
            key_fields: Dict[str, str] = dict(_parse_pairs(args.key, "--key")) or {
                name: name for name in config.lookup_arguments
            }
            enricher = LookupEnricher(
                client,
                key_fields,
                target_field=args.target,
                join="inner" if args.inner else "left",
            )
            with _open(args.input, "r") as source, _open(args.output, "w") as sink:
                records = [json.loads(line) for line in source if line.strip()]
                for record in enricher.enrich_all(records, max_workers=args.workers):
                    sink.write(json.dumps(record, ensure_ascii=True, default=str) + "\n")
            return 0
    except argparse.ArgumentTypeError as exc:
        print(str(exc))
        return 2

    return 1


def _open(path: str, mode: str):
    if path == "-":
        return contextlib.nullcontext(sys.stdin if mode == "r" else sys.stdout)
    return open(path, mode, encoding="utf-8")


if __name__ == "__main__":
    sys.exit(main())
