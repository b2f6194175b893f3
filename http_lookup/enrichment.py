"""Lookup join: enrich records with rows fetched by the polling client."""

from __future__ import annotations

import concurrent.futures
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .request_builder import LookupArg


JOIN_TYPES = {"left", "inner"}


class LookupEnricher:
    def __init__(
        self,
        client,
        key_fields: Mapping[str, str],
        *,
        target_field: Optional[str] = None,
        join: str = "left",
    ) -> None:
        if join not in JOIN_TYPES:
            raise ValueError(f"Unknown join type: {join!r}")
        self.client = client
        self.key_fields = dict(key_fields)
        self.target_field = target_field
        self.join = join

    def lookup_args(self, record: Mapping[str, Any]) -> List[LookupArg]:
        args = []
        for arg_name, record_field in self.key_fields.items():
            value = record.get(record_field)
            if value is None:
                continue
            args.append(LookupArg(arg_name, str(value)))
        return args

    def enrich(self, record: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        row = self.client.pull(self.lookup_args(record))
        if row is None:
            return None if self.join == "inner" else dict(record)

        enriched = dict(record)
        if self.target_field:
            enriched[self.target_field] = row
        else:
            enriched.update(row)
        return enriched

    def enrich_all(
        self,
        records: Iterable[Mapping[str, Any]],
        max_workers: int = 1,
    ) -> List[Dict[str, Any]]:
        """Enrich records in input order, on a thread pool when max_workers > 1."""
        if max_workers <= 1:
            results = [self.enrich(record) for record in records]
        else:
            with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
                results = list(executor.map(self.enrich, records))
        return [result for result in results if result is not None]
