"""REST lookup polling client with transport-level retries."""

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Optional, Sequence, Tuple

from .config import Config
from .decoder import JsonRowDecoder, Row
from .request_builder import ABSENT_REQUEST, LookupArg, build_request
from .response import NOT_FOUND, Error, Found, ResponseInterpreter
from .retry_config import RetryConfig, create
from .schema import load_schema
from .transport import RequestsTransport, TransportError


@dataclass(frozen=True)
class LookupConfig:
    url: str
    arguments: Tuple[str, ...]


class RestLookupPollingClient:
    """Issues one GET per lookup and resolves it to a row or None.

    Only transport failures are retried, up to ``retry_config.max_attempts``
    attempts in total. Non-200 responses, undecodable bodies and exhausted
    retries all come back as None. The instance holds no per-call state and
    may be shared between threads.
    """

    def __init__(
        self,
        transport,
        decoder,
        lookup_config: LookupConfig,
        retry_config: RetryConfig,
        logger,
    ) -> None:
        self.transport = transport
        self.lookup_config = lookup_config
        self.retry_config = retry_config
        self.logger = logger
        self.interpreter = ResponseInterpreter(decoder)

    @classmethod
    def from_config(cls, config: Config, logger) -> "RestLookupPollingClient":
        retry_config = create(config.retry_options)
        schema = load_schema(config.schema_file) if config.schema_file else None
        transport = RequestsTransport(timeout=config.http_timeout, headers=config.lookup_headers)
        lookup_config = LookupConfig(url=config.lookup_url, arguments=tuple(config.lookup_arguments))
        return cls(transport, JsonRowDecoder(schema), lookup_config, retry_config, logger)

    def pull(self, args: Sequence[LookupArg]) -> Optional[Row]:
        request = build_request(self.lookup_config.url, self.lookup_config.arguments, args)
        if request is ABSENT_REQUEST:
            self.logger.debug(
                "lookup_missing_arguments",
                extra={
                    "event": "lookup_missing_arguments",
                    "arguments": [arg.name for arg in args],
                },
            )
            return None

        start = time.monotonic()
        attempt = 1
        found = False
        try:
            while True:
                try:
                    response = self.transport.send(request)
                except TransportError as exc:
                    if attempt >= self.retry_config.max_attempts:
                        self.logger.warning(
                            "lookup_retries_exhausted",
                            extra={
                                "event": "lookup_retries_exhausted",
                                "detail": str(exc),
                                "attempt": attempt,
                                "url": request.full_url,
                            },
                        )
                        return None
                    delay_ms = self.retry_config.interval_function(attempt)
                    self.logger.warning(
                        "lookup_retry",
                        extra={
                            "event": "lookup_retry",
                            "detail": str(exc),
                            "attempt": attempt,
                            "delayMs": delay_ms,
                            "url": request.full_url,
                        },
                    )
                    time.sleep(delay_ms / 1000)
                    attempt += 1
                    continue

                outcome = self.interpreter.interpret(response.status_code, response.body)
                if isinstance(outcome, Found):
                    found = True
                    return outcome.row
                if outcome is NOT_FOUND:
                    self.logger.info(
                        "lookup_not_found",
                        extra={
                            "event": "lookup_not_found",
                            "statusCode": response.status_code,
                            "url": request.full_url,
                        },
                    )
                elif isinstance(outcome, Error):
                    self.logger.error(
                        "lookup_decode_failed",
                        extra={
                            "event": "lookup_decode_failed",
                            "detail": str(outcome.cause),
                            "statusCode": response.status_code,
                            "url": request.full_url,
                        },
                    )
                return None
        finally:
            self.logger.info(
                "lookup_pull",
                extra={
                    "event": "lookup_pull",
                    "durationMs": int((time.monotonic() - start) * 1000),
                    "attempts": attempt,
                    "found": found,
                },
            )
