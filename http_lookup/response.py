"""Mapping of HTTP responses to lookup outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .decoder import DecodeError, Row


@dataclass(frozen=True)
class Found:
    row: Row


class NotFoundType:
    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = NotFoundType()


@dataclass(frozen=True)
class Error:
    cause: Exception


LookupOutcome = Union[Found, NotFoundType, Error]


class ResponseInterpreter:
    """Only a 200 carries a row; every other status means no result.

    A 5xx is reported as NOT_FOUND like a 404, and is not retried by the
    polling client.
    """

    def __init__(self, decoder) -> None:
        self.decoder = decoder

    def interpret(self, status_code: int, body: bytes) -> LookupOutcome:
        if status_code != 200:
            return NOT_FOUND
        try:
            return Found(self.decoder.decode(body))
        except DecodeError as exc:
            return Error(exc)
