"""JSON response body decoding into rows."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from .schema import CoercionError, RowSchema, project_row


Row = Dict[str, Any]


class DecodeError(Exception):
    pass


class JsonRowDecoder:
    def __init__(self, schema: Optional[RowSchema] = None) -> None:
        self.schema = schema

    def decode(self, body: bytes) -> Row:
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise DecodeError(f"Response body is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")

        if self.schema is None:
            return payload

        try:
            return project_row(payload, self.schema)
        except CoercionError as exc:
            raise DecodeError(f"Response does not match schema: {exc}") from exc
