"""HTTP transport for lookup requests backed by requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import requests

from .request_builder import LookupRequest


class TransportError(Exception):
    def __init__(self, url: str, detail: str) -> None:
        super().__init__(f"Transport failure for {url}: {detail}")
        self.url = url
        self.detail = detail


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class RequestsTransport:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers: Dict[str, str] = dict(headers or {})

    def send(self, request: LookupRequest) -> HttpResponse:
        try:
            response = self.session.request(
                request.method,
                request.full_url,
                timeout=self.timeout,
                headers=self.headers,
            )
        except requests.RequestException as exc:
            raise TransportError(request.full_url, str(exc)) from exc
        return HttpResponse(status_code=response.status_code, body=response.content)

    def close(self) -> None:
        self.session.close()
