"""Lookup request construction from bound key arguments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode


@dataclass(frozen=True)
class LookupArg:
    name: str
    value: str


@dataclass(frozen=True)
class LookupRequest:
    url: str
    params: Tuple[Tuple[str, str], ...]
    method: str = "GET"

    @property
    def full_url(self) -> str:
        if not self.params:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode(self.params)}"


class AbsentRequestType:
    def __repr__(self) -> str:
        return "ABSENT_REQUEST"


ABSENT_REQUEST = AbsentRequestType()


def build_request(
    url: str,
    argument_names: Sequence[str],
    args: Sequence[LookupArg],
) -> Union[LookupRequest, AbsentRequestType]:
    """Bind lookup args to the configured argument names.

    Returns ABSENT_REQUEST when no args were supplied or any configured name
    has no value, so that no call is made for an incomplete key.
    """
    if not args:
        return ABSENT_REQUEST

    values: Dict[str, str] = {}
    for arg in args:
        if arg.value is None or arg.name in values:
            continue
        values[arg.name] = arg.value

    params = []
    for name in argument_names:
        value: Optional[str] = values.get(name)
        if value is None:
            return ABSENT_REQUEST
        params.append((name, value))

    return LookupRequest(url=url, params=tuple(params))
