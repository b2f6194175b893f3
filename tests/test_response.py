import pytest

from http_lookup.decoder import DecodeError, JsonRowDecoder
from http_lookup.response import NOT_FOUND, Error, Found, ResponseInterpreter


def test_200_with_valid_body_is_found():
    outcome = ResponseInterpreter(JsonRowDecoder()).interpret(200, b'{"id": "1"}')
    assert outcome == Found({"id": "1"})


def test_200_with_bad_body_is_error():
    outcome = ResponseInterpreter(JsonRowDecoder()).interpret(200, b"<html>")
    assert isinstance(outcome, Error)
    assert isinstance(outcome.cause, DecodeError)


@pytest.mark.parametrize("status_code", [201, 204, 301, 400, 404, 429, 500, 503])
def test_non_200_is_not_found(status_code):
    class ExplodingDecoder:
        def decode(self, body):
            raise AssertionError("decoder must not be called")

    outcome = ResponseInterpreter(ExplodingDecoder()).interpret(status_code, b'{"id": "1"}')
    assert outcome is NOT_FOUND
