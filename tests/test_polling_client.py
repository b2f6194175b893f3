import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest
import requests

from http_lookup import polling_client
from http_lookup.config import Config
from http_lookup.decoder import JsonRowDecoder
from http_lookup.polling_client import LookupConfig, RestLookupPollingClient
from http_lookup.request_builder import LookupArg
from http_lookup.retry_config import ConfigError, create
from http_lookup.schema import load_schema
from http_lookup.transport import HttpResponse, RequestsTransport, TransportError


FIXTURES = Path(__file__).resolve().parent / "fixtures" / "http"
LOOKUP_KEYS = ("id", "uuid")
ARGS = [LookupArg("id", "1"), LookupArg("uuid", "2")]


class DummyLogger:
    def __init__(self) -> None:
        self.messages = []

    def _log(self, message, extra=None):
        self.messages.append((message, extra))

    debug = info = warning = error = _log

    def events(self):
        return [message for message, _ in self.messages]


class StubTransport:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def send(self, request):
        self.requests.append(request)
        outcome = self.outcomes[min(len(self.requests), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class StubServerHandler(BaseHTTPRequestHandler):
    status = 200
    body = b""
    paths = []

    def do_GET(self):
        type(self).paths.append(self.path)
        self.send_response(type(self).status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(type(self).body)))
        self.end_headers()
        self.wfile.write(type(self).body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def stub_server():
    StubServerHandler.status = 200
    StubServerHandler.body = (FIXTURES / "HttpResult.json").read_bytes()
    StubServerHandler.paths = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), StubServerHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def no_sleep(monkeypatch):
    delays = []
    monkeypatch.setattr(polling_client.time, "sleep", lambda seconds: delays.append(seconds))
    return delays


def _retry_config(max_attempts=3, delay="10ms"):
    return create({"retry-strategy.fixed-delay.delay": delay, "max-retries": max_attempts})


def _build_client(transport, logger=None, retry_config=None, schema=None):
    return RestLookupPollingClient(
        transport,
        JsonRowDecoder(schema),
        LookupConfig(url="http://localhost/service", arguments=LOOKUP_KEYS),
        retry_config or _retry_config(),
        logger or DummyLogger(),
    )


def _server_client(server):
    host, port = server.server_address
    session = requests.Session()
    session.trust_env = False
    return RestLookupPollingClient(
        RequestsTransport(session, timeout=5),
        JsonRowDecoder(load_schema(FIXTURES / "schema.yaml")),
        LookupConfig(url=f"http://{host}:{port}/service", arguments=LOOKUP_KEYS),
        _retry_config(),
        DummyLogger(),
    )


def test_query_200_with_params(stub_server):
    row = _server_client(stub_server).pull(ARGS)

    assert StubServerHandler.paths == ["/service?id=1&uuid=2"]
    assert len(row) == 4
    assert row["msg"] == "Returned HTTP message for parameter PARAM, COUNTER"
    assert row["details"]["isActive"] is True
    assert row["details"]["nestedDetails"]["balance"] == "$1,729.34"


@pytest.mark.parametrize("status", [201, 500])
def test_non_200_is_absent_without_retry(stub_server, status):
    StubServerHandler.status = status

    assert _server_client(stub_server).pull(ARGS) is None
    assert StubServerHandler.paths == ["/service?id=1&uuid=2"]


def test_missing_arguments_make_no_call(stub_server):
    client = _server_client(stub_server)

    assert client.pull([]) is None
    assert client.pull([LookupArg("id", "1")]) is None
    assert StubServerHandler.paths == []


def test_pull_is_idempotent(stub_server):
    client = _server_client(stub_server)
    assert client.pull(ARGS) == client.pull(ARGS)
    assert len(StubServerHandler.paths) == 2


def test_persistent_transport_failure_uses_exactly_max_attempts(no_sleep):
    transport = StubTransport([TransportError("http://localhost/service", "refused")])
    logger = DummyLogger()
    client = _build_client(transport, logger, _retry_config(max_attempts=4, delay="250ms"))

    assert client.pull(ARGS) is None
    assert len(transport.requests) == 4
    assert no_sleep == [0.25, 0.25, 0.25]
    assert logger.events().count("lookup_retry") == 3
    assert "lookup_retries_exhausted" in logger.events()


def test_single_attempt_never_sleeps(no_sleep):
    transport = StubTransport([TransportError("http://localhost/service", "timeout")])
    client = _build_client(transport, retry_config=_retry_config(max_attempts=1))

    assert client.pull(ARGS) is None
    assert len(transport.requests) == 1
    assert no_sleep == []


def test_exponential_delays_between_attempts(no_sleep):
    retry_config = create(
        {
            "retry-strategy.type": "exponential-delay",
            "retry-strategy.exponential-delay.initial-backoff": "100ms",
            "retry-strategy.exponential-delay.max-backoff": "300ms",
            "retry-strategy.exponential-delay.backoff-multiplier": 2,
            "max-retries": 5,
        }
    )
    transport = StubTransport([TransportError("http://localhost/service", "refused")])
    client = _build_client(transport, retry_config=retry_config)

    assert client.pull(ARGS) is None
    assert no_sleep == [0.1, 0.2, 0.3, 0.3]


def test_recovers_after_transport_failure(no_sleep):
    transport = StubTransport(
        [
            TransportError("http://localhost/service", "reset"),
            HttpResponse(status_code=200, body=b'{"id": "1"}'),
        ]
    )

    assert _build_client(transport).pull(ARGS) == {"id": "1"}
    assert len(transport.requests) == 2
    assert no_sleep == [0.01]


def test_transport_failure_then_not_found_stops(no_sleep):
    transport = StubTransport(
        [
            TransportError("http://localhost/service", "reset"),
            HttpResponse(status_code=503, body=b""),
            HttpResponse(status_code=200, body=b'{"id": "1"}'),
        ]
    )

    assert _build_client(transport).pull(ARGS) is None
    assert len(transport.requests) == 2


def test_decode_failure_is_absent_and_logged(no_sleep):
    transport = StubTransport([HttpResponse(status_code=200, body=b"not json")])
    logger = DummyLogger()

    assert _build_client(transport, logger).pull(ARGS) is None
    assert len(transport.requests) == 1
    assert "lookup_decode_failed" in logger.events()


def test_pull_logs_summary():
    transport = StubTransport([HttpResponse(status_code=200, body=b'{"id": "1"}')])
    logger = DummyLogger()

    _build_client(transport, logger).pull(ARGS)

    summary = [extra for message, extra in logger.messages if message == "lookup_pull"]
    assert summary[0]["found"] is True
    assert summary[0]["attempts"] == 1


def test_from_config_rejects_invalid_retry_options():
    config = Config(
        lookup_url="http://localhost/service",
        lookup_arguments=["id"],
        lookup_headers={},
        http_timeout=5,
        log_file="logs/test.log",
        log_level="INFO",
        schema_file=None,
        retry_options={"retry-strategy.type": "exponential-delay"},
    )
    with pytest.raises(ConfigError):
        RestLookupPollingClient.from_config(config, logging.getLogger("test_polling_client"))


def test_from_config_wires_collaborators():
    config = Config(
        lookup_url="http://localhost/service",
        lookup_arguments=["id", "uuid"],
        lookup_headers={"Accept": "application/json"},
        http_timeout=7,
        log_file="logs/test.log",
        log_level="INFO",
        schema_file=str(FIXTURES / "schema.yaml"),
        retry_options={"retry-strategy.fixed-delay.delay": "1s", "max-retries": 2},
    )

    client = RestLookupPollingClient.from_config(config, logging.getLogger("test_polling_client"))

    assert client.lookup_config == LookupConfig(url="http://localhost/service", arguments=LOOKUP_KEYS)
    assert client.retry_config.max_attempts == 2
    assert client.transport.timeout == 7
    assert client.transport.headers == {"Accept": "application/json"}
