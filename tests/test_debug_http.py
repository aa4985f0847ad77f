import http.server
import logging
import socket
import threading

import pytest
import requests

from dinghy.debug_http import DebugLogger, new_interceptor_session

LOGGER_NAME = "tests.debug_http"


class _OkHandler(http.server.BaseHTTPRequestHandler):
    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format, *args):
        pass


@pytest.fixture
def server_url():
    server = http.server.HTTPServer(("127.0.0.1", 0), _OkHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def debug_logger():
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    yield logger
    logger.setLevel(logging.NOTSET)


def test_new_interceptor_session(server_url, debug_logger, caplog):
    session = new_interceptor_session(debug_logger, insecure=True)
    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        response = session.get(server_url + "/a%20b")
    assert response.status_code == 200
    messages = [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]
    assert messages == [
        f"GET --> {server_url}/a b",
        f"200 <-- {server_url}/a b",
    ]


def test_insecure_disables_verification(debug_logger):
    assert new_interceptor_session(debug_logger, insecure=True).verify is False
    assert new_interceptor_session(debug_logger).verify is True
    session = new_interceptor_session(debug_logger, ca_bundle="/tmp/ca.pem")
    assert session.verify == "/tmp/ca.pem"


def test_failed_request_logs_only_request(debug_logger, caplog):
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    session = new_interceptor_session(debug_logger, insecure=True)
    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        with pytest.raises(requests.ConnectionError):
            session.get(f"http://127.0.0.1:{port}/")
    messages = [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]
    assert messages == [f"GET --> http://127.0.0.1:{port}/"]


def test_debug_logger_silent_above_debug(caplog):
    logger = logging.getLogger(LOGGER_NAME + ".quiet")
    logger.setLevel(logging.INFO)
    with caplog.at_level(logging.DEBUG):
        DebugLogger(logger).log_request("GET --> %s", "x")
    assert [r for r in caplog.records if r.name == logger.name] == []


def test_debug_logger_formats_args(debug_logger, caplog):
    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        DebugLogger(debug_logger).log_response("%d <-- %s", 404, "/x")
    messages = [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]
    assert messages == ["404 <-- /x"]