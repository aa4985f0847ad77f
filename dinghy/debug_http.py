"""HTTP session that logs each request and response at debug level."""

from __future__ import annotations

import logging
from urllib.parse import unquote

import requests
from requests.adapters import HTTPAdapter


class DebugLogger:
    """Writes request and response lines when the logger is at debug level."""

    def __init__(self, logger: logging.Logger) -> None:
        self.logger = logger

    def _log(self, msg: str, args: tuple) -> None:
        if self.logger.getEffectiveLevel() == logging.DEBUG:
            self.logger.debug(msg, *args)

    def log_request(self, msg: str, *args) -> None:
        self._log(msg, args)

    def log_response(self, msg: str, *args) -> None:
        self._log(msg, args)


class InterceptorAdapter(HTTPAdapter):
    """Transport adapter that reports method, status and URL of each call."""

    def __init__(self, debug_logger: DebugLogger, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.debug_logger = debug_logger

    def send(self, request, **kwargs):
        url = unquote(request.url)
        self.debug_logger.log_request(f"{request.method} --> {url}")
        response = super().send(request, **kwargs)
        self.debug_logger.log_response(f"{response.status_code} <-- {url}")
        return response


def new_interceptor_session(
    logger: logging.Logger,
    insecure: bool = False,
    cert: str | tuple[str, str] | None = None,
    ca_bundle: str | None = None,
) -> requests.Session:
    """Create a session whose traffic is logged through ``logger``."""
    session = requests.Session()
    adapter = InterceptorAdapter(DebugLogger(logger))
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = False if insecure else (ca_bundle or True)
    if cert is not None:
        session.cert = cert
    return session