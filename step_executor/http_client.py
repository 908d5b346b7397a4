"""
HTTP collaborators used by ``Executor.ping``.
"""
import logging
from typing import Dict, List, Optional, Protocol, Tuple

import requests

DEFAULT_TIMEOUT = 30


class HttpClient(Protocol):
    """Performs a blocking GET. Failures are raised, the body is not used."""

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> None:
        ...


class RequestsHttpClient:
    """``requests`` based client. Non-2xx responses raise ``requests.HTTPError``."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = DEFAULT_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> None:
        response = self.session.get(url, headers=headers or {}, timeout=self.timeout)
        logging.debug(f"  GET {url} -> {response.status_code}")
        response.raise_for_status()


class RecordingHttpClient:
    """Records requests instead of sending them, optionally failing each one."""

    def __init__(self, error: Optional[Exception] = None):
        self.requests: List[Tuple[str, Dict[str, str]]] = []
        self.error = error

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> None:
        self.requests.append((url, dict(headers or {})))
        if self.error is not None:
            raise self.error
