"""HTTP channel to one ElastiCache endpoint.

Sends signed form posts over a requests session and turns anything other than
a 200 into a TransportError carrying the response body.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import TransportError
from .signer import SignedRequest

logger = logging.getLogger(__name__)

EXPECTED_STATUS = 200


class Connection:
    """Reusable transport channel to a single endpoint URL.

    Idempotent and non-idempotent sends go through separate sessions: the
    first mounts a retry policy for connect/read failures, the second never
    retries. In persistent mode the sessions (and their pools) are kept
    across calls; otherwise they are closed after each call. Not safe for
    concurrent ``send`` from several threads: give each thread its own client.

    Args:
        url: Full endpoint URL (scheme://host:port/path)
        persistent: Keep the sessions open between calls
        timeout: Connect/read timeout in seconds
        retry_limit: Attempts for idempotent requests on transient errors
        backoff_factor: urllib3 backoff between idempotent retries
    """

    def __init__(
        self,
        url: str,
        persistent: bool = False,
        timeout: float = 30,
        retry_limit: int = 4,
        backoff_factor: float = 0.5,
    ) -> None:
        if not url:
            raise ValueError("url cannot be empty")
        self.url = url
        self.persistent = persistent
        self.timeout = timeout
        self.retry_limit = max(1, retry_limit)
        self.backoff_factor = backoff_factor
        self._sessions: Dict[bool, requests.Session] = {}

    def _retry_strategy(self, idempotent: bool) -> Retry:
        if not idempotent:
            return Retry(total=0, read=False, status=0, raise_on_status=False)
        retries = self.retry_limit - 1
        return Retry(
            total=retries,
            connect=retries,
            read=retries,
            status=0,  # non-200 responses are surfaced, never retried
            backoff_factor=self.backoff_factor,
            allowed_methods=frozenset({"POST"}),
            raise_on_status=False,
        )

    def _create_session(self, idempotent: bool) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(max_retries=self._retry_strategy(idempotent))
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _channel(self, idempotent: bool = False) -> requests.Session:
        session = self._sessions.get(idempotent)
        if session is None:
            session = self._sessions[idempotent] = self._create_session(idempotent)
        return session

    def send(self, request: SignedRequest, idempotent: bool = False) -> requests.Response:
        """Send a signed request and return the 200 response.

        Raises:
            TransportError: On connection failure, timeout or a non-200 status
        """
        try:
            return self._check(self._post(request, idempotent))
        finally:
            if not self.persistent:
                self.reset()

    def _post(self, request: SignedRequest, idempotent: bool) -> requests.Response:
        logger.debug("POST %s (idempotent=%s)", self.url, idempotent)
        try:
            return self._channel(idempotent).request(
                request.method,
                self.url,
                data=request.body,
                headers=request.headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            self.reset()
            raise TransportError(f"Request timed out after {self.timeout}s: {e}") from e
        except requests.exceptions.ConnectionError as e:
            self.reset()
            raise TransportError(f"Connection failed: {e}") from e
        except requests.exceptions.RequestException as e:
            self.reset()
            raise TransportError(f"Transport error: {e}") from e

    def _check(self, response: requests.Response) -> requests.Response:
        if response.status_code != EXPECTED_STATUS:
            body = response.text
            raise TransportError(
                f"Expected({EXPECTED_STATUS}) <=> Actual({response.status_code} "
                f"{response.reason})\n{body}",
                status_code=response.status_code,
                reason=response.reason,
                body=body,
            )
        return response

    def reset(self) -> None:
        """Tear down the channel; the next send opens a fresh one."""
        sessions, self._sessions = self._sessions, {}
        for session in sessions.values():
            session.close()

    def close(self) -> None:
        self.reset()

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
