from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

import boto3
import botocore
from botocore.utils import InstanceMetadataFetcher

from ..exceptions import CredentialsNotFound
from ..utils import as_utc, parse_expiry, utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
CredentialFetcher = Callable[[], "Credentials"]


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[datetime] = None


class CredentialStore:
    """
    Holds the credential set a client signs with.

    The set is replaced as a whole on refresh. Reads and refreshes share one
    lock so callers never observe a half-updated set and concurrent callers
    that see the same expiry trigger a single refresh.
    """

    def __init__(
        self,
        credentials: Credentials,
        fetcher: Optional[CredentialFetcher] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._credentials = credentials
        self._fetcher = fetcher
        self._clock = clock
        self._lock = threading.Lock()

    def current(self) -> Credentials:
        with self._lock:
            return self._credentials

    def is_expired(self) -> bool:
        return self._expired(self.current())

    def refresh(self) -> Credentials:
        with self._lock:
            return self._refresh_locked()

    def refresh_if_expired(self) -> Credentials:
        with self._lock:
            if self._expired(self._credentials):
                return self._refresh_locked()
            return self._credentials

    def _expired(self, credentials: Credentials) -> bool:
        expires_at = credentials.expires_at
        return expires_at is not None and as_utc(expires_at) <= as_utc(self._clock())

    def _refresh_locked(self) -> Credentials:
        if self._fetcher is None:
            raise CredentialsNotFound(
                "Credentials expired and no credential source is configured to refresh them."
            )
        logger.debug("Refreshing credentials for %s", self._credentials.access_key_id)
        try:
            fresh = self._fetcher()
        except CredentialsNotFound:
            logger.warning("Credential refresh failed")
            raise
        except Exception as e:
            logger.warning("Credential refresh failed: %s", e)
            raise CredentialsNotFound(f"Credential refresh failed: {e}") from e
        self._credentials = fresh
        return fresh


def instance_profile_fetcher(
    timeout: float = 1.0, num_attempts: int = 1
) -> CredentialFetcher:
    """Fetch role credentials from the EC2 instance metadata service."""

    def fetch() -> Credentials:
        fetcher = InstanceMetadataFetcher(timeout=timeout, num_attempts=num_attempts)
        data = fetcher.retrieve_iam_role_credentials()
        if not data:
            raise CredentialsNotFound(
                "No IAM role credentials available from instance metadata."
            )
        return Credentials(
            access_key_id=data["access_key"],
            secret_access_key=data["secret_key"],
            session_token=data.get("token"),
            expires_at=parse_expiry(data.get("expiry_time")),
        )

    return fetch


def session_fetcher(profile_name: Optional[str] = None) -> CredentialFetcher:
    """Resolve credentials through the boto3 credential chain."""

    def fetch() -> Credentials:
        try:
            session = boto3.session.Session(profile_name=profile_name)
            resolved = session.get_credentials()
        except botocore.exceptions.ProfileNotFound as e:
            raise CredentialsNotFound(str(e)) from e
        if resolved is None:
            raise CredentialsNotFound(
                "AWS credentials not found. Set env vars, ~/.aws/credentials, or an IAM role."
            )
        frozen = resolved.get_frozen_credentials()
        return Credentials(
            access_key_id=frozen.access_key,
            secret_access_key=frozen.secret_key,
            session_token=frozen.token,
        )

    return fetch
