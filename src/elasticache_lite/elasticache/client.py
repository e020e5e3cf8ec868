from __future__ import annotations

import functools
import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Union

from ..config import DEFAULT_REGION, resolved_aws_settings
from ..exceptions import ConfigurationError, CredentialsNotFound
from ..utils import as_utc, parse_expiry, to_bool, to_int, utcnow
from .connection import Connection
from .credentials import (
    Clock,
    CredentialFetcher,
    Credentials,
    CredentialStore,
    instance_profile_fetcher,
    session_fetcher,
)
from .dispatcher import Dispatcher, ResponseParser
from .operations import OPERATIONS, resolve
from .signer import EndpointDescriptor

logger = logging.getLogger(__name__)


def _port_setting(value: Optional[str]) -> Optional[int]:
    try:
        return to_int(value)
    except ValueError as e:
        raise ConfigurationError(f"ELASTICACHE_PORT must be an integer, got {value!r}") from e


class ElastiCacheClient:
    """
    Signed query-API client for ElastiCache.
    Settings come from explicit arguments first, then env/.env/config.toml.

    Every registered operation is also an attribute, so
    ``client.describe_cache_clusters({"ShowCacheNodeInfo": True})`` is
    ``client.call("describe_cache_clusters", {...})``.
    """

    def __init__(
        self,
        region_name: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        aws_session_token: Optional[str] = None,
        aws_credentials_expire_at: Optional[Union[datetime, str]] = None,
        host: Optional[str] = None,
        path: Optional[str] = None,
        port: Optional[int] = None,
        scheme: Optional[str] = None,
        persistent: Optional[bool] = None,
        use_iam_profile: Optional[bool] = None,
        profile_name: Optional[str] = None,
        credential_fetcher: Optional[CredentialFetcher] = None,
        timeout: float = 30,
        clock: Optional[Clock] = None,
    ) -> None:
        cfg = resolved_aws_settings()

        self._endpoint = EndpointDescriptor.for_region(
            region=region_name or cfg.get("AWS_DEFAULT_REGION"),
            host=host or cfg.get("ELASTICACHE_HOST"),
            path=path or cfg.get("ELASTICACHE_PATH"),
            port=port or _port_setting(cfg.get("ELASTICACHE_PORT")),
            scheme=scheme or cfg.get("ELASTICACHE_SCHEME"),
        )
        self._region = region_name or cfg.get("AWS_DEFAULT_REGION") or DEFAULT_REGION

        if use_iam_profile is None:
            use_iam_profile = to_bool(cfg.get("ELASTICACHE_USE_IAM_PROFILE"))
        if persistent is None:
            persistent = to_bool(cfg.get("ELASTICACHE_PERSISTENT"))

        fetcher = credential_fetcher
        if fetcher is None and use_iam_profile:
            fetcher = instance_profile_fetcher()
        elif fetcher is None and (profile_name or cfg.get("AWS_PROFILE")):
            fetcher = session_fetcher(profile_name or cfg.get("AWS_PROFILE"))

        access_key = aws_access_key_id or cfg.get("AWS_ACCESS_KEY_ID")
        secret_key = aws_secret_access_key or cfg.get("AWS_SECRET_ACCESS_KEY")
        if access_key and secret_key:
            expires_at = aws_credentials_expire_at
            if isinstance(expires_at, datetime):
                expires_at = as_utc(expires_at)
            else:
                expires_at = parse_expiry(
                    expires_at or cfg.get("AWS_CREDENTIALS_EXPIRE_AT")
                )
            initial = Credentials(
                access_key_id=access_key,
                secret_access_key=secret_key,
                session_token=aws_session_token or cfg.get("AWS_SESSION_TOKEN"),
                expires_at=expires_at,
            )
        elif fetcher is not None:
            try:
                initial = fetcher()
            except CredentialsNotFound:
                raise
            except Exception as e:
                raise CredentialsNotFound(str(e)) from e
        else:
            raise CredentialsNotFound(
                "AWS credentials not found. Pass keys, set env vars, or enable use_iam_profile."
            )

        self._credentials = CredentialStore(
            initial, fetcher=fetcher, clock=clock or utcnow
        )
        self._connection = Connection(
            self._endpoint.url, persistent=persistent, timeout=timeout
        )
        self._dispatcher = Dispatcher(
            self._credentials, self._endpoint, self._connection, clock=clock
        )
        logger.debug("ElastiCache client for %s", self._endpoint.url)

    @property
    def region(self) -> str:
        return self._region

    @property
    def endpoint(self) -> EndpointDescriptor:
        return self._endpoint

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    def call(
        self,
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        idempotent: Optional[bool] = None,
        parser: Optional[ResponseParser] = None,
    ) -> Any:
        """
        Sign and send one operation.

        Args:
            operation: Registered name ("describe_cache_clusters") or raw
                       action ("DescribeCacheClusters").
            params:    Request parameters; nested mappings and lists are
                       flattened to dotted keys.
            idempotent: Allow transport retries. Defaults to the registry.
            parser:    Called with the raw response body on success.

        Returns:
            The parser's result, or the raw body bytes without a parser.

        Raises:
            NotFound, IdentifierTaken, InvalidInstance: classified service errors
            TransportError: any other transport or HTTP failure, unchanged
            ConfigurationError: credentials could not be refreshed
        """
        op = resolve(operation)
        if idempotent is None:
            idempotent = op.idempotent
        return self._dispatcher.call(
            op.action, params, idempotent=idempotent, parser=parser
        )

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name in OPERATIONS:
            return functools.partial(self.call, name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def reload(self) -> None:
        """Reset the connection so the next call opens a fresh channel."""
        self._connection.reset()

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "ElastiCacheClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class _ElastiCacheFacade:
    """
    Convenience facade so callers can do:
        from elasticache_lite.elasticache import elasticache
        elasticache.call("describe_cache_clusters")
        elasticache() -> ElastiCacheClient  # construct explicitly
    """

    def __call__(self, *args: Any, **kwargs: Any) -> ElastiCacheClient:
        return ElastiCacheClient(*args, **kwargs)

    def call(self, *args: Any, **kwargs: Any) -> Any:
        with ElastiCacheClient() as client:
            return client.call(*args, **kwargs)


# Singleton-style convenience export
elasticache = _ElastiCacheFacade()


def call(*args: Any, **kwargs: Any) -> Any:
    """Functional alias: elasticache_lite.elasticache.call(...)."""
    with ElastiCacheClient() as client:
        return client.call(*args, **kwargs)
