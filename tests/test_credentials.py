import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest

from elasticache_lite.elasticache.credentials import (
    Credentials,
    CredentialStore,
    instance_profile_fetcher,
)
from elasticache_lite.exceptions import ConfigurationError, CredentialsNotFound

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def clock():
    return NOW


def test_no_expiry_never_expires():
    store = CredentialStore(Credentials("AKID", "secret"), clock=clock)
    assert store.is_expired() is False


def test_past_expiry_is_expired():
    creds = Credentials("AKID", "secret", expires_at=NOW - timedelta(seconds=1))
    assert CredentialStore(creds, clock=clock).is_expired() is True


def test_expiry_at_now_is_expired():
    creds = Credentials("AKID", "secret", expires_at=NOW)
    assert CredentialStore(creds, clock=clock).is_expired() is True


def test_future_expiry_is_not_expired():
    creds = Credentials("AKID", "secret", expires_at=NOW + timedelta(minutes=5))
    assert CredentialStore(creds, clock=clock).is_expired() is False


def test_secret_not_in_repr():
    assert "secret-value" not in repr(Credentials("AKID", "secret-value", "token"))


def test_refresh_replaces_credentials():
    fresh = Credentials("NEW", "new-secret", "tok", NOW + timedelta(hours=1))
    store = CredentialStore(
        Credentials("OLD", "old", expires_at=NOW - timedelta(seconds=1)),
        fetcher=lambda: fresh,
        clock=clock,
    )
    assert store.refresh_if_expired() is fresh
    assert store.current() is fresh
    assert store.is_expired() is False


def test_refresh_if_expired_skips_valid_credentials():
    fetcher = Mock()
    creds = Credentials("AKID", "secret", expires_at=NOW + timedelta(hours=1))
    store = CredentialStore(creds, fetcher=fetcher, clock=clock)
    assert store.refresh_if_expired() is creds
    fetcher.assert_not_called()


def test_refresh_without_fetcher_is_configuration_error():
    store = CredentialStore(
        Credentials("AKID", "secret", expires_at=NOW - timedelta(seconds=1)),
        clock=clock,
    )
    with pytest.raises(ConfigurationError):
        store.refresh_if_expired()


def test_refresh_failure_is_wrapped():
    def broken():
        raise RuntimeError("metadata unreachable")

    store = CredentialStore(Credentials("AKID", "secret"), fetcher=broken, clock=clock)
    with pytest.raises(CredentialsNotFound) as exc_info:
        store.refresh()
    assert "metadata unreachable" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert store.current().access_key_id == "AKID"


def test_concurrent_callers_refresh_once():
    calls = []
    gate = threading.Event()

    def fetcher():
        calls.append(1)
        gate.wait(1)
        return Credentials("NEW", "new", expires_at=NOW + timedelta(hours=1))

    store = CredentialStore(
        Credentials("OLD", "old", expires_at=NOW - timedelta(seconds=1)),
        fetcher=fetcher,
        clock=clock,
    )
    results = []
    threads = [
        threading.Thread(target=lambda: results.append(store.refresh_if_expired()))
        for _ in range(5)
    ]
    for t in threads:
        t.start()
    gate.set()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert {r.access_key_id for r in results} == {"NEW"}


@patch("elasticache_lite.elasticache.credentials.InstanceMetadataFetcher")
def test_instance_profile_fetcher(mock_fetcher_cls):
    mock_fetcher_cls.return_value.retrieve_iam_role_credentials.return_value = {
        "role_name": "cache-admin",
        "access_key": "ASIA",
        "secret_key": "s3cr3t",
        "token": "tok",
        "expiry_time": "2024-05-01T18:00:00Z",
    }
    creds = instance_profile_fetcher()()
    assert creds.access_key_id == "ASIA"
    assert creds.session_token == "tok"
    assert creds.expires_at == datetime(2024, 5, 1, 18, 0, 0, tzinfo=timezone.utc)


@patch("elasticache_lite.elasticache.credentials.InstanceMetadataFetcher")
def test_instance_profile_fetcher_without_role(mock_fetcher_cls):
    mock_fetcher_cls.return_value.retrieve_iam_role_credentials.return_value = {}
    with pytest.raises(CredentialsNotFound):
        instance_profile_fetcher()()


def test_naive_expiry_treated_as_utc():
    naive_now = NOW.replace(tzinfo=None)
    past = Credentials("AKID", "secret", expires_at=naive_now - timedelta(seconds=1))
    future = Credentials("AKID", "secret", expires_at=naive_now + timedelta(hours=1))
    assert CredentialStore(past, clock=clock).is_expired() is True
    assert CredentialStore(future, clock=clock).is_expired() is False
