"""
Signature version 2 signing for the ElastiCache query API.

The signed request is a form-urlencoded POST body: every parameter, plus the
signing metadata, sorted and percent-encoded, with a base64 HMAC of the
canonical form appended as ``Signature``.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

from ..config import DEFAULT_REGION
from ..exceptions import SigningError
from .credentials import Credentials

API_VERSION = "2011-07-15"
SIGNATURE_VERSION = "2"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_DEFAULT_PORTS = {"http": 80, "https": 443}

# hashlib name -> SignatureMethod value
_SIGNATURE_METHODS = {
    "sha256": "HmacSHA256",
    "sha1": "HmacSHA1",
}


@dataclass(frozen=True)
class EndpointDescriptor:
    scheme: str
    host: str
    port: int
    path: str
    api_version: str = API_VERSION

    @staticmethod
    def for_region(
        region: Optional[str] = None,
        host: Optional[str] = None,
        path: Optional[str] = None,
        port: Optional[int] = None,
        scheme: Optional[str] = None,
        api_version: str = API_VERSION,
    ) -> "EndpointDescriptor":
        region = region or DEFAULT_REGION
        return EndpointDescriptor(
            scheme=scheme or "https",
            host=host or f"elasticache.{region}.amazonaws.com",
            port=port or 443,
            path=path or "/",
            api_version=api_version,
        )

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}{self.path}"

    @property
    def signing_host(self) -> str:
        # Matches the Host header: the port only appears when non-default.
        host = self.host.lower()
        if _DEFAULT_PORTS.get(self.scheme.lower()) == self.port:
            return host
        return f"{host}:{self.port}"


@dataclass(frozen=True)
class SignedRequest:
    body: str
    method: str = "POST"
    headers: Dict[str, str] = field(
        default_factory=lambda: {"Content-Type": FORM_CONTENT_TYPE}
    )


def encode(value: str) -> str:
    """Percent-encode per the signing rules: only A-Za-z0-9-_.~ pass through."""
    return quote(value, safe="-_.~")


def _to_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime(TIMESTAMP_FORMAT)
    return str(value)


def flatten_params(params: Mapping[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """
    Flatten nested params into dotted keys.

    ``{"Ids": ["a", "b"]}`` becomes ``Ids.1=a, Ids.2=b`` and
    ``{"Filter": {"Name": "x"}}`` becomes ``Filter.Name=x``. ``None`` values
    are dropped.
    """
    out: List[Tuple[str, str]] = []
    for key, value in params.items():
        if not isinstance(key, str):
            raise SigningError(f"Parameter names must be strings, got {key!r}")
        name = f"{prefix}.{key}" if prefix else key
        out.extend(_flatten_value(name, value))
    return out


def _flatten_value(name: str, value: Any) -> List[Tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        return flatten_params(value, name)
    if isinstance(value, (list, tuple)):
        out: List[Tuple[str, str]] = []
        for index, item in enumerate(value, start=1):
            out.extend(_flatten_value(f"{name}.{index}", item))
        return out
    return [(name, _to_param(value))]


def canonicalize(params: Mapping[str, Any]) -> str:
    """Sort by raw key in byte order, then encode and join as k=v&k=v."""
    pairs = sorted(flatten_params(params), key=lambda kv: kv[0].encode("utf-8"))
    return "&".join(f"{encode(k)}={encode(v)}" for k, v in pairs)


def string_to_sign(endpoint: EndpointDescriptor, canonical: str, method: str = "POST") -> str:
    return "\n".join([method, endpoint.signing_host, endpoint.path, canonical])


def sign(
    action: str,
    params: Mapping[str, Any],
    credentials: Credentials,
    endpoint: EndpointDescriptor,
    timestamp: Optional[datetime] = None,
    algorithm: str = "sha256",
) -> str:
    """
    Build the signed POST body for one call.

    The timestamp defaults to now; pass one in to get a reproducible body.
    """
    method = _SIGNATURE_METHODS.get(algorithm)
    if method is None:
        raise SigningError(f"Unsupported signing algorithm: {algorithm}")

    merged: Dict[str, Any] = dict(params)
    merged.update(
        {
            "Action": action,
            "Version": endpoint.api_version,
            "AWSAccessKeyId": credentials.access_key_id,
            "SignatureMethod": method,
            "SignatureVersion": SIGNATURE_VERSION,
            "Timestamp": timestamp or datetime.now(timezone.utc),
        }
    )
    if credentials.session_token:
        merged["SecurityToken"] = credentials.session_token

    canonical = canonicalize(merged)
    digest = hmac.new(
        credentials.secret_access_key.encode("utf-8"),
        string_to_sign(endpoint, canonical).encode("utf-8"),
        getattr(hashlib, algorithm),
    ).digest()
    signature = base64.b64encode(digest).decode("ascii")
    return f"{canonical}&Signature={encode(signature)}"
