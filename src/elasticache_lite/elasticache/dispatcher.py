from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional, Type
from xml.etree import ElementTree as ET

from ..exceptions import (
    IdentifierTaken,
    InvalidInstance,
    NotFound,
    ServiceError,
    TransportError,
)
from .connection import Connection
from .credentials import Clock, CredentialStore
from .signer import EndpointDescriptor, SignedRequest, sign

logger = logging.getLogger(__name__)

ResponseParser = Callable[[bytes], Any]

SERVICE_ERRORS: Dict[str, Type[ServiceError]] = {
    "CacheClusterNotFound": NotFound,
    "CacheSecurityGroupNotFound": NotFound,
    "CacheParameterGroupNotFound": NotFound,
    "CacheSecurityGroupAlreadyExists": IdentifierTaken,
    "InvalidParameterValue": InvalidInstance,
}

_CODE_RE = re.compile(r"<Code>(.*?)</Code>", re.DOTALL)


def extract_error_code(body: Optional[str]) -> Optional[str]:
    """Return the service error code from an error response body, if any."""
    if not body:
        return None
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        match = _CODE_RE.search(body)
        return match.group(1).strip() if match else None
    for element in root.iter():
        # Tags come back as "{namespace}Code" when the body is namespaced.
        if element.tag.rsplit("}", 1)[-1] == "Code":
            return (element.text or "").strip() or None
    return None


def classify_error(error: TransportError) -> Optional[ServiceError]:
    """Map a failed response onto a service error kind, or None if unknown."""
    code = extract_error_code(error.body)
    error_type = SERVICE_ERRORS.get(code) if code else None
    if error_type is None:
        return None
    return error_type(error.message, code=code)


class Dispatcher:
    """
    Runs one call: credential check, signing, sending, then parse or classify.

    Business errors are never retried here; transport retries for idempotent
    calls happen inside the Connection.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        endpoint: EndpointDescriptor,
        connection: Connection,
        clock: Optional[Clock] = None,
        algorithm: str = "sha256",
    ) -> None:
        self.credentials = credentials
        self.endpoint = endpoint
        self.connection = connection
        self.clock = clock
        self.algorithm = algorithm

    def call(
        self,
        action: str,
        params: Optional[Mapping[str, Any]] = None,
        idempotent: bool = False,
        parser: Optional[ResponseParser] = None,
    ) -> Any:
        logger.debug("%s: checking credentials", action)
        creds = self.credentials.refresh_if_expired()

        logger.debug("%s: signing", action)
        body = sign(
            action,
            params or {},
            creds,
            self.endpoint,
            timestamp=self.clock() if self.clock else None,
            algorithm=self.algorithm,
        )

        logger.debug("%s: sending to %s", action, self.endpoint.host)
        try:
            response = self.connection.send(SignedRequest(body=body), idempotent=idempotent)
        except TransportError as error:
            service_error = classify_error(error)
            if service_error is None:
                raise
            logger.debug("%s: service error %s", action, service_error.code)
            raise service_error from error

        logger.debug("%s: success", action)
        if parser is None:
            return response.content
        return parser(response.content)
