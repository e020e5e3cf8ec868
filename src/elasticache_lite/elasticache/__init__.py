from .client import (
    ElastiCacheClient as ElastiCacheClient,
    call as call,
    elasticache as elasticache,
)
from .credentials import Credentials as Credentials, CredentialStore as CredentialStore
from .signer import EndpointDescriptor as EndpointDescriptor, sign as sign

__all__ = [
    "ElastiCacheClient",
    "elasticache",
    "call",
    "Credentials",
    "CredentialStore",
    "EndpointDescriptor",
    "sign",
]
