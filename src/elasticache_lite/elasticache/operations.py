from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class Operation:
    name: str
    action: str
    idempotent: bool = False


def _op(name: str, idempotent: bool = False) -> Operation:
    action = "".join(part.capitalize() for part in name.split("_"))
    return Operation(name=name, action=action, idempotent=idempotent)


OPERATIONS: Dict[str, Operation] = {
    op.name: op
    for op in (
        # clusters
        _op("create_cache_cluster"),
        _op("delete_cache_cluster"),
        _op("describe_cache_clusters", idempotent=True),
        _op("modify_cache_cluster"),
        _op("reboot_cache_cluster"),
        # parameter groups
        _op("create_cache_parameter_group"),
        _op("delete_cache_parameter_group"),
        _op("describe_cache_parameter_groups", idempotent=True),
        _op("modify_cache_parameter_group"),
        _op("reset_cache_parameter_group"),
        _op("describe_engine_default_parameters", idempotent=True),
        _op("describe_cache_parameters", idempotent=True),
        # security groups
        _op("create_cache_security_group"),
        _op("delete_cache_security_group"),
        _op("describe_cache_security_groups", idempotent=True),
        _op("authorize_cache_security_group_ingress"),
        _op("revoke_cache_security_group_ingress"),
        # events
        _op("describe_events", idempotent=True),
    )
}


def resolve(operation: str) -> Operation:
    """Look up a registered name; anything else is taken as a raw action name."""
    op = OPERATIONS.get(operation)
    if op is not None:
        return op
    return Operation(name=operation, action=operation)
