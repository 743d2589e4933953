from .address import resolve_host
from .ephemeral import EphemeralService, ExternalService
from .types import (
    DependencyHandle,
    DependencyState,
    ServiceError,
    StartError,
    StopError,
)

__all__ = [
    "resolve_host",
    "EphemeralService",
    "ExternalService",
    "DependencyHandle",
    "DependencyState",
    "ServiceError",
    "StartError",
    "StopError",
]
