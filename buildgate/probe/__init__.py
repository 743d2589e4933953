from .probes import CommandProbe, HttpProbe, TcpProbe
from .types import ProbeError, ProbeResult, ReadinessProbe

__all__ = [
    "CommandProbe",
    "HttpProbe",
    "TcpProbe",
    "ProbeError",
    "ProbeResult",
    "ReadinessProbe",
]
