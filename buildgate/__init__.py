from .build import BuildRunner, BuildSpec, Outcome, OutcomeStatus
from .orchestrator import Orchestrator, OrchestratorState
from .probe import CommandProbe, HttpProbe, ProbeError, ProbeResult, TcpProbe
from .service import DependencyHandle, DependencyState, EphemeralService, ExternalService
from .wait import WaitLoop, WaitPolicy, WaitResult, WaitStatus

__version__ = "0.1.0"

__all__ = [
    "BuildRunner",
    "BuildSpec",
    "Outcome",
    "OutcomeStatus",
    "Orchestrator",
    "OrchestratorState",
    "CommandProbe",
    "HttpProbe",
    "ProbeError",
    "ProbeResult",
    "TcpProbe",
    "DependencyHandle",
    "DependencyState",
    "EphemeralService",
    "ExternalService",
    "WaitLoop",
    "WaitPolicy",
    "WaitResult",
    "WaitStatus",
]
