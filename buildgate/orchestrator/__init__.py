from .orchestrator import Orchestrator
from .types import DependencyService, OrchestratorState, Runner

__all__ = ["Orchestrator", "DependencyService", "OrchestratorState", "Runner"]
