from .runner import BuildRunner
from .types import BuildResult, BuildSpec, Outcome, OutcomeStatus

__all__ = ["BuildRunner", "BuildResult", "BuildSpec", "Outcome", "OutcomeStatus"]
