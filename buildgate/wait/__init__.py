from .loop import WaitLoop
from .types import WaitPolicy, WaitResult, WaitStatus

__all__ = ["WaitLoop", "WaitPolicy", "WaitResult", "WaitStatus"]
