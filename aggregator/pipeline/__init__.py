from .context import RunContext
from .runner import ItemOutcome, ItemStatus, RunReport, RunState, Runner
from .sequence import Pipeline

__all__ = [
    "ItemOutcome",
    "ItemStatus",
    "Pipeline",
    "RunContext",
    "RunReport",
    "RunState",
    "Runner",
]
