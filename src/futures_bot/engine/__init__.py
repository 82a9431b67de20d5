"""Decision context fan-in: merges ticks and indicator snapshots into fused signals."""

from .merger import (
    ContextUpdate,
    DecisionContext,
    DecisionMerger,
    IndicatorUpdate,
    SignalEvent,
    TickUpdate,
)

__all__ = [
    "ContextUpdate",
    "DecisionContext",
    "DecisionMerger",
    "IndicatorUpdate",
    "SignalEvent",
    "TickUpdate",
]
