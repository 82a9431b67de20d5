"""Signal fusion: indicator state plus tick price into a discrete trading signal."""

from .fusion import FusionResult, Signal, SignalSettings, SignalWeights, calculate_score, fuse_signal, score_to_signal

__all__ = [
    "FusionResult",
    "Signal",
    "SignalSettings",
    "SignalWeights",
    "calculate_score",
    "fuse_signal",
    "score_to_signal",
]
