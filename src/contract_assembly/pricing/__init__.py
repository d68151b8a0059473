"""Project pricing."""

from .engine import (
    DEFAULT_MILESTONES,
    DEFAULT_REMAINDER_MILESTONE,
    PricingEngine,
    round_half_up,
    summarize_models,
)

__all__ = [
    "DEFAULT_MILESTONES",
    "DEFAULT_REMAINDER_MILESTONE",
    "PricingEngine",
    "round_half_up",
    "summarize_models",
]
