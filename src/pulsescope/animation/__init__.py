"""Easing curves and beat-reaction decay."""

from pulsescope.animation.easing import (
    EASINGS,
    decay,
    ease_in_out_sine,
    ease_out_cubic,
    ease_out_expo,
    ease_out_quad,
    get_easing,
)
from pulsescope.animation.reaction import DecayChannel, ReactionConfig, ReactionState

__all__ = [
    "EASINGS",
    "decay",
    "ease_in_out_sine",
    "ease_out_cubic",
    "ease_out_expo",
    "ease_out_quad",
    "get_easing",
    "DecayChannel",
    "ReactionConfig",
    "ReactionState",
]
