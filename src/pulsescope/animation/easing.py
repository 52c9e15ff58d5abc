"""
Easing curves for beat-reactive values.

Every curve maps progress t in [0, 1] to [0, 1]. "Ease out" curves move fast
at the start and settle slowly, which reads well as a beat decaying.
"""

import math
from typing import Callable

EasingFn = Callable[[float], float]


def ease_out_quad(t: float) -> float:
    """Gentle deceleration: 1 - (1-t)^2."""
    return 1 - (1 - t) * (1 - t)


def ease_out_cubic(t: float) -> float:
    """Medium deceleration: 1 - (1-t)^3."""
    return 1 - (1 - t) ** 3


def ease_out_expo(t: float) -> float:
    """Punchy attack with a long tail: 1 - 2^(-10t), exactly 1 from t=1."""
    if t >= 1:
        return 1.0
    return 1 - 2 ** (-10 * t)


def ease_in_out_sine(t: float) -> float:
    """Smooth S-curve for subtle effects."""
    return -(math.cos(math.pi * t) - 1) / 2


EASINGS: dict[str, EasingFn] = {
    "ease_out_quad": ease_out_quad,
    "ease_out_cubic": ease_out_cubic,
    "ease_out_expo": ease_out_expo,
    "ease_in_out_sine": ease_in_out_sine,
}


def get_easing(name: str) -> EasingFn:
    """Look up a curve by name (as written in scene files)."""
    try:
        return EASINGS[name]
    except KeyError:
        raise ValueError(
            f"Unknown easing {name!r}; choose from {sorted(EASINGS)}"
        ) from None


def decay(elapsed: float, duration: float, easing: EasingFn = ease_out_expo) -> float:
    """
    Decay factor for `elapsed` ms into a `duration` ms envelope.

    Returns:
        1.0 at elapsed <= 0, falling along the inverted easing curve to 0.0
        at elapsed >= duration.
    """
    if elapsed >= duration:
        return 0.0
    if elapsed <= 0:
        return 1.0
    return 1 - easing(elapsed / duration)
