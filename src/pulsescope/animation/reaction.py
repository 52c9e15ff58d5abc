"""
Beat-reaction decay channels.

A channel captures the intensity of the last accepted beat and lets it fall
to zero over `decay_ms` along an easing curve. Camera shake, text pulse and
bar boost each keep an independent channel fed from the same beat stream.
"""

from dataclasses import dataclass, field

from pulsescope.animation.easing import EasingFn, decay, ease_out_expo
from pulsescope.clock import Clock

# Decayed values at or below this reset the channel.
ACTIVITY_FLOOR = 0.01


@dataclass
class ReactionConfig:
    """Shape of one decay channel."""
    decay_ms: float = 150.0
    easing: EasingFn = field(default=ease_out_expo)
    threshold: float = 0.0  # minimum beat intensity that restarts the decay


@dataclass
class ReactionState:
    start_ms: float | None = None
    captured_intensity: float = 0.0

    def clear(self):
        self.start_ms = None
        self.captured_intensity = 0.0


class DecayChannel:
    """
    Converts discrete beats into a smoothly decaying 0-1 value.

    Args:
        config: Decay duration, curve and acceptance threshold.
        clock: Time source; timestamps are read in milliseconds.
    """

    def __init__(self, config: ReactionConfig | None, clock: Clock):
        self.config = config or ReactionConfig()
        self.clock = clock
        self.state = ReactionState()

    def on_beat(self, is_beat: bool, intensity: float):
        """Restart the decay if this frame carries a strong enough beat."""
        if is_beat and intensity >= self.config.threshold:
            self.state.start_ms = self.clock.now_ms()
            self.state.captured_intensity = intensity

    def value_at(self, now_ms: float) -> float:
        start = self.state.start_ms
        if start is None:
            return 0.0

        value = self.state.captured_intensity * decay(
            now_ms - start, self.config.decay_ms, self.config.easing
        )
        if value <= ACTIVITY_FLOOR:
            self.state.clear()
            return 0.0
        return value

    def value(self) -> float:
        return self.value_at(self.clock.now_ms())

    def is_active(self) -> bool:
        return self.value() > ACTIVITY_FLOOR

    def reset(self):
        self.state.clear()
