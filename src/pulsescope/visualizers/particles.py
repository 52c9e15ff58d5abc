"""
Beat-triggered particle bursts.

A fixed pool of particles is allocated up front. Every beat spawns a burst
from the canvas centre sized by the beat intensity; when the pool is
exhausted the particles closest to dying are recycled.
"""

import math
from dataclasses import dataclass

import numpy as np

from pulsescope.config import ParticleConfig
from pulsescope.core.detector import BeatEvent
from pulsescope.render.canvas import DrawingContext
from pulsescope.visualizers.base import FeatureSource, Visualizer


@dataclass
class Particle:
    """One pooled particle. `life` runs from 1 (spawned) to 0 (dead)."""
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    size: float = 0.0
    color: str = "#ffffff"
    life: float = 0.0
    max_life: float = 1500.0
    active: bool = False

    @property
    def alive(self) -> bool:
        return self.active and self.life > 0

    def deactivate(self):
        self.active = False
        self.life = 0.0


class ParticleSystem:
    """
    Pooled particle simulation.

    Args:
        config: Pool size, burst size, lifetime and motion ranges.
        seed: Seed for the spawn randomness.
    """

    def __init__(self, config: ParticleConfig | None = None, seed: int | None = None):
        self.cfg = config or ParticleConfig()
        self.rng = np.random.default_rng(seed)
        self.particles = [
            Particle(color=self.cfg.colors[0], max_life=self.cfg.lifetime_ms)
            for _ in range(self.cfg.max_particles)
        ]

    def spawn(self, particle: Particle, x: float, y: float, intensity: float):
        cfg = self.cfg
        angle = self.rng.random() * math.pi * 2
        speed_range = cfg.max_speed - cfg.min_speed
        speed = cfg.min_speed + self.rng.random() * speed_range * (0.5 + intensity * 0.5)

        particle.x = x
        particle.y = y
        particle.vx = math.cos(angle) * speed
        # Slight upward bias
        particle.vy = math.sin(angle) * speed - speed * 0.3
        particle.size = cfg.min_size + self.rng.random() * (cfg.max_size - cfg.min_size)
        particle.color = cfg.colors[int(self.rng.integers(len(cfg.colors)))]
        particle.life = 1.0
        particle.max_life = cfg.lifetime_ms
        particle.active = True

    def emit(self, x: float, y: float, intensity: float) -> int:
        """Spawn a burst at (x, y). Returns the number of particles spawned."""
        count = int(math.floor(self.cfg.emit_count * (0.5 + intensity * 0.5)))
        spawned = 0

        for particle in self.particles:
            if spawned >= count:
                break
            if not particle.active:
                self.spawn(particle, x, y, intensity)
                spawned += 1

        if spawned < count:
            oldest = sorted((p for p in self.particles if p.active), key=lambda p: p.life)
            for particle in oldest:
                if spawned >= count:
                    break
                self.spawn(particle, x, y, intensity)
                spawned += 1

        return spawned

    def update(self, delta_ms: float):
        dt = delta_ms / 1000.0
        gravity = self.cfg.gravity
        for p in self.particles:
            if not p.alive:
                continue
            p.x += p.vx * dt
            p.y += p.vy * dt
            p.vy += gravity * dt
            p.life -= delta_ms / p.max_life
            if p.life <= 0:
                p.deactivate()

    def active_particles(self) -> list[Particle]:
        return [p for p in self.particles if p.alive]

    @property
    def active_count(self) -> int:
        return sum(1 for p in self.particles if p.alive)

    def clear(self):
        for p in self.particles:
            p.deactivate()


class ParticleBurst(Visualizer):
    """Draws the particle system on the overlay layer."""

    layer = "overlay"

    def __init__(
        self,
        config: ParticleConfig | None = None,
        features: FeatureSource | None = None,
        seed: int | None = None,
    ):
        super().__init__(features)
        self.system = ParticleSystem(config, seed=seed)
        self.width = 0.0
        self.height = 0.0

    def attach(self, renderer):
        self.width, self.height = renderer.width, renderer.height
        return super().attach(renderer)

    def react(self, beat: BeatEvent):
        if not self.system.cfg.enabled or not beat.is_beat:
            return
        self.system.emit(self.width / 2, self.height / 2, beat.intensity)

    def reset(self):
        self.system.clear()

    def draw(self, ctx: DrawingContext, delta_ms: float):
        self.width, self.height = ctx.width, ctx.height
        if not self.system.cfg.enabled:
            return

        self.system.update(delta_ms)
        for p in self.system.active_particles():
            ctx.global_alpha = p.life
            ctx.fill_circle(p.x, p.y, p.size * p.life, p.color)
