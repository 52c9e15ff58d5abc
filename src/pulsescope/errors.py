"""
Exception taxonomy.

Load failures are raised to the caller. Per-frame anomalies never raise:
they degrade to zero/false values, and a failing render callback is reported
as a RenderCallbackFault value instead of propagating out of the frame loop.
"""

from dataclasses import dataclass
from typing import Any, Callable


class PulsescopeError(Exception):
    """Base class for all pulsescope errors."""


class UnsupportedFormatError(PulsescopeError):
    """The declared MIME type / extension is not in the audio allow-list."""


class DecodeError(PulsescopeError):
    """The byte buffer could not be decoded as audio."""


class ConfigError(PulsescopeError):
    """A scene configuration value is missing or invalid."""


class EncoderError(PulsescopeError):
    """The external video encoder failed."""


@dataclass
class RenderCallbackFault:
    """A render callback raised during a frame."""

    layer: str
    callback: Callable[..., Any]
    error: BaseException
    unregistered: bool = False
