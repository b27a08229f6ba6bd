"""
config.py - Run-scoped options.

Both option objects are frozen: one run sees one configuration from
start to finish. Out-of-range values are clamped, not rejected.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Defaults
DEFAULT_QUALITY = 0.7
DEFAULT_SCALE = 1.5

# Clamping bounds
MIN_QUALITY = 0.01
MAX_QUALITY = 1.0
MIN_SCALE = 0.1

# No rasterized page axis may exceed this many pixels
MAX_DIMENSION = 2000

# Backpressure: pause before every Nth page
PAUSE_EVERY = 3
PAUSE_SECONDS = 0.1


def clamp_quality(quality: float) -> float:
    """Clamp JPEG quality into (0, 1]."""
    clamped = max(MIN_QUALITY, min(float(quality), MAX_QUALITY))
    if clamped != quality:
        logger.debug(f"Quality {quality} clamped to {clamped}")
    return clamped


def clamp_scale(scale: float) -> float:
    """Clamp requested scale to a positive value. The upper bound is ScalePolicy's job."""
    clamped = max(MIN_SCALE, float(scale))
    if clamped != scale:
        logger.debug(f"Scale {scale} clamped to {clamped}")
    return clamped


@dataclass(frozen=True)
class CompressionOptions:
    """Options for one compression run."""
    quality: float = DEFAULT_QUALITY
    scale: float = DEFAULT_SCALE
    on_progress: Optional[Callable[[int], None]] = None
    max_dimension: int = MAX_DIMENSION
    pause_every: int = PAUSE_EVERY
    pause_seconds: float = PAUSE_SECONDS
    detect_grayscale: bool = False

    def __post_init__(self):
        object.__setattr__(self, "quality", clamp_quality(self.quality))
        object.__setattr__(self, "scale", clamp_scale(self.scale))
        object.__setattr__(self, "max_dimension", max(1, int(self.max_dimension)))
        object.__setattr__(self, "pause_every", max(0, int(self.pause_every)))
        object.__setattr__(self, "pause_seconds", max(0.0, float(self.pause_seconds)))


@dataclass(frozen=True)
class LoaderOptions:
    """How to open the source buffer. Passed to DocumentLoader.open per run."""
    filetype: str = "pdf"
    password: Optional[str] = None
