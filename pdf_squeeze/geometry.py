"""
geometry.py - Render scale policy and viewports.

HARD LIMIT:
- No rasterized page may exceed MAX_DIMENSION pixels on either axis,
  however large the source page geometry is.
"""

import logging
from dataclasses import dataclass

from .config import MAX_DIMENSION
from .exceptions import ResourceError

logger = logging.getLogger(__name__)

PORTRAIT = "portrait"
LANDSCAPE = "landscape"


@dataclass(frozen=True)
class Viewport:
    """Target pixel size for one page at its effective scale."""
    width: int
    height: int
    scale: float

    @property
    def orientation(self) -> str:
        return LANDSCAPE if self.width > self.height else PORTRAIT


def effective_scale(
    width: float,
    height: float,
    scale: float,
    max_dimension: int = MAX_DIMENSION
) -> float:
    """
    Cap the requested scale so the rendered page fits max_dimension.

    Returns the requested scale unchanged when it already fits, otherwise
    the largest scale that fits both axes.
    """
    if width * scale <= max_dimension and height * scale <= max_dimension:
        return scale

    capped = min(max_dimension / width, max_dimension / height)
    logger.debug(
        f"Capping scale {scale} to {capped:.4f} for {width:.1f}x{height:.1f} page"
    )
    return capped


def viewport_for(
    width: float,
    height: float,
    scale: float,
    max_dimension: int = MAX_DIMENSION
) -> Viewport:
    """
    Build the pixel viewport for a page of native size width x height.

    Raises:
        ResourceError: if the page has no area
    """
    if width <= 0 or height <= 0:
        raise ResourceError(f"Page has degenerate size {width}x{height}")

    scale = effective_scale(width, height, scale, max_dimension)

    # Rounding must not push an axis past the cap
    pixel_width = max(1, min(round(width * scale), max_dimension))
    pixel_height = max(1, min(round(height * scale), max_dimension))

    return Viewport(width=pixel_width, height=pixel_height, scale=scale)
