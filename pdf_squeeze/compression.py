"""
compression.py - Lossy JPEG encoding of rendered pages.

Quality is a 0-1 fraction mapped onto Pillow's 1-100 JPEG scale.
Effectively-gray pages can optionally be stored as single-channel JPEG.
"""

import io
import logging
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image

from .config import clamp_quality
from .exceptions import EncodeError
from .rasterize import RenderSurface

logger = logging.getLogger(__name__)

# Saturation threshold for grayscale conversion
# Only convert to grayscale if mean saturation is below this
GRAYSCALE_SATURATION_THRESHOLD = 10  # Out of 255


@dataclass
class RasterImage:
    """Encoded page image ready for PDF embedding."""
    data: bytes
    width: int
    height: int
    is_color: bool
    quality: int

    @property
    def size(self) -> int:
        return len(self.data)


def jpeg_quality(quality: float) -> int:
    """Map a (0, 1] quality onto Pillow's 1-100 scale."""
    return max(1, min(100, round(clamp_quality(quality) * 100)))


def is_grayscale_image(image: np.ndarray) -> bool:
    """
    Check if image is effectively grayscale based on saturation.

    Only returns True if the entire page has very low saturation.
    """
    if len(image.shape) != 3 or image.shape[2] != 3:
        return True  # Already grayscale

    hsv = cv2.cvtColor(image, cv2.COLOR_RGB2HSV)
    mean_saturation = np.mean(hsv[:, :, 1])

    is_gray = mean_saturation < GRAYSCALE_SATURATION_THRESHOLD
    logger.debug(f"Mean saturation: {mean_saturation:.1f}, is_grayscale: {is_gray}")

    return is_gray


class ImageEncoder:
    """
    Compresses render surfaces to JPEG.

    Args:
        detect_grayscale: store effectively-gray pages as 8-bit gray JPEG
    """

    def __init__(self, detect_grayscale: bool = False):
        self.detect_grayscale = detect_grayscale

    def encode(self, surface: RenderSurface, quality: float) -> RasterImage:
        """
        Encode a surface as JPEG.

        Raises:
            EncodeError: surface released or malformed, or Pillow failed
        """
        if surface.released:
            raise EncodeError("Cannot encode a released surface")

        image = surface.pixels
        if image.dtype != np.uint8 or image.ndim != 3 or image.shape[2] != 3:
            raise EncodeError(f"Unsupported surface layout {image.dtype} {image.shape}")

        q = jpeg_quality(quality)
        is_color = True

        try:
            if self.detect_grayscale and is_grayscale_image(image):
                # Convert to grayscale since it's effectively gray anyway
                img = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_RGB2GRAY))
                is_color = False
            else:
                img = Image.fromarray(image)
        except (cv2.error, TypeError, ValueError) as e:
            raise EncodeError(f"Could not prepare page image: {e}") from e

        buffer = io.BytesIO()
        try:
            img.save(
                buffer,
                format="JPEG",
                quality=q,
                optimize=True,
                subsampling=2  # 4:2:0 chroma subsampling
            )
        except (OSError, ValueError) as e:
            raise EncodeError(f"JPEG encoding failed: {e}") from e
        finally:
            img.close()

        return RasterImage(
            data=buffer.getvalue(),
            width=surface.width,
            height=surface.height,
            is_color=is_color,
            quality=q
        )
