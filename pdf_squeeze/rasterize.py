"""
rasterize.py - Page to pixel surface conversion using PyMuPDF.

Renders through a display list so a cancellation request is noticed
between building the list and drawing it. Everything gets flattened to
raster - no vectors, fonts, or layers preserved.
"""

import logging
from typing import Optional

import cv2
import numpy as np
try:
    import fitz  # pip install pymupdf
except ImportError:
    import pymupdf as fitz  # apt install python3-pymupdf

from .cancellation import CancellationToken
from .exceptions import Cancelled, RenderError, ResourceError
from .geometry import Viewport
from .loader import SourcePage

logger = logging.getLogger(__name__)


class RenderSurface:
    """
    RGB pixel buffer for one rendered page.

    release() drops the array and zeroes the size.
    """

    def __init__(self, pixels: np.ndarray):
        self.pixels: Optional[np.ndarray] = pixels
        self.height, self.width = pixels.shape[:2]

    @property
    def released(self) -> bool:
        return self.pixels is None

    @property
    def nbytes(self) -> int:
        return 0 if self.pixels is None else self.pixels.nbytes

    def release(self):
        self.pixels = None
        self.width = 0
        self.height = 0


def fit_to_viewport(image: np.ndarray, viewport: Viewport) -> np.ndarray:
    """
    Make a rendered pixmap array RGB and exactly viewport-sized.

    MuPDF rounds the pixmap bounds itself, so it can be a pixel off.
    """
    if image.shape[2] != 3:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)

    if image.shape[1] != viewport.width or image.shape[0] != viewport.height:
        logger.debug(
            f"Resampling {image.shape[1]}x{image.shape[0]} "
            f"to {viewport.width}x{viewport.height}"
        )
        image = cv2.resize(
            image, (viewport.width, viewport.height), interpolation=cv2.INTER_AREA
        )

    return image


class RenderTask:
    """
    The in-flight render of one page.

    run() may be called once. cancel() is safe at any time and is a
    no-op once the task has finished.
    """

    def __init__(
        self,
        page: SourcePage,
        viewport: Viewport,
        cancel_token: Optional[CancellationToken] = None
    ):
        self.page = page
        self.viewport = viewport
        self.cancel_token = cancel_token or CancellationToken()
        self.done = False
        self.cancelled = False
        self._display_list = None
        self._pixmap = None

    def _checkpoint(self):
        if self.cancelled or self.cancel_token.cancelled:
            self.cancel()
            raise Cancelled(self.cancel_token.reason or f"Render of page {self.page.number} cancelled")

    def run(self) -> RenderSurface:
        """
        Rasterize the page into a surface of exactly viewport size.

        Raises:
            Cancelled: cancellation was requested before or during the render
            RenderError: MuPDF could not draw the page
            ResourceError: the surface could not be allocated
        """
        if self.done:
            raise RenderError(f"Render task for page {self.page.number} already ran")

        vp = self.viewport
        try:
            self._checkpoint()
            self._display_list = self.page.raw.get_displaylist()

            self._checkpoint()
            # Separate x/y zoom so the pixmap lands on the rounded viewport
            matrix = fitz.Matrix(vp.width / self.page.width, vp.height / self.page.height)
            self._pixmap = self._display_list.get_pixmap(matrix=matrix, alpha=False)
            self._display_list = None

            self._checkpoint()
            pix = self._pixmap
            image = np.frombuffer(pix.samples, dtype=np.uint8).reshape(
                pix.height, pix.width, pix.n
            ).copy()  # Copy to own the memory
            self._pixmap = None
        except Cancelled:
            raise
        except MemoryError as e:
            self.cancel()
            raise ResourceError(
                f"Page {self.page.number}: cannot allocate {vp.width}x{vp.height} surface"
            ) from e
        except Exception as e:
            self.cancel()
            raise RenderError(f"Page {self.page.number} failed to render: {e}") from e

        try:
            image = fit_to_viewport(image, vp)
        except MemoryError as e:
            self.cancel()
            raise ResourceError(
                f"Page {self.page.number}: cannot allocate {vp.width}x{vp.height} surface"
            ) from e
        except Exception as e:
            self.cancel()
            raise RenderError(f"Page {self.page.number} could not be resampled: {e}") from e

        self.done = True
        logger.debug(
            f"Rasterized page {self.page.number}: {vp.width}x{vp.height} @ scale {vp.scale:.3f}"
        )
        return RenderSurface(image)

    def cancel(self):
        """Abort the render and drop any partial output."""
        if self.done:
            return
        self.cancelled = True
        self._display_list = None
        self._pixmap = None


class PageRasterizer:
    """Creates render tasks. Holds no per-page state."""

    def start(
        self,
        page: SourcePage,
        viewport: Viewport,
        cancel_token: Optional[CancellationToken] = None
    ) -> RenderTask:
        return RenderTask(page, viewport, cancel_token)

    def render(
        self,
        page: SourcePage,
        viewport: Viewport,
        cancel_token: Optional[CancellationToken] = None
    ) -> RenderSurface:
        """Start and run a render task in one call."""
        return self.start(page, viewport, cancel_token).run()
