"""
reclaim.py - Per-page resource release.

Called once for every page the pipeline touches, success or not,
so that at most one page's pixels are alive at a time.
"""

import logging
from typing import Optional

from .loader import SourcePage
from .rasterize import RenderSurface, RenderTask

logger = logging.getLogger(__name__)


class ResourceReclaimer:
    """Releases the render task, surface and page of one processed page."""

    def release(
        self,
        page: Optional[SourcePage],
        task: Optional[RenderTask] = None,
        surface: Optional[RenderSurface] = None
    ):
        """
        Release in order: task, surface, page. Any argument may be None.
        Failures are logged, never raised.
        """
        freed = 0

        if task is not None:
            try:
                task.cancel()
            except Exception as e:
                logger.warning(f"Could not cancel render task: {e}")

        if surface is not None:
            freed = surface.nbytes
            surface.release()

        if page is not None:
            try:
                page.release()
            except Exception as e:
                logger.warning(f"Could not release page {page.number}: {e}")
            logger.debug(f"Reclaimed page {page.number}: {freed:,} surface bytes")
