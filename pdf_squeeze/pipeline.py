"""
pipeline.py - Sequential PDF compression pipeline.

Pipeline, one page at a time:
1. Load page, cap render scale
2. Rasterize to an RGB surface
3. Compress as single JPEG
4. Append to output PDF
5. Release everything the page used

Never more than one rendered page in memory.
"""

import enum
import gc
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .cancellation import CancellationToken
from .compression import ImageEncoder
from .config import CompressionOptions, LoaderOptions
from .exceptions import Cancelled, ResourceError, SqueezeError
from .geometry import viewport_for
from .loader import DocumentLoader
from .pdf_writer import PDFWriter
from .progress import ProgressReporter
from .rasterize import PageRasterizer
from .reclaim import ResourceReclaimer

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    PROCESSING = "processing"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class PageStats:
    """Statistics for a processed page."""
    page_num: int
    width: int
    height: int
    scale: float
    orientation: str
    compressed_size: int = 0
    process_time: float = 0.0


@dataclass
class CompressionResult:
    """Output of a successful run."""
    data: bytes
    original_size: int
    page_count: int
    total_time: float = 0.0
    pages: List[PageStats] = field(default_factory=list)

    @property
    def compressed_size(self) -> int:
        return len(self.data)

    @property
    def reduction_pct(self) -> float:
        if self.original_size == 0:
            return 0
        return (1 - self.compressed_size / self.original_size) * 100

    @property
    def avg_page_size(self) -> float:
        if self.page_count == 0:
            return 0
        return self.compressed_size / self.page_count

    def summary(self) -> str:
        return (
            f"Original:   {self.original_size:,} bytes\n"
            f"Compressed: {self.compressed_size:,} bytes\n"
            f"Reduction: {self.reduction_pct:.1f}%\n"
            f"Pages: {self.page_count}\n"
            f"Avg page size: {self.avg_page_size:,.0f} bytes\n"
            f"Time: {self.total_time:.1f}s"
        )


class CompressionPipeline:
    """
    Drives one compression run.

    Collaborators are passed in; defaults are the PyMuPDF/Pillow/pikepdf
    implementations. A pipeline object runs once.
    """

    def __init__(
        self,
        options: Optional[CompressionOptions] = None,
        loader_options: Optional[LoaderOptions] = None,
        loader: Optional[DocumentLoader] = None,
        rasterizer: Optional[PageRasterizer] = None,
        encoder: Optional[ImageEncoder] = None,
        reclaimer: Optional[ResourceReclaimer] = None,
        writer_factory: Callable[[], PDFWriter] = PDFWriter,
        cancel_token: Optional[CancellationToken] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.options = options or CompressionOptions()
        self.loader_options = loader_options or LoaderOptions()
        self.loader = loader or DocumentLoader()
        self.rasterizer = rasterizer or PageRasterizer()
        self.encoder = encoder or ImageEncoder(detect_grayscale=self.options.detect_grayscale)
        self.reclaimer = reclaimer or ResourceReclaimer()
        self.writer_factory = writer_factory
        self.cancel_token = cancel_token or CancellationToken()
        self.sleep = sleep

        self.progress = ProgressReporter(self.options.on_progress)
        self.state = RunState.IDLE
        self.current_page = 0

    def cancel(self, reason: str = ""):
        """Request cancellation; observed at the next checkpoint."""
        self.cancel_token.cancel(reason)

    def run(self, data: bytes) -> CompressionResult:
        """
        Compress a document held in memory.

        Raises:
            LoadError, RenderError, EncodeError, ResourceError,
            AssemblyError: the run failed; nothing is returned
            Cancelled: the run was cancelled
        """
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"Pipeline already used (state: {self.state.value})")

        start_time = time.time()
        doc = None
        writer = None

        try:
            self.state = RunState.LOADING
            self.progress.loaded()

            doc = self.loader.open(data, self.loader_options)
            page_count = self.loader.page_count(doc)
            self.state = RunState.LOADED
            self.progress.opened()

            logger.info(
                f"Processing {page_count} pages, {len(data):,} bytes, "
                f"scale={self.options.scale} quality={self.options.quality}"
            )

            writer = self.writer_factory()
            page_stats = []

            self.state = RunState.PROCESSING
            for page_num in range(1, page_count + 1):
                self.current_page = page_num
                self.cancel_token.raise_if_cancelled()
                self._pause(page_num)
                self.cancel_token.raise_if_cancelled()

                page_stats.append(self._process_page(doc, writer, page_num))
                self.progress.page_done(page_num, page_count)

            self.cancel_token.raise_if_cancelled()
            self.state = RunState.FINALIZING
            output = writer.finalize()
            writer = None

            self.state = RunState.DONE
            self.progress.complete()

            result = CompressionResult(
                data=output,
                original_size=len(data),
                page_count=page_count,
                total_time=time.time() - start_time,
                pages=page_stats
            )
            logger.info(f"\n{result.summary()}")
            return result

        except Cancelled:
            self.state = RunState.CANCELLED
            self.progress.close()
            logger.info(f"Compression cancelled at page {self.current_page}")
            raise
        except SqueezeError as e:
            self.state = RunState.FAILED
            self.progress.close()
            logger.error(f"Pipeline failed: {e}")
            raise
        except MemoryError as e:
            self.state = RunState.FAILED
            self.progress.close()
            logger.error(f"Pipeline ran out of memory at page {self.current_page}")
            raise ResourceError(f"Out of memory at page {self.current_page}") from e
        except Exception:
            self.state = RunState.FAILED
            self.progress.close()
            raise
        finally:
            if writer is not None:
                writer.close()
            self.loader.close(doc)

    def _pause(self, page_num: int):
        """Let deferred frees catch up every few pages."""
        every = self.options.pause_every
        if every and page_num % every == 0:
            gc.collect()
            self.sleep(self.options.pause_seconds)

    def _process_page(self, doc, writer: PDFWriter, page_num: int) -> PageStats:
        """Render, encode and append one page. Always reclaims the page."""
        page = task = surface = None
        start = time.time()

        try:
            page = self.loader.get_page(doc, page_num)
            viewport = viewport_for(
                page.width, page.height, self.options.scale, self.options.max_dimension
            )

            task = self.rasterizer.start(page, viewport, self.cancel_token)
            surface = task.run()
            image = self.encoder.encode(surface, self.options.quality)
            writer.add_page(viewport, image)
        finally:
            self.reclaimer.release(page, task, surface)

        logger.info(
            f"Page {page_num}: {image.size:,} bytes | "
            f"{viewport.width}x{viewport.height} | {viewport.orientation} | q={image.quality}"
        )

        return PageStats(
            page_num=page_num,
            width=viewport.width,
            height=viewport.height,
            scale=viewport.scale,
            orientation=viewport.orientation,
            compressed_size=image.size,
            process_time=time.time() - start
        )


def compress_pdf(
    data: bytes,
    options: Optional[CompressionOptions] = None,
    **collaborators
) -> CompressionResult:
    """
    Compress a PDF held in memory by rasterizing every page.

    Args:
        data: Source document bytes
        options: Quality, scale and progress callback
        **collaborators: Passed through to CompressionPipeline

    Returns:
        CompressionResult with the output bytes and sizes
    """
    return CompressionPipeline(options, **collaborators).run(data)


@dataclass
class OptimizationResult:
    """Result of compressing a file on disk."""
    input_path: Path
    output_path: Path
    success: bool
    error: Optional[str] = None
    cancelled: bool = False

    page_count: int = 0
    input_size: int = 0
    output_size: int = 0
    total_time: float = 0.0

    @property
    def reduction_pct(self) -> float:
        if self.input_size == 0:
            return 0
        return (1 - self.output_size / self.input_size) * 100

    def summary(self) -> str:
        return (
            f"Input:  {self.input_path.name} ({self.input_size:,} bytes)\n"
            f"Output: {self.output_path.name} ({self.output_size:,} bytes)\n"
            f"Reduction: {self.reduction_pct:.1f}%\n"
            f"Pages: {self.page_count}\n"
            f"Time: {self.total_time:.1f}s"
        )


def compress_file(
    input_path: Path,
    output_path: Path,
    options: Optional[CompressionOptions] = None,
    **collaborators
) -> OptimizationResult:
    """
    Compress a PDF file, writing the result to output_path.

    Errors are reported on the result rather than raised. Nothing is
    written when the run fails.
    """
    input_path = Path(input_path)
    output_path = Path(output_path)

    result = OptimizationResult(
        input_path=input_path,
        output_path=output_path,
        success=False
    )

    try:
        data = input_path.read_bytes()
    except OSError as e:
        result.error = f"Cannot read {input_path}: {e}"
        logger.error(result.error)
        return result

    result.input_size = len(data)

    try:
        compressed = compress_pdf(data, options, **collaborators)
    except Cancelled as e:
        result.error = str(e)
        result.cancelled = True
        return result
    except SqueezeError as e:
        result.error = str(e)
        return result

    try:
        output_path.write_bytes(compressed.data)
    except OSError as e:
        result.error = f"Cannot write {output_path}: {e}"
        logger.error(result.error)
        return result

    result.page_count = compressed.page_count
    result.output_size = compressed.compressed_size
    result.total_time = compressed.total_time
    result.success = True
    return result
