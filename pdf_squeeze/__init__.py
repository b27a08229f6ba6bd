"""
pdf_squeeze - Shrink PDFs by rasterizing every page to JPEG.

Pages are rendered one at a time, compressed, and reassembled into a new
image-only PDF. Text selection and vector fidelity are lost by design.
"""

from .cancellation import CancellationToken
from .config import CompressionOptions, LoaderOptions
from .exceptions import (
    AssemblyError,
    Cancelled,
    EncodeError,
    LoadError,
    RenderError,
    ResourceError,
    SqueezeError,
)
from .pipeline import (
    CompressionPipeline,
    CompressionResult,
    OptimizationResult,
    RunState,
    compress_file,
    compress_pdf,
)

__version__ = "1.0.0"

__all__ = [
    "compress_pdf",
    "compress_file",
    "CompressionPipeline",
    "CompressionResult",
    "OptimizationResult",
    "RunState",
    "CompressionOptions",
    "LoaderOptions",
    "CancellationToken",
    "SqueezeError",
    "LoadError",
    "RenderError",
    "EncodeError",
    "ResourceError",
    "AssemblyError",
    "Cancelled",
]
