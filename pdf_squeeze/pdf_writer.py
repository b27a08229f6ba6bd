"""
pdf_writer.py - PDF assembly from encoded page images.

Each page is exactly one JPEG image (DCTDecode) covering the full page.
Page sizes are the viewport in CSS pixels, written as points (1px = 0.75pt).
"""

import io
import logging
from dataclasses import dataclass
from typing import List

import pikepdf
from pikepdf import Pdf, Stream, Dictionary, Name

from .compression import RasterImage
from .exceptions import AssemblyError, EncodeError
from .geometry import Viewport

logger = logging.getLogger(__name__)

# 96 CSS pixels per inch, 72 points per inch
PX_TO_PT = 72 / 96


@dataclass
class OutputPage:
    """Record of one assembled page."""
    index: int
    width: int
    height: int
    orientation: str
    image_size: int

    @property
    def width_pts(self) -> float:
        return self.width * PX_TO_PT

    @property
    def height_pts(self) -> float:
        return self.height * PX_TO_PT


class PDFWriter:
    """
    Assembles JPEG pages into a minimal PDF.

    No text layers, no masks, no layering.
    """

    def __init__(self):
        self.pdf = Pdf.new()
        # Start from a document with no pages at all
        while len(self.pdf.pages):
            del self.pdf.pages[-1]
        self.pages: List[OutputPage] = []
        self.closed = False

    def add_page(self, viewport: Viewport, image: RasterImage) -> OutputPage:
        """
        Append one image-backed page.

        Raises:
            EncodeError: image size does not match the viewport
            AssemblyError: pikepdf could not build the page
        """
        if (image.width, image.height) != (viewport.width, viewport.height):
            raise EncodeError(
                f"Image {image.width}x{image.height} does not match "
                f"viewport {viewport.width}x{viewport.height}"
            )

        record = OutputPage(
            index=len(self.pages) + 1,
            width=viewport.width,
            height=viewport.height,
            orientation=viewport.orientation,
            image_size=image.size
        )

        try:
            self._write_page(record, image)
        except Exception as e:
            raise AssemblyError(f"Could not add page {record.index}: {e}") from e

        self.pages.append(record)

        mode = "color" if image.is_color else "gray"
        logger.debug(
            f"Added page {record.index}: {image.size:,} bytes "
            f"({mode}, {record.orientation})"
        )
        return record

    def _write_page(self, record: OutputPage, image: RasterImage):
        """Create the PDF page and draw the JPEG over its full area."""
        self.pdf.add_blank_page(page_size=(record.width_pts, record.height_pts))
        page = self.pdf.pages[-1]

        colorspace = Name.DeviceRGB if image.is_color else Name.DeviceGray

        image_dict = Dictionary({
            '/Type': Name.XObject,
            '/Subtype': Name.Image,
            '/Width': image.width,
            '/Height': image.height,
            '/ColorSpace': colorspace,
            '/BitsPerComponent': 8,
            '/Filter': Name.DCTDecode,
        })
        img_stream = Stream(self.pdf, image.data, image_dict)

        xobjects = Dictionary({})
        xobjects['/Im0'] = self.pdf.make_indirect(img_stream)
        page.Resources = Dictionary({'/XObject': xobjects})

        # Draw the image scaled to the full page
        content = f"""
q
{record.width_pts:.4f} 0 0 {record.height_pts:.4f} 0 0 cm
/Im0 Do
Q
"""
        page.Contents = self.pdf.make_indirect(
            Stream(self.pdf, content.strip().encode("ascii"))
        )

    def finalize(self) -> bytes:
        """
        Serialize the document.

        Raises:
            AssemblyError: pikepdf could not write the document
        """
        buffer = io.BytesIO()
        try:
            self.pdf.save(
                buffer,
                compress_streams=True,
                object_stream_mode=pikepdf.ObjectStreamMode.generate
            )
        except Exception as e:
            raise AssemblyError(f"Could not write output PDF: {e}") from e
        finally:
            self.close()

        data = buffer.getvalue()
        logger.info(f"Assembled {len(self.pages)} pages, {len(data):,} bytes")
        return data

    def close(self):
        if not self.closed:
            self.pdf.close()
            self.closed = True
