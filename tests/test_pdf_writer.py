from __future__ import annotations

import io

import numpy as np
import pikepdf
import pytest

from pdf_squeeze.compression import ImageEncoder
from pdf_squeeze.exceptions import AssemblyError, EncodeError
from pdf_squeeze.geometry import LANDSCAPE, PORTRAIT, Viewport
from pdf_squeeze.pdf_writer import PX_TO_PT, PDFWriter
from pdf_squeeze.rasterize import RenderSurface


def _image(width: int, height: int):
    surface = RenderSurface(np.full((height, width, 3), 128, dtype=np.uint8))
    return ImageEncoder().encode(surface, 0.5)


def test_new_writer_has_no_pages() -> None:
    writer = PDFWriter()
    assert len(writer.pdf.pages) == 0
    assert writer.pages == []
    writer.close()


def test_pages_keep_order_and_orientation() -> None:
    writer = PDFWriter()
    first = writer.add_page(Viewport(90, 120, 1.0), _image(90, 120))
    second = writer.add_page(Viewport(200, 150, 1.0), _image(200, 150))

    assert (first.index, first.orientation) == (1, PORTRAIT)
    assert (second.index, second.orientation) == (2, LANDSCAPE)

    data = writer.finalize()

    with pikepdf.open(io.BytesIO(data)) as pdf:
        assert len(pdf.pages) == 2
        boxes = [[float(v) for v in page.MediaBox] for page in pdf.pages]
        assert boxes[0] == pytest.approx([0, 0, 90 * PX_TO_PT, 120 * PX_TO_PT])
        assert boxes[1] == pytest.approx([0, 0, 200 * PX_TO_PT, 150 * PX_TO_PT])

        image = pdf.pages[1].Resources.XObject["/Im0"]
        assert image.Filter == pikepdf.Name.DCTDecode
        assert (int(image.Width), int(image.Height)) == (200, 150)


def test_mismatched_image_rejected() -> None:
    writer = PDFWriter()
    with pytest.raises(EncodeError):
        writer.add_page(Viewport(100, 100, 1.0), _image(90, 100))
    assert writer.pages == []
    writer.close()


def test_close_after_finalize_is_safe() -> None:
    writer = PDFWriter()
    writer.add_page(Viewport(10, 10, 1.0), _image(10, 10))
    writer.finalize()
    writer.close()
    assert writer.closed



def test_pikepdf_failure_becomes_assembly_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_stream(*args, **kwargs):
        raise pikepdf.PdfError("stream rejected")

    writer = PDFWriter()
    monkeypatch.setattr("pdf_squeeze.pdf_writer.Stream", broken_stream)

    with pytest.raises(AssemblyError, match="stream rejected"):
        writer.add_page(Viewport(10, 10, 1.0), _image(10, 10))

    assert writer.pages == []
    writer.close()
