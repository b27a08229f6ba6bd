from __future__ import annotations

import io
from pathlib import Path

import pikepdf
import pytest

from pdf_squeeze import (
    CancellationToken,
    Cancelled,
    CompressionOptions,
    CompressionPipeline,
    EncodeError,
    LoadError,
    RunState,
    compress_file,
    compress_pdf,
)
from pdf_squeeze.compression import ImageEncoder
from pdf_squeeze.loader import DocumentLoader
from pdf_squeeze.pdf_writer import PX_TO_PT, PDFWriter
from pdf_squeeze.rasterize import PageRasterizer
from pdf_squeeze.reclaim import ResourceReclaimer


class RecordingReclaimer(ResourceReclaimer):
    def __init__(self) -> None:
        self.released: list[int | None] = []

    def release(self, page, task=None, surface=None):
        self.released.append(page.number if page is not None else None)
        super().release(page, task, surface)


class RecordingLoader(DocumentLoader):
    def __init__(self) -> None:
        self.opened = []
        self.close_calls = 0

    def open(self, data, options=None):
        doc = super().open(data, options)
        self.opened.append(doc)
        return doc

    def close(self, doc):
        self.close_calls += 1
        super().close(doc)


class RecordingWriter(PDFWriter):
    finalized = 0

    def finalize(self) -> bytes:
        type(self).finalized += 1
        return super().finalize()


class CancellingRasterizer(PageRasterizer):
    """Cancels the run as soon as page `at` starts rendering."""

    def __init__(self, token: CancellationToken, at: int) -> None:
        self.token = token
        self.at = at

    def start(self, page, viewport, cancel_token=None):
        if page.number == self.at:
            self.token.cancel(f"user cancelled at page {page.number}")
        return super().start(page, viewport, cancel_token)


class FailingEncoder(ImageEncoder):
    def __init__(self, fail_on: int) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.calls = 0

    def encode(self, surface, quality):
        self.calls += 1
        if self.calls == self.fail_on:
            raise EncodeError("encoder exploded")
        return super().encode(surface, quality)


def _no_sleep(seconds: float) -> None:
    pass


def _media_boxes(data: bytes) -> list[list[float]]:
    with pikepdf.open(io.BytesIO(data)) as pdf:
        return [[float(v) for v in page.MediaBox] for page in pdf.pages]


def test_single_page_document(letter_pdf: bytes) -> None:
    seen: list[int] = []
    result = compress_pdf(letter_pdf, CompressionOptions(on_progress=seen.append))

    assert seen == [5, 10, 100]
    assert result.page_count == 1
    assert result.original_size == len(letter_pdf)
    assert result.compressed_size == len(result.data)

    stats = result.pages[0]
    assert stats.scale == 1.5
    assert (stats.width, stats.height) == (900, 1200)
    assert stats.orientation == "portrait"

    assert _media_boxes(result.data) == [
        pytest.approx([0, 0, 900 * PX_TO_PT, 1200 * PX_TO_PT])
    ]


def test_oversized_page_is_capped(pdf_factory) -> None:
    result = compress_pdf(pdf_factory([(1600, 1200)]), CompressionOptions(scale=1.5))

    stats = result.pages[0]
    assert stats.scale == pytest.approx(1.25)
    assert (stats.width, stats.height) == (2000, 1500)
    assert stats.orientation == "landscape"


def test_page_count_and_order_preserved(pdf_factory) -> None:
    sizes = [(200, 300), (400, 200), (300, 300), (100, 500)]
    seen: list[int] = []
    result = compress_pdf(
        pdf_factory(sizes),
        CompressionOptions(scale=1.0, on_progress=seen.append),
        sleep=_no_sleep,
    )

    assert result.page_count == 4
    assert [(p.width, p.height) for p in result.pages] == sizes
    assert _media_boxes(result.data) == [
        pytest.approx([0, 0, w * PX_TO_PT, h * PX_TO_PT]) for w, h in sizes
    ]
    assert seen == sorted(seen)
    assert seen[0] == 5
    assert seen[-1] == 100


def test_corrupt_source_raises_load_error(corrupt_pdf: bytes) -> None:
    seen: list[int] = []
    reclaimer = RecordingReclaimer()
    pipeline = CompressionPipeline(
        CompressionOptions(on_progress=seen.append), reclaimer=reclaimer
    )

    with pytest.raises(LoadError):
        pipeline.run(corrupt_pdf)

    assert seen == [5]
    assert pipeline.state is RunState.FAILED
    assert reclaimer.released == []


def test_cancel_mid_run(pdf_factory) -> None:
    token = CancellationToken()
    reclaimer = RecordingReclaimer()
    loader = RecordingLoader()
    seen: list[int] = []
    RecordingWriter.finalized = 0

    pipeline = CompressionPipeline(
        CompressionOptions(scale=0.5, on_progress=seen.append),
        loader=loader,
        rasterizer=CancellingRasterizer(token, at=2),
        reclaimer=reclaimer,
        writer_factory=RecordingWriter,
        cancel_token=token,
        sleep=_no_sleep,
    )

    with pytest.raises(Cancelled, match="page 2"):
        pipeline.run(pdf_factory([(300, 400)] * 5))

    assert pipeline.state is RunState.CANCELLED
    assert reclaimer.released == [1, 2]
    assert RecordingWriter.finalized == 0
    assert seen == [5, 10, 28]
    assert loader.opened[0].closed


def test_cancel_before_start(letter_pdf: bytes) -> None:
    token = CancellationToken()
    token.cancel()
    seen: list[int] = []

    with pytest.raises(Cancelled):
        compress_pdf(
            letter_pdf,
            CompressionOptions(on_progress=seen.append),
            cancel_token=token,
        )

    assert seen == [5, 10]


def test_encode_failure_reclaims_and_closes(pdf_factory) -> None:
    reclaimer = RecordingReclaimer()
    loader = RecordingLoader()
    seen: list[int] = []

    pipeline = CompressionPipeline(
        CompressionOptions(scale=0.5, on_progress=seen.append),
        loader=loader,
        encoder=FailingEncoder(fail_on=2),
        reclaimer=reclaimer,
        sleep=_no_sleep,
    )

    with pytest.raises(EncodeError, match="exploded"):
        pipeline.run(pdf_factory([(300, 400)] * 3))

    assert reclaimer.released == [1, 2]
    assert loader.close_calls == 1
    assert loader.opened[0].closed
    assert seen == [5, 10, 40]
    assert pipeline.state is RunState.FAILED


def test_reclaimer_runs_once_per_page(pdf_factory) -> None:
    reclaimer = RecordingReclaimer()
    compress_pdf(
        pdf_factory([(200, 200)] * 4),
        CompressionOptions(scale=0.5),
        reclaimer=reclaimer,
        sleep=_no_sleep,
    )
    assert reclaimer.released == [1, 2, 3, 4]


def test_pause_every_third_page(pdf_factory) -> None:
    pauses: list[float] = []
    compress_pdf(
        pdf_factory([(100, 100)] * 7),
        CompressionOptions(scale=0.5),
        sleep=pauses.append,
    )
    assert pauses == [0.1, 0.1]


def test_pause_can_be_disabled(pdf_factory) -> None:
    pauses: list[float] = []
    compress_pdf(
        pdf_factory([(100, 100)] * 4),
        CompressionOptions(scale=0.5, pause_every=0),
        sleep=pauses.append,
    )
    assert pauses == []


def test_pipeline_runs_once(letter_pdf: bytes) -> None:
    pipeline = CompressionPipeline(CompressionOptions(scale=0.5))
    pipeline.run(letter_pdf)
    assert pipeline.state is RunState.DONE

    with pytest.raises(RuntimeError):
        pipeline.run(letter_pdf)


def test_compress_file_writes_output(tmp_path: Path, pdf_factory) -> None:
    source = tmp_path / "in.pdf"
    source.write_bytes(pdf_factory([(600, 800), (800, 600)]))
    target = tmp_path / "out.pdf"

    result = compress_file(source, target, CompressionOptions(scale=1.0))

    assert result.success
    assert result.error is None
    assert result.page_count == 2
    assert target.exists()
    assert result.output_size == target.stat().st_size
    assert "Reduction" in result.summary()


def test_compress_file_reports_failure(tmp_path: Path, corrupt_pdf: bytes) -> None:
    source = tmp_path / "broken.pdf"
    source.write_bytes(corrupt_pdf)
    target = tmp_path / "out.pdf"

    result = compress_file(source, target)

    assert not result.success
    assert not result.cancelled
    assert result.error
    assert not target.exists()


def test_compress_file_reports_cancellation(tmp_path: Path, letter_pdf: bytes) -> None:
    source = tmp_path / "in.pdf"
    source.write_bytes(letter_pdf)
    token = CancellationToken()
    token.cancel("timed out")

    result = compress_file(source, tmp_path / "out.pdf", cancel_token=token)

    assert not result.success
    assert result.cancelled
    assert result.error == "timed out"


def test_compress_file_missing_input(tmp_path: Path) -> None:
    result = compress_file(tmp_path / "missing.pdf", tmp_path / "out.pdf")
    assert not result.success
    assert "Cannot read" in result.error


class BrokenWriter(PDFWriter):
    def _write_page(self, record, image):
        raise pikepdf.PdfError("object table full")


def test_compress_file_reports_assembly_failure(tmp_path: Path, letter_pdf: bytes) -> None:
    source = tmp_path / "in.pdf"
    source.write_bytes(letter_pdf)
    target = tmp_path / "out.pdf"

    result = compress_file(
        source, target, CompressionOptions(scale=0.5), writer_factory=BrokenWriter
    )

    assert not result.success
    assert "object table full" in result.error
    assert not target.exists()
