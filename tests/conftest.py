from __future__ import annotations

from typing import Callable, Sequence

import fitz
import pytest


@pytest.fixture()
def pdf_factory() -> Callable[[Sequence[tuple[float, float]]], bytes]:
    """Build an in-memory PDF with one labelled page per (width, height)."""

    def _create(sizes: Sequence[tuple[float, float]]) -> bytes:
        doc = fitz.open()
        for number, (width, height) in enumerate(sizes, start=1):
            page = doc.new_page(width=width, height=height)
            page.insert_text((36, 72), f"Page {number}", fontsize=24)
            box = fitz.Rect(width * 0.1, height * 0.3, width * 0.9, height * 0.9)
            page.draw_rect(box, color=(0, 0, 1), fill=(1, 0.8, 0.2))
        data = doc.tobytes()
        doc.close()
        return data

    return _create


@pytest.fixture()
def letter_pdf(pdf_factory) -> bytes:
    return pdf_factory([(600, 800)])


@pytest.fixture()
def corrupt_pdf() -> bytes:
    return b"this is not a pdf at all" * 10
