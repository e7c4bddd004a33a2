from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterator

import pypdfium2 as pdfium

from .config import RASTER_CONFIG
from .errors import DocumentFormatError
from .models import Page
from .scratch import RunArea

logger = logging.getLogger(__name__)

# pdfium is not thread-safe; concurrent runs render in worker threads.
_PDFIUM_LOCK = threading.Lock()


class RasterEngine(ABC):
    """
    Rendering backend abstraction.

    Engines must:
    - Yield pages lazily in increasing page order (1-indexed, no gaps)
    - Materialize each page image inside the given run area
    - Raise DocumentFormatError when the bytes are not a readable document
    """

    @abstractmethod
    def backend_id(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def iter_pages(self, *, document: bytes, scale: float, area: RunArea) -> Iterator[Page]:
        raise NotImplementedError


class Pypdfium2Rasterizer(RasterEngine):
    def backend_id(self) -> str:
        return "pypdfium2"

    def iter_pages(self, *, document: bytes, scale: float, area: RunArea) -> Iterator[Page]:
        with _PDFIUM_LOCK:
            try:
                doc = pdfium.PdfDocument(document)
            except pdfium.PdfiumError as e:
                raise DocumentFormatError(f"Document is not a readable PDF: {e}") from e
            page_count = len(doc)

        try:
            if page_count == 0:
                raise DocumentFormatError("Document has no pages")
            logger.info(f"Rasterizing {page_count} page(s) at scale {scale}")

            for index in range(page_count):
                page_num = index + 1
                with _PDFIUM_LOCK:
                    try:
                        page = doc[index]
                        try:
                            pil_img = page.render(scale=scale).to_pil().convert("RGB")
                        finally:
                            page.close()
                    except pdfium.PdfiumError as e:
                        raise DocumentFormatError(f"page {page_num}: {e}", page=page_num) from e

                out_file = area.page_path(page_num)
                pil_img.save(out_file, format="PNG")
                width_px, height_px = pil_img.size
                logger.debug(f"Rendered page {page_num} -> {out_file.name} ({width_px}x{height_px})")

                yield Page(
                    page_num=page_num,
                    image_file=out_file,
                    width_px=int(width_px),
                    height_px=int(height_px),
                )
        finally:
            with _PDFIUM_LOCK:
                doc.close()


def rasterize(
    document: bytes,
    area: RunArea,
    scale: float = RASTER_CONFIG["scale"],
    engine: RasterEngine | None = None,
) -> Iterator[Page]:
    """
    Lazily render `document` into page images inside `area`.

    The returned iterator is single-pass; call again to re-rasterize.
    Format errors surface on the first `next()`.
    """
    if scale <= 0:
        raise ValueError("scale must be a positive number")
    if not document:
        raise DocumentFormatError("Document is empty")
    engine = engine or Pypdfium2Rasterizer()
    return engine.iter_pages(document=document, scale=scale, area=area)
