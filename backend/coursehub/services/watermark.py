"""
PDF Watermark Service — Stamps the buyer's identifier on every page of a download.
"""
import io
from functools import lru_cache

from pypdf import PdfReader, PdfWriter
from reportlab.lib.colors import Color
from reportlab.pdfgen import canvas

POSITIONS = ("top-left", "top-right", "bottom-left", "bottom-right", "center")


class PdfWatermarker:
    """Pure transform: ``stamp(pdf_bytes, identifier) -> pdf_bytes``."""

    def __init__(self, position: str = "bottom-right", opacity: float = 0.3,
                 font_size: int = 12, color: tuple[float, float, float] = (1, 0, 0)):
        if position not in POSITIONS:
            raise ValueError(f"Unknown watermark position {position!r}")
        self.position = position
        self.opacity = opacity
        self.font_size = font_size
        self.color = color

    def _origin(self, width: float, height: float) -> tuple[float, float]:
        return {
            "top-left": (50, height - 50),
            "top-right": (width - 200, height - 50),
            "bottom-left": (50, 50),
            "bottom-right": (width - 200, 50),
            "center": (width / 2 - 100, height / 2),
        }[self.position]

    def _overlay(self, text: str, width: float, height: float):
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(width, height))
        c.setFillColor(Color(*self.color, alpha=self.opacity))
        c.setFont("Helvetica", self.font_size)
        x, y = self._origin(width, height)
        c.drawString(x, y, text)
        c.save()
        buffer.seek(0)
        return PdfReader(buffer).pages[0]

    def stamp(self, pdf_bytes: bytes, identifier: str) -> bytes:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        writer = PdfWriter()
        text = f"Mobile: {identifier}"

        for page in reader.pages:
            width = float(page.mediabox.width)
            height = float(page.mediabox.height)
            page.merge_page(self._overlay(text, width, height))
            writer.add_page(page)

        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()


@lru_cache
def get_watermarker() -> PdfWatermarker:
    return PdfWatermarker()
