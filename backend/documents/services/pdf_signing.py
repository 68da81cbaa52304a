"""
Byte-level signing primitive.

Appends a visible "Assinado digitalmente por" block to the last page of a PDF
by rendering an overlay with reportlab and merging it with PyPDF2. The
primitive is deterministic for a given input and fails closed: any problem
reading, rendering or writing the PDF raises SigningError instead of
returning partial bytes.
"""

import logging
from io import BytesIO

from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.colors import Color
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)


class SigningError(Exception):
    """Raised when the signature block cannot be appended."""


class PdfSignatureStamper:
    """Stamp signature blocks onto the last page of a PDF."""

    FONT = 'Helvetica'
    FONT_SIZE = 10
    LINE_HEIGHT = 12
    MARGIN_X = 50
    MARGIN_Y = 50
    # Vertical room taken by one block (two lines plus spacing)
    BLOCK_HEIGHT = 30
    TEXT_COLOR = Color(0.2, 0.2, 0.2)
    TIMESTAMP_FORMAT = '%d/%m/%Y, %H:%M:%S'

    def append_signature_block(self, pdf_bytes, signer_name: str, timestamp, slot: int = 0) -> bytes:
        """
        Return a copy of `pdf_bytes` with a signature block on the last page.

        Args:
            pdf_bytes: bytes of the current PDF
            signer_name: display name printed in the block
            timestamp: datetime printed in the block
            slot: how many blocks are already on the page; each new block is
                stacked above the previous ones

        Returns:
            bytes: the stamped PDF

        Raises:
            SigningError: input is not a readable PDF, or rendering failed
        """
        if not pdf_bytes:
            raise SigningError("Document has no file content to sign")

        try:
            reader = PdfReader(BytesIO(bytes(pdf_bytes)))
            page_count = len(reader.pages)
        except Exception as e:
            raise SigningError(f"Could not read PDF: {e}") from e

        if page_count == 0:
            raise SigningError("PDF has no pages")

        try:
            writer = PdfWriter()
            for index, page in enumerate(reader.pages):
                if index == page_count - 1:
                    width = float(page.mediabox.width)
                    height = float(page.mediabox.height)
                    overlay = self._create_overlay(width, height, signer_name, timestamp, slot)
                    page.merge_page(PdfReader(overlay).pages[0])
                writer.add_page(page)

            output_buffer = BytesIO()
            writer.write(output_buffer)
        except Exception as e:
            raise SigningError(f"Could not stamp signature block: {e}") from e

        logger.debug(f"Stamped signature block for '{signer_name}' on page {page_count} (slot {slot})")
        return output_buffer.getvalue()

    def signature_lines(self, signer_name: str, timestamp):
        return [
            f"Assinado digitalmente por: {signer_name}",
            f"Data: {timestamp.strftime(self.TIMESTAMP_FORMAT)}",
        ]

    def _create_overlay(self, width: float, height: float, signer_name: str, timestamp, slot: int) -> BytesIO:
        """Render a single transparent page holding the signature block."""
        overlay_buffer = BytesIO()
        overlay_canvas = canvas.Canvas(overlay_buffer, pagesize=(width, height))
        overlay_canvas.setFont(self.FONT, self.FONT_SIZE)
        overlay_canvas.setFillColor(self.TEXT_COLOR)

        y = self.MARGIN_Y + slot * self.BLOCK_HEIGHT + self.LINE_HEIGHT
        for line in self.signature_lines(signer_name, timestamp):
            overlay_canvas.drawString(self.MARGIN_X, y, line)
            y -= self.LINE_HEIGHT

        overlay_canvas.save()
        overlay_buffer.seek(0)
        return overlay_buffer


# Singleton instance
_signature_stamper = None


def get_signature_stamper() -> PdfSignatureStamper:
    """Get singleton instance of the signing primitive."""
    global _signature_stamper
    if _signature_stamper is None:
        _signature_stamper = PdfSignatureStamper()
    return _signature_stamper
