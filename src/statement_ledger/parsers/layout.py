"""Line reconstruction from positioned PDF text.

PDF text comes out as positioned fragments. Fragments sharing a rounded
vertical position form a line; lines run top to bottom and fragments
left to right. Wide horizontal gaps are kept as a three-space separator
so column boundaries survive for the line parsers.
"""

import io
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

import pdfplumber

from statement_ledger.parsers.base import IngestionError
from statement_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Horizontal gap (PDF units) marking a column boundary
DEFAULT_COLUMN_GAP = 50.0

COLUMN_SEPARATOR = "   "

# Maximum number of pages to extract to prevent resource exhaustion
MAX_PDF_PAGES = 500


@dataclass(frozen=True)
class RawTextFragment:
    """Positioned run of text on a PDF page.

    Attributes:
        text: The text.
        x: Left edge.
        y: Baseline in PDF space (grows upward).
        width: Width of the run; 0 when unknown, in which case gaps are
            measured between left edges.
    """

    text: str
    x: float
    y: float
    width: float = 0.0


def reconstruct_page(
    fragments: Iterable[RawTextFragment],
    column_gap: float = DEFAULT_COLUMN_GAP,
) -> list[str]:
    """Group one page's fragments into ordered text lines.

    Args:
        fragments: Fragments of a single page.
        column_gap: Gap above which a column separator is inserted.

    Returns:
        Non-empty lines, top to bottom.
    """
    buckets: dict[int, list[RawTextFragment]] = defaultdict(list)
    for fragment in fragments:
        buckets[round(fragment.y)].append(fragment)

    lines: list[str] = []
    for y in sorted(buckets, reverse=True):
        row = sorted(buckets[y], key=lambda f: (f.x, f.text))
        parts: list[str] = []
        previous: RawTextFragment | None = None
        for fragment in row:
            if previous is not None:
                gap = fragment.x - (previous.x + previous.width)
                parts.append(COLUMN_SEPARATOR if gap > column_gap else " ")
            parts.append(fragment.text)
            previous = fragment
        line = "".join(parts)
        if line.strip():
            lines.append(line)

    return lines


def reconstruct_lines(
    pages: Iterable[Iterable[RawTextFragment]],
    column_gap: float = DEFAULT_COLUMN_GAP,
) -> list[str]:
    """Reconstruct lines for a whole document, pages in order.

    Args:
        pages: Fragments grouped per page.
        column_gap: Gap above which a column separator is inserted.

    Returns:
        All lines of the document.
    """
    lines: list[str] = []
    for page_fragments in pages:
        lines.extend(reconstruct_page(page_fragments, column_gap))
    return lines


class PdfTextExtractor:
    """Extracts positioned word fragments from PDF bytes using pdfplumber.

    Only text-based PDFs are supported; scanned documents yield no text.
    """

    def __init__(self, max_pages: int = MAX_PDF_PAGES):
        """Initialize extractor.

        Args:
            max_pages: Pages beyond this limit are ignored.
        """
        self.max_pages = max_pages

    def extract_fragments(self, data: bytes, source: str | None = None) -> list[list[RawTextFragment]]:
        """Extract word fragments per page.

        Args:
            data: PDF document bytes.
            source: Document name for error messages.

        Returns:
            One list of fragments per page.

        Raises:
            IngestionError: If the PDF cannot be opened or read.
        """
        pages: list[list[RawTextFragment]] = []
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                total_pages = len(pdf.pages)
                if total_pages > self.max_pages:
                    logger.warning(
                        f"PDF has {total_pages} pages, only the first {self.max_pages} will be read"
                    )
                for page in pdf.pages[: self.max_pages]:
                    words = page.extract_words(keep_blank_chars=False, use_text_flow=False)
                    pages.append(
                        [
                            RawTextFragment(
                                text=word["text"],
                                x=float(word["x0"]),
                                # pdfplumber measures from the top; flip to PDF space
                                y=float(page.height) - float(word["bottom"]),
                                width=float(word["x1"]) - float(word["x0"]),
                            )
                            for word in words
                        ]
                    )
        except Exception as e:
            raise IngestionError(f"Failed to read PDF: {e}", source) from e

        logger.debug(f"Extracted {sum(len(p) for p in pages)} fragments from {len(pages)} pages")
        return pages
