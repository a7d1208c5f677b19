from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List

import pdfplumber

logger = logging.getLogger(__name__)


def clean_text(text: str) -> str:
    """Collapse whitespace and strip NUL bytes the serving endpoint rejects."""
    text = text.replace("\x00", "")
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _read_pages(pdf_path: Path) -> List[str]:
    """Extract raw text from each page using pdfplumber."""
    pages_text: List[str] = []

    with pdfplumber.open(str(pdf_path)) as pdf:
        for i, page in enumerate(pdf.pages, start=1):
            try:
                text = page.extract_text() or ""
            except Exception as e:  # pragma: no cover
                logger.warning("Failed to extract text from page %s: %s", i, e)
                text = ""
            pages_text.append(text)

    return pages_text


def extract_text(pdf_path: str) -> str:
    """
    Extract full text from a PDF and apply basic cleaning.

    Raises FileNotFoundError for a missing file; a PDF that pdfplumber cannot
    open propagates its error so that submission fails loudly.
    """
    path = Path(pdf_path)

    if not path.exists():
        logger.error("PDF file not found: %s", pdf_path)
        raise FileNotFoundError(pdf_path)

    pages_text = _read_pages(path)
    cleaned = clean_text("\n\n".join(pages_text))
    logger.debug("Extracted %d characters of cleaned text from %s", len(cleaned), pdf_path)

    return cleaned
