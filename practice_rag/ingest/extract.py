from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict

from ..errors import ExtractionError, UnsupportedFileTypeError
from ..index.schema import ExtractedText
from .docx import parse_docx
from .pdf import parse_pdf
from .xlsx import parse_xlsx

logger = logging.getLogger(__name__)

PARSERS: Dict[str, Callable[[bytes], ExtractedText]] = {
    "pdf": parse_pdf,
    "docx": parse_docx,
    "xlsx": parse_xlsx,
}

EXTENSIONS = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".xlsx": "xlsx",
    ".png": "image",
    ".jpg": "image",
    ".jpeg": "image",
}


def file_type_from_path(path: str | Path) -> str:
    ext = Path(path).suffix.lower()
    try:
        return EXTENSIONS[ext]
    except KeyError:
        raise UnsupportedFileTypeError(ext or "<none>", "supported: pdf, docx, xlsx") from None


def extract_text(data: bytes, file_type: str) -> ExtractedText:
    """Pull plain text (and a page map where the format has one) out of raw file bytes."""
    if file_type == "image":
        raise UnsupportedFileTypeError("image", "requires OCR")
    parser = PARSERS.get(file_type)
    if parser is None:
        raise UnsupportedFileTypeError(file_type)
    if not data:
        raise ExtractionError(f"Empty {file_type} file")
    try:
        return parser(data)
    except Exception as e:
        raise ExtractionError(f"Could not read {file_type} file: {e}") from e
