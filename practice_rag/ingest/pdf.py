import io
import logging
from typing import Dict

from pypdf import PdfReader

from ..index.schema import ExtractedText
from .clean import normalize_text, word_count

logger = logging.getLogger(__name__)


def parse_pdf(data: bytes) -> ExtractedText:
    reader = PdfReader(io.BytesIO(data))
    page_texts: Dict[int, str] = {}
    for i, page in enumerate(reader.pages, start=1):
        try:
            txt = page.extract_text() or ""
        except Exception as e:
            # one broken page should not cost the whole document
            logger.warning("pdf page %d: text extraction failed: %s", i, e)
            txt = ""
        page_texts[i] = normalize_text(txt)

    text = "\n\n".join(t for t in page_texts.values() if t)
    return ExtractedText(
        text=text,
        page_count=len(reader.pages),
        page_texts=page_texts,
        word_count=word_count(text),
    )
