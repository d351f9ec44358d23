import io
from typing import List

from docx import Document as DocxDocument

from ..index.schema import ExtractedText
from .clean import estimate_pages, normalize_text, word_count


def parse_docx(data: bytes) -> ExtractedText:
    """Paragraphs then table rows (cells tab-joined). Word files carry no page map."""
    doc = DocxDocument(io.BytesIO(data))
    parts: List[str] = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells]
            if any(cells):
                parts.append("\t".join(cells))

    text = normalize_text("\n".join(parts))
    words = word_count(text)
    return ExtractedText(text=text, page_count=estimate_pages(words), word_count=words)
