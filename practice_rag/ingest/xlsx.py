import io
from typing import List

from openpyxl import load_workbook

from ..index.schema import ExtractedText
from .clean import estimate_pages, word_count


def _cell(v) -> str:
    return "" if v is None else str(v).strip()


def render_sheet(name: str, rows) -> str:
    lines: List[str] = [f"--- {name} ---"]
    for row in rows:
        cells = [_cell(v) for v in row]
        while cells and not cells[-1]:
            cells.pop()
        if cells:
            lines.append("\t".join(cells))
    return "\n".join(lines)


def parse_xlsx(data: bytes) -> ExtractedText:
    wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        sheet_names = list(wb.sheetnames)
        blocks = [render_sheet(ws.title, ws.iter_rows(values_only=True)) for ws in wb.worksheets]
    finally:
        wb.close()

    text = "\n\n".join(blocks).strip()
    words = word_count(text)
    return ExtractedText(
        text=text,
        page_count=estimate_pages(words),
        word_count=words,
        extra={"sheet_names": sheet_names},
    )
