from __future__ import annotations

import math
from typing import Dict, List, Optional

from ..index.schema import Chunk

SENTENCE_BREAKS = (". ", "! ", "? ")
# A sentence break is only used when it falls in the last 30% of the window.
SNAP_RATIO = 0.7


def _find_break(text: str, start: int, end: int, chunk_size: int) -> int:
    # last break whose punctuation still sits inside the window; its space may not
    best = max(text.rfind(p, 0, end + 1) for p in SENTENCE_BREAKS)
    if best > start + chunk_size * SNAP_RATIO:
        return best + 1  # keep the punctuation, drop the space
    return end


def split_into_chunks(text: str, chunk_size: int = 2000, overlap: int = 200) -> List[str]:
    """Greedy character window with sentence snapping and overlap.

    Pieces are trimmed and empty ones dropped. The window start always moves
    forward, so this terminates even when ``overlap >= chunk_size``.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0:
        raise ValueError("overlap must not be negative")

    out: List[str] = []
    n = len(text)
    start = 0
    while start < n:
        end = min(start + chunk_size, n)
        if end < n:
            end = _find_break(text, start, end, chunk_size)

        piece = text[start:end].strip()
        if piece:
            out.append(piece)

        if end >= n:
            break
        nxt = end - overlap
        start = nxt if nxt > start else end
    return out


def chunk_document(
    full_text: str,
    page_texts: Optional[Dict[int, str]] = None,
    chunk_size: int = 2000,
    overlap: int = 200,
) -> List[Chunk]:
    """Split a document into page-attributed chunks.

    With a non-empty ``page_texts`` map every chunk carries the page it was
    cut from and blank pages produce nothing. Without it the whole text is
    split and ``page_number`` stays unset. ``chunk_index`` counts emitted
    chunks across the whole document.
    """
    chunks: List[Chunk] = []

    if page_texts:
        idx = 0
        for page_no in sorted(page_texts, key=int):
            page = page_texts[page_no] or ""
            if not page.strip():
                continue
            if len(page) <= chunk_size:
                pieces = [page.strip()]
            else:
                pieces = split_into_chunks(page, chunk_size, overlap)
            for piece in pieces:
                chunks.append(Chunk(text=piece, page_number=int(page_no), chunk_index=idx))
                idx += 1
        return chunks

    for i, piece in enumerate(split_into_chunks(full_text or "", chunk_size, overlap)):
        chunks.append(Chunk(text=piece, chunk_index=i))
    return chunks


def estimate_page_number(chunk_index: int, total_chunks: int, total_pages: int) -> int:
    """Best-effort page for chunks cut from text without a page map."""
    if total_chunks <= 0 or total_pages <= 0:
        return 1
    per_page = total_chunks / total_pages
    return min(math.floor(chunk_index / per_page) + 1, total_pages)
