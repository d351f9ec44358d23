from __future__ import annotations

import logging
import re
import time
import uuid
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional

from rank_bm25 import BM25Plus

from ..errors import DocumentNotFoundError
from ..utils.jsonl import JsonlTable
from .schema import Document, DocumentMeta, TitleHit, TitleRecord

logger = logging.getLogger(__name__)

DOCUMENTS_FILE = "documents.jsonl"
MIN_TOKEN_LEN = 3
MIN_PREFIX_LEN = 4


def _tok(s: str) -> list[str]:
    return [t for t in re.findall(r"[^\W_]+", s.lower()) if len(t) >= MIN_TOKEN_LEN]


def _overlaps(q: str, t: str) -> bool:
    if q == t:
        return True
    short, long_ = (q, t) if len(q) <= len(t) else (t, q)
    return len(short) >= MIN_PREFIX_LEN and long_.startswith(short)


def _now_ms() -> int:
    return int(time.time() * 1000)


class DocumentStore:
    """
    Registry of uploaded documents, persisted as JSON lines under ``index_dir``.

    Doubles as the title store for hybrid search: only ``ready`` documents are
    visible to ``search_titles`` and ``get_all_titles``. Reads work on a
    snapshot taken under the table lock, so searches can overlap uploads.
    """

    def __init__(self, index_dir: Path, title_limit: int = 5):
        self.index_dir = Path(index_dir)
        self.index_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.index_dir / DOCUMENTS_FILE
        self.title_limit = title_limit
        self._table: JsonlTable[Document] = JsonlTable(self.path, Document, key=lambda d: d.id)

    # ---- lifecycle ----

    def create(self, title: str, file_type: str, category: str, file_size: int = 0) -> Document:
        doc = Document(
            id=uuid.uuid4().hex,
            title=title,
            file_type=file_type,
            category=category,
            uploaded_at=_now_ms(),
            file_size=file_size,
        )
        with self._table.lock:
            self._table.refresh()
            self._table.put(doc)
            self._table.flush()
        logger.info("created document %s '%s' (%s)", doc.id, title, file_type)
        return doc

    def get(self, document_id: str) -> Optional[Document]:
        return self._table.get(document_id)

    def require(self, document_id: str) -> Document:
        doc = self._table.get(document_id)
        if doc is None:
            raise DocumentNotFoundError(document_id)
        return doc

    def list(self, category: Optional[str] = None, file_type: Optional[str] = None) -> List[Document]:
        docs = [
            d
            for d in self._table.values()
            if (category is None or d.category == category)
            and (file_type is None or d.file_type == file_type)
        ]
        return sorted(docs, key=lambda d: d.uploaded_at, reverse=True)

    def count_by_category(self) -> Dict[str, int]:
        return dict(Counter(d.category for d in self._table.values()))

    def _update(self, document_id: str, **changes) -> Document:
        with self._table.lock:
            doc = self.require(document_id)
            if doc.status == "ready":
                raise ValueError(f"Document {document_id} is ready and can no longer change")
            doc = doc.model_copy(update=changes)
            self._table.put(doc)
            self._table.flush()
        return doc

    def mark_ready(
        self,
        document_id: str,
        rag_entry_id: str,
        page_count: Optional[int] = None,
        chunk_count: Optional[int] = None,
        word_count: Optional[int] = None,
    ) -> Document:
        meta = DocumentMeta(page_count=page_count, chunk_count=chunk_count, word_count=word_count)
        return self._update(document_id, status="ready", rag_entry_id=rag_entry_id, metadata=meta)

    def mark_error(self, document_id: str, message: str) -> Document:
        with self._table.lock:
            meta = self.require(document_id).metadata.model_copy(update={"error_message": message})
            return self._update(document_id, status="error", metadata=meta)

    def delete(self, document_id: str) -> Document:
        with self._table.lock:
            self._table.refresh()
            doc = self._table.pop(document_id)
            if doc is None:
                raise DocumentNotFoundError(document_id)
            self._table.flush()
        logger.info("deleted document %s '%s'", document_id, doc.title)
        return doc

    # ---- title store ----

    def _ready(self) -> List[Document]:
        return [d for d in self._table.values() if d.status == "ready"]

    def search_titles(self, query: str) -> List[TitleHit]:
        docs = self._ready()
        q = _tok(query)
        if not docs or not q:
            return []
        corpus = [_tok(d.title) or [""] for d in docs]
        scores = BM25Plus(corpus).get_scores(q)

        hits = []
        for doc, toks, score in zip(docs, corpus, scores):
            if any(_overlaps(qt, tt) for qt in q for tt in toks):
                hits.append((float(score), doc))
        hits.sort(key=lambda x: x[0], reverse=True)
        return [TitleHit(title=d.title, file_type=d.file_type) for _, d in hits[: self.title_limit]]

    def get_all_titles(self) -> List[TitleRecord]:
        return [TitleRecord(id=d.id, title=d.title, file_type=d.file_type) for d in self._ready()]
