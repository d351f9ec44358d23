from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional

import chromadb
from chromadb.config import Settings

from .embeddings import EmbeddingFn
from .schema import (
    Chunk,
    ChunkMetadata,
    ContentItem,
    EntryFilters,
    EntryMetadata,
    EntryRef,
    IndexedEntry,
    VectorHit,
    VectorSearchResult,
)

logger = logging.getLogger(__name__)

REGISTRY_FILE = "entries.json"


def _chunk_meta(entry: IndexedEntry, chunk: Chunk) -> dict:
    meta = {
        "entry_id": entry.entry_id,
        "key": entry.key,
        "chunk_index": chunk.chunk_index,
        "page_number": chunk.page_number,
        "category": entry.filters.category,
        "file_type": entry.filters.file_type,
        "uploaded_at": entry.filters.uploaded_at,
    }
    # chroma rejects None metadata values
    return {k: v for k, v in meta.items() if v is not None}


class ChromaContentIndex:
    """
    Content index on a persistent chroma client.

    One cosine collection per namespace holds the chunks (ids
    ``<entry_id>:<chunk_index>``); ``entries.json`` next to it maps entry ids
    to their IndexedEntry so search results can be resolved to titles.
    Embeddings are computed here and handed to chroma directly.
    """

    def __init__(self, persist_dir: Optional[str] = None, embedding_fn: Optional[EmbeddingFn] = None):
        persist_dir = persist_dir or os.getenv("VECTOR_DIR", "index/chroma")
        self.persist_dir = Path(persist_dir)
        self.persist_dir.mkdir(parents=True, exist_ok=True)
        settings = Settings(anonymized_telemetry=False, allow_reset=True)
        self.client = chromadb.PersistentClient(path=str(self.persist_dir), settings=settings)
        if embedding_fn is None:
            raise ValueError("ChromaContentIndex needs an embedding function")
        self.embedding_fn = embedding_fn
        self._lock = threading.RLock()
        self._registry_path = self.persist_dir / REGISTRY_FILE
        self._registry: Dict[str, Dict[str, IndexedEntry]] = {}
        self._registry_stamp: Optional[tuple] = None
        self._registry_loaded = False
        with self._lock:
            self._refresh_registry()

    # ---- registry ----
    # The CLI and the web app may share persist_dir: reload entries.json when
    # it changed on disk before every read and every read-modify-write.

    def _registry_stat(self) -> Optional[tuple]:
        try:
            st = self._registry_path.stat()
        except FileNotFoundError:
            return None
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    def _refresh_registry(self) -> None:
        stamp = self._registry_stat()
        if self._registry_loaded and stamp == self._registry_stamp:
            return
        raw = {}
        if stamp is not None:
            raw = json.loads(self._registry_path.read_text(encoding="utf-8") or "{}")
        self._registry = {
            ns: {eid: IndexedEntry(**e) for eid, e in entries.items()}
            for ns, entries in raw.items()
        }
        self._registry_stamp = stamp
        self._registry_loaded = True

    def _save_registry(self) -> None:
        raw = {
            ns: {eid: e.model_dump() for eid, e in entries.items()}
            for ns, entries in self._registry.items()
        }
        tmp = self._registry_path.with_name(f"{REGISTRY_FILE}.{os.getpid()}.tmp")
        tmp.write_text(json.dumps(raw, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._registry_path)
        self._registry_stamp = self._registry_stat()

    def entries(self, namespace: str) -> List[IndexedEntry]:
        with self._lock:
            self._refresh_registry()
            return list(self._registry.get(namespace, {}).values())

    def get_entry(self, namespace: str, entry_id: str) -> Optional[IndexedEntry]:
        with self._lock:
            self._refresh_registry()
            return self._registry.get(namespace, {}).get(entry_id)

    # ---- chroma ----

    def _collection(self, namespace: str):
        return self.client.get_or_create_collection(
            name=namespace,
            embedding_function=None,
            metadata={"hnsw:space": "cosine"},
        )

    def count(self, namespace: str) -> int:
        return self._collection(namespace).count()

    def add(
        self,
        namespace: str,
        key: str,
        chunks: List[Chunk],
        title: str,
        filters: EntryFilters,
        metadata: EntryMetadata,
    ) -> str:
        entry = IndexedEntry(
            entry_id=uuid.uuid4().hex,
            key=key,
            title=title,
            filters=filters,
            metadata=metadata,
        )
        texts = [c.text for c in chunks]
        vectors = self.embedding_fn(texts) if texts else []

        with self._lock:
            self._refresh_registry()
            for old in [e for e in self.entries(namespace) if e.key == key]:
                logger.info("replacing entry %s for key %s", old.entry_id, key)
                self._delete_locked(namespace, old.entry_id)

            if chunks:
                self._collection(namespace).upsert(
                    ids=[f"{entry.entry_id}:{c.chunk_index}" for c in chunks],
                    documents=texts,
                    embeddings=vectors,
                    metadatas=[_chunk_meta(entry, c) for c in chunks],
                )
            self._registry.setdefault(namespace, {})[entry.entry_id] = entry
            self._save_registry()

        logger.info("indexed %d chunks for '%s' as %s", len(chunks), title, entry.entry_id)
        return entry.entry_id

    def _delete_locked(self, namespace: str, entry_id: str) -> bool:
        self._collection(namespace).delete(where={"entry_id": entry_id})
        removed = self._registry.get(namespace, {}).pop(entry_id, None)
        return removed is not None

    def delete(self, namespace: str, entry_id: str) -> bool:
        with self._lock:
            self._refresh_registry()
            removed = self._delete_locked(namespace, entry_id)
            self._save_registry()
        return removed

    def search(
        self,
        namespace: str,
        query: str,
        limit: int,
        vector_score_threshold: float,
    ) -> VectorSearchResult:
        col = self._collection(namespace)
        if col.count() == 0:
            return VectorSearchResult()

        q = self.embedding_fn([query])
        res = col.query(
            query_embeddings=q,
            n_results=min(limit, col.count()),
            include=["documents", "metadatas", "distances"],
        )
        docs = (res.get("documents") or [[]])[0] or []
        metas = (res.get("metadatas") or [[]])[0] or []
        dists = (res.get("distances") or [[]])[0] or []

        hits: List[VectorHit] = []
        refs: Dict[str, EntryRef] = {}
        for text, meta, dist in zip(docs, metas, dists):
            if dist is None:
                continue
            score = 1.0 - float(dist)  # cosine space
            if score < vector_score_threshold:
                continue
            meta = meta or {}
            entry_id = str(meta.get("entry_id", ""))
            hits.append(
                VectorHit(
                    entry_id=entry_id,
                    score=score,
                    content=[
                        ContentItem(
                            text=text or "",
                            metadata=ChunkMetadata(
                                page_number=meta.get("page_number"),
                                chunk_index=int(meta.get("chunk_index", 0)),
                            ),
                        )
                    ],
                )
            )
            entry = self.get_entry(namespace, entry_id)
            if entry is not None and entry_id not in refs:
                refs[entry_id] = EntryRef(entry_id=entry_id, title=entry.title)

        return VectorSearchResult(results=hits, entries=list(refs.values()))
