import re
import sys
import uuid
from pathlib import Path

import pytest

# Repo root = one level above tests/
REPO_ROOT = Path(__file__).resolve().parents[1]

# Root modules (cli, synthesizer) and namespace packages import from here.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from practice_rag.index.schema import (  # noqa: E402
    ChunkMetadata,
    ContentItem,
    EntryRef,
    IndexedEntry,
    TitleHit,
    TitleRecord,
    VectorHit,
    VectorSearchResult,
)


def _words(s):
    return set(re.findall(r"[^\W_]+", s.lower()))


class FakeContentIndex:
    """In-memory content index; score = share of query words found in the chunk."""

    def __init__(self, fixed_result=None, error=None):
        self.entries = {}
        self.chunks = {}
        self.fixed_result = fixed_result
        self.error = error
        self.calls = []

    def add(self, namespace, key, chunks, title, filters, metadata):
        for eid, e in list(self.entries.items()):
            if e.key == key:
                self.delete(namespace, eid)
        entry_id = uuid.uuid4().hex
        self.entries[entry_id] = IndexedEntry(
            entry_id=entry_id, key=key, title=title, filters=filters, metadata=metadata
        )
        self.chunks[entry_id] = list(chunks)
        return entry_id

    def delete(self, namespace, entry_id):
        self.chunks.pop(entry_id, None)
        return self.entries.pop(entry_id, None) is not None

    def search(self, namespace, query, limit, vector_score_threshold):
        self.calls.append(
            {"namespace": namespace, "query": query, "limit": limit,
             "threshold": vector_score_threshold}
        )
        if self.error is not None:
            raise self.error
        if self.fixed_result is not None:
            return self.fixed_result
        q = _words(query)
        hits = []
        for eid, chunks in self.chunks.items():
            for c in chunks:
                score = len(q & _words(c.text)) / len(q) if q else 0.0
                if score >= vector_score_threshold:
                    hits.append(
                        VectorHit(
                            entry_id=eid,
                            score=score,
                            content=[
                                ContentItem(
                                    text=c.text,
                                    metadata=ChunkMetadata(
                                        page_number=c.page_number, chunk_index=c.chunk_index
                                    ),
                                )
                            ],
                        )
                    )
        hits.sort(key=lambda h: h.score, reverse=True)
        hits = hits[:limit]
        refs = {h.entry_id: EntryRef(entry_id=h.entry_id, title=self.entries[h.entry_id].title)
                for h in hits}
        return VectorSearchResult(results=hits, entries=list(refs.values()))


class FakeTitleStore:
    def __init__(self, hits=(), titles=(), error=None):
        self.hits = [TitleHit(**h) if isinstance(h, dict) else h for h in hits]
        self.titles = [
            TitleRecord(id=str(i), **t) if isinstance(t, dict) else t
            for i, t in enumerate(titles)
        ]
        self.error = error
        self.queries = []

    def search_titles(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.hits)

    def get_all_titles(self):
        return list(self.titles)


class FakeLLM:
    def __init__(self, reply="Antwort aus den Dokumenten.", error=None):
        self.reply = reply
        self.error = error
        self.messages = None

    def chat(self, messages, temperature=0.3, max_tokens=None):
        self.messages = messages
        if self.error is not None:
            raise self.error
        return self.reply


def vector_result(*hits, entries=None):
    """hits: (entry_id, score, text, page_number) tuples; entries: {entry_id: title}."""
    results = [
        VectorHit(
            entry_id=eid,
            score=score,
            content=[ContentItem(text=text, metadata=ChunkMetadata(page_number=page, chunk_index=0))],
        )
        for eid, score, text, page in hits
    ]
    refs = [EntryRef(entry_id=k, title=v) for k, v in (entries or {}).items()]
    return VectorSearchResult(results=results, entries=refs)


@pytest.fixture
def cfg(tmp_path):
    return {
        "app": {
            "index_dir": str(tmp_path / "index"),
            "namespace": "practice",
            "log_dir": str(tmp_path / "logs"),
        },
        "ingest": {"chunk_size": 2000, "overlap": 200},
        "retrieval": {"vector_score_threshold": 0.4},
        "answer": {"locale": "de", "max_sources": 5},
        "llm": {"backend": "ollama", "model": "test", "endpoint": "http://localhost:11434"},
    }
