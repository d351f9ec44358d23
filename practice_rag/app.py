from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from synthesizer import generate_answer

from .answer.assemble import ContextAssembler, build_metadata
from .answer.classify import QueryClassifier
from .answer.locales import Locale, locale_from_config
from .errors import (
    CategoryInUseError,
    ExtractionError,
    IngestError,
    NoChunksError,
    PracticeRagError,
)
from .index.categories import CategoryStore
from .index.dense import ChromaContentIndex
from .index.embeddings import make_embedding_function
from .index.lexical import DocumentStore
from .index.schema import (
    Category,
    ContentIndex,
    ContentMatch,
    Document,
    EntryFilters,
    EntryMetadata,
    Source,
)
from .ingest.chunking import chunk_document
from .ingest.extract import extract_text, file_type_from_path
from .retrieve.hybrid import DEFAULT_NAMESPACE, HybridSearchEngine, standalone_search
from .utils.log import Logger

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "allgemein"


def load_config(path: str | Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@dataclass
class Services:
    """Long-lived collaborators shared by the CLI commands and the web app."""

    cfg: dict
    store: DocumentStore
    index: ContentIndex
    locale: Locale
    categories: CategoryStore
    llm: Any = None
    _logs: Dict[str, Logger] = field(default_factory=dict)

    @property
    def namespace(self) -> str:
        return str((self.cfg.get("app", {}) or {}).get("namespace", DEFAULT_NAMESPACE))

    def log(self, name: str) -> Logger:
        if name not in self._logs:
            log_dir = Path((self.cfg.get("app", {}) or {}).get("log_dir", "logs"))
            self._logs[name] = Logger(log_dir / f"{name}.log.jsonl")
        return self._logs[name]


def build_services(
    cfg: dict,
    store: Optional[DocumentStore] = None,
    index: Optional[ContentIndex] = None,
    llm: Any = None,
    categories: Optional[CategoryStore] = None,
) -> Services:
    app_cfg = cfg.get("app", {}) or {}
    index_dir = Path(app_cfg.get("index_dir", "index")).resolve()
    if store is None:
        title_limit = int((cfg.get("retrieval", {}) or {}).get("title_limit", 5))
        store = DocumentStore(index_dir, title_limit=title_limit)
    if index is None:
        index = ChromaContentIndex(
            persist_dir=str(index_dir / "chroma"),
            embedding_fn=make_embedding_function(cfg),
        )
    if categories is None:
        categories = CategoryStore(store.index_dir)
    categories.seed_defaults()
    return Services(
        cfg=cfg,
        store=store,
        index=index,
        locale=locale_from_config(cfg),
        categories=categories,
        llm=llm,
    )


# ---------------------------
# Ingest
# ---------------------------

def process_document(services: Services, document_id: str, data: bytes) -> Document:
    """
    extract -> chunk -> index -> mark ready. Any failure marks the document as
    ``error`` with the message and is re-raised; failures from outside the
    package (index backend, embedding service) are wrapped in IngestError.
    """
    store = services.store
    doc = store.require(document_id)
    ing = services.cfg.get("ingest", {}) or {}
    t0 = time.perf_counter()
    try:
        extracted = extract_text(data, doc.file_type)
        if not extracted.text.strip():
            raise ExtractionError("No text could be extracted from the document")

        chunks = chunk_document(
            extracted.text,
            extracted.page_texts,
            chunk_size=int(ing.get("chunk_size", 2000)),
            overlap=int(ing.get("overlap", 200)),
        )
        if not chunks:
            raise NoChunksError("Chunking produced no chunks")

        entry_id = services.index.add(
            services.namespace,
            key=doc.id,
            chunks=chunks,
            title=doc.title,
            filters=EntryFilters(
                category=doc.category, file_type=doc.file_type, uploaded_at=doc.uploaded_at
            ),
            metadata=EntryMetadata(
                document_id=doc.id,
                page_count=extracted.page_count,
                word_count=extracted.word_count,
            ),
        )
    except Exception as e:
        logger.error("processing %s ('%s') failed: %s", doc.id, doc.title, e)
        store.mark_error(doc.id, str(e))
        services.log("ingest").write(
            {"event": "process_error", "document_id": doc.id, "title": doc.title, "error": str(e)}
        )
        if isinstance(e, PracticeRagError):
            raise
        raise IngestError(f"Indexing failed for {doc.title}: {e}") from e

    ready = store.mark_ready(
        doc.id,
        rag_entry_id=entry_id,
        page_count=extracted.page_count,
        chunk_count=len(chunks),
        word_count=extracted.word_count,
    )
    logger.info(
        "document %s ready: %d chunks, %d pages (%d ms)",
        doc.id,
        len(chunks),
        extracted.page_count,
        int((time.perf_counter() - t0) * 1000),
    )
    return ready


def create_document(
    services: Services, title: str, file_type: str, category: str, file_size: int = 0
) -> Document:
    """Register an upload in ``processing`` state; the category must exist."""
    services.categories.require(category)
    return services.store.create(
        title=title, file_type=file_type, category=category, file_size=file_size
    )


def ingest_file(
    services: Services,
    path: str | Path,
    title: Optional[str] = None,
    category: str = DEFAULT_CATEGORY,
) -> Document:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(path)
    file_type = file_type_from_path(path)
    data = path.read_bytes()
    doc = create_document(
        services, title=title or path.stem, file_type=file_type, category=category, file_size=len(data)
    )
    return process_document(services, doc.id, data)


def delete_document(services: Services, document_id: str) -> Document:
    doc = services.store.require(document_id)
    if doc.rag_entry_id:
        services.index.delete(services.namespace, doc.rag_entry_id)
    return services.store.delete(document_id)


# ---------------------------
# Categories
# ---------------------------

def list_categories(services: Services) -> List[Dict[str, Any]]:
    counts = services.store.count_by_category()
    return [
        dict(c.model_dump(), document_count=counts.get(c.id, 0))
        for c in services.categories.list()
    ]


def delete_category(services: Services, category_id: str) -> Category:
    services.categories.require(category_id)
    in_use = len(services.store.list(category=category_id))
    if in_use:
        raise CategoryInUseError(category_id, in_use)
    return services.categories.delete(category_id)


# ---------------------------
# Query
# ---------------------------

def source_dict(s: Source) -> Dict[str, Any]:
    d = s.model_dump()
    d["kind"] = s.kind
    return d


def answer_question(services: Services, question: str, generate: bool = True) -> Dict[str, Any]:
    """
    classify -> hybrid search -> assemble -> (optional) generate.

    Search failures propagate. A failing model call is answered with the
    locale's apology text and no sources.
    """
    cfg = services.cfg
    locale = services.locale
    timers: Dict[str, int] = {}
    t0 = time.perf_counter()

    classified = QueryClassifier(locale).classify(question)
    timers["classify_ms"] = int((time.perf_counter() - t0) * 1000)

    engine = HybridSearchEngine.from_config(
        services.store, services.index, cfg, unknown_title=locale.label("unknown_title")
    )
    result = engine.search(classified.rewritten_query, classified.intent)
    timers.update(engine.last_timers)

    t1 = time.perf_counter()
    max_sources = int((cfg.get("answer", {}) or {}).get("max_sources", 5))
    assembled = ContextAssembler(locale, max_sources=max_sources).assemble(
        classified.intent, result.document_matches, result.content_matches
    )
    metadata = build_metadata(
        classified.intent, result.document_matches, result.content_matches
    )
    timers["assemble_ms"] = int((time.perf_counter() - t1) * 1000)

    sources: List[Source] = list(assembled.sources)
    answer: Optional[str] = None
    if generate:
        t2 = time.perf_counter()
        try:
            answer = generate_answer(
                question, assembled.context_text, locale.system_template, llm=services.llm, cfg=cfg
            )
        except Exception as e:
            logger.error("answer generation failed: %s", e)
            answer = locale.error_text
            sources = []
        timers["generate_ms"] = int((time.perf_counter() - t2) * 1000)
    timers["total_ms"] = int((time.perf_counter() - t0) * 1000)

    trace = {
        "classified": classified.model_dump(),
        "document_matches": [m.model_dump() for m in result.document_matches],
        "content_matches": [
            {"title": m.title, "entry_id": m.entry_id, "page_number": m.page_number, "score": m.score}
            for m in result.content_matches
        ],
        "timers_ms": timers,
    }
    services.log("queries").write(
        {
            "question": question,
            "metadata": metadata,
            "sources": [{"title": s.title, "page_number": s.page_number} for s in sources],
            "trace": trace,
        }
    )

    return {
        "question": question,
        "answer": answer,
        "sources": [source_dict(s) for s in sources],
        "metadata": metadata,
        "context": assembled.context_text,
        "trace": trace,
    }


def search_only(services: Services, query: str, k: Optional[int] = None) -> List[ContentMatch]:
    r = services.cfg.get("retrieval", {}) or {}
    return standalone_search(
        services.index,
        services.namespace,
        query,
        limit=int(k or r.get("standalone_limit", 5)),
        threshold=float(r.get("standalone_score_threshold", 0.5)),
        unknown_title=services.locale.label("unknown_title"),
    )
