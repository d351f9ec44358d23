from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List

from ..errors import SearchError
from ..index.schema import (
    ContentIndex,
    ContentMatch,
    HybridSearchResult,
    TitleStore,
    VectorSearchResult,
)
from .fuse import fuse_content_matches, fuse_document_matches

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "practice"


class HybridSearchEngine:
    """
    Keyword title search, the full title list and vector content search run
    side by side for each question; their results are fused into document-level
    and passage-level matches. Failures in any strategy propagate as SearchError.
    """

    def __init__(
        self,
        title_store: TitleStore,
        content_index: ContentIndex,
        namespace: str = DEFAULT_NAMESPACE,
        title_limit: int = 5,
        vector_limit: int = 10,
        vector_score_threshold: float = 0.4,
        keyword_score: float = 0.9,
        exact_score: float = 1.0,
        fuzzy_backfill_below: int = 3,
        fuzzy_min_similarity: float = 0.5,
        fuzzy_weight: float = 0.8,
        max_document_matches: int = 5,
        max_content_matches: int = 5,
        unknown_title: str = "Unknown document",
    ):
        self.title_store = title_store
        self.content_index = content_index
        self.namespace = namespace
        self.title_limit = title_limit
        self.vector_limit = vector_limit
        self.vector_score_threshold = vector_score_threshold
        self.keyword_score = keyword_score
        self.exact_score = exact_score
        self.fuzzy_backfill_below = fuzzy_backfill_below
        self.fuzzy_min_similarity = fuzzy_min_similarity
        self.fuzzy_weight = fuzzy_weight
        self.max_document_matches = max_document_matches
        self.max_content_matches = max_content_matches
        self.unknown_title = unknown_title
        self.last_timers: Dict[str, int] = {}

    @classmethod
    def from_config(cls, title_store: TitleStore, content_index: ContentIndex, cfg: dict, **kw):
        r = cfg.get("retrieval", {}) or {}
        app = cfg.get("app", {}) or {}
        return cls(
            title_store,
            content_index,
            namespace=str(app.get("namespace", DEFAULT_NAMESPACE)),
            title_limit=int(r.get("title_limit", 5)),
            vector_limit=int(r.get("vector_limit", 10)),
            vector_score_threshold=float(r.get("vector_score_threshold", 0.4)),
            keyword_score=float(r.get("keyword_score", 0.9)),
            exact_score=float(r.get("exact_score", 1.0)),
            fuzzy_backfill_below=int(r.get("fuzzy_backfill_below", 3)),
            fuzzy_min_similarity=float(r.get("fuzzy_min_similarity", 0.5)),
            fuzzy_weight=float(r.get("fuzzy_weight", 0.8)),
            max_document_matches=int(r.get("max_document_matches", 5)),
            max_content_matches=int(r.get("max_content_matches", 5)),
            **kw,
        )

    def _titles(self, query: str):
        return self.title_store.search_titles(query)[: self.title_limit]

    def _all_titles(self):
        return self.title_store.get_all_titles()

    def _vectors(self, query: str) -> VectorSearchResult:
        return self.content_index.search(
            self.namespace,
            query,
            limit=self.vector_limit,
            vector_score_threshold=self.vector_score_threshold,
        )

    def search(self, query: str, intent: str) -> HybridSearchResult:
        t0 = time.perf_counter()
        jobs: Dict[str, Callable[[], object]] = {
            "title": lambda: self._titles(query),
            "all_titles": self._all_titles,
            "vector": lambda: self._vectors(query),
        }
        results: Dict[str, object] = {}
        with ThreadPoolExecutor(max_workers=len(jobs)) as executor:
            futures = {name: executor.submit(fn) for name, fn in jobs.items()}
            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except Exception as e:
                    logger.error("%s search failed: %s", name, e)
                    raise SearchError(name, e) from e
        t1 = time.perf_counter()

        document_matches = fuse_document_matches(
            query,
            results["title"],
            results["all_titles"],
            intent,
            keyword_score=self.keyword_score,
            exact_score=self.exact_score,
            fuzzy_backfill_below=self.fuzzy_backfill_below,
            fuzzy_min_similarity=self.fuzzy_min_similarity,
            fuzzy_weight=self.fuzzy_weight,
            max_matches=self.max_document_matches,
        )
        content_matches = fuse_content_matches(
            results["vector"], limit=self.max_content_matches, unknown_title=self.unknown_title
        )
        t2 = time.perf_counter()
        self.last_timers = {
            "recall_ms": int((t1 - t0) * 1000),
            "fuse_ms": int((t2 - t1) * 1000),
        }
        logger.debug(
            "hybrid search intent=%s documents=%d passages=%d",
            intent,
            len(document_matches),
            len(content_matches),
        )
        return HybridSearchResult(
            document_matches=document_matches, content_matches=content_matches
        )


def standalone_search(
    content_index: ContentIndex,
    namespace: str,
    query: str,
    limit: int = 5,
    threshold: float = 0.5,
    unknown_title: str = "Unknown document",
) -> List[ContentMatch]:
    """Vector-only passage search with the stricter score floor."""
    try:
        result = content_index.search(
            namespace, query, limit=limit, vector_score_threshold=threshold
        )
    except Exception as e:
        raise SearchError("vector", e) from e
    return fuse_content_matches(result, limit=limit, unknown_title=unknown_title)
