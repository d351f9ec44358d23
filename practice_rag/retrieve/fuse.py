from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..index.schema import (
    ContentMatch,
    DocumentMatch,
    TitleHit,
    TitleRecord,
    VectorSearchResult,
)
from .similarity import similarity

logger = logging.getLogger(__name__)


def fuse_document_matches(
    query: str,
    title_hits: List[TitleHit],
    all_titles: List[TitleRecord],
    intent: str,
    keyword_score: float = 0.9,
    exact_score: float = 1.0,
    fuzzy_backfill_below: int = 3,
    fuzzy_min_similarity: float = 0.5,
    fuzzy_weight: float = 0.8,
    max_matches: int = 5,
) -> List[DocumentMatch]:
    """Merge keyword title hits with fuzzy title matches into one ranked list.

    Keyword hits come first and win ties for a title. Fuzzy backfill only runs
    for location questions that found fewer than ``fuzzy_backfill_below`` titles.
    """
    ql = query.lower()
    matches: Dict[str, DocumentMatch] = {}

    for hit in title_hits:
        tl = hit.title.lower()
        if tl == ql or tl in ql:
            score, match_type = exact_score, "exact"
        else:
            score, match_type = keyword_score, "keyword"
        matches[hit.title] = DocumentMatch(
            title=hit.title, file_type=hit.file_type, score=score, match_type=match_type
        )

    if intent == "location" and len(matches) < fuzzy_backfill_below:
        for rec in all_titles:
            if rec.title in matches:
                continue
            sim = similarity(query, rec.title)
            if sim > fuzzy_min_similarity:
                matches[rec.title] = DocumentMatch(
                    title=rec.title,
                    file_type=rec.file_type,
                    score=sim * fuzzy_weight,
                    match_type="fuzzy",
                )

    ranked = sorted(matches.values(), key=lambda m: m.score, reverse=True)
    return ranked[:max_matches]


def fuse_content_matches(
    vector_result: VectorSearchResult,
    limit: int = 5,
    unknown_title: str = "Unknown document",
) -> List[ContentMatch]:
    """Turn raw vector hits into citable passages; hits without an entry are dropped."""
    entries = {e.entry_id: e for e in vector_result.entries}
    out: List[ContentMatch] = []
    for hit in vector_result.results:
        entry = entries.get(hit.entry_id)
        if entry is None:
            logger.debug("dropping vector hit without entry: %s", hit.entry_id)
            continue
        page: Optional[int] = hit.content[0].metadata.page_number if hit.content else None
        out.append(
            ContentMatch(
                title=entry.title or unknown_title,
                entry_id=hit.entry_id,
                chunk_text="\n".join(c.text or "" for c in hit.content),
                page_number=page,
                score=hit.score,
            )
        )
    out.sort(key=lambda m: m.score, reverse=True)
    return out[:limit]
