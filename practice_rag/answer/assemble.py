from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Union

from ..index.schema import AssembledContext, ContentMatch, DocumentMatch, Source
from .locales import Locale, load_locale

logger = logging.getLogger(__name__)


def is_citable(source: Source) -> bool:
    """Only sources that point at an indexed entry can be opened by the user."""
    return bool((source.entry_id or "").strip())


def dedup_sources(sources: Iterable[Source], max_sources: int = 5) -> List[Source]:
    out: List[Source] = []
    seen = set()
    for s in sources:
        if not is_citable(s):
            logger.debug("dropping uncitable source: %s", s.title)
            continue
        key = (s.title, s.page_number if s.page_number is not None else "none")
        if key in seen:
            continue
        seen.add(key)
        out.append(s)
        if len(out) >= max_sources:
            break
    return out


def _source(m: ContentMatch) -> Source:
    return Source(
        title=m.title, entry_id=m.entry_id, chunk_text=m.chunk_text, page_number=m.page_number
    )


def _unique_titles(items) -> List[str]:
    seen, out = set(), []
    for it in items:
        if it.title not in seen:
            seen.add(it.title)
            out.append(it.title)
    return out


class ContextAssembler:
    """Renders fused matches into the prompt context and the citation list."""

    def __init__(self, locale: Union[Locale, str, None] = "de", max_sources: int = 5):
        if locale is None or isinstance(locale, str):
            locale = load_locale(locale or "de")
        self.locale = locale
        self.max_sources = max_sources

    # ---- rendering ----

    def _heading(self, key: str) -> str:
        return f"{self.locale.label(key)}:"

    def _document_lines(self, matches: List[DocumentMatch]) -> List[str]:
        score_label = self.locale.label("score")
        return [
            f"- {m.title} ({m.file_type}, {m.match_type}, {score_label}: {m.score:.2f})"
            for m in matches
        ]

    def _title_lines(self, titles: List[str], note: Optional[str] = None) -> List[str]:
        suffix = f" ({note})" if note else ""
        return [f"- {t}{suffix}" for t in titles]

    def _passage(self, m: ContentMatch) -> str:
        if m.page_number is not None:
            header = f"[{m.title}, {self.locale.label('page')} {m.page_number}]"
        else:
            header = f"[{m.title}]"
        return f"{header}\n{m.chunk_text}"

    def _render(self, listing: List[str], passages: List[ContentMatch]) -> str:
        parts = [self._heading("available_documents"), *listing]
        if passages:
            parts.append("")
            parts.append(self._heading("document_contents"))
            parts.append("\n\n".join(self._passage(m) for m in passages))
        return "\n".join(parts)

    # ---- branches ----

    def _assemble_location(self, document_matches, content_matches):
        if document_matches:
            titles = {m.title for m in document_matches}
            cited = [m for m in content_matches if m.title in titles]
            return self._render(self._document_lines(document_matches), cited), cited
        if content_matches:
            listing = self._title_lines(_unique_titles(content_matches))
            return self._render(listing, content_matches), list(content_matches)
        return None, []

    def _assemble_content(self, document_matches, content_matches):
        if content_matches:
            listing = self._title_lines(_unique_titles(content_matches))
            return self._render(listing, content_matches), list(content_matches)
        if document_matches:
            listing = self._title_lines(
                _unique_titles(document_matches), note=self.locale.label("content_not_found")
            )
            return self._render(listing, []), []
        return None, []

    def assemble(
        self,
        intent: str,
        document_matches: List[DocumentMatch],
        content_matches: List[ContentMatch],
    ) -> AssembledContext:
        if intent in ("location", "action"):
            text, cited = self._assemble_location(document_matches, content_matches)
        else:
            text, cited = self._assemble_content(document_matches, content_matches)
        if text is None:
            text = self.locale.label("no_documents")
        sources = dedup_sources((_source(m) for m in cited), self.max_sources)
        return AssembledContext(context_text=text, sources=sources)


def build_metadata(
    intent: str, document_matches: List[DocumentMatch], content_matches: List[ContentMatch]
) -> Dict[str, object]:
    return {
        "intent": intent,
        "document_match_count": len(document_matches),
        "content_match_count": len(content_matches),
    }
