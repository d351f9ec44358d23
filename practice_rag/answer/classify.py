from __future__ import annotations

import re
from typing import List, Union

from ..index.schema import ClassifiedQuery
from .locales import Locale, load_locale


class QueryClassifier:
    """Infers intent, pulls out document-name candidates and rewrites location queries.

    All vocabulary comes from the ``Locale`` tables, so the same rules run for
    any language that ships a locale file.
    """

    def __init__(self, locale: Union[Locale, str] = "de"):
        self.locale = load_locale(locale) if isinstance(locale, str) else locale
        self._entity_re = self._build_entity_re(self.locale)

    @staticmethod
    def _build_entity_re(locale: Locale) -> "re.Pattern[str]":
        suffixes = "|".join(re.escape(s) for s in locale.name_suffixes)
        if not suffixes:
            return re.compile(r"(?!)")
        dets = "|".join(re.escape(d) for d in locale.determiners)
        det = rf"(?:(?:{dets})\s+)?" if dets else ""
        return re.compile(rf"\b{det}([^\W\d_]+(?:{suffixes}))\b", re.IGNORECASE)

    def intent(self, query: str) -> str:
        ql = query.lower().strip()
        for intent, pattern in self.locale.intent_rules:
            if pattern.search(ql):
                return intent
        return self.locale.default_intent

    def extract_document_names(self, query: str) -> List[str]:
        names: List[str] = []
        seen = set()
        for m in self._entity_re.finditer(query):
            name = m.group(1).strip()
            if name.lower() in seen:
                continue
            seen.add(name.lower())
            names.append(name)
        return names

    def rewrite(self, query: str, intent: str) -> str:
        if intent != "location":
            return query
        rewritten = query
        for prefix in self.locale.locator_prefixes:
            rewritten = prefix.sub("", rewritten, count=1)
        rewritten = rewritten.strip()
        return rewritten or query

    def classify(self, query: str) -> ClassifiedQuery:
        intent = self.intent(query)
        return ClassifiedQuery(
            intent=intent,
            original_query=query,
            extracted_document_names=self.extract_document_names(query),
            rewritten_query=self.rewrite(query, intent),
        )


def classify(query: str, locale: Union[Locale, str] = "de") -> ClassifiedQuery:
    return QueryClassifier(locale).classify(query)
