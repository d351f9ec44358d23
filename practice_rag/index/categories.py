from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import List, Optional

from ..errors import CategoryExistsError, CategoryNotFoundError
from ..utils.jsonl import JsonlTable
from .schema import Category

logger = logging.getLogger(__name__)

CATEGORIES_FILE = "categories.jsonl"

# (id, name, icon) in display order
DEFAULT_CATEGORIES = (
    ("allgemein", "Allgemein", "folder"),
    ("recht", "Gesetze und rechtliche Grundlagen", "scale"),
    ("qualitaet", "Qualitätssicherung", "shield-check"),
    ("hygiene", "Hygiene und Medizinprodukte", "droplet"),
    ("personal", "Personal", "users"),
    ("formulare", "Formulare", "file-text"),
    ("vertraege", "Verträge", "file-signature"),
    ("praxisbegehung", "Praxisbegehung", "clipboard-check"),
    ("notdienst", "Notdienst", "heart-pulse"),
)


def slugify(name: str) -> str:
    s = name.strip().lower()
    for a, b in (("ä", "ae"), ("ö", "oe"), ("ü", "ue"), ("ß", "ss")):
        s = s.replace(a, b)
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return s.strip("-")


class CategoryStore:
    """Document categories, persisted as JSON lines next to ``documents.jsonl``."""

    def __init__(self, index_dir: Path):
        self.index_dir = Path(index_dir)
        self.path = self.index_dir / CATEGORIES_FILE
        self._table: JsonlTable[Category] = JsonlTable(self.path, Category, key=lambda c: c.id)

    def list(self) -> List[Category]:
        return sorted(self._table.values(), key=lambda c: c.order)

    def get(self, category_id: str) -> Optional[Category]:
        return self._table.get(category_id)

    def require(self, category_id: str) -> Category:
        cat = self._table.get(category_id)
        if cat is None:
            raise CategoryNotFoundError(category_id)
        return cat

    def _insert(self, category_id: str, name: str, icon: Optional[str], description: str) -> Category:
        # caller holds the table lock
        if not category_id:
            raise ValueError(f"Category name gives no usable id: {name!r}")
        existing = self._table.cached()
        if any(c.id == category_id for c in existing):
            raise CategoryExistsError(category_id)
        order = max((c.order for c in existing), default=0) + 1
        cat = Category(
            id=category_id,
            name=name,
            description=description,
            icon=icon or "folder",
            order=order,
            created_at=int(time.time() * 1000),
        )
        self._table.put(cat)
        return cat

    def create(
        self,
        name: str,
        icon: Optional[str] = None,
        description: str = "",
        category_id: Optional[str] = None,
    ) -> Category:
        with self._table.lock:
            self._table.refresh()
            cat = self._insert(category_id or slugify(name), name.strip(), icon, description)
            self._table.flush()
        logger.info("created category %s '%s'", cat.id, cat.name)
        return cat

    def update(self, category_id: str, name: str, icon: Optional[str] = None) -> Category:
        with self._table.lock:
            cat = self.require(category_id)
            changes = {"name": name.strip()}
            if icon:
                changes["icon"] = icon
            cat = cat.model_copy(update=changes)
            self._table.put(cat)
            self._table.flush()
        return cat

    def delete(self, category_id: str) -> Category:
        """Unconditional removal; the in-use check lives with the documents (app.delete_category)."""
        with self._table.lock:
            self._table.refresh()
            cat = self._table.pop(category_id)
            if cat is None:
                raise CategoryNotFoundError(category_id)
            self._table.flush()
        logger.info("deleted category %s '%s'", cat.id, cat.name)
        return cat

    def seed_defaults(self) -> int:
        """Insert the default practice categories into an empty store. Returns how many were added."""
        with self._table.lock:
            self._table.refresh()
            if self._table.cached():
                return 0
            for cid, name, icon in DEFAULT_CATEGORIES:
                self._insert(cid, name, icon, "")
            self._table.flush()
        logger.info("seeded %d default categories", len(DEFAULT_CATEGORIES))
        return len(DEFAULT_CATEGORIES)
