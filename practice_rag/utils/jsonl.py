from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Callable, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


class JsonlTable(Generic[M]):
    """
    Keyed pydantic records persisted as one JSON line each.

    Several processes (the CLI and the web app) may share the file, so every
    read and every write first reloads it when it changed on disk since this
    instance last saw it. Writes go to a temp file that replaces the original.
    Callers hold ``lock`` around read-modify-write sequences.
    """

    def __init__(self, path: Path, model: Type[M], key: Callable[[M], str]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.model = model
        self.key = key
        self.lock = threading.RLock()
        self._rows: Dict[str, M] = {}
        self._stamp: Optional[Tuple[int, int, int]] = None
        self._loaded = False
        with self.lock:
            self.refresh()

    def _stat(self) -> Optional[Tuple[int, int, int]]:
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return None
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    def _read(self) -> Dict[str, M]:
        rows: Dict[str, M] = {}
        if not self.path.exists():
            return rows
        with open(self.path, "r", encoding="utf-8") as f:
            for i, ln in enumerate(f, start=1):
                s = ln.strip()
                if not s:
                    continue
                try:
                    rec = self.model(**json.loads(s))
                except (json.JSONDecodeError, ValueError) as e:
                    raise RuntimeError(f"Failed to parse JSONL line {i} in {self.path}: {e}") from e
                rows[self.key(rec)] = rec
        return rows

    def refresh(self) -> None:
        stamp = self._stat()
        if self._loaded and stamp == self._stamp:
            return
        self._rows = self._read()
        self._stamp = stamp
        self._loaded = True

    def flush(self) -> None:
        tmp = self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")
        with open(tmp, "w", encoding="utf-8") as out:
            for rec in self._rows.values():
                out.write(rec.model_dump_json() + "\n")
        tmp.replace(self.path)
        self._stamp = self._stat()

    # Locked accessors. Mutators below expect the caller to hold ``lock``.

    def get(self, key: str) -> Optional[M]:
        with self.lock:
            self.refresh()
            return self._rows.get(key)

    def values(self) -> List[M]:
        with self.lock:
            self.refresh()
            return list(self._rows.values())

    def cached(self) -> List[M]:
        """Rows as last loaded or put, without touching the file."""
        return list(self._rows.values())

    def put(self, rec: M) -> None:
        self._rows[self.key(rec)] = rec

    def pop(self, key: str) -> Optional[M]:
        return self._rows.pop(key, None)
