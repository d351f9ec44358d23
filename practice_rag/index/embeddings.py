from __future__ import annotations

import logging
import os
from typing import Callable, List, Optional

import requests

logger = logging.getLogger(__name__)

EmbeddingFn = Callable[[List[str]], List[List[float]]]

DEFAULT_FASTEMBED_MODEL = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"


class OllamaEmbeddingFunction:
    def __init__(self, model: Optional[str] = None, host: Optional[str] = None, timeout: int = 300):
        self.model = model or os.getenv("EMBED_MODEL", DEFAULT_OLLAMA_MODEL)
        self.host = (host or os.getenv("OLLAMA_HOST", "http://localhost:11434")).rstrip("/")
        self.timeout = timeout

    def __call__(self, input: List[str]) -> List[List[float]]:
        if not input:
            return []
        r = requests.post(
            f"{self.host}/api/embed",
            json={"model": self.model, "input": list(input)},
            timeout=self.timeout,
        )
        r.raise_for_status()
        data = r.json() or {}
        vecs = data.get("embeddings") or []
        if len(vecs) != len(input):
            raise RuntimeError(
                f"Ollama returned {len(vecs)} embeddings for {len(input)} inputs (model={self.model})"
            )
        return vecs


class FastEmbedFunction:
    def __init__(self, model: Optional[str] = None):
        from fastembed import TextEmbedding

        self.model_name = model or os.getenv("EMBED_MODEL", DEFAULT_FASTEMBED_MODEL)
        logger.info("loading fastembed model %s", self.model_name)
        self.model = TextEmbedding(model_name=self.model_name)

    def __call__(self, input: List[str]) -> List[List[float]]:
        return [vec.tolist() for vec in self.model.embed(list(input))]


def make_embedding_function(cfg: dict) -> EmbeddingFn:
    """Build the embedding backend named in ``models.embedding`` (env ``EMBED_BACKEND`` wins)."""
    emb = ((cfg.get("models") or {}).get("embedding") or {})
    if isinstance(emb, str):
        emb = {"model": emb}
    cfg_backend = (emb.get("backend") or "fastembed").lower()
    backend = (os.getenv("EMBED_BACKEND") or cfg_backend).lower()
    # a configured model only belongs to the configured backend; otherwise
    # EMBED_MODEL or the backend default applies
    model = emb.get("model") if backend == cfg_backend else None
    if backend == "ollama":
        return OllamaEmbeddingFunction(model=model, host=emb.get("host"))
    if backend == "fastembed":
        return FastEmbedFunction(model=model)
    raise ValueError(f"Unsupported embedding backend: {backend}")
