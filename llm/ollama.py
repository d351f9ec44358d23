from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Optional

import requests

from .base import LLM

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA = "http://localhost:11434"


def _timeouts() -> tuple[float, float]:
    """(connect, read) in seconds; the long read covers CPU-only generation."""
    ct = float(os.getenv("OLLAMA_CONNECT_TIMEOUT", "10"))
    rt = float(os.getenv("OLLAMA_READ_TIMEOUT", "600"))
    return (ct, rt)


def _normalize_endpoint(ep: Optional[str]) -> str:
    """endpoint > OLLAMA_HOST > default; ensure scheme; strip trailing slash."""
    cand = (ep or os.getenv("OLLAMA_HOST") or DEFAULT_OLLAMA).strip()
    if not re.match(r"^https?://", cand):
        cand = "http://" + cand
    return cand.rstrip("/")


class OllamaLLM(LLM):
    """Non-streaming client for Ollama's /api/chat."""

    def __init__(
        self,
        model: str,
        endpoint: Optional[str] = None,
        keep_alive: Optional[str] = None,
        **_: Any,
    ) -> None:
        self.model = model
        self.base = _normalize_endpoint(endpoint)
        self.keep_alive = keep_alive

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
        }
        if self.keep_alive:
            payload["keep_alive"] = self.keep_alive

        options: Dict[str, Any] = {"temperature": float(temperature)}
        if max_tokens is not None:
            # Ollama uses num_predict for the token limit
            options["num_predict"] = int(max_tokens)
        payload["options"] = options

        logger.debug("ollama chat model=%s messages=%d", self.model, len(messages))
        r = requests.post(f"{self.base}/api/chat", json=payload, timeout=_timeouts())
        r.raise_for_status()
        data = r.json()
        # {"message": {"role": "assistant", "content": "..."}} or the older {"response": "..."}
        msg = data.get("message", {})
        if isinstance(msg, dict) and "content" in msg:
            return msg["content"]
        return data.get("response", "")
