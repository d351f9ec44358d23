# synthesizer.py
"""
Grounded answer generation for the practice assistant.

- Interpolates the assembled context into the locale's system template
- Sends the template plus the user's question to the llm/ adapter (Ollama by default)
- The template tells the model to answer only from the documents and to name its sources
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from llm.base import LLM
from llm.factory import make_llm_from_config

logger = logging.getLogger(__name__)

CONTEXT_SLOT = "{context}"
DEFAULT_TEMPERATURE = 0.3


def render_system_prompt(template: str, context_text: str) -> str:
    # str.format would choke on braces inside document text
    if CONTEXT_SLOT not in template:
        return f"{template.rstrip()}\n\n{context_text}"
    return template.replace(CONTEXT_SLOT, context_text)


def build_messages(question: str, context_text: str, template: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": render_system_prompt(template, context_text)},
        {"role": "user", "content": question},
    ]


def generate_answer(
    question: str,
    context_text: str,
    template: str,
    *,
    llm: Optional[LLM] = None,
    cfg: Optional[dict] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> str:
    """
    Returns the model's answer text. Transport and model errors propagate;
    the caller decides what the user sees instead.
    """
    cfg = cfg or {}
    llm_cfg = cfg.get("llm", {}) or {}
    if llm is None:
        llm = make_llm_from_config(cfg)
    if temperature is None:
        temperature = float(llm_cfg.get("temperature", DEFAULT_TEMPERATURE))
    if max_tokens is None and llm_cfg.get("max_tokens") is not None:
        max_tokens = int(llm_cfg["max_tokens"])

    messages = build_messages(question, context_text, template)
    logger.debug("generating answer (context %d chars)", len(context_text))
    return llm.chat(messages, temperature=temperature, max_tokens=max_tokens).strip()
