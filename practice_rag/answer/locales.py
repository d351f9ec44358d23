from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Tuple

import yaml

LOCALE_DIR = Path(__file__).resolve().parent / "locales"
INTENTS = ("location", "content", "action")


@dataclass(frozen=True)
class Locale:
    """Language-specific tables for classification, context labels and the answer prompt."""

    name: str
    intent_rules: Tuple[Tuple[str, "re.Pattern[str]"], ...]
    default_intent: str
    determiners: Tuple[str, ...]
    name_suffixes: Tuple[str, ...]
    locator_prefixes: Tuple["re.Pattern[str]", ...]
    labels: Dict[str, str] = field(default_factory=dict)
    system_template: str = "{context}"
    error_text: str = ""

    def label(self, key: str) -> str:
        return self.labels.get(key, key)


def _compile_rules(rows: List[dict]) -> Tuple[Tuple[str, "re.Pattern[str]"], ...]:
    rules = []
    for row in rows or []:
        intent = str(row["intent"])
        if intent not in INTENTS:
            raise ValueError(f"Unknown intent in locale table: {intent}")
        rules.append((intent, re.compile(row["pattern"])))
    return tuple(rules)


def locale_from_dict(data: dict) -> Locale:
    answer = data.get("answer", {}) or {}
    default_intent = str(data.get("default_intent", "content"))
    if default_intent not in INTENTS:
        raise ValueError(f"Unknown default intent: {default_intent}")
    return Locale(
        name=str(data.get("name", "custom")),
        intent_rules=_compile_rules(data.get("intents", [])),
        default_intent=default_intent,
        determiners=tuple(data.get("determiners", []) or []),
        name_suffixes=tuple(data.get("name_suffixes", []) or []),
        locator_prefixes=tuple(
            re.compile(r"^\s*" + p, re.IGNORECASE) for p in data.get("locator_prefixes", []) or []
        ),
        labels=dict(data.get("labels", {}) or {}),
        system_template=str(answer.get("system_template", "{context}")),
        error_text=str(answer.get("error", "")),
    )


@lru_cache(maxsize=16)
def load_locale(name_or_path: str = "de") -> Locale:
    """Load a shipped locale by name ("de", "en") or a custom YAML file by path."""
    p = Path(name_or_path)
    if p.suffix.lower() not in {".yaml", ".yml"}:
        p = LOCALE_DIR / f"{name_or_path}.yaml"
    if not p.exists():
        raise FileNotFoundError(f"Locale not found: {name_or_path}")
    with open(p, "r", encoding="utf-8") as f:
        return locale_from_dict(yaml.safe_load(f) or {})


def locale_from_config(cfg: dict) -> Locale:
    ans_cfg = cfg.get("answer", {}) or {}
    return load_locale(str(ans_cfg.get("locale_file") or ans_cfg.get("locale", "de")))
