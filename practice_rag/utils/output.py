from __future__ import annotations

import datetime
import html
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

FORMATS = {"json", "md", "txt", "html"}


def _timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def _slug(s: str, max_len: int = 60) -> str:
    s = s.strip().lower()
    for a, b in (("ä", "ae"), ("ö", "oe"), ("ü", "ue"), ("ß", "ss")):
        s = s.replace(a, b)
    s = re.sub(r"[^a-z0-9\-\s_]+", "", s)
    s = re.sub(r"[\s_]+", "-", s)
    return s[:max_len].strip("-") or "question"


def infer_format(out_path: Optional[str], fmt: Optional[str]) -> str:
    if fmt:
        return fmt.lower()
    if out_path:
        ext = Path(out_path).suffix.lower().lstrip(".")
        if ext in {"html", "htm"}:
            return "html"
        if ext in FORMATS:
            return ext
    return "json"


def ensure_outpath(
    out_path: Optional[str], fmt: str, save_dir: Optional[str], question: str
) -> Path:
    if out_path:
        p = Path(out_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    base_dir = Path(save_dir or "outputs")
    base_dir.mkdir(parents=True, exist_ok=True)
    return base_dir / f"{_timestamp()}_{_slug(question)}.{fmt}"


def source_line(s: Dict[str, Any]) -> str:
    page = s.get("page_number")
    where = f"page {page}" if page is not None else "no page"
    return f"{s.get('title', '?')} | {where}"


def as_markdown(ans: Dict[str, Any]) -> str:
    lines: List[str] = [f"# {ans.get('question', '')}", ""]
    answer = (ans.get("answer") or "").strip()
    if answer:
        lines += [answer, ""]
    sources = ans.get("sources") or []
    if sources:
        lines.append("## Sources")
        lines += [f"- {source_line(s)}" for s in sources]
        lines.append("")
    meta = ans.get("metadata")
    if meta:
        lines += ["## Metadata", "```json", json.dumps(meta, indent=2), "```"]
    return "\n".join(lines).strip() + "\n"


def as_text(ans: Dict[str, Any]) -> str:
    lines: List[str] = [f"QUESTION: {ans.get('question', '')}", ""]
    lines += [(ans.get("answer") or "").strip(), ""]
    sources = ans.get("sources") or []
    if sources:
        lines.append("SOURCES:")
        lines += [f"- {source_line(s)}" for s in sources]
        lines.append("")
    if ans.get("metadata"):
        lines.append("METADATA: " + json.dumps(ans["metadata"], ensure_ascii=False))
    return "\n".join(lines).strip() + "\n"


def as_html(ans: Dict[str, Any]) -> str:
    esc = html.escape
    answer = esc((ans.get("answer") or "").strip()).replace("\n", "<br>")
    lines: List[str] = [
        "<!doctype html><html><head><meta charset='utf-8'>",
        "<style>body{font-family:system-ui,Segoe UI,Arial,sans-serif;max-width:900px;"
        "margin:40px auto;padding:0 16px} h1{font-size:1.6rem} .sources li{margin:6px 0}</style>",
        "</head><body>",
        f"<h1>{esc(ans.get('question', ''))}</h1>",
    ]
    if answer:
        lines.append(f"<div class='answer'>{answer}</div>")
    sources = ans.get("sources") or []
    if sources:
        lines.append("<h2>Sources</h2><ul class='sources'>")
        lines += [f"<li>{esc(source_line(s))}</li>" for s in sources]
        lines.append("</ul>")
    lines.append("</body></html>")
    return "\n".join(lines)


RENDERERS = {"md": as_markdown, "txt": as_text, "html": as_html}


def write_output(
    question: str,
    payload: Dict[str, Any],
    out_path: Optional[str] = None,
    fmt: Optional[str] = None,
    save_dir: Optional[str] = None,
) -> Path:
    fmt2 = infer_format(out_path, fmt)
    if fmt2 not in FORMATS:
        raise ValueError(f"Unsupported format: {fmt2}")
    target = ensure_outpath(out_path, fmt2, save_dir, question)
    obj = {
        "question": question,
        "answer": payload.get("answer"),
        "sources": payload.get("sources") or [],
        "metadata": payload.get("metadata"),
        "context": payload.get("context"),
    }
    if fmt2 == "json":
        target.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
    else:
        target.write_text(RENDERERS[fmt2](obj), encoding="utf-8")
    return target
