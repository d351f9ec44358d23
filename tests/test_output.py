import json

import pytest

from practice_rag.utils.output import infer_format, write_output

ANSWER = {
    "answer": "Einmal jährlich.",
    "sources": [
        {"title": "QM-Handbuch", "entry_id": "E1", "page_number": 3, "kind": "with_content"},
        {"title": "Hygieneplan", "entry_id": "E2", "page_number": None, "kind": "with_content"},
    ],
    "metadata": {"intent": "content", "document_match_count": 0, "content_match_count": 2},
    "context": "Verfügbare Dokumente:\n- QM-Handbuch",
}


def test_infer_format():
    assert infer_format("x.md", None) == "md"
    assert infer_format("x.htm", None) == "html"
    assert infer_format("x.unknown", None) == "json"
    assert infer_format("x.md", "txt") == "txt"
    assert infer_format(None, None) == "json"


def test_json_roundtrip(tmp_path):
    target = write_output("Wie oft?", ANSWER, out_path=str(tmp_path / "a.json"))
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["question"] == "Wie oft?"
    assert data["sources"][0]["page_number"] == 3


def test_markdown_lists_sources(tmp_path):
    text = write_output("Wie oft?", ANSWER, out_path=str(tmp_path / "a.md")).read_text(encoding="utf-8")
    assert text.startswith("# Wie oft?")
    assert "- QM-Handbuch | page 3" in text
    assert "- Hygieneplan | no page" in text


def test_html_escapes(tmp_path):
    ans = dict(ANSWER, answer="<b>fett</b>")
    text = write_output("Q", ans, out_path=str(tmp_path / "a.html")).read_text(encoding="utf-8")
    assert "&lt;b&gt;fett&lt;/b&gt;" in text


def test_auto_named_file(tmp_path):
    target = write_output("Wo ist der Hygieneplan?", ANSWER, fmt="txt", save_dir=str(tmp_path))
    assert target.parent == tmp_path
    assert target.name.endswith("_wo-ist-der-hygieneplan.txt")
    assert target.read_text(encoding="utf-8").startswith("QUESTION: Wo ist der Hygieneplan?")


def test_unsupported_format(tmp_path):
    with pytest.raises(ValueError):
        write_output("Q", ANSWER, out_path=str(tmp_path / "a.pdf"), fmt="pdf")
