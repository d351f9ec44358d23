import string

import pytest

from practice_rag.index.dense import ChromaContentIndex
from practice_rag.index.schema import Chunk, EntryFilters, EntryMetadata


def letter_embedding(texts):
    # bag of letters plus a constant so no vector is all zeros
    out = []
    for t in texts:
        low = t.lower()
        out.append([float(low.count(ch)) for ch in string.ascii_lowercase] + [1.0])
    return out


def _add(index, key, title, *texts):
    chunks = [Chunk(text=t, page_number=i + 1 if i else None, chunk_index=i) for i, t in enumerate(texts)]
    return index.add(
        "practice",
        key=key,
        chunks=chunks,
        title=title,
        filters=EntryFilters(category="hygiene", file_type="pdf", uploaded_at=1700000000000),
        metadata=EntryMetadata(document_id=key, page_count=len(texts)),
    )


@pytest.fixture
def index(tmp_path):
    return ChromaContentIndex(persist_dir=str(tmp_path / "chroma"), embedding_fn=letter_embedding)


def test_add_and_search_resolves_titles(index):
    e1 = _add(index, "doc-1", "Hygieneplan", "hygiene hygiene", "zzzz")
    _add(index, "doc-2", "Notfallplan", "qqqq xxxx")
    assert index.count("practice") == 3

    res = index.search("practice", "hygiene", limit=10, vector_score_threshold=0.9)
    assert [h.entry_id for h in res.results] == [e1]
    hit = res.results[0]
    assert hit.score >= 0.9
    assert hit.content[0].text == "hygiene hygiene"
    assert hit.content[0].metadata.chunk_index == 0
    assert hit.content[0].metadata.page_number is None
    assert [(e.entry_id, e.title) for e in res.entries] == [(e1, "Hygieneplan")]


def test_threshold_filters_everything(index):
    _add(index, "doc-1", "Hygieneplan", "qqqq")
    res = index.search("practice", "hygiene", limit=5, vector_score_threshold=0.99)
    assert res.results == []
    assert res.entries == []


def test_search_on_empty_namespace(index):
    res = index.search("leer", "hygiene", limit=5, vector_score_threshold=0.0)
    assert res.results == [] and res.entries == []


def test_readding_a_key_replaces_the_entry(index):
    first = _add(index, "doc-1", "Plan", "alt eins", "alt zwei")
    second = _add(index, "doc-1", "Plan", "neu")
    assert first != second
    assert index.count("practice") == 1
    assert index.get_entry("practice", first) is None
    assert [e.entry_id for e in index.entries("practice")] == [second]


def test_delete_and_registry_persistence(index, tmp_path):
    keep = _add(index, "doc-1", "Bleibt", "aaaa")
    gone = _add(index, "doc-2", "Weg", "bbbb")
    assert index.delete("practice", gone) is True
    assert index.delete("practice", gone) is False
    assert index.count("practice") == 1

    reopened = ChromaContentIndex(persist_dir=str(tmp_path / "chroma"), embedding_fn=letter_embedding)
    assert [e.entry_id for e in reopened.entries("practice")] == [keep]
    assert reopened.get_entry("practice", keep).title == "Bleibt"


def test_embedding_function_is_required(tmp_path):
    with pytest.raises(ValueError):
        ChromaContentIndex(persist_dir=str(tmp_path / "c"))


def test_two_indexes_on_one_directory_share_the_registry(index, tmp_path):
    other = ChromaContentIndex(persist_dir=str(tmp_path / "chroma"), embedding_fn=letter_embedding)
    first = _add(index, "doc-1", "Hygieneplan", "hygiene hygiene")
    second = _add(other, "doc-2", "Notfallplan", "qqqq xxxx")

    res = other.search("practice", "hygiene", limit=5, vector_score_threshold=0.9)
    assert [(e.entry_id, e.title) for e in res.entries] == [(first, "Hygieneplan")]

    fresh = ChromaContentIndex(persist_dir=str(tmp_path / "chroma"), embedding_fn=letter_embedding)
    assert {e.entry_id for e in fresh.entries("practice")} == {first, second}
