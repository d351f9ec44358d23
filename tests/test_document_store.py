import threading

import pytest

from practice_rag.errors import DocumentNotFoundError
from practice_rag.index.lexical import DocumentStore


def _ready(store, title, file_type="pdf", category="hygiene"):
    doc = store.create(title, file_type, category)
    return store.mark_ready(doc.id, rag_entry_id=f"entry-{doc.id}", chunk_count=1)


def test_lifecycle_and_persistence(tmp_path):
    store = DocumentStore(tmp_path)
    doc = store.create("Hygieneplan 2024", "pdf", "hygiene", file_size=123)
    assert doc.status == "processing"
    assert doc.rag_entry_id is None

    ready = store.mark_ready(doc.id, rag_entry_id="E1", page_count=4, chunk_count=7, word_count=900)
    assert ready.status == "ready"
    assert ready.metadata.chunk_count == 7

    reopened = DocumentStore(tmp_path)
    again = reopened.require(doc.id)
    assert again.rag_entry_id == "E1"
    assert again.metadata.page_count == 4
    assert again.file_size == 123


def test_error_keeps_message(tmp_path):
    store = DocumentStore(tmp_path)
    doc = store.create("Scan", "image", "allgemein")
    failed = store.mark_error(doc.id, "Unsupported file type: image (requires OCR)")
    assert failed.status == "error"
    assert "OCR" in failed.metadata.error_message


def test_ready_documents_are_immutable(tmp_path):
    store = DocumentStore(tmp_path)
    doc = _ready(store, "Hygieneplan")
    with pytest.raises(ValueError):
        store.mark_error(doc.id, "late failure")


def test_unknown_ids(tmp_path):
    store = DocumentStore(tmp_path)
    assert store.get("nope") is None
    with pytest.raises(DocumentNotFoundError):
        store.require("nope")
    with pytest.raises(DocumentNotFoundError):
        store.delete("nope")


def test_list_filters(tmp_path):
    store = DocumentStore(tmp_path)
    _ready(store, "A", "pdf", "hygiene")
    _ready(store, "B", "docx", "hygiene")
    _ready(store, "C", "pdf", "roentgen")
    assert {d.title for d in store.list(category="hygiene")} == {"A", "B"}
    assert {d.title for d in store.list(file_type="pdf")} == {"A", "C"}
    assert len(store.list()) == 3


def test_title_search_only_sees_ready_documents(tmp_path):
    store = DocumentStore(tmp_path)
    _ready(store, "Hygieneplan 2024")
    store.create("Hygieneplan Entwurf", "docx", "hygiene")
    hits = store.search_titles("Hygieneplan?")
    assert [h.title for h in hits] == ["Hygieneplan 2024"]
    assert [t.title for t in store.get_all_titles()] == ["Hygieneplan 2024"]


def test_title_search_matches_prefixes_and_ranks(tmp_path):
    store = DocumentStore(tmp_path)
    _ready(store, "Notfallplan")
    _ready(store, "Hygieneplan Praxis")
    _ready(store, "Hygiene Checkliste")
    hits = [h.title for h in store.search_titles("hygiene checkliste")]
    assert hits[0] == "Hygiene Checkliste"
    assert "Hygieneplan Praxis" in hits
    assert "Notfallplan" not in hits


def test_title_search_ignores_short_words(tmp_path):
    store = DocumentStore(tmp_path)
    _ready(store, "Dienstanweisung")
    assert store.search_titles("die") == []
    assert store.search_titles("") == []


def test_title_search_is_capped(tmp_path):
    store = DocumentStore(tmp_path, title_limit=5)
    for i in range(8):
        _ready(store, f"Plan {i}")
    assert len(store.search_titles("plan")) == 5


def test_delete(tmp_path):
    store = DocumentStore(tmp_path)
    doc = _ready(store, "Weg")
    store.delete(doc.id)
    assert store.get(doc.id) is None
    assert DocumentStore(tmp_path).get(doc.id) is None


def test_title_reads_while_uploads_are_created(tmp_path):
    store = DocumentStore(tmp_path)
    for i in range(300):
        _ready(store, f"Plan {i}")

    errors = []
    stop = threading.Event()

    def uploader():
        n = 0
        while not stop.is_set() and n < 500:
            store.create(f"Neu {n}", "pdf", "hygiene")
            n += 1

    t = threading.Thread(target=uploader)
    t.start()
    try:
        for _ in range(50):
            try:
                assert len(store.get_all_titles()) == 300
                store.search_titles("Plan")
                store.list(category="hygiene")
            except RuntimeError as e:
                errors.append(str(e))
    finally:
        stop.set()
        t.join()
    assert errors == []


def test_two_stores_on_one_directory_keep_each_others_records(tmp_path):
    web = DocumentStore(tmp_path)
    cli = DocumentStore(tmp_path)

    from_cli = cli.create("Hygieneplan 2024", "pdf", "hygiene")
    from_web = web.create("Notfallplan", "docx", "notdienst")
    cli.mark_ready(from_cli.id, rag_entry_id="E1", chunk_count=2)

    assert web.get(from_cli.id).status == "ready"
    assert [t.title for t in web.get_all_titles()] == ["Hygieneplan 2024"]

    fresh = DocumentStore(tmp_path)
    assert fresh.get(from_cli.id) is not None
    assert fresh.get(from_web.id) is not None
