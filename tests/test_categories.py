import pytest

from practice_rag.errors import CategoryExistsError, CategoryNotFoundError
from practice_rag.index.categories import DEFAULT_CATEGORIES, CategoryStore, slugify


def test_slugify_folds_umlauts():
    assert slugify("Qualitätssicherung") == "qualitaetssicherung"
    assert slugify("  Gesetze & Verträge ") == "gesetze-vertraege"


def test_seed_only_fills_an_empty_store(tmp_path):
    store = CategoryStore(tmp_path)
    assert store.seed_defaults() == len(DEFAULT_CATEGORIES)
    assert store.seed_defaults() == 0
    assert [c.id for c in store.list()] == [cid for cid, _, _ in DEFAULT_CATEGORIES]
    assert [c.order for c in store.list()] == list(range(1, len(DEFAULT_CATEGORIES) + 1))


def test_create_appends_in_order_and_persists(tmp_path):
    store = CategoryStore(tmp_path)
    first = store.create("Hygiene")
    second = store.create("Röntgen", icon="scan")
    assert (first.order, second.order) == (1, 2)
    assert first.icon == "folder"

    reopened = CategoryStore(tmp_path)
    assert [c.name for c in reopened.list()] == ["Hygiene", "Röntgen"]
    assert reopened.require("roentgen").icon == "scan"


def test_duplicates_and_unknown_ids(tmp_path):
    store = CategoryStore(tmp_path)
    store.create("Hygiene")
    with pytest.raises(CategoryExistsError):
        store.create("hygiene")
    with pytest.raises(CategoryNotFoundError):
        store.require("nope")
    with pytest.raises(CategoryNotFoundError):
        store.delete("nope")
    with pytest.raises(ValueError):
        store.create("!!!")


def test_update_keeps_icon_unless_given(tmp_path):
    store = CategoryStore(tmp_path)
    store.create("Personal", icon="users")
    renamed = store.update("personal", "Personal und Schulungen")
    assert (renamed.id, renamed.name, renamed.icon) == ("personal", "Personal und Schulungen", "users")
    assert store.update("personal", "Personal", icon="id-card").icon == "id-card"


def test_two_stores_on_one_directory(tmp_path):
    web = CategoryStore(tmp_path)
    cli = CategoryStore(tmp_path)
    cli.create("Notdienst")
    web.create("Formulare")
    assert {c.id for c in CategoryStore(tmp_path).list()} == {"notdienst", "formulare"}
