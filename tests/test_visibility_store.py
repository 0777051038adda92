import json
import os
import threading

import pytest

from fileshare.app.exceptions import StorageError
from fileshare.app.services import visibility_service
from fileshare.app.services.visibility_service import VisibilityStore


def _public(store):
    with store._lock:
        return set(store._public)


def _read_doc(settings):
    with open(settings.visibility_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_doc(settings, data):
    with open(settings.visibility_path, "w", encoding="utf-8") as f:
        if isinstance(data, str):
            f.write(data)
        else:
            json.dump(data, f)


def test_missing_document_starts_empty(store):
    assert _public(store) == set()
    assert not store.is_public("a.txt")


def test_malformed_document_starts_empty(sandbox, settings):
    _write_doc(settings, "{not json")
    assert _public(VisibilityStore(sandbox, settings.visibility_path)) == set()

    _write_doc(settings, ["a.txt"])
    assert _public(VisibilityStore(sandbox, settings.visibility_path)) == set()


def test_malformed_entries_are_skipped_and_persist_rewrites_sorted(sandbox, settings):
    _write_doc(settings, {"publicFiles": ["../escape.txt", 42, "docs/a.txt", ".hidden", None]})
    store = VisibilityStore(sandbox, settings.visibility_path)
    assert _public(store) == {"docs/a.txt"}
    assert store.is_public("docs/a.txt")
    assert not store.is_public("../escape.txt")

    assert store.set_visibility("b.txt", True)
    assert _read_doc(settings) == {"publicFiles": ["b.txt", "docs/a.txt"]}


def test_set_visibility_normalizes_paths(store):
    store.set_visibility("docs\\2026//report.pdf", True)
    assert store.is_public("docs/2026/report.pdf")
    assert store.is_public("/docs/2026/report.pdf")

    store.set_visibility("docs/2026/report.pdf", False)
    assert not store.is_public("docs\\2026\\report.pdf")


def test_is_public_fails_closed_on_bad_input(store):
    store.set_visibility("a.txt", True)
    for bad in (None, "", "  ", "../a.txt", ".a.txt", "a/../a.txt"):
        assert store.is_public(bad) is False


def test_invalid_set_is_a_no_op(store, settings):
    assert store.set_visibility("../evil", True) is False
    assert _public(store) == set()
    assert not os.path.exists(settings.visibility_path)


def test_unchanged_set_does_not_rewrite(store, settings):
    assert store.set_visibility("a.txt", False) is False
    assert not os.path.exists(settings.visibility_path)

    assert store.set_visibility("a.txt", True) is True
    mtime_before = os.stat(settings.visibility_path).st_mtime_ns
    assert store.set_visibility("a.txt", True) is False
    assert os.stat(settings.visibility_path).st_mtime_ns == mtime_before


def test_state_survives_reload(sandbox, settings, store):
    store.set_visibility("x/y.bin", True)
    store.set_visibility("z.bin", True)
    store.set_visibility("z.bin", False)

    reloaded = VisibilityStore(sandbox, settings.visibility_path)
    assert _public(reloaded) == {"x/y.bin"}
    assert not os.path.exists(settings.visibility_path + ".tmp")


def test_failed_write_rolls_back_memory(store, monkeypatch):
    store.set_visibility("kept.txt", True)

    def boom(path, entries):
        raise OSError("disk full")

    monkeypatch.setattr(visibility_service, "save_public_entries", boom)

    with pytest.raises(StorageError):
        store.set_visibility("new.txt", True)
    assert not store.is_public("new.txt")

    with pytest.raises(StorageError):
        store.set_visibility("kept.txt", False)
    assert store.is_public("kept.txt")


def test_concurrent_writers_leave_consistent_document(store, settings):
    names = [f"dir{i % 3}/file{i}.txt" for i in range(40)]

    def worker(chunk):
        for name in chunk:
            store.set_visibility(name, True)

    threads = [threading.Thread(target=worker, args=(names[i::4],)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert _public(store) == set(names)
    assert _read_doc(settings) == {"publicFiles": sorted(names)}
