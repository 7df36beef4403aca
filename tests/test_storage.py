import json
from datetime import datetime, timezone

import pytest

from workledger.core import storage as storage_module
from workledger.core.errors import PersistenceError
from workledger.core.storage import LedgerStorage, flush_all
from workledger.models.work import Work

def make_work(work_id="w-1", owner_id="u1", title="Title"):
    return Work(
        id=work_id,
        owner_id=owner_id,
        title=title,
        content="Some content",
        submitted_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        plagiarism_score=0,
    )

def fail_write(file_path, text):
    raise OSError("disk full")

def test_missing_files_load_empty(tmp_path):
    storage = LedgerStorage(str(tmp_path))
    assert storage.load_all() == {"works": 0, "work_revisions": 0, "licenses": 0}

def test_append_persists_camel_case_records(tmp_path):
    storage = LedgerStorage(str(tmp_path))
    storage.works.append(make_work())

    raw = json.loads((tmp_path / "works.json").read_text(encoding="utf-8"))
    assert raw[0]["ownerId"] == "u1"
    assert raw[0]["isLicensed"] is False

    reloaded = LedgerStorage(str(tmp_path))
    reloaded.load_all()
    assert reloaded.works.get("w-1") == make_work()

def test_corrupt_file_raises_persistence_error(tmp_path):
    (tmp_path / "works.json").write_text("{not json", encoding="utf-8")
    storage = LedgerStorage(str(tmp_path))
    with pytest.raises(PersistenceError):
        storage.works.load()

def test_duplicate_id_rejected(storage):
    storage.works.append(make_work())
    with pytest.raises(ValueError):
        storage.works.append(make_work())

def test_reads_return_copies(storage):
    storage.works.append(make_work())
    copy = storage.works.get("w-1")
    copy.title = "Changed"
    assert storage.works.get("w-1").title == "Title"
    assert storage.works.snapshot()[0].title == "Title"

def test_update_unknown_id_returns_none(storage):
    assert storage.works.update("missing", lambda work: work) is None

def test_failed_mutation_leaves_record_unchanged(storage):
    storage.works.append(make_work())

    def explode(work):
        raise RuntimeError("bad patch")

    with pytest.raises(RuntimeError):
        storage.works.update("w-1", explode)
    assert storage.works.get("w-1").title == "Title"

def test_flush_failure_keeps_memory(storage, monkeypatch):
    monkeypatch.setattr(storage_module, "atomic_write_text", fail_write)
    with pytest.raises(PersistenceError) as exc_info:
        storage.works.append(make_work())

    assert "disk full" not in str(exc_info.value)
    assert storage.works.get("w-1") is not None

def test_flush_all_attempts_every_collection(storage, monkeypatch):
    storage.works.append(make_work(), flush=False)
    monkeypatch.setattr(storage_module, "atomic_write_text", fail_write)
    with pytest.raises(PersistenceError):
        flush_all(storage.works, storage.revisions)

def test_remove(storage):
    storage.works.append(make_work())
    assert storage.works.remove("w-1") is True
    assert storage.works.remove("w-1") is False
    assert len(storage.works) == 0

def test_health_check(storage):
    storage.works.append(make_work())
    health = storage.health_check()
    assert health["writable"] is True
    assert health["collections"]["works"] == 1
