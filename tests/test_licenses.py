import threading

import pytest

from workledger.core import storage as storage_module
from workledger.core.errors import NotFoundError, PersistenceError, ValidationError
from workledger.core.licenses import LicenseRegistry
from workledger.core.storage import LedgerStorage
from workledger.core.works import WorkStore
from workledger.models.license import LicenseMetadata

CONTENT = "The quiet river bends beneath the silver moon while herons wait in reeds"

METADATA = LicenseMetadata(
    author_name="Asha Rao",
    dob="1990-04-02",
    address="12 Lake Road",
    mobile="5550100",
    work_type="poem",
)

def test_issue_license_flags_work(registry, work_store):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    license = registry.issue_license(work.id, "u1", METADATA)

    assert license.work_id == work.id
    assert license.owner_id == "u1"
    assert license.is_active
    assert license.author_name == "Asha Rao"

    flagged = work_store.get_work(work.id, "u1")
    assert flagged.is_licensed
    assert flagged.license_id == license.id
    assert len(work_store.get_revisions(work.id, "u1")) == 1

def test_issue_license_twice_returns_same_license(registry, work_store):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    first = registry.issue_license(work.id, "u1", METADATA)
    second = registry.issue_license(work.id, "u1", LicenseMetadata(author_name="Someone Else"))

    assert second.id == first.id
    assert second.author_name == "Asha Rao"
    assert len(registry.get_user_licenses("u1")) == 1
    assert work_store.get_work(work.id, "u1").license_id == first.id

def test_concurrent_issuance_converges(registry, work_store):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    issued = []

    def issue():
        issued.append(registry.issue_license(work.id, "u1").id)

    threads = [threading.Thread(target=issue) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(set(issued)) == 1
    assert len(registry.get_user_licenses("u1")) == 1

def test_issue_license_for_other_owners_work(registry, work_store):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    with pytest.raises(NotFoundError):
        registry.issue_license(work.id, "u2", METADATA)

    assert registry.get_user_licenses("u2") == []
    assert not work_store.get_work(work.id, "u1").is_licensed

def test_issue_license_publishes_event(registry, work_store, dispatcher, notifier):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    license = registry.issue_license(work.id, "u1", METADATA, email="asha@example.com")

    assert dispatcher.drain() == 1
    assert notifier.issued == [("asha@example.com", "River", license)]

def test_no_event_without_email(registry, work_store, dispatcher):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    registry.issue_license(work.id, "u1", METADATA)
    assert dispatcher.drain() == 0

def test_verify_license_exposes_public_fields_only(registry, work_store):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    license = registry.issue_license(work.id, "u1", METADATA)

    public = registry.verify_license(license.id)
    fields = public.model_dump()
    assert public.id == license.id
    assert public.work_type == "poem"
    for private in ("dob", "address", "mobile", "owner_id"):
        assert private not in fields

def test_verify_unknown_license(registry):
    with pytest.raises(NotFoundError):
        registry.verify_license("does-not-exist")
    with pytest.raises(NotFoundError):
        registry.verify_license("")

def test_get_license_owner_only(registry, work_store):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    license = registry.issue_license(work.id, "u1", METADATA)

    assert registry.get_license(license.id, "u1").dob == "1990-04-02"
    with pytest.raises(NotFoundError):
        registry.get_license(license.id, "u2")

def test_attach_download_url(registry, work_store):
    work = work_store.create_work("u1", "River", CONTENT, 0)
    license = registry.issue_license(work.id, "u1", METADATA)

    registry.attach_download_url(license.id, "https://files.example.com/a.png")
    updated = registry.attach_download_url(license.id, "  https://files.example.com/b.png ")
    assert updated.download_url == "https://files.example.com/b.png"

    with pytest.raises(ValidationError):
        registry.attach_download_url(license.id, " ")
    with pytest.raises(NotFoundError):
        registry.attach_download_url("missing", "https://files.example.com/c.png")

def test_licenses_survive_reload(tmp_path):
    storage = LedgerStorage(str(tmp_path))
    work_store = WorkStore(storage)
    work = work_store.create_work("u1", "River", CONTENT, 0)
    license = LicenseRegistry(storage, work_store).issue_license(work.id, "u1", METADATA)

    reloaded = LedgerStorage(str(tmp_path))
    reloaded.load_all()
    registry = LicenseRegistry(reloaded, WorkStore(reloaded))
    assert registry.verify_license(license.id).author_name == "Asha Rao"
    assert WorkStore(reloaded).get_work(work.id, "u1").license_id == license.id

def test_failed_flag_update_rolls_back_license(registry, work_store, monkeypatch):
    work = work_store.create_work("u1", "River", CONTENT, 0)

    def reject(work_id, patch, requesting_owner_id=None):
        raise ValidationError("Work already carries a license", field="license_id")

    monkeypatch.setattr(work_store, "update_work", reject)
    with pytest.raises(ValidationError):
        registry.issue_license(work.id, "u1", METADATA)

    assert registry.get_user_licenses("u1") == []
    assert not work_store.get_work(work.id, "u1").is_licensed

def test_failed_flush_keeps_license_for_retry(registry, work_store, monkeypatch):
    work = work_store.create_work("u1", "River", CONTENT, 0)

    def fail_write(file_path, text):
        raise OSError("disk full")

    monkeypatch.setattr(storage_module, "atomic_write_text", fail_write)
    with pytest.raises(PersistenceError):
        registry.issue_license(work.id, "u1", METADATA)
    monkeypatch.undo()

    kept = registry.get_user_licenses("u1")
    assert len(kept) == 1
    flagged = work_store.get_work(work.id, "u1")
    assert flagged.is_licensed
    assert flagged.license_id == kept[0].id

    retried = registry.issue_license(work.id, "u1", METADATA)
    assert retried.id == kept[0].id
    assert len(registry.get_user_licenses("u1")) == 1
