import io
import os
import uuid

import pytest

from medvault.exceptions import BlobNotFound, Conflict, InvalidInput, StorageFailure
from medvault.services import storage_service as storage_module
from medvault.services.storage_service import StorageService


def _stored_names(storage, owner_id):
    owner_dir = storage.root / storage.namespace(owner_id)
    if not owner_dir.is_dir():
        return []
    return sorted(entry.name for entry in owner_dir.iterdir())


def test_store_and_load_returns_identical_bytes(storage):
    payload = b"%PDF-1.4\n" + bytes(range(256)) * 10

    reference = storage.store("patient-a", payload, "scan.pdf", "application/pdf")

    assert reference.owner_id == "patient-a"
    assert reference.size == len(payload)
    assert reference.content_type == "application/pdf"
    with storage.load("patient-a", reference.key) as stream:
        assert stream.read() == payload


def test_store_accepts_file_objects(storage):
    reference = storage.store("patient-a", io.BytesIO(b"hello"), "notes.txt")

    assert reference.size == 5
    assert reference.content_type == "application/octet-stream"
    with storage.load("patient-a", reference.key) as stream:
        assert stream.read() == b"hello"


def test_key_is_prefixed_with_owner_namespace_and_keeps_extension(storage):
    reference = storage.store("patient-a", b"x", "Lab Report.PDF")

    assert reference.key.startswith(storage.namespace("patient-a") + "_")
    assert reference.key.endswith(".PDF")
    assert _stored_names(storage, "patient-a") == [reference.key]


def test_keys_are_unique_for_identical_uploads(storage):
    first = storage.store("patient-a", b"same", "a.pdf")
    second = storage.store("patient-a", b"same", "a.pdf")

    assert first.key != second.key
    assert len(_stored_names(storage, "patient-a")) == 2


@pytest.mark.parametrize("name", ["../etc/passwd", "a..b.pdf", "report\x00.pdf", ""])
def test_store_rejects_traversal_in_filename(storage, name):
    with pytest.raises(InvalidInput):
        storage.store("patient-a", b"data", name)

    assert _stored_names(storage, "patient-a") == []


def test_store_rejects_empty_owner_id(storage):
    with pytest.raises(InvalidInput):
        storage.store("", b"data", "file.pdf")


@pytest.mark.parametrize("owner_id", [
    "auth0|64f1c2",
    "jane+records@example.com",
    "google-oauth2|1077",
    "../other",
    "a/b",
    ".hidden",
    "patient \u00e9\u00e8",
])
def test_opaque_owner_ids_get_their_own_namespace(storage, owner_id):
    reference = storage.store(owner_id, b"private", "scan.pdf")

    with storage.load(owner_id, reference.key) as stream:
        assert stream.read() == b"private"
    owner_dir = storage.root / storage.namespace(owner_id)
    assert owner_dir.parent == storage.root
    assert [entry.name for entry in owner_dir.iterdir()] == [reference.key]
    with pytest.raises(BlobNotFound):
        storage.load("patient-a", reference.key)


def test_load_from_another_namespace_is_not_found(storage):
    reference = storage.store("patient-a", b"private", "scan.pdf")

    with pytest.raises(BlobNotFound):
        storage.load("patient-b", reference.key)


def test_copied_key_in_other_namespace_is_not_found(storage):
    reference = storage.store("patient-a", b"private", "scan.pdf")
    other_dir = storage.root / storage.namespace("patient-b")
    other_dir.mkdir()
    (other_dir / reference.key).write_bytes(b"planted")

    with pytest.raises(BlobNotFound):
        storage.load("patient-b", reference.key)


@pytest.mark.parametrize("key", [
    "../patient-b/file.pdf",
    "/etc/passwd",
    "patient-a_not-a-uuid.pdf",
    "",
])
def test_load_rejects_malformed_keys(storage, key):
    storage.store("patient-a", b"data", "scan.pdf")

    with pytest.raises(BlobNotFound):
        storage.load("patient-a", key)


def test_load_missing_key_is_not_found(storage):
    with pytest.raises(BlobNotFound):
        storage.load("patient-a", f"{storage.namespace('patient-a')}_{uuid.uuid4()}.pdf")


def test_delete_is_idempotent(storage):
    reference = storage.store("patient-a", b"data", "scan.pdf")

    assert storage.delete("patient-a", reference.key) is True
    assert storage.delete("patient-a", reference.key) is False
    assert storage.exists("patient-a", reference.key) is False
    with pytest.raises(BlobNotFound):
        storage.load("patient-a", reference.key)


def test_delete_ignores_malformed_keys(storage):
    reference = storage.store("patient-a", b"data", "scan.pdf")

    assert storage.delete("patient-a", "../patient-a/" + reference.key) is False
    assert storage.delete("patient-b", reference.key) is False
    assert storage.exists("patient-a", reference.key) is True


def test_collision_retries_with_a_fresh_key(storage, monkeypatch):
    existing = storage.store("patient-a", b"original", "a.pdf")
    fresh_key = f"{storage.namespace('patient-a')}_{uuid.uuid4()}.pdf"
    keys = iter([existing.key, fresh_key])
    monkeypatch.setattr(storage, "_generate_key", lambda owner_id, extension: next(keys))

    reference = storage.store("patient-a", b"newer", "b.pdf")

    assert reference.key == fresh_key
    with storage.load("patient-a", existing.key) as stream:
        assert stream.read() == b"original"
    with storage.load("patient-a", fresh_key) as stream:
        assert stream.read() == b"newer"


def test_exhausted_collision_retries_raise_conflict(tmp_path, monkeypatch):
    storage = StorageService(root=str(tmp_path / "blobs"), collision_retries=2)
    existing = storage.store("patient-a", b"original", "a.pdf")
    monkeypatch.setattr(storage, "_generate_key", lambda owner_id, extension: existing.key)

    with pytest.raises(Conflict):
        storage.store("patient-a", b"newer", "b.pdf")

    assert _stored_names(storage, "patient-a") == [existing.key]
    with storage.load("patient-a", existing.key) as stream:
        assert stream.read() == b"original"


def test_failed_write_leaves_nothing_behind(storage, monkeypatch):
    def fail_link(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(storage_module.os, "link", fail_link)

    with pytest.raises(StorageFailure):
        storage.store("patient-a", b"data", "scan.pdf")

    assert _stored_names(storage, "patient-a") == []


def test_usage_counts_only_stored_blobs(storage):
    storage.store("patient-a", b"12345", "a.pdf")
    storage.store("patient-a", b"123", "b.pdf")
    (storage.root / storage.namespace("patient-a") / ".upload-leftover").write_bytes(b"ignored")

    assert storage.usage("patient-a") == 8
    assert storage.usage("patient-b") == 0


def test_root_is_created(tmp_path):
    root = tmp_path / "nested" / "root"

    storage = StorageService(root=str(root))

    assert storage.root == root.resolve()
    assert os.path.isdir(root)
