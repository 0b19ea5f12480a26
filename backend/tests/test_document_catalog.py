import uuid
from datetime import datetime, timedelta, timezone

import pytest

from medvault.exceptions import CategoryNotFound, Conflict, DocumentNotFound, InvalidInput
from medvault.models.document import DocumentCreate


def make_create(owner_id="patient-p", key=None, **fields):
    fields.setdefault("title", "Blood panel")
    return DocumentCreate(
        owner_id=owner_id,
        stored_file=key or f"{owner_id}_{uuid.uuid4()}.pdf",
        content_type="application/pdf",
        file_size=123,
        **fields,
    )


def test_create_assigns_id_and_timestamps(catalog, clock):
    document = catalog.create(make_create())

    assert document.id
    assert document.owner_id == "patient-p"
    assert document.uploaded_at == clock.now
    assert document.last_modified_at == clock.now
    assert document.document_date == clock.now
    assert catalog.get(document.id) == document


def test_create_keeps_explicit_document_date(catalog):
    taken = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)

    document = catalog.create(make_create(document_date=taken))

    assert catalog.get(document.id).document_date == taken


def test_document_date_with_offset_is_stored_as_the_same_instant(catalog):
    plus_five = timezone(timedelta(hours=5))
    taken = datetime(2026, 3, 1, 10, 0, tzinfo=plus_five)

    document = catalog.create(make_create(document_date=taken))

    stored = catalog.get(document.id).document_date
    assert stored == taken
    assert stored == datetime(2026, 3, 1, 5, 0, tzinfo=timezone.utc)

    revised = datetime(2026, 2, 1, 23, 30, tzinfo=timezone(timedelta(hours=-8)))
    catalog.update(document.id, {"document_date": revised})

    assert catalog.get(document.id).document_date == datetime(2026, 2, 2, 7, 30, tzinfo=timezone.utc)


def test_create_resolves_category_name(catalog, categories):
    category = categories.create("Lab Results")

    document = catalog.create(make_create(category_id=category.id))

    assert document.category_name == "Lab Results"
    assert catalog.get(document.id).category_name == "Lab Results"


def test_create_with_unknown_category_fails(catalog):
    with pytest.raises(CategoryNotFound):
        catalog.create(make_create(category_id=999))

    assert catalog.list_all() == []


def test_create_rejects_duplicate_storage_key(catalog):
    catalog.create(make_create(key="patient-p_same.pdf"))

    with pytest.raises(Conflict):
        catalog.create(make_create(key="patient-p_same.pdf"))


def test_get_missing_document(catalog):
    with pytest.raises(DocumentNotFound):
        catalog.get("missing")
    assert catalog.exists("missing") is False


def test_list_by_owner_is_newest_first_and_scoped(catalog, clock):
    first = catalog.create(make_create(title="First"))
    clock.advance(minutes=5)
    second = catalog.create(make_create(title="Second"))
    catalog.create(make_create(owner_id="patient-q", title="Other"))

    documents = catalog.list_by_owner("patient-p")

    assert [document.id for document in documents] == [second.id, first.id]


def test_list_by_owner_filters_by_category(catalog, categories):
    imaging = categories.create("Imaging")
    scan = catalog.create(make_create(title="Scan", category_id=imaging.id))
    catalog.create(make_create(title="Note"))

    assert [document.id for document in catalog.list_by_owner("patient-p", imaging.id)] == [scan.id]


def test_list_all_spans_owners(catalog, clock):
    catalog.create(make_create(owner_id="patient-p"))
    clock.advance(seconds=1)
    latest = catalog.create(make_create(owner_id="patient-q"))

    documents = catalog.list_all()

    assert len(documents) == 2
    assert documents[0].id == latest.id


def test_update_changes_fields_and_stamps_modification(catalog, categories, clock):
    document = catalog.create(make_create())
    category = categories.create("Prescriptions")
    clock.advance(hours=1)

    updated = catalog.update(document.id, {
        "title": "  Statin prescription ",
        "category_id": category.id,
        "clinician_name": "Dr. Rivera",
    })

    assert updated.title == "Statin prescription"
    assert updated.category_name == "Prescriptions"
    assert updated.clinician_name == "Dr. Rivera"
    assert updated.uploaded_at == document.uploaded_at
    assert updated.last_modified_at == clock.now
    assert updated.stored_file == document.stored_file


def test_update_can_clear_category(catalog, categories):
    category = categories.create("Imaging")
    document = catalog.create(make_create(category_id=category.id))

    updated = catalog.update(document.id, {"category_id": None})

    assert updated.category_id is None
    assert updated.category_name is None


@pytest.mark.parametrize("changes", [
    {"owner_id": "patient-q"},
    {"stored_file": "elsewhere.pdf"},
    {"uploaded_at": "2020-01-01T00:00:00Z"},
    {"title": "   "},
    {"title": None},
    {"title": "x" * 101},
])
def test_update_rejects_invalid_changes(catalog, changes):
    document = catalog.create(make_create())

    with pytest.raises(InvalidInput):
        catalog.update(document.id, changes)

    assert catalog.get(document.id) == document


def test_update_with_unknown_category(catalog):
    document = catalog.create(make_create())

    with pytest.raises(CategoryNotFound):
        catalog.update(document.id, {"category_id": 42})


def test_update_missing_document(catalog):
    with pytest.raises(DocumentNotFound):
        catalog.update("missing", {"title": "New"})


def test_delete_removes_the_record(catalog):
    document = catalog.create(make_create())

    catalog.delete(document.id)

    with pytest.raises(DocumentNotFound):
        catalog.get(document.id)
    with pytest.raises(DocumentNotFound):
        catalog.delete(document.id)


def test_count_by_category(catalog, categories):
    category = categories.create("Insurance")
    catalog.create(make_create(title="Claim", category_id=category.id))
    catalog.create(make_create(title="Policy", category_id=category.id))
    catalog.create(make_create(title="Other"))

    assert catalog.count_by_category(category.id) == 2
