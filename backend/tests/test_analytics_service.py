from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from medvault.exceptions import InvalidInput
from medvault.models.account import Account
from medvault.models.document import Document
from medvault.services import analytics_service as analytics

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
TOKYO = timezone(timedelta(hours=9))

_ids = count(1)


def make_document(uploaded_at=NOW, file_size=100, category_name=None, owner_id="patient-p"):
    document_id = f"doc-{next(_ids)}"
    return Document(
        id=document_id,
        owner_id=owner_id,
        title=f"Document {document_id}",
        category_id=1 if category_name else None,
        category_name=category_name,
        stored_file=f"{owner_id}_{document_id}.pdf",
        content_type="application/pdf",
        file_size=file_size,
        uploaded_at=uploaded_at,
        last_modified_at=uploaded_at,
    )


def make_account(account_id, roles=("PATIENT",), created_at=NOW, **kwargs):
    return Account(id=account_id, roles=list(roles), created_at=created_at, **kwargs)


def test_basic_stats_of_empty_corpus_are_zero():
    stats = analytics.basic_stats([], NOW)

    assert stats.model_dump() == {
        "total_documents": 0,
        "total_owners": 0,
        "total_storage_bytes": 0,
        "uploads_today": 0,
        "uploads_this_month": 0,
    }


def test_basic_stats_counts_todays_uploads():
    documents = [
        make_document(NOW - timedelta(hours=2), 500, owner_id="patient-p"),
        make_document(NOW - timedelta(hours=1), 700, owner_id="patient-p"),
        make_document(NOW, 300, owner_id="patient-q"),
    ]

    stats = analytics.basic_stats(documents, NOW)

    assert stats.total_documents == 3
    assert stats.total_owners == 2
    assert stats.total_storage_bytes == 1500
    assert stats.uploads_today == 3
    assert stats.uploads_this_month == 3


def test_basic_stats_respects_month_and_day_boundaries():
    documents = [
        make_document(datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)),
        make_document(datetime(2026, 2, 28, 23, 59, tzinfo=timezone.utc)),
        make_document(datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)),
    ]

    stats = analytics.basic_stats(documents, NOW)

    assert stats.uploads_this_month == 1
    assert stats.uploads_today == 0


def test_basic_stats_uses_the_given_time_zone():
    uploaded = datetime(2026, 3, 15, 23, 30, tzinfo=timezone.utc)
    now = datetime(2026, 3, 16, 1, 0, tzinfo=timezone.utc)
    documents = [make_document(uploaded)]

    assert analytics.basic_stats(documents, now).uploads_today == 0
    assert analytics.basic_stats(documents, now, TOKYO).uploads_today == 1


def test_naive_timestamps_are_treated_as_utc():
    documents = [make_document(datetime(2026, 3, 15, 8, 0))]

    assert analytics.basic_stats(documents, NOW).uploads_today == 1


def test_category_histogram_counts_uncategorized():
    documents = [
        make_document(category_name="Lab Results"),
        make_document(category_name="Lab Results"),
        make_document(category_name=None),
    ]

    assert analytics.category_histogram(documents) == {"Lab Results": 2, "Uncategorized": 1}


def test_category_histogram_orders_by_count_then_name():
    documents = [
        make_document(category_name="Imaging"),
        make_document(category_name="Prescriptions"),
        make_document(category_name="Prescriptions"),
        make_document(category_name="Doctor Notes"),
    ]

    histogram = analytics.category_histogram(documents)

    assert list(histogram) == ["Prescriptions", "Doctor Notes", "Imaging"]


def test_monthly_trend_fills_empty_months():
    documents = [
        make_document(datetime(2026, 1, 10, tzinfo=timezone.utc)),
        make_document(datetime(2026, 3, 1, tzinfo=timezone.utc)),
        make_document(datetime(2026, 3, 14, tzinfo=timezone.utc)),
    ]

    trend = analytics.monthly_trend(documents, 3, NOW)

    assert [(bucket.month, bucket.label, bucket.count) for bucket in trend] == [
        ("2026-01", "January", 1),
        ("2026-02", "February", 0),
        ("2026-03", "March", 2),
    ]


def test_monthly_trend_crosses_year_boundary():
    now = datetime(2026, 1, 10, tzinfo=timezone.utc)
    documents = [make_document(datetime(2025, 11, 30, tzinfo=timezone.utc))]

    trend = analytics.monthly_trend(documents, 3, now)

    assert [bucket.month for bucket in trend] == ["2025-11", "2025-12", "2026-01"]
    assert [bucket.count for bucket in trend] == [1, 0, 0]


def test_monthly_trend_ignores_documents_outside_the_window():
    documents = [make_document(datetime(2025, 6, 1, tzinfo=timezone.utc))]

    trend = analytics.monthly_trend(documents, 6, NOW)

    assert len(trend) == 6
    assert sum(bucket.count for bucket in trend) == 0


@pytest.mark.parametrize("months_back", [0, -1])
def test_monthly_trend_rejects_empty_window(months_back):
    with pytest.raises(InvalidInput):
        analytics.monthly_trend([], months_back, NOW)


def test_upload_patterns_are_chronological():
    documents = [
        make_document(datetime(2026, 2, 1, tzinfo=timezone.utc)),
        make_document(datetime(2025, 12, 1, tzinfo=timezone.utc)),
        make_document(datetime(2026, 2, 20, tzinfo=timezone.utc)),
    ]

    assert list(analytics.upload_patterns(documents).items()) == [("2025-12", 1), ("2026-02", 2)]


def test_documents_per_owner():
    documents = [
        make_document(owner_id="patient-q"),
        make_document(owner_id="patient-p"),
        make_document(owner_id="patient-q"),
    ]

    assert analytics.documents_per_owner(documents) == {"patient-q": 2, "patient-p": 1}


def test_population_stats_ignores_non_patients():
    accounts = [
        make_account("p1"),
        make_account("p2", active=False),
        make_account("p3", active=False, banned=True),
        make_account("p4", has_profile=True),
        make_account("admin", roles=("ADMIN",)),
    ]

    stats = analytics.population_stats(accounts)

    assert stats.total_patients == 4
    assert stats.active_patients == 2
    assert stats.inactive_patients == 2
    assert stats.banned_patients == 1
    assert stats.patients_without_profiles == 3


def test_registration_trend_counts_patients_per_month():
    accounts = [
        make_account("p1", created_at=datetime(2026, 2, 3, tzinfo=timezone.utc)),
        make_account("p2", created_at=datetime(2026, 3, 4, tzinfo=timezone.utc)),
        make_account("admin", roles=("ADMIN",), created_at=datetime(2026, 3, 5, tzinfo=timezone.utc)),
    ]

    trend = analytics.registration_trend(accounts, 2, NOW)

    assert [(bucket.month, bucket.count) for bucket in trend] == [("2026-02", 1), ("2026-03", 1)]


def test_statistics_snapshot_combines_views():
    documents = [
        make_document(NOW, 200, "Imaging"),
        make_document(datetime(2026, 2, 1, tzinfo=timezone.utc), 300),
    ]

    snapshot = analytics.statistics_snapshot(documents, NOW, months_back=2)

    assert snapshot.total_documents == 2
    assert snapshot.total_storage_bytes == 500
    assert snapshot.category_histogram == {"Imaging": 1, "Uncategorized": 1}
    assert [bucket.count for bucket in snapshot.monthly_uploads] == [1, 1]
    assert snapshot.generated_at == NOW


def test_extended_stats_adds_population_and_patterns():
    documents = [make_document(NOW, 10, owner_id="p1")]
    accounts = [make_account("p1"), make_account("p2", banned=True, active=False)]

    stats = analytics.extended_stats(documents, accounts, NOW, months_back=1)

    assert stats.total_documents == 1
    assert stats.total_patients == 2
    assert stats.banned_patients == 1
    assert stats.upload_patterns == {"2026-03": 1}
    assert stats.documents_per_owner == {"p1": 1}
    assert [bucket.count for bucket in stats.patient_registrations] == [2]


def test_owner_summary_only_counts_the_owner():
    documents = [
        make_document(NOW, 100, "Lab Results", owner_id="patient-p"),
        make_document(NOW, 900, "Imaging", owner_id="patient-q"),
    ]

    summary = analytics.owner_summary("patient-p", documents, NOW)

    assert summary.owner_id == "patient-p"
    assert summary.total_documents == 1
    assert summary.total_storage_bytes == 100
    assert summary.category_histogram == {"Lab Results": 1}


def test_resolve_timezone():
    assert analytics.resolve_timezone("UTC") is timezone.utc
    with pytest.raises(InvalidInput):
        analytics.resolve_timezone("Not/A_Zone")
