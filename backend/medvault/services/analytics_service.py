"""
Aggregate statistics over the document corpus.

Everything here is a pure function of its arguments: the document (and
account) sequences, the reference instant and the time zone are passed in,
so results are reproducible and no storage is touched.
"""

import calendar
from collections import Counter
from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, List, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from medvault.exceptions import InvalidInput
from medvault.models.account import Account
from medvault.models.document import Document
from medvault.models.statistics import (
    BasicStatistics,
    ExtendedStatistics,
    MonthlyCount,
    OwnerSummary,
    PopulationStatistics,
    StatisticsSnapshot,
)
from medvault.utils.clock import as_utc

UNCATEGORIZED = "Uncategorized"
DEFAULT_MONTHS_BACK = 6


def resolve_timezone(name: str) -> tzinfo:
    """
    Look up the zone used for calendar boundaries.

    Raises:
        InvalidInput: If the zone name is unknown
    """
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInput(f"Unknown time zone: {name}") from e


def _local(value: datetime, tz: tzinfo) -> datetime:
    return as_utc(value).astimezone(tz)


def _month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _monthly_buckets(
    timestamps: Iterable[datetime],
    months_back: int,
    now: datetime,
    tz: tzinfo
) -> List[MonthlyCount]:
    if months_back < 1:
        raise InvalidInput("months_back must be at least 1")

    local_now = _local(now, tz)
    counts = Counter()
    for value in timestamps:
        local = _local(value, tz)
        counts[(local.year, local.month)] += 1

    buckets = []
    for offset in range(months_back - 1, -1, -1):
        year, month = _shift_month(local_now.year, local_now.month, -offset)
        buckets.append(MonthlyCount(
            month=_month_key(year, month),
            label=calendar.month_name[month],
            count=counts[(year, month)],
        ))
    return buckets


def basic_stats(
    documents: Iterable[Document],
    now: datetime,
    tz: tzinfo = timezone.utc
) -> BasicStatistics:
    """
    Count documents, owners, bytes, and uploads today and this month.

    "Today" and "this month" are the calendar day and month of `now` in `tz`,
    both boundaries inclusive.

    Args:
        documents: Documents to aggregate
        now: Reference instant
        tz: Zone the calendar boundaries are taken in

    Returns:
        BasicStatistics; all zeros for an empty sequence
    """
    local_now = _local(now, tz)
    today = local_now.date()

    stats = BasicStatistics()
    owners = set()
    for document in documents:
        stats.total_documents += 1
        stats.total_storage_bytes += document.file_size
        owners.add(document.owner_id)

        uploaded = _local(document.uploaded_at, tz)
        if (uploaded.year, uploaded.month) == (local_now.year, local_now.month):
            stats.uploads_this_month += 1
            if uploaded.date() == today:
                stats.uploads_today += 1

    stats.total_owners = len(owners)
    return stats


def category_histogram(documents: Iterable[Document]) -> Dict[str, int]:
    """
    Count documents per category name.

    Documents without a category count as "Uncategorized". The mapping is
    ordered by count descending, ties broken alphabetically.
    """
    counts = Counter(document.category_name or UNCATEGORIZED for document in documents)
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


def monthly_trend(
    documents: Iterable[Document],
    months_back: int,
    now: datetime,
    tz: tzinfo = timezone.utc
) -> List[MonthlyCount]:
    """
    Uploads per calendar month, oldest first.

    Covers the month of `now` and the `months_back - 1` months before it;
    months without uploads are present with a zero count.

    Raises:
        InvalidInput: If months_back is smaller than 1
    """
    return _monthly_buckets(
        (document.uploaded_at for document in documents), months_back, now, tz
    )


def upload_patterns(documents: Iterable[Document], tz: tzinfo = timezone.utc) -> Dict[str, int]:
    """All-time uploads per YYYY-MM, in chronological order."""
    counts = Counter()
    for document in documents:
        local = _local(document.uploaded_at, tz)
        counts[_month_key(local.year, local.month)] += 1
    return dict(sorted(counts.items()))


def documents_per_owner(documents: Iterable[Document]) -> Dict[str, int]:
    counts = Counter(document.owner_id for document in documents)
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


def population_stats(accounts: Iterable[Account]) -> PopulationStatistics:
    """Counters over patient accounts; non-patient accounts are ignored."""
    stats = PopulationStatistics()
    for account in accounts:
        if not account.is_patient:
            continue
        stats.total_patients += 1
        if account.active:
            stats.active_patients += 1
        else:
            stats.inactive_patients += 1
        if account.banned:
            stats.banned_patients += 1
        if not account.has_profile:
            stats.patients_without_profiles += 1
    return stats


def registration_trend(
    accounts: Iterable[Account],
    months_back: int,
    now: datetime,
    tz: tzinfo = timezone.utc
) -> List[MonthlyCount]:
    """Patient registrations per calendar month, oldest first, zero-filled."""
    return _monthly_buckets(
        (account.created_at for account in accounts if account.is_patient),
        months_back, now, tz
    )


def statistics_snapshot(
    documents: Iterable[Document],
    now: datetime,
    months_back: int = DEFAULT_MONTHS_BACK,
    tz: tzinfo = timezone.utc
) -> StatisticsSnapshot:
    """Basic counters, category histogram and monthly trend in one view."""
    documents = list(documents)
    basic = basic_stats(documents, now, tz)
    return StatisticsSnapshot(
        **basic.model_dump(),
        category_histogram=category_histogram(documents),
        monthly_uploads=monthly_trend(documents, months_back, now, tz),
        generated_at=as_utc(now),
    )


def extended_stats(
    documents: Iterable[Document],
    accounts: Iterable[Account],
    now: datetime,
    months_back: int = DEFAULT_MONTHS_BACK,
    tz: tzinfo = timezone.utc
) -> ExtendedStatistics:
    """
    Snapshot plus population counters, upload patterns and registrations.

    Args:
        documents: All documents
        accounts: All known accounts
        now: Reference instant
        months_back: Width of the monthly windows
        tz: Zone the calendar boundaries are taken in
    """
    documents = list(documents)
    accounts: Sequence[Account] = list(accounts)

    snapshot = statistics_snapshot(documents, now, months_back, tz)
    population = population_stats(accounts)
    return ExtendedStatistics(
        **snapshot.model_dump(),
        **population.model_dump(),
        upload_patterns=upload_patterns(documents, tz),
        documents_per_owner=documents_per_owner(documents),
        patient_registrations=registration_trend(accounts, months_back, now, tz),
    )


def owner_summary(
    owner_id: str,
    documents: Iterable[Document],
    now: datetime,
    tz: tzinfo = timezone.utc
) -> OwnerSummary:
    """Basic counters and category histogram over one owner's documents."""
    owned = [document for document in documents if document.owner_id == owner_id]
    basic = basic_stats(owned, now, tz)
    return OwnerSummary(
        **basic.model_dump(),
        owner_id=owner_id,
        category_histogram=category_histogram(owned),
    )
