"""
Statistics schemas returned by the analytics endpoints.
"""

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel


class BasicStatistics(BaseModel):
    """Point-in-time counters over a document set."""
    total_documents: int = 0
    total_owners: int = 0
    total_storage_bytes: int = 0
    uploads_today: int = 0
    uploads_this_month: int = 0


class MonthlyCount(BaseModel):
    """
    One bucket of a monthly trend.

    Attributes:
        month: Calendar month as YYYY-MM
        label: English month name
        count: Number of items in the month
    """
    month: str
    label: str
    count: int


class StatisticsSnapshot(BasicStatistics):
    """Basic counters plus category histogram and monthly trend."""
    category_histogram: Dict[str, int] = {}
    monthly_uploads: List[MonthlyCount] = []
    generated_at: datetime


class PopulationStatistics(BaseModel):
    """Counters over patient accounts."""
    total_patients: int = 0
    active_patients: int = 0
    inactive_patients: int = 0
    banned_patients: int = 0
    patients_without_profiles: int = 0


class ExtendedStatistics(StatisticsSnapshot, PopulationStatistics):
    """Everything the admin dashboard charts."""
    upload_patterns: Dict[str, int] = {}
    documents_per_owner: Dict[str, int] = {}
    patient_registrations: List[MonthlyCount] = []


class OwnerSummary(BasicStatistics):
    """A patient's view of their own documents."""
    owner_id: str
    category_histogram: Dict[str, int] = {}
