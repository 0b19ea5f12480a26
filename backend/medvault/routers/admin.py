"""
Administrative endpoints: catalog-wide listings and statistics.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from medvault.access import Actor
from medvault.auth import require_admin
from medvault.models.document import DocumentResponse
from medvault.models.statistics import ExtendedStatistics, MonthlyCount, StatisticsSnapshot
from medvault.routers.documents import get_document_service
from medvault.routers.errors import to_http_exception
from medvault.services.document_service import DocumentService


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/documents", response_model=List[DocumentResponse])
def list_all_documents(
    actor: Actor = Depends(require_admin),
    service: DocumentService = Depends(get_document_service)
):
    """Every document in the system, newest first."""
    try:
        return [DocumentResponse.from_document(document) for document in service.list_all(actor)]
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "retrieve documents")


@router.get("/patients/{owner_id}/documents", response_model=List[DocumentResponse])
def list_patient_documents(
    owner_id: str,
    actor: Actor = Depends(require_admin),
    service: DocumentService = Depends(get_document_service)
):
    """One patient's documents, newest first. Unknown patients yield an empty list."""
    try:
        documents = service.list_for_owner(actor, owner_id)
        return [DocumentResponse.from_document(document) for document in documents]
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "retrieve patient documents")


@router.get("/statistics", response_model=StatisticsSnapshot)
def get_statistics(
    actor: Actor = Depends(require_admin),
    service: DocumentService = Depends(get_document_service)
):
    """
    Current statistics snapshot.

    Returns:
        Document, owner and byte totals, uploads today and this month,
        category histogram and the default monthly trend
    """
    try:
        return service.statistics(actor)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "compute statistics")


@router.get("/statistics/trend", response_model=List[MonthlyCount])
def get_monthly_trend(
    months_back: Optional[int] = Query(None, ge=1, le=120),
    actor: Actor = Depends(require_admin),
    service: DocumentService = Depends(get_document_service)
):
    """
    Uploads per month, oldest first, ending with the current month.

    Without `months_back` the configured TREND_MONTHS window is used.
    """
    try:
        return service.monthly_trend(actor, months_back)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "compute upload trend")


@router.get("/statistics/extended", response_model=ExtendedStatistics)
def get_extended_statistics(
    actor: Actor = Depends(require_admin),
    service: DocumentService = Depends(get_document_service)
):
    """Snapshot plus patient population counters for the admin dashboard."""
    try:
        return service.extended_statistics(actor)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "compute extended statistics")
