"""
Document category endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from medvault.access import Actor
from medvault.auth import get_current_actor, require_admin
from medvault.models.category import Category, CategoryCreate
from medvault.routers.documents import get_document_service
from medvault.routers.errors import to_http_exception
from medvault.services.document_service import DocumentService


router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("/", response_model=List[Category])
def list_categories(
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    """List all categories by name."""
    try:
        return service.list_categories()
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "retrieve categories")


@router.get("/{category_id}", response_model=Category)
def get_category(
    category_id: int,
    actor: Actor = Depends(get_current_actor),
    service: DocumentService = Depends(get_document_service)
):
    try:
        return service.get_category(category_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "retrieve category")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=Category)
def create_category(
    body: CategoryCreate,
    actor: Actor = Depends(require_admin),
    service: DocumentService = Depends(get_document_service)
):
    """
    Create a category (admin only).

    Raises:
        HTTPException: 409 if the name is taken
    """
    try:
        return service.create_category(actor, body.name, body.description)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "create category")


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    actor: Actor = Depends(require_admin),
    service: DocumentService = Depends(get_document_service)
):
    """
    Delete a category (admin only). Categories still used by documents
    cannot be deleted.
    """
    try:
        service.delete_category(actor, category_id)
        return {
            "status": "success",
            "message": f"Category {category_id} deleted successfully",
            "category_id": category_id
        }
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "delete category")
