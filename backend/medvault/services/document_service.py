"""
Document workflows: upload, read, download, update, delete, listings and
statistics.

Each entry point looks the document up, asks the access guard, and only then
touches the catalog or the blob store. Routers call this service and never
the stores directly.
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import BinaryIO, Callable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from medvault.access import Actor, Decision, Operation, can_administer, can_upload, decide
from medvault.exceptions import (
    AccessDenied,
    BlobNotFound,
    CategoryNotFound,
    DocumentNotFound,
    InvalidInput,
    StorageFailure,
    validation_message,
)
from medvault.models.category import Category
from medvault.models.document import Document, DocumentCreate, DocumentFields
from medvault.models.statistics import ExtendedStatistics, MonthlyCount, OwnerSummary, StatisticsSnapshot
from medvault.services import analytics_service
from medvault.services.logging_service import AuditLoggingService
from medvault.services.storage_service import StorageService
from medvault.storage.account_directory import AccountDirectory
from medvault.storage.category_registry import CategoryRegistry
from medvault.storage.document_catalog import DocumentCatalog
from medvault.utils.clock import utcnow

logger = logging.getLogger(__name__)


class DocumentService:
    """
    Entry points for everything a patient or administrator does with documents.

    Attributes:
        storage: Blob store
        catalog: Document metadata catalog
        categories: Category registry
        accounts: Account directory (population statistics only)
        audit_logger: Audit trail
        tz: Zone used for calendar boundaries in statistics
        trend_months: Default monthly trend window
        clock: Source of the current UTC time
    """

    def __init__(
        self,
        storage: StorageService,
        catalog: DocumentCatalog,
        categories: CategoryRegistry,
        accounts: AccountDirectory,
        audit_logger: AuditLoggingService,
        tz: tzinfo = timezone.utc,
        trend_months: int = analytics_service.DEFAULT_MONTHS_BACK,
        clock: Callable[[], datetime] = utcnow
    ):
        self.storage = storage
        self.catalog = catalog
        self.categories = categories
        self.accounts = accounts
        self.audit_logger = audit_logger
        self.tz = tz
        self.trend_months = trend_months
        self.clock = clock

    # Guard helpers

    def _require(
        self,
        actor: Actor,
        operation: Operation,
        document: Document,
        ip_address: Optional[str] = None
    ) -> None:
        if decide(actor, operation, document) is Decision.ALLOW:
            return

        self.audit_logger.log_unauthorized_access(
            user_id=actor.id,
            document_id=document.id,
            reason=f"Attempted to {operation.value} another user's document (owner: {document.owner_id})",
            ip_address=ip_address
        )
        raise AccessDenied(f"You don't have permission to {operation.value} this document")

    def _require_admin(self, actor: Actor, action: str, ip_address: Optional[str] = None) -> None:
        if can_administer(actor):
            return

        self.audit_logger.log_unauthorized_access(
            user_id=actor.id,
            document_id=None,
            reason=f"Non-admin attempted to {action}",
            ip_address=ip_address
        )
        raise AccessDenied("Administrator access required")

    def _require_patient(self, actor: Actor, action: str, ip_address: Optional[str] = None) -> None:
        if actor.is_patient:
            return

        self.audit_logger.log_unauthorized_access(
            user_id=actor.id,
            document_id=None,
            reason=f"Non-patient attempted to {action}",
            ip_address=ip_address
        )
        raise AccessDenied("Patient access required")

    # Document operations

    def upload(
        self,
        actor: Actor,
        content: Union[bytes, BinaryIO],
        original_name: str,
        title: str,
        description: Optional[str] = None,
        category_id: Optional[int] = None,
        clinician_name: Optional[str] = None,
        facility_name: Optional[str] = None,
        document_date: Optional[datetime] = None,
        content_type: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> Document:
        """
        Store a file for the calling patient and record its metadata.

        The owner is always the caller. If the catalog write fails after the
        blob was stored, the blob is removed before the error propagates.

        Args:
            actor: Calling actor; must be a patient
            content: File bytes or a readable binary file object
            original_name: Client filename; only its extension is kept
            title: Required document title
            description: Optional free text
            category_id: Optional category reference
            clinician_name: Authoring clinician
            facility_name: Originating facility
            document_date: Date the document refers to; defaults to upload time
            content_type: MIME type reported by the client
            ip_address: Client address for the audit trail

        Returns:
            The created document

        Raises:
            AccessDenied: If the actor is not a patient
            InvalidInput: If metadata, filename or category is invalid
            Conflict: If no unique storage key could be allocated
            StorageFailure: If the disk or database write fails
        """
        if not can_upload(actor):
            self.audit_logger.log_unauthorized_access(
                user_id=actor.id,
                document_id=None,
                reason="Non-patient attempted to upload a document",
                ip_address=ip_address
            )
            raise AccessDenied("Only patients can upload documents")

        # Validate everything before touching the disk
        try:
            fields = DocumentFields(
                title=title,
                description=description,
                category_id=category_id,
                clinician_name=clinician_name,
                facility_name=facility_name,
                document_date=document_date,
            )
        except ValidationError as e:
            raise InvalidInput(validation_message(e)) from e

        if fields.category_id is not None:
            try:
                self.categories.get_by_id(fields.category_id)
            except CategoryNotFound as e:
                raise InvalidInput("Category not found") from e

        reference = self.storage.store(actor.id, content, original_name, content_type)

        try:
            document = self.catalog.create(DocumentCreate(
                **fields.model_dump(),
                owner_id=actor.id,
                stored_file=reference.key,
                content_type=reference.content_type,
                file_size=reference.size,
            ))
        except Exception as e:
            logger.error(f"Catalog write failed for {reference.key}, removing stored file: {e}")
            try:
                self.storage.delete(actor.id, reference.key)
            except StorageFailure as cleanup_error:
                logger.error(f"Orphaned file {reference.key} for {actor.id}: {cleanup_error}")
            if isinstance(e, CategoryNotFound):
                raise InvalidInput("Category not found") from e
            raise

        self.audit_logger.log_document_uploaded(
            user_id=actor.id,
            document_id=document.id,
            title=document.title,
            file_size=document.file_size,
            ip_address=ip_address
        )
        return document

    def get(self, actor: Actor, document_id: str, ip_address: Optional[str] = None) -> Document:
        """
        Get a document's metadata.

        Raises:
            DocumentNotFound: If the document does not exist
            AccessDenied: If the guard denies the read
        """
        document = self.catalog.get(document_id)
        self._require(actor, Operation.READ, document, ip_address)
        return document

    def download(
        self,
        actor: Actor,
        document_id: str,
        ip_address: Optional[str] = None
    ) -> Tuple[Document, BinaryIO]:
        """
        Open a document's stored file.

        Returns:
            The document and an open binary stream the caller must close

        Raises:
            DocumentNotFound: If the document does not exist (or was deleted
                while the download was in progress)
            AccessDenied: If the guard denies the download
            StorageFailure: If the catalog entry exists but its file is missing
        """
        document = self.catalog.get(document_id)
        self._require(actor, Operation.DOWNLOAD, document, ip_address)

        try:
            stream = self.storage.load(document.owner_id, document.stored_file)
        except BlobNotFound as e:
            # A concurrent delete removes the catalog row before the file
            if not self.catalog.exists(document_id):
                raise DocumentNotFound(document_id) from e
            logger.error(f"Stored file {document.stored_file} missing for document {document_id}")
            raise StorageFailure(f"Stored file for document {document_id} is missing") from e

        self.audit_logger.log_document_downloaded(
            user_id=actor.id,
            document_id=document_id,
            owner_id=document.owner_id,
            ip_address=ip_address
        )
        return document, stream

    def update(
        self,
        actor: Actor,
        document_id: str,
        changes: Mapping,
        ip_address: Optional[str] = None
    ) -> Document:
        """
        Change a document's metadata.

        Raises:
            DocumentNotFound: If the document does not exist
            AccessDenied: If the guard denies the update
            InvalidInput: If a field is not editable, a value is invalid, or
                the category does not exist
        """
        document = self.catalog.get(document_id)
        self._require(actor, Operation.UPDATE, document, ip_address)

        try:
            updated = self.catalog.update(document_id, changes)
        except CategoryNotFound as e:
            raise InvalidInput("Category not found") from e

        self.audit_logger.log_document_updated(
            user_id=actor.id,
            document_id=document_id,
            fields=list(changes),
            ip_address=ip_address
        )
        return updated

    def delete(self, actor: Actor, document_id: str, ip_address: Optional[str] = None) -> None:
        """
        Delete a document and its stored file.

        The catalog row goes first so no reader can find a row whose file is
        already gone. A failure to remove the file afterwards is logged; the
        document itself is deleted at that point.

        Raises:
            DocumentNotFound: If the document does not exist
            AccessDenied: If the guard denies the delete
        """
        document = self.catalog.get(document_id)
        self._require(actor, Operation.DELETE, document, ip_address)

        self.catalog.delete(document_id)

        try:
            self.storage.delete(document.owner_id, document.stored_file)
        except StorageFailure as e:
            logger.error(f"Orphaned file {document.stored_file} after deleting {document_id}: {e}")
            self.audit_logger.log_file_deleted(
                user_id=actor.id,
                document_id=document_id,
                key=document.stored_file,
                reason=f"File removal failed after catalog delete: {e.message}"
            )

        self.audit_logger.log_document_deleted(
            user_id=actor.id,
            document_id=document_id,
            owner_id=document.owner_id,
            ip_address=ip_address
        )

    # Listings

    def list_own(self, actor: Actor, category_id: Optional[int] = None) -> List[Document]:
        """The calling patient's documents, newest first."""
        self._require_patient(actor, "list own documents")
        return self.catalog.list_by_owner(actor.id, category_id)

    def list_all(self, actor: Actor) -> List[Document]:
        """Every document, newest first (admin only)."""
        self._require_admin(actor, "list all documents")
        return self.catalog.list_all()

    def list_for_owner(self, actor: Actor, owner_id: str) -> List[Document]:
        """One patient's documents, newest first (admin only)."""
        self._require_admin(actor, f"list documents of {owner_id}")
        return self.catalog.list_by_owner(owner_id)

    # Statistics

    def statistics(self, actor: Actor, now: Optional[datetime] = None) -> StatisticsSnapshot:
        self._require_admin(actor, "read statistics")
        return analytics_service.statistics_snapshot(
            self.catalog.list_all(), now or self.clock(), self.trend_months, self.tz
        )

    def monthly_trend(
        self,
        actor: Actor,
        months_back: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[MonthlyCount]:
        self._require_admin(actor, "read upload trends")
        return analytics_service.monthly_trend(
            self.catalog.list_all(),
            months_back if months_back is not None else self.trend_months,
            now or self.clock(),
            self.tz
        )

    def extended_statistics(self, actor: Actor, now: Optional[datetime] = None) -> ExtendedStatistics:
        self._require_admin(actor, "read extended statistics")
        return analytics_service.extended_stats(
            self.catalog.list_all(),
            self.accounts.list_all(),
            now or self.clock(),
            self.trend_months,
            self.tz
        )

    def owner_summary(self, actor: Actor, now: Optional[datetime] = None) -> OwnerSummary:
        """Counters over the calling patient's own documents."""
        self._require_patient(actor, "read document summary")
        return analytics_service.owner_summary(
            actor.id, self.catalog.list_by_owner(actor.id), now or self.clock(), self.tz
        )

    # Categories

    def list_categories(self) -> List[Category]:
        return self.categories.list_all()

    def get_category(self, category_id: int) -> Category:
        return self.categories.get_by_id(category_id)

    def create_category(self, actor: Actor, name: str, description: Optional[str] = None) -> Category:
        self._require_admin(actor, "create a category")
        category = self.categories.create(name, description)
        self.audit_logger.log_category_created(actor.id, category.id, category.name)
        return category

    def delete_category(self, actor: Actor, category_id: int) -> None:
        """
        Delete a category nobody references.

        Raises:
            AccessDenied: If the actor is not an admin
            CategoryNotFound: If the category does not exist
            Conflict: If documents still reference it
        """
        self._require_admin(actor, "delete a category")
        self.categories.delete(category_id)
        self.audit_logger.log_category_deleted(actor.id, category_id)
