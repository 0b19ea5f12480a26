"""
Document metadata catalog.

Pure data access over the `documents` table: no authorization happens here.
Every method opens its own session and hands back pydantic models, so callers
never hold ORM rows across requests.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from medvault.exceptions import (
    CategoryNotFound,
    Conflict,
    DocumentNotFound,
    InvalidInput,
    StorageFailure,
    VaultError,
    validation_message,
)
from medvault.models.document import Document, DocumentCreate, DocumentUpdate
from medvault.services.database_service import CategoryRecord, DatabaseService, DocumentRecord
from medvault.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "category_id",
    "clinician_name",
    "facility_name",
    "document_date",
})

_UNSET = object()


def _to_document(record: DocumentRecord, category=_UNSET) -> Document:
    if category is _UNSET:
        category = record.category
    return Document(
        id=record.id,
        owner_id=record.owner_id,
        title=record.title,
        description=record.description,
        category_id=record.category_id,
        category_name=category.name if category is not None else None,
        stored_file=record.stored_file,
        content_type=record.content_type,
        file_size=record.file_size,
        clinician_name=record.clinician_name,
        facility_name=record.facility_name,
        document_date=as_utc(record.document_date),
        uploaded_at=as_utc(record.uploaded_at),
        last_modified_at=as_utc(record.last_modified_at),
    )


class DocumentCatalog:
    """
    Metadata record set for uploaded documents.

    Attributes:
        db: Database service providing sessions
        clock: Source of the current UTC time
    """

    def __init__(self, db: DatabaseService, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def create(self, data: DocumentCreate) -> Document:
        """
        Record a stored blob as a new document.

        Args:
            data: Validated document metadata, including owner and storage key

        Returns:
            The created document with id and timestamps assigned

        Raises:
            CategoryNotFound: If `category_id` does not exist
            Conflict: If the storage key is already catalogued
            StorageFailure: If the database write fails
        """
        session = self.db.get_session()
        try:
            category = None
            if data.category_id is not None:
                category = session.get(CategoryRecord, data.category_id)
                if category is None:
                    raise CategoryNotFound(data.category_id)

            now = self.clock()
            record = DocumentRecord(
                id=str(uuid.uuid4()),
                owner_id=data.owner_id,
                title=data.title,
                description=data.description,
                category_id=data.category_id,
                stored_file=data.stored_file,
                content_type=data.content_type,
                file_size=data.file_size,
                clinician_name=data.clinician_name,
                facility_name=data.facility_name,
                document_date=as_utc(data.document_date) or now,
                uploaded_at=now,
                last_modified_at=now,
            )

            session.add(record)
            session.commit()

            logger.info(f"Created document record: {record.id}")
            return _to_document(record, category)
        except VaultError:
            session.rollback()
            raise
        except IntegrityError as e:
            session.rollback()
            logger.error(f"Duplicate storage key {data.stored_file}: {e}")
            raise Conflict(f"Storage key {data.stored_file} is already catalogued") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to create document: {e}")
            raise StorageFailure("Could not save document metadata") from e
        finally:
            session.close()

    def get(self, document_id: str) -> Document:
        """Get document by ID"""
        session = self.db.get_session()
        try:
            record = session.get(DocumentRecord, document_id)
            if record is None:
                raise DocumentNotFound(document_id)
            return _to_document(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read document {document_id}: {e}")
            raise StorageFailure("Could not read document metadata") from e
        finally:
            session.close()

    def exists(self, document_id: str) -> bool:
        try:
            self.get(document_id)
        except DocumentNotFound:
            return False
        return True

    def list_by_owner(self, owner_id: str, category_id: Optional[int] = None) -> List[Document]:
        """Get an owner's documents, newest first, optionally for one category"""
        session = self.db.get_session()
        try:
            query = session.query(DocumentRecord).filter(DocumentRecord.owner_id == owner_id)
            if category_id is not None:
                query = query.filter(DocumentRecord.category_id == category_id)
            records = query.order_by(
                DocumentRecord.uploaded_at.desc(), DocumentRecord.id.desc()
            ).all()
            return [_to_document(record) for record in records]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list documents for {owner_id}: {e}")
            raise StorageFailure("Could not read document metadata") from e
        finally:
            session.close()

    def list_all(self) -> List[Document]:
        """Get all documents, newest first (for admin/analytics)"""
        session = self.db.get_session()
        try:
            records = session.query(DocumentRecord).order_by(
                DocumentRecord.uploaded_at.desc(), DocumentRecord.id.desc()
            ).all()
            return [_to_document(record) for record in records]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list documents: {e}")
            raise StorageFailure("Could not read document metadata") from e
        finally:
            session.close()

    def update(self, document_id: str, changes: Mapping) -> Document:
        """
        Apply metadata changes to a document.

        Only the editable fields may change; the id, owner, storage key and
        upload time never do. `last_modified_at` is stamped on every call.

        Args:
            document_id: Document identifier
            changes: Field name to new value

        Returns:
            Updated document

        Raises:
            InvalidInput: If a field is not editable or a value is invalid
            DocumentNotFound: If the document does not exist
            CategoryNotFound: If the new category does not exist
        """
        forbidden = sorted(set(changes) - EDITABLE_FIELDS)
        if forbidden:
            raise InvalidInput(f"Fields cannot be changed: {', '.join(forbidden)}")

        try:
            values = DocumentUpdate.model_validate(dict(changes)).model_dump(exclude_unset=True)
        except ValidationError as e:
            raise InvalidInput(validation_message(e)) from e

        session = self.db.get_session()
        try:
            record = session.get(DocumentRecord, document_id)
            if record is None:
                raise DocumentNotFound(document_id)

            category = record.category
            if "category_id" in values:
                category = None
                if values["category_id"] is not None:
                    category = session.get(CategoryRecord, values["category_id"])
                    if category is None:
                        raise CategoryNotFound(values["category_id"])

            if values.get("document_date") is not None:
                values["document_date"] = as_utc(values["document_date"])

            for key, value in values.items():
                setattr(record, key, value)

            record.last_modified_at = self.clock()
            session.commit()
            logger.info(f"Updated document: {document_id}")
            return _to_document(record, category)
        except VaultError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to update document: {e}")
            raise StorageFailure("Could not update document metadata") from e
        finally:
            session.close()

    def delete(self, document_id: str) -> None:
        """Delete document by ID"""
        session = self.db.get_session()
        try:
            deleted = session.query(DocumentRecord).filter(
                DocumentRecord.id == document_id
            ).delete(synchronize_session=False)
            if not deleted:
                raise DocumentNotFound(document_id)

            session.commit()
            logger.info(f"Deleted document: {document_id}")
        except VaultError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to delete document: {e}")
            raise StorageFailure("Could not delete document metadata") from e
        finally:
            session.close()

    def count_by_category(self, category_id: int) -> int:
        """Number of documents referencing a category"""
        session = self.db.get_session()
        try:
            return session.query(func.count(DocumentRecord.id)).filter(
                DocumentRecord.category_id == category_id
            ).scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to count documents for category {category_id}: {e}")
            raise StorageFailure("Could not read document metadata") from e
        finally:
            session.close()
