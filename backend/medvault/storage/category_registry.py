"""
Controlled vocabulary of document categories.
"""

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from medvault.exceptions import CategoryNotFound, Conflict, InvalidInput, StorageFailure, VaultError
from medvault.models.category import DESCRIPTION_MAX_LENGTH, NAME_MAX_LENGTH, Category
from medvault.services.database_service import CategoryRecord, DatabaseService, DocumentRecord

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Lab Results", "Laboratory test results"),
    ("Prescriptions", "Medication prescriptions"),
    ("Doctor Notes", "Clinical visit notes"),
    ("Imaging", "X-rays, MRIs, CT scans, etc."),
    ("Vaccination Records", "Immunization history"),
    ("Insurance", "Insurance documents and claims"),
    ("Hospital Records", "Hospitalization records"),
    ("Surgical Records", "Surgery reports and follow-ups"),
]


def _to_category(record: CategoryRecord) -> Category:
    return Category(id=record.id, name=record.name, description=record.description)


class CategoryRegistry:
    """
    Category lookup and maintenance.

    Names are unique. A category that is still referenced by documents
    cannot be deleted.
    """

    def __init__(self, db: DatabaseService):
        self.db = db

    def create(self, name: str, description: Optional[str] = None) -> Category:
        """
        Create a category.

        Raises:
            InvalidInput: If the name is blank or either field is too long
            Conflict: If a category with this name already exists
        """
        name = (name or "").strip()
        if not name:
            raise InvalidInput("Category name is required")
        if len(name) > NAME_MAX_LENGTH:
            raise InvalidInput(f"Category name must be at most {NAME_MAX_LENGTH} characters")
        if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
            raise InvalidInput(
                f"Category description must be at most {DESCRIPTION_MAX_LENGTH} characters"
            )

        session = self.db.get_session()
        try:
            if session.query(CategoryRecord).filter(CategoryRecord.name == name).first():
                raise Conflict(f"Category with name {name!r} already exists")

            record = CategoryRecord(name=name, description=description)
            session.add(record)
            session.commit()
            logger.info(f"Created category {name!r} ({record.id})")
            return _to_category(record)
        except VaultError:
            session.rollback()
            raise
        except IntegrityError as e:
            # Lost a race with a concurrent create of the same name
            session.rollback()
            raise Conflict(f"Category with name {name!r} already exists") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to create category: {e}")
            raise StorageFailure("Could not save category") from e
        finally:
            session.close()

    def get_by_id(self, category_id: int) -> Category:
        session = self.db.get_session()
        try:
            record = session.get(CategoryRecord, category_id)
            if record is None:
                raise CategoryNotFound(category_id)
            return _to_category(record)
        finally:
            session.close()

    def get_by_name(self, name: str) -> Category:
        session = self.db.get_session()
        try:
            record = session.query(CategoryRecord).filter(
                CategoryRecord.name == (name or "").strip()
            ).first()
            if record is None:
                raise CategoryNotFound(name)
            return _to_category(record)
        finally:
            session.close()

    def exists(self, name: str) -> bool:
        try:
            self.get_by_name(name)
        except CategoryNotFound:
            return False
        return True

    def list_all(self) -> List[Category]:
        session = self.db.get_session()
        try:
            records = session.query(CategoryRecord).order_by(CategoryRecord.name).all()
            return [_to_category(record) for record in records]
        finally:
            session.close()

    def delete(self, category_id: int) -> None:
        """
        Delete an unreferenced category.

        Raises:
            CategoryNotFound: If the category does not exist
            Conflict: If documents still reference the category
        """
        session = self.db.get_session()
        try:
            record = session.get(CategoryRecord, category_id)
            if record is None:
                raise CategoryNotFound(category_id)

            in_use = session.query(func.count(DocumentRecord.id)).filter(
                DocumentRecord.category_id == category_id
            ).scalar()
            if in_use:
                raise Conflict(
                    f"Category {record.name!r} is used by {in_use} document(s) and cannot be deleted"
                )

            session.delete(record)
            session.commit()
            logger.info(f"Deleted category {record.name!r} ({category_id})")
        except VaultError:
            session.rollback()
            raise
        except IntegrityError as e:
            # A document started referencing the category meanwhile
            session.rollback()
            raise Conflict(f"Category {category_id} is in use and cannot be deleted") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to delete category: {e}")
            raise StorageFailure("Could not delete category") from e
        finally:
            session.close()

    def seed_defaults(self) -> int:
        """
        Insert the default categories when the registry is empty.

        Returns:
            Number of categories created
        """
        if self.list_all():
            logger.info("Categories already exist")
            return 0

        created = 0
        for name, description in DEFAULT_CATEGORIES:
            try:
                self.create(name, description)
            except Conflict:
                continue
            created += 1

        logger.info(f"Document categories initialized ({created} created)")
        return created
