"""
Database service for the document metadata store.
Handles engine/session lifecycle and declares the ORM tables.
"""

import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from medvault.utils.clock import utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


class CategoryRecord(Base):
    """SQLAlchemy model for document categories"""
    __tablename__ = 'document_categories'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)
    description = Column(String(255), nullable=True)


class DocumentRecord(Base):
    """SQLAlchemy model for documents"""
    __tablename__ = 'documents'

    # Primary key - UUID as string
    id = Column(String(36), primary_key=True)

    # Ownership is written once at insert time
    owner_id = Column(String(255), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    category_id = Column(Integer, ForeignKey('document_categories.id'), nullable=True, index=True)

    # Blob store key, unique across the whole catalog
    stored_file = Column(String(255), nullable=False, unique=True)
    content_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=False)

    # Provenance
    clinician_name = Column(String(100), nullable=True)
    facility_name = Column(String(100), nullable=True)
    document_date = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    uploaded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    last_modified_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    category = relationship(CategoryRecord, lazy='joined')


class AccountRecord(Base):
    """SQLAlchemy model for the account flags shared by the auth service"""
    __tablename__ = 'accounts'

    id = Column(String(255), primary_key=True)
    roles = Column(Text, nullable=False, default='')
    active = Column(Boolean, nullable=False, default=True)
    banned = Column(Boolean, nullable=False, default=False)
    has_profile = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseService:
    """Service for managing database connections and sessions"""

    def __init__(self, database_url: str):
        """
        Initialize database service

        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url

        self.engine: Optional[Engine] = None
        self.SessionLocal = None

        logger.info(f"Initializing DatabaseService for {self.engine_name}")

    @property
    def engine_name(self) -> str:
        return self.database_url.split("://", 1)[0]

    def initialize(self):
        """Initialize database connection pool and create tables"""
        try:
            connect_args = {}
            if self.database_url.startswith("sqlite"):
                connect_args["check_same_thread"] = False

            self.engine = create_engine(
                self.database_url,
                connect_args=connect_args,
                pool_pre_ping=True,
            )

            if self.database_url.startswith("sqlite"):
                event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

            # Create session factory
            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
                bind=self.engine
            )

            # Create tables if they don't exist
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database initialization complete. Tables created/verified.")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def get_session(self) -> Session:
        """Get a new database session"""
        if not self.SessionLocal:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.SessionLocal()

    def close(self):
        """Close database connections and cleanup"""
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database engine disposed")
