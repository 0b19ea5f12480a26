"""
MedVault FastAPI Application

Main application entry point for the medical document vault.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medvault.config import Settings, get_settings
from medvault.routers import admin, categories, documents
from medvault.services.analytics_service import resolve_timezone
from medvault.services.database_service import DatabaseService
from medvault.services.document_service import DocumentService
from medvault.services.logging_service import AuditLoggingService
from medvault.services.storage_service import StorageService
from medvault.storage.account_directory import AccountDirectory
from medvault.storage.category_registry import CategoryRegistry
from medvault.storage.document_catalog import DocumentCatalog

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Services are wired on startup so that importing this module has no side
    effects on disk or database.

    Args:
        settings: Settings to use; read from the environment when omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    # Create FastAPI application instance
    app = FastAPI(
        title="MedVault API",
        description="Personal medical document storage with per-patient access control",
        version=VERSION
    )
    app.state.settings = settings

    @app.on_event("startup")
    async def startup_event():
        """
        Run on application startup.
        Creates storage, opens the database and seeds reference data.
        """
        try:
            logger.info("=" * 60)
            logger.info("Starting MedVault Backend")
            logger.info("=" * 60)

            tz = resolve_timezone(settings.STATS_TIMEZONE)

            storage_service = StorageService(
                root=settings.STORAGE_ROOT,
                collision_retries=settings.KEY_COLLISION_RETRIES
            )
            logger.info(f"✓ Storage root: {storage_service.root}")

            database_service = DatabaseService(database_url=settings.DATABASE_URL)
            database_service.initialize()
            logger.info("✓ Database connection established and schema verified")

            category_registry = CategoryRegistry(database_service)
            if settings.SEED_DEFAULT_CATEGORIES:
                category_registry.seed_defaults()

            account_directory = AccountDirectory(database_service)
            audit_logger = AuditLoggingService(project_id=settings.AUDIT_LOG_PROJECT_ID)

            # Make services available to routers
            app.state.storage_service = storage_service
            app.state.database_service = database_service
            app.state.account_directory = account_directory
            app.state.audit_logger = audit_logger
            app.state.document_service = DocumentService(
                storage=storage_service,
                catalog=DocumentCatalog(database_service),
                categories=category_registry,
                accounts=account_directory,
                audit_logger=audit_logger,
                tz=tz,
                trend_months=settings.TREND_MONTHS
            )

            logger.info(f"  - Statistics time zone: {settings.STATS_TIMEZONE}")
            logger.info(f"  - Mask forbidden as not found: {settings.MASK_FORBIDDEN_AS_NOT_FOUND}")
            logger.info("=" * 60)
            logger.info("✓ MedVault Backend Ready")
            logger.info("=" * 60)

        except Exception as e:
            logger.error(f"❌ Startup error: {str(e)}")
            raise

    @app.on_event("shutdown")
    async def shutdown_event():
        """
        Run on application shutdown.
        Closes database connections.
        """
        database_service = getattr(app.state, "database_service", None)
        if database_service is None:
            return

        logger.info("Shutting down MedVault Backend...")
        database_service.close()
        logger.info("✓ Database connections closed")

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Include routers
    app.include_router(documents.router)
    app.include_router(categories.router)
    app.include_router(admin.router)

    @app.get("/", tags=["health"])
    async def health_check():
        """
        Health check endpoint.

        Returns:
            Dictionary containing service status
        """
        return {
            "status": "healthy",
            "service": "medvault-api",
            "version": VERSION
        }

    @app.get("/config", tags=["health"])
    async def get_config():
        """
        Get non-sensitive configuration information.

        Returns:
            Dictionary containing configuration details
        """
        return {
            "database": settings.DATABASE_URL.split("://", 1)[0],
            "stats_timezone": settings.STATS_TIMEZONE,
            "trend_months": settings.TREND_MONTHS,
            "max_file_size": settings.MAX_FILE_SIZE
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
