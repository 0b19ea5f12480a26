"""
Structured audit trail for document access.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from google.cloud import logging as cloud_logging

logger = logging.getLogger(__name__)

AUDIT_LOGGER_NAME = "medvault-audit"


class AuditLoggingService:
    def __init__(self, project_id: Optional[str] = None):
        """
        Initialize audit logging service.

        With a project id, events go to Google Cloud Logging; without one
        they are written as JSON lines to the `medvault.audit` logger.

        Args:
            project_id: GCP project ID (optional)
        """
        self.project_id = project_id
        self.cloud_logger = None

        if project_id:
            # Initialize Cloud Logging client
            self.client = cloud_logging.Client(project=project_id)
            self.cloud_logger = self.client.logger(AUDIT_LOGGER_NAME)

        self.local_logger = logging.getLogger("medvault.audit")

    def log_event(
        self,
        event_type: str,
        user_id: str,
        severity: str = "INFO",
        document_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Log an audit event.

        Args:
            event_type: Type of event (e.g., "document_uploaded", "unauthorized_access")
            user_id: User who performed the action
            severity: Log severity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            document_id: Document ID (if applicable)
            ip_address: Client IP address
            details: Additional event details
        """
        try:
            # Build structured log entry
            log_entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "event_type": event_type,
                "user_id": user_id,
                "severity": severity
            }

            if document_id:
                log_entry["document_id"] = document_id

            if ip_address:
                log_entry["ip_address"] = ip_address

            if details:
                log_entry["details"] = details

            if self.cloud_logger is not None:
                self.cloud_logger.log_struct(log_entry, severity=severity)
            else:
                level = logging.getLevelName(severity)
                if not isinstance(level, int):
                    level = logging.INFO
                self.local_logger.log(level, json.dumps(log_entry, default=str))

        except Exception as e:
            # Never fail the operation due to logging error
            logger.warning(f"Failed to write audit event {event_type}: {e}")

    # Convenience methods for common events

    def log_document_uploaded(self, user_id: str, document_id: str, title: str,
                              file_size: int, ip_address: Optional[str] = None):
        """Log document upload event"""
        self.log_event(
            event_type="document_uploaded",
            user_id=user_id,
            document_id=document_id,
            ip_address=ip_address,
            details={
                "title": title,
                "file_size_bytes": file_size,
                "action": "File stored in owner namespace"
            }
        )

    def log_document_downloaded(self, user_id: str, document_id: str, owner_id: str,
                                ip_address: Optional[str] = None):
        """Log document download event"""
        self.log_event(
            event_type="document_downloaded",
            user_id=user_id,
            document_id=document_id,
            ip_address=ip_address,
            details={
                "owner_id": owner_id,
                "action": "Document downloaded"
            }
        )

    def log_document_updated(self, user_id: str, document_id: str, fields: list,
                             ip_address: Optional[str] = None):
        """Log metadata update event"""
        self.log_event(
            event_type="document_updated",
            user_id=user_id,
            document_id=document_id,
            ip_address=ip_address,
            details={
                "fields": sorted(fields),
                "action": "Document metadata updated"
            }
        )

    def log_document_deleted(self, user_id: str, document_id: str, owner_id: str,
                             ip_address: Optional[str] = None):
        """Log document deletion event"""
        self.log_event(
            event_type="document_deleted",
            user_id=user_id,
            document_id=document_id,
            severity="WARNING",
            ip_address=ip_address,
            details={
                "owner_id": owner_id,
                "action": "Document and stored file deleted"
            }
        )

    def log_file_deleted(self, user_id: str, document_id: str, key: str,
                         reason: str = None):
        """Log blob removal outside the normal delete flow"""
        details = {
            "key": key,
            "action": "File deleted from storage"
        }
        if reason:
            details["reason"] = reason

        self.log_event(
            event_type="file_deleted",
            user_id=user_id,
            document_id=document_id,
            severity="WARNING",
            details=details
        )

    def log_unauthorized_access(self, user_id: str, document_id: Optional[str],
                                reason: str, ip_address: Optional[str] = None):
        """Log unauthorized access attempt"""
        self.log_event(
            event_type="unauthorized_access",
            user_id=user_id,
            document_id=document_id,
            severity="WARNING",
            ip_address=ip_address,
            details={
                "reason": reason,
                "action": "Access denied - unauthorized attempt"
            }
        )

    def log_category_created(self, user_id: str, category_id: int, name: str):
        """Log category creation"""
        self.log_event(
            event_type="category_created",
            user_id=user_id,
            details={"category_id": category_id, "name": name}
        )

    def log_category_deleted(self, user_id: str, category_id: int):
        """Log category deletion"""
        self.log_event(
            event_type="category_deleted",
            user_id=user_id,
            severity="WARNING",
            details={"category_id": category_id}
        )
