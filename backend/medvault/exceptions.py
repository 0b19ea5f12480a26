"""
Error taxonomy shared by the storage, catalog and service layers.

Routers translate these into HTTP responses; nothing below the routers
knows about HTTP.
"""


from pydantic import ValidationError


def validation_message(error: ValidationError) -> str:
    """Flatten pydantic errors into one readable line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "body"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class VaultError(Exception):
    """Base class for every expected failure in the document vault."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(VaultError):
    """Malformed name, missing required field or path-traversal attempt."""


class NotFound(VaultError):
    """A document, category or blob does not exist."""


class DocumentNotFound(NotFound):
    def __init__(self, document_id: str):
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class CategoryNotFound(NotFound):
    def __init__(self, category: object):
        super().__init__(f"Category {category} not found")
        self.category = category


class BlobNotFound(NotFound):
    def __init__(self, key: str):
        super().__init__(f"File {key} not found")
        self.key = key


class AccessDenied(VaultError):
    """The access guard refused the operation."""


class Conflict(VaultError):
    """Duplicate category name, referenced category or exhausted key retries."""


class StorageFailure(VaultError):
    """Disk or database I/O failed, or stored state is inconsistent."""
