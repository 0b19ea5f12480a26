"""
File and name validation utilities.
"""

import os
import re

from fastapi import HTTPException, UploadFile, status


# Allowed file types for upload
ALLOWED_EXTENSIONS = {
    ".pdf", ".png", ".jpg", ".jpeg", ".tiff", ".tif",
    ".txt", ".doc", ".docx", ".dcm",
}
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/tiff",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/dicom",
    "application/octet-stream",
}

_EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


def contains_traversal(filename: str) -> bool:
    """
    Check a client supplied filename for path traversal sequences.

    Any ".." is rejected outright, as are NUL bytes.
    """
    return ".." in filename or "\x00" in filename


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename to prevent path traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    # Get just the basename (remove any path components)
    filename = os.path.basename(filename.replace("\\", "/"))

    # Remove any characters that aren't alphanumeric, dash, underscore, or dot
    filename = re.sub(r'[^\w\-.]', '_', filename)

    # Ensure filename isn't empty after sanitization
    if not filename or filename == '.':
        filename = "unnamed_file"

    return filename


def extract_extension(filename: str) -> str:
    """
    Derive the storage extension from a client filename.

    Only a short alphanumeric suffix of the basename survives; anything else
    yields an empty extension.
    """
    _, ext = os.path.splitext(sanitize_filename(filename))
    return ext if _EXTENSION_PATTERN.match(ext) else ""


def validate_file_extension(filename: str) -> bool:
    """
    Validate that a filename has an allowed extension.

    Args:
        filename: Name of the file to validate

    Returns:
        True if extension is allowed, False otherwise
    """
    _, ext = os.path.splitext(filename.lower())
    return ext in ALLOWED_EXTENSIONS


def validate_mime_type(content_type: str) -> bool:
    """
    Validate that a MIME type is allowed.

    Args:
        content_type: MIME type to validate

    Returns:
        True if MIME type is allowed, False otherwise
    """
    return content_type in ALLOWED_MIME_TYPES


def validate_file_size(file_size: int, max_file_size: int) -> bool:
    """
    Validate that a file size is within limits.

    Args:
        file_size: Size of the file in bytes
        max_file_size: Largest accepted size in bytes

    Returns:
        True if size is within limits, False otherwise
    """
    return 0 < file_size <= max_file_size


def validate_upload_file(file: UploadFile, max_file_size: int) -> None:
    """
    Validate an uploaded file before it reaches the document service.

    Args:
        file: FastAPI UploadFile object
        max_file_size: Largest accepted size in bytes

    Raises:
        HTTPException: If file validation fails
    """
    # Validate filename
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No filename provided"
        )

    # Validate file extension
    if not validate_file_extension(file.filename):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File type not allowed. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    # Validate MIME type
    if file.content_type and not validate_mime_type(file.content_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"MIME type not allowed. Allowed types: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )

    # Validate file size
    file.file.seek(0, 2)  # Seek to end
    file_size = file.file.tell()
    file.file.seek(0)  # Reset to beginning

    if file_size == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File is empty"
        )

    if not validate_file_size(file_size, max_file_size):
        max_size_mb = max_file_size / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size: {max_size_mb}MB"
        )
