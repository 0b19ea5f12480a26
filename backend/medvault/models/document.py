"""
Document data models and schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
PROVENANCE_MAX_LENGTH = 100


class StorageReference(BaseModel):
    """
    Location of a stored blob inside its owner's namespace.

    Attributes:
        owner_id: Namespace the blob lives in
        key: Generated file name, unique within the namespace
        size: Number of bytes written
        content_type: MIME type reported at upload
    """
    owner_id: str
    key: str
    size: int
    content_type: str = "application/octet-stream"

    model_config = ConfigDict(frozen=True)


class DocumentFields(BaseModel):
    """Metadata a patient supplies and may later edit."""
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    category_id: Optional[int] = None
    clinician_name: Optional[str] = Field(default=None, max_length=PROVENANCE_MAX_LENGTH)
    facility_name: Optional[str] = Field(default=None, max_length=PROVENANCE_MAX_LENGTH)
    document_date: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class DocumentCreate(DocumentFields):
    """Everything the catalog needs to record a freshly stored blob."""
    owner_id: str = Field(..., min_length=1)
    stored_file: str = Field(..., min_length=1)
    content_type: str = "application/octet-stream"
    file_size: int = Field(..., ge=0)


class DocumentUpdate(BaseModel):
    """
    Partial metadata update. Only fields explicitly sent are applied, so
    sending `"category_id": null` clears the category.
    """
    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    category_id: Optional[int] = None
    clinician_name: Optional[str] = Field(default=None, max_length=PROVENANCE_MAX_LENGTH)
    facility_name: Optional[str] = Field(default=None, max_length=PROVENANCE_MAX_LENGTH)
    document_date: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            raise ValueError("title cannot be cleared")
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class Document(BaseModel):
    """
    Document model representing an uploaded medical record.

    Attributes:
        id: Unique identifier for the document
        owner_id: Patient who uploaded the document; never changes
        title: Short human readable title
        description: Optional free text
        category_id: Optional category reference
        category_name: Name of the referenced category, resolved on read
        stored_file: Blob store key (never a filesystem path)
        content_type: MIME type reported at upload
        file_size: Size of the stored blob in bytes
        clinician_name: Authoring clinician
        facility_name: Originating hospital or clinic
        document_date: Date the document refers to
        uploaded_at: Server time of the upload
        last_modified_at: Server time of the last metadata change
    """
    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    stored_file: str
    content_type: str
    file_size: int
    clinician_name: Optional[str] = None
    facility_name: Optional[str] = None
    document_date: Optional[datetime] = None
    uploaded_at: datetime
    last_modified_at: datetime


class DocumentResponse(BaseModel):
    """Document as returned by the API; the storage key stays internal."""
    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    content_type: str
    file_size: int
    clinician_name: Optional[str] = None
    facility_name: Optional[str] = None
    document_date: Optional[datetime] = None
    uploaded_at: datetime
    last_modified_at: datetime
    download_url: str

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        data = document.model_dump(exclude={"stored_file"})
        return cls(**data, download_url=f"/documents/{document.id}/download")
