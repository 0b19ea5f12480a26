"""
Document category schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 255


class Category(BaseModel):
    """
    Entry of the controlled category vocabulary.

    Attributes:
        id: Unique category identifier
        name: Unique display name (e.g. "Lab Results")
        description: What belongs in the category
    """
    id: int
    name: str
    description: Optional[str] = None


class CategoryCreate(BaseModel):
    """Request body for creating a category."""
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value
