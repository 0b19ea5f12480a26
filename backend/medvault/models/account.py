"""
Account records exposed by the authentication service.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class Account(BaseModel):
    """
    The parts of a user account the vault reads for population statistics.

    Attributes:
        id: Account identifier, equal to the token subject
        roles: Role names granted to the account
        active: Whether the account may sign in
        banned: Whether an administrator banned the account
        has_profile: Whether the patient completed their profile
        created_at: Registration time
    """
    id: str
    roles: List[str] = Field(default_factory=list)
    active: bool = True
    banned: bool = False
    has_profile: bool = False
    created_at: datetime

    @property
    def is_patient(self) -> bool:
        return any(role.lower() in ("patient", "role_patient") for role in self.roles)
