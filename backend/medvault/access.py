"""
Access control decisions for documents.

Every entry point that touches an existing document asks `decide` first;
uploads ask `can_upload`. Nothing else in the code base compares owner ids
with actor ids.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable


class Capability(str, Enum):
    PATIENT = "patient"
    ADMIN = "admin"


class Operation(str, Enum):
    READ = "read"
    DOWNLOAD = "download"
    UPDATE = "update"
    DELETE = "delete"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class Actor:
    """
    The authenticated caller.

    Attributes:
        id: Opaque account identifier (the token subject)
        capabilities: Capabilities granted to the account
    """
    id: str
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)

    @classmethod
    def from_roles(cls, actor_id: str, roles: Iterable[str]) -> "Actor":
        """
        Build an actor from role names, ignoring roles the vault does not know.

        Accepts both bare names ("patient") and Spring-style names ("ROLE_PATIENT").
        """
        capabilities = set()
        for role in roles:
            name = str(role).lower()
            if name.startswith("role_"):
                name = name[len("role_"):]
            try:
                capabilities.add(Capability(name))
            except ValueError:
                continue
        return cls(id=str(actor_id), capabilities=frozenset(capabilities))

    @property
    def is_admin(self) -> bool:
        return Capability.ADMIN in self.capabilities

    @property
    def is_patient(self) -> bool:
        return Capability.PATIENT in self.capabilities


def decide(actor: Actor, operation: Operation, document) -> Decision:
    """
    Decide whether `actor` may perform `operation` on `document`.

    Admins may do everything. Otherwise only a patient acting on a document
    they own is allowed.

    Args:
        actor: Calling actor
        operation: Requested operation
        document: Anything with an `owner_id` attribute

    Returns:
        Decision.ALLOW or Decision.DENY
    """
    if actor.is_admin:
        return Decision.ALLOW
    if actor.is_patient and actor.id == document.owner_id:
        return Decision.ALLOW
    return Decision.DENY


def can_upload(actor: Actor) -> bool:
    """Only patients upload, and always into their own namespace."""
    return actor.is_patient


def can_administer(actor: Actor) -> bool:
    """Statistics, catalog-wide listings and category maintenance."""
    return actor.is_admin
