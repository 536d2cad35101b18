"""Active Directory reconciliation engine.

Public API:
    - ADConfig, Directory
    - DirectoryClient, ObjectStore
    - ComputerRepository, OrganizationalUnitRepository, GroupRepository
    - MembershipReconciler, compute_membership_delta
"""

from .client import DirectoryClient
from .computers import ComputerRepository
from .directory import Directory
from .errors import (
    AlreadyExistsError,
    DirectoryError,
    HasChildrenError,
    NotFoundError,
    TransportError,
    UnresolvedMemberError,
)
from .groups import GroupRepository
from .membership import MembershipReconciler, compute_membership_delta
from .models import (
    ADConfig,
    AttributeDelta,
    Computer,
    DirectoryObject,
    Group,
    MembershipDelta,
    OrganizationalUnit,
)
from .ous import OrganizationalUnitRepository
from .store import ObjectStore

__all__ = [
    "ADConfig",
    "AlreadyExistsError",
    "AttributeDelta",
    "Computer",
    "ComputerRepository",
    "Directory",
    "DirectoryClient",
    "DirectoryError",
    "DirectoryObject",
    "Group",
    "GroupRepository",
    "HasChildrenError",
    "MembershipDelta",
    "MembershipReconciler",
    "NotFoundError",
    "ObjectStore",
    "OrganizationalUnit",
    "OrganizationalUnitRepository",
    "TransportError",
    "UnresolvedMemberError",
    "compute_membership_delta",
]
