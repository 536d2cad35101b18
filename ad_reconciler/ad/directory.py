from __future__ import annotations

from ldap3 import Connection

from .client import DirectoryClient
from .computers import ComputerRepository
from .groups import GroupRepository
from .membership import MembershipReconciler
from .ous import OrganizationalUnitRepository
from .store import ObjectStore


class Directory:
    """All repositories wired to one bound connection."""

    def __init__(self, conn: Connection, domain_dn: str) -> None:
        self.domain_dn = domain_dn
        self.client = DirectoryClient(conn)
        self.store = ObjectStore(self.client)
        self.computers = ComputerRepository(self.store, domain_dn)
        self.ous = OrganizationalUnitRepository(self.store)
        self.groups = GroupRepository(self.store, domain_dn)
        self.members = MembershipReconciler(self.groups, self.store)
