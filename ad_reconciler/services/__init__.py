"""Application service layer.

Routers import the resource classes from here:
    from ad_reconciler.services import GroupResource, ...
"""

from .resources import (
    ComputerResource,
    ComputerSpec,
    ComputerState,
    GroupResource,
    GroupSpec,
    GroupState,
    ObjectResource,
    ObjectSpec,
    ObjectState,
    OrganizationalUnitResource,
    OrganizationalUnitSpec,
    OrganizationalUnitState,
)

__all__ = [
    "ComputerResource",
    "ComputerSpec",
    "ComputerState",
    "GroupResource",
    "GroupSpec",
    "GroupState",
    "ObjectResource",
    "ObjectSpec",
    "ObjectState",
    "OrganizationalUnitResource",
    "OrganizationalUnitSpec",
    "OrganizationalUnitState",
]
