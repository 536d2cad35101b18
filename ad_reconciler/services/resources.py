"""Declarative resource layer (create / read / update / delete).

Each resource takes the desired configuration (``*Spec``) and returns the
observed state (``*State``) read back from the directory after the change.
Ids and container paths in state are lower-cased so external state files
compare stably; ``read`` returns ``None`` when the entry is gone.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

from ..ad import AttributeDelta, Directory, NotFoundError
from ..ad.computers import computer_dn
from ..ad.groups import group_dn
from ..ad.ous import ou_dn
from ..ad.utils import fold_name
from ..utils.dn import dn_equal, normalize_dn, parent_dn

log = logging.getLogger(__name__)


def _lower(v: str) -> str:
    return (v or "").strip().lower()


def _same_names(a: list[str], b: list[str]) -> bool:
    return {fold_name(x) for x in a if x} == {fold_name(x) for x in b if x}


class ComputerSpec(BaseModel):
    name: str = Field(min_length=1)
    ou: str = Field(min_length=1)
    description: str = ""

    @field_validator("ou")
    @classmethod
    def _ou(cls, v: str) -> str:
        return _lower(v)


class ComputerState(ComputerSpec):
    id: str


class OrganizationalUnitSpec(BaseModel):
    name: str = Field(min_length=1)
    base_ou: str = Field(min_length=1)
    description: str = ""

    @field_validator("base_ou")
    @classmethod
    def _base_ou(cls, v: str) -> str:
        return _lower(v)


class OrganizationalUnitState(OrganizationalUnitSpec):
    id: str


class GroupSpec(BaseModel):
    name: str = Field(min_length=1)
    base_ou: str = Field(min_length=1)
    user_base: str = ""
    description: str = ""
    ignore_members_unknown_by_terraform: bool = False
    members: list[str] = Field(default_factory=list)

    @field_validator("base_ou", "user_base")
    @classmethod
    def _paths(cls, v: str) -> str:
        return _lower(v)

    @field_validator("members")
    @classmethod
    def _members(cls, v: list[str]) -> list[str]:
        # set semantics: drop blanks and case-insensitive duplicates
        seen: dict[str, str] = {}
        for m in v:
            m = (m or "").strip()
            if m:
                seen.setdefault(fold_name(m), m)
        return sorted(seen.values(), key=str.lower)


class GroupState(GroupSpec):
    id: str


class ObjectSpec(BaseModel):
    dn: str = Field(min_length=1)
    object_classes: list[str] = Field(min_length=1)
    # each attribute is multi-valued and needs at least one value
    attributes: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("object_classes")
    @classmethod
    def _classes(cls, v: list[str]) -> list[str]:
        seen: dict[str, str] = {}
        for c in v:
            c = (c or "").strip()
            if c:
                seen.setdefault(c.lower(), c)
        return sorted(seen.values(), key=str.lower)

    @field_validator("attributes")
    @classmethod
    def _attributes(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        for name, values in v.items():
            if name.lower() == "objectclass":
                raise ValueError("objectClass is set through object_classes")
            if not values:
                raise ValueError(f"attribute {name} needs at least one value")
        return v


class ObjectState(ObjectSpec):
    id: str


class ComputerResource:
    def __init__(self, directory: Directory) -> None:
        self.computers = directory.computers

    def create(self, spec: ComputerSpec) -> ComputerState:
        log.info("Создание ресурса computer %s", spec.name)
        self.computers.create(spec.name, spec.ou, spec.description)
        return self._read_back(spec)

    def read(self, state: ComputerSpec) -> ComputerState | None:
        computer = self.computers.get_by_name(state.name)
        if computer is None:
            log.info("Компьютер %s больше не существует", state.name)
            return None
        return ComputerState(
            id=normalize_dn(computer.dn),
            name=computer.name,
            ou=parent_dn(computer.dn),
            description=computer.description,
        )

    def update(self, old: ComputerState, new: ComputerSpec) -> ComputerState:
        log.info("Обновление ресурса computer %s", old.id)
        if fold_name(old.name) != fold_name(new.name):
            # name is the account identity; changing it replaces the object
            self.delete(old)
            return self.create(new)

        if old.description != new.description:
            self.computers.update_description(old.name, old.ou, new.description)
        if not dn_equal(old.ou, new.ou):
            self.computers.move(old.name, old.ou, new.ou)
        return self._read_back(new)

    def delete(self, state: ComputerSpec) -> None:
        self.computers.delete(state.name, state.ou)

    def _read_back(self, spec: ComputerSpec) -> ComputerState:
        state = self.read(spec)
        if state is None:
            dn = computer_dn(spec.name, spec.ou)
            raise NotFoundError(f"computer {dn} vanished after write", operation="read computer", target=dn)
        return state


class OrganizationalUnitResource:
    def __init__(self, directory: Directory) -> None:
        self.ous = directory.ous

    def create(self, spec: OrganizationalUnitSpec) -> OrganizationalUnitState:
        log.info("Создание ресурса ou %s", spec.name)
        self.ous.create(spec.name, spec.base_ou, spec.description)
        return self._read_back(spec)

    def read(self, state: OrganizationalUnitSpec) -> OrganizationalUnitState | None:
        ou = self.ous.get(state.name, state.base_ou)
        if ou is None:
            log.info("OU %s больше не существует в %s", state.name, state.base_ou)
            return None
        return OrganizationalUnitState(
            id=normalize_dn(ou.dn),
            name=ou.name,
            base_ou=parent_dn(ou.dn),
            description=ou.description,
        )

    def update(self, old: OrganizationalUnitState, new: OrganizationalUnitSpec) -> OrganizationalUnitState:
        log.info("Обновление ресурса ou %s", old.id)
        if old.description != new.description:
            self.ous.update_description(old.name, old.base_ou, new.description)
        if fold_name(old.name) != fold_name(new.name):
            self.ous.rename(old.name, old.base_ou, new.name)
        if not dn_equal(old.base_ou, new.base_ou):
            self.ous.move(new.name, old.base_ou, new.base_ou)
        return self._read_back(new)

    def delete(self, state: OrganizationalUnitSpec) -> None:
        self.ous.delete(state.name, state.base_ou)

    def _read_back(self, spec: OrganizationalUnitSpec) -> OrganizationalUnitState:
        state = self.read(spec)
        if state is None:
            dn = ou_dn(spec.name, spec.base_ou)
            raise NotFoundError(f"ou {dn} vanished after write", operation="read ou", target=dn)
        return state


class GroupResource:
    def __init__(self, directory: Directory) -> None:
        self.groups = directory.groups
        self.members = directory.members

    def create(self, spec: GroupSpec) -> GroupState:
        log.info("Создание ресурса group %s (участников: %d)", spec.name, len(spec.members))
        self.groups.create(spec.name, spec.base_ou, spec.description, spec.user_base, spec.members)
        return self._read_back(spec)

    def read(self, state: GroupSpec) -> GroupState | None:
        group = self.groups.get(
            state.name,
            state.base_ou,
            state.user_base,
            state.members,
            state.ignore_members_unknown_by_terraform,
        )
        if group is None:
            log.info("Группа %s больше не существует в %s", state.name, state.base_ou)
            return None
        return GroupState(
            id=normalize_dn(group.dn),
            name=group.name,
            base_ou=parent_dn(group.dn),
            user_base=state.user_base,
            description=group.description,
            ignore_members_unknown_by_terraform=state.ignore_members_unknown_by_terraform,
            members=list(group.members),
        )

    def update(self, old: GroupState, new: GroupSpec) -> GroupState:
        log.info("Обновление ресурса group %s", old.id)
        if not _same_names(old.members, new.members):
            self.members.reconcile(
                old.name,
                old.base_ou,
                old.user_base,
                old.members,
                new.members,
                new.ignore_members_unknown_by_terraform,
            )
        if fold_name(old.name) != fold_name(new.name):
            self.groups.rename(old.name, old.base_ou, new.name)
        if not dn_equal(old.base_ou, new.base_ou):
            self.groups.move(new.name, old.base_ou, new.base_ou)
        if old.description != new.description:
            self.groups.update_description(new.name, new.base_ou, new.description)
        return self._read_back(new)

    def delete(self, state: GroupSpec) -> None:
        self.groups.delete(state.name, state.base_ou)

    def _read_back(self, spec: GroupSpec) -> GroupState:
        state = self.read(spec)
        if state is None:
            dn = group_dn(spec.name, spec.base_ou)
            raise NotFoundError(f"group {dn} vanished after write", operation="read group", target=dn)
        return state


class ObjectResource:
    """Any directory entry addressed by its DN.

    Only the declared attributes are read back. Values the directory
    maintains on its own never show up as drift.
    """

    def __init__(self, directory: Directory) -> None:
        self.store = directory.store

    def create(self, spec: ObjectSpec) -> ObjectState:
        log.info("Создание ресурса object %s", spec.dn)
        self.store.create_if_absent(spec.dn, spec.object_classes, spec.attributes)
        return self._read_back(spec)

    def read(self, state: ObjectSpec) -> ObjectState | None:
        obj = self.store.get(state.dn, ["objectClass", *state.attributes])
        if obj is None:
            log.info("Объект %s больше не существует", state.dn)
            return None
        attributes = {name: obj.values(name) for name in state.attributes if obj.values(name)}
        return ObjectState(
            id=normalize_dn(obj.dn),
            dn=state.dn,
            object_classes=obj.values("objectClass"),
            attributes=attributes,
        )

    def update(self, old: ObjectState, new: ObjectSpec) -> ObjectState:
        log.info("Обновление ресурса object %s", old.id)
        if not dn_equal(old.dn, new.dn):
            # the DN is the identity of a generic object
            self.delete(old)
            return self.create(new)

        classes = None if _same_names(old.object_classes, new.object_classes) else new.object_classes
        delta = AttributeDelta.between(old.attributes, new.attributes)
        if delta.is_empty and classes is None:
            log.info("Объект %s не изменился", new.dn)
        else:
            self.store.update(new.dn, delta, classes)
        return self._read_back(new)

    def delete(self, state: ObjectSpec) -> None:
        self.store.delete_if_present(state.dn)

    def _read_back(self, spec: ObjectSpec) -> ObjectState:
        state = self.read(spec)
        if state is None:
            raise NotFoundError(f"object {spec.dn} vanished after write", operation="read object", target=spec.dn)
        return state
