from __future__ import annotations

import logging
from typing import Iterable

from ..utils.dn import build_dn, build_rdn, dn_equal, dn_first_component_value
from .errors import AlreadyExistsError, DirectoryError, NotFoundError, UnresolvedMemberError, with_context
from .models import AttributeDelta, DirectoryObject, Group
from .store import ObjectStore
from .utils import and_filter, any_name_filter, class_and_name_filter, eq_filter, fold_name, or_filter

log = logging.getLogger(__name__)

# Global security group: GLOBAL (0x2) | SECURITY_ENABLED (0x80000000), as a signed int32.
GROUP_TYPE_GLOBAL_SECURITY = "-2147483646"

MEMBER_CLASSES = ("user", "group")


def group_dn(name: str, base_ou: str) -> str:
    return build_dn("cn", name, base_ou)


def managed_members(raw: Iterable[str], declared: Iterable[str], ignore_unmanaged: bool) -> list[str]:
    """Apply the ownership policy to the raw member list.

    The declared members always come first, one entry per name. Without
    `ignore_unmanaged`, every raw member not declared is appended so drift
    shows up in the state. With it, raw members are only kept when already
    declared, so nothing beyond the declared list is reported.

    A declared member missing from the directory stays in the result, which
    matches the reconciler never re-adding members declared earlier.
    """
    out: dict[str, str] = {}
    for m in declared:
        if fold_name(m):
            out.setdefault(fold_name(m), m)
    for m in raw:
        key = fold_name(m)
        if not key or key in out or ignore_unmanaged:
            continue
        out[key] = m
    return list(out.values())


class GroupRepository:
    def __init__(self, store: ObjectStore, domain_dn: str) -> None:
        self.store = store
        self.domain_dn = domain_dn

    def user_base_or_default(self, user_base: str) -> str:
        return (user_base or "").strip() or self.domain_dn

    def find(self, name: str, base_ou: str) -> DirectoryObject | None:
        try:
            found = self.store.search(
                class_and_name_filter("group", "sAMAccountName", name),
                base_ou,
                ["name", "sAMAccountName", "description"],
            )
        except DirectoryError as e:
            raise with_context(e, "get group", name) from e

        if not found:
            return None
        if len(found) > 1:
            raise DirectoryError(
                "more than one group object with the same name under the same base ou found",
                operation="get group",
                target=name,
            )
        return found[0]

    def get(
        self,
        name: str,
        base_ou: str,
        user_base: str = "",
        declared: Iterable[str] = (),
        ignore_unmanaged: bool = False,
    ) -> Group | None:
        log.info("Чтение группы %s в %s", name, base_ou)
        obj = self.find(name, base_ou)
        if obj is None:
            return None

        raw = self.member_names(obj.dn, user_base)
        return Group(
            name=obj.first("name") or obj.first("sAMAccountName") or dn_first_component_value(obj.dn),
            dn=obj.dn,
            description=obj.first("description"),
            members=tuple(managed_members(raw, declared, ignore_unmanaged)),
        )

    def member_names(self, dn: str, user_base: str = "") -> list[str]:
        """sAMAccountNames of the direct members of group `dn`."""
        base = self.user_base_or_default(user_base)
        flt = and_filter(
            or_filter(eq_filter("objectClass", c) for c in ("group", "user")),
            eq_filter("memberOf", dn),
        )
        try:
            found = self.store.search(flt, base, ["sAMAccountName"])
        except DirectoryError as e:
            raise with_context(e, "get group members", dn) from e

        names = [o.first("sAMAccountName") for o in found if o.first("sAMAccountName")]
        log.debug("Участники группы %s: %s", dn, names)
        return names

    def resolve_member_dns(self, names: Iterable[str], user_base: str = "") -> list[str]:
        """Map account names to DNs with one lookup. Fails listing every unknown name."""
        wanted: dict[str, str] = {}
        for n in names:
            if fold_name(n):
                wanted.setdefault(fold_name(n), n)
        if not wanted:
            return []

        base = self.user_base_or_default(user_base)
        flt = any_name_filter(MEMBER_CLASSES, "sAMAccountName", wanted.values())
        try:
            found = self.store.search(flt, base, ["sAMAccountName"])
        except DirectoryError as e:
            raise with_context(e, "resolve members", base) from e

        by_name: dict[str, str] = {}
        for o in found:
            key = fold_name(o.first("sAMAccountName"))
            if key in by_name and not dn_equal(by_name[key], o.dn):
                raise DirectoryError(
                    f"more than one object with sAMAccountName={o.first('sAMAccountName')}",
                    operation="resolve members",
                    target=base,
                )
            by_name[key] = o.dn

        missing = [orig for key, orig in wanted.items() if key not in by_name]
        if missing:
            log.error("Не все участники найдены в AD: %s", missing)
            raise UnresolvedMemberError(missing, operation="resolve members", target=base)

        return [by_name[key] for key in wanted]

    def create(
        self,
        name: str,
        base_ou: str,
        description: str = "",
        user_base: str = "",
        members: Iterable[str] = (),
    ) -> None:
        dn = group_dn(name, base_ou)
        members = [m for m in members if m]
        log.info("Создание группы %s в %s (участников: %d)", name, base_ou, len(members))

        existing = self.find(name, base_ou)
        if existing is not None:
            existing_name = existing.first("name") or existing.first("sAMAccountName")
            if existing_name.lower() == name.lower() and dn_equal(existing.dn, dn):
                log.info("Группа %s уже существует, обновляем описание", name)
                self.update_description(name, base_ou, description)
                return
            raise AlreadyExistsError(
                f"group object {name} already exists under this base ou {base_ou}",
                operation="create group",
                target=dn,
            )

        try:
            member_dns = self.resolve_member_dns(members, user_base)
        except DirectoryError as e:
            raise with_context(e, "create group", dn) from e

        attributes = {
            "cn": [name],
            "name": [name],
            "sAMAccountName": [name],
            "groupType": [GROUP_TYPE_GLOBAL_SECURITY],
        }
        if description:
            attributes["description"] = [description]
        if member_dns:
            attributes["member"] = member_dns
        self.store.create_if_absent(dn, ["top", "group"], attributes)

    def rename(self, name: str, base_ou: str, new_name: str) -> None:
        dn = group_dn(name, base_ou)
        new_dn = group_dn(new_name, base_ou)
        if dn_equal(dn, new_dn):
            log.info("Группа %s уже называется %s", dn, new_name)
            return

        log.info("Переименование группы %s в %s", name, new_name)
        self.store.move(dn, build_rdn("cn", new_name))
        self.store.update(new_dn, AttributeDelta.replace("sAMAccountName", [new_name]))

    def move(self, name: str, base_ou: str, new_base_ou: str) -> None:
        dn = group_dn(name, base_ou)
        current = self.store.get(dn, ["cn"])
        if current is None:
            raise NotFoundError(f"group {dn} not found", operation="move group", target=dn)
        if dn_equal(current.dn, group_dn(name, new_base_ou)):
            log.info("Группа уже находится в нужной OU: %s", new_base_ou)
            return

        log.info("Перемещение группы %s из %s в %s", name, base_ou, new_base_ou)
        self.store.move(current.dn, build_rdn("cn", name), new_base_ou)

    def update_description(self, name: str, base_ou: str, description: str) -> None:
        dn = group_dn(name, base_ou)
        log.info("Обновление описания группы %s", dn)
        self.store.update(dn, AttributeDelta.replace("description", [description] if description else []))

    def delete(self, name: str, base_ou: str) -> None:
        """Delete the group; refused while anything lives below it."""
        self.store.delete_if_present(group_dn(name, base_ou))
