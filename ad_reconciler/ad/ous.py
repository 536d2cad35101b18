from __future__ import annotations

import logging

from ..utils.dn import build_dn, build_rdn, dn_equal, dn_first_component_value
from .errors import AlreadyExistsError, NotFoundError
from .models import AttributeDelta, OrganizationalUnit
from .store import ObjectStore

log = logging.getLogger(__name__)


def ou_dn(name: str, base_ou: str) -> str:
    return build_dn("ou", name, base_ou)


class OrganizationalUnitRepository:
    def __init__(self, store: ObjectStore) -> None:
        self.store = store

    def get(self, name: str, base_ou: str) -> OrganizationalUnit | None:
        obj = self.store.get(ou_dn(name, base_ou), ["name", "ou", "description"])
        if obj is None:
            return None
        return OrganizationalUnit(
            name=obj.first("name") or obj.first("ou") or dn_first_component_value(obj.dn),
            dn=obj.dn,
            description="".join(obj.values("description")),
        )

    def create(self, name: str, base_ou: str, description: str = "") -> None:
        dn = ou_dn(name, base_ou)
        log.info("Создание OU %s", dn)

        existing = self.get(name, base_ou)
        if existing is not None:
            if existing.name.lower() == name.lower() and dn_equal(existing.dn, dn):
                log.info("OU %s уже существует, обновляем описание", dn)
                self.update_description(name, base_ou, description)
                return
            raise AlreadyExistsError(f"ou object {dn} already exists", operation="create ou", target=dn)

        attributes = {"name": [name], "ou": [name]}
        if description:
            attributes["description"] = [description]
        self.store.create_if_absent(dn, ["organizationalUnit", "top"], attributes)

    def rename(self, name: str, base_ou: str, new_name: str) -> None:
        dn = ou_dn(name, base_ou)
        if dn_equal(dn, ou_dn(new_name, base_ou)):
            log.info("OU %s уже называется %s", dn, new_name)
            return
        log.info("Переименование OU %s в %s", dn, new_name)
        self.store.move(dn, build_rdn("ou", new_name))

    def move(self, name: str, base_ou: str, new_base_ou: str) -> None:
        dn = ou_dn(name, base_ou)
        current = self.store.get(dn, ["ou"])
        if current is None:
            raise NotFoundError(f"ou object {dn} does not exist", operation="move ou", target=dn)
        if dn_equal(current.dn, ou_dn(name, new_base_ou)):
            log.info("OU %s уже находится в %s", dn, new_base_ou)
            return

        log.info("Перемещение OU %s в %s", dn, new_base_ou)
        self.store.move(current.dn, build_rdn("ou", name), new_base_ou)

    def update_description(self, name: str, base_ou: str, description: str) -> None:
        dn = ou_dn(name, base_ou)
        log.info("Обновление описания OU %s", dn)
        self.store.update(dn, AttributeDelta.replace("description", [description] if description else []))

    def delete(self, name: str, base_ou: str) -> None:
        self.store.delete_if_present(ou_dn(name, base_ou))
