from __future__ import annotations

import logging

from ..utils.dn import build_dn, build_rdn, dn_equal, dn_first_component_value
from .errors import AlreadyExistsError, DirectoryError, NotFoundError, with_context
from .models import AttributeDelta, Computer
from .store import ObjectStore
from .utils import class_and_name_filter

log = logging.getLogger(__name__)

# WORKSTATION_TRUST_ACCOUNT
UAC_WORKSTATION_TRUST_ACCOUNT = "4096"


def computer_dn(name: str, ou: str) -> str:
    return build_dn("cn", name, ou)


class ComputerRepository:
    def __init__(self, store: ObjectStore, domain_dn: str) -> None:
        self.store = store
        self.domain_dn = domain_dn

    def get_by_name(self, name: str) -> Computer | None:
        """Find a computer account anywhere in the domain by its name."""
        log.info("Поиск компьютера %s", name)
        try:
            found = self.store.search(
                class_and_name_filter("computer", "name", name),
                self.domain_dn,
                ["cn", "name", "description"],
            )
        except DirectoryError as e:
            raise with_context(e, "get computer", name) from e

        if not found:
            return None
        if len(found) > 1:
            raise DirectoryError(
                "more than one computer object with the same name found",
                operation="get computer",
                target=name,
            )

        obj = found[0]
        return Computer(
            name=obj.first("cn") or obj.first("name") or dn_first_component_value(obj.dn),
            dn=obj.dn,
            description=obj.first("description"),
        )

    def create(self, name: str, ou: str, description: str = "") -> None:
        log.info("Создание компьютера %s в %s", name, ou)
        dn = computer_dn(name, ou)
        existing = self.get_by_name(name)

        if existing is not None:
            if existing.name.lower() == name.lower() and dn_equal(existing.dn, dn):
                log.info("Компьютер %s уже существует, обновляем описание", name)
                self.update_description(name, ou, description)
                return
            raise AlreadyExistsError(
                f"computer object {name} already exists in a different ou ({existing.dn})",
                operation="create computer",
                target=dn,
            )

        attributes = {
            "name": [name],
            "sAMAccountName": [f"{name}$"],
            "userAccountControl": [UAC_WORKSTATION_TRUST_ACCOUNT],
        }
        if description:
            attributes["description"] = [description]
        self.store.create_if_absent(dn, ["computer"], attributes)

    def move(self, name: str, ou: str, new_ou: str) -> None:
        log.info("Перемещение компьютера %s из %s в %s", name, ou, new_ou)
        existing = self.get_by_name(name)
        if existing is None:
            raise NotFoundError(
                f"computer object {name} does not exist",
                operation="move computer",
                target=computer_dn(name, ou),
            )

        target = computer_dn(name, new_ou)
        if dn_equal(existing.dn, target):
            log.info("Компьютер уже находится в целевой OU")
            return

        self.store.move(existing.dn, build_rdn("cn", name), new_ou)

    def update_description(self, name: str, ou: str, description: str) -> None:
        log.info("Обновление описания компьютера %s", name)
        self.store.update(computer_dn(name, ou), AttributeDelta.replace("description", [description] if description else []))

    def delete(self, name: str, ou: str) -> None:
        log.info("Удаление компьютера %s", name)
        self.store.delete_if_present(computer_dn(name, ou))
