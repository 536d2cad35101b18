from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..utils.dn import dn_equal
from .client import DirectoryClient
from .errors import AlreadyExistsError, DirectoryError, HasChildrenError, NotFoundError, with_context
from .models import AttributeDelta, DirectoryObject

log = logging.getLogger(__name__)

ANY_OBJECT = "(objectClass=*)"


class ObjectStore:
    """Typed get / create / update / delete on top of DirectoryClient.

    Every mutating call reads first and acts second. The directory offers no
    conditional writes, so a concurrent writer can slip in between: a create
    may still fail with "already exists", an update or delete may hit an
    entry that vanished. Callers are expected to re-run reconciliation, which
    is idempotent.
    """

    def __init__(self, client: DirectoryClient) -> None:
        self.client = client

    def search(
        self,
        search_filter: str,
        base_dn: str,
        attributes: Optional[Iterable[str]] = None,
        scope: str = "subtree",
    ) -> list[DirectoryObject]:
        return self.client.search(search_filter, base_dn, attributes, scope=scope)

    def get(self, dn: str, attributes: Optional[Iterable[str]] = None) -> DirectoryObject | None:
        log.debug("Чтение объекта %s", dn)
        try:
            objects = self.client.search(ANY_OBJECT, dn, attributes, scope="base")
        except DirectoryError as e:
            raise with_context(e, "get", dn) from e

        if not objects:
            return None
        if len(objects) > 1:
            raise DirectoryError("more than one object with the same dn found", operation="get", target=dn)
        return objects[0]

    def create_if_absent(self, dn: str, classes: list[str], attributes: dict[str, list[str]]) -> None:
        log.info("Создание объекта %s (class: %s)", dn, ",".join(classes))
        existing = self.get(dn)
        if existing is not None:
            raise AlreadyExistsError(f"object {dn} already exists", operation="create", target=dn)

        self.client.create(dn, classes, attributes)
        log.info("Объект создан: %s", dn)

    def update(self, dn: str, delta: AttributeDelta, classes: list[str] | None = None) -> None:
        log.info("Обновление объекта %s", dn)
        if self.get(dn) is None:
            raise NotFoundError(f"object {dn} does not exist", operation="update", target=dn)

        self.client.modify(dn, delta, object_classes=classes)
        log.info("Объект обновлён: %s", dn)

    def move(self, dn: str, relative_dn: str, new_superior: str | None = None) -> None:
        """Rename (new RDN) and/or move (new parent) an existing entry."""
        if self.get(dn) is None:
            raise NotFoundError(f"object {dn} does not exist", operation="move", target=dn)

        self.client.modify_dn(dn, relative_dn, new_superior)
        log.info("Объект %s перемещён: %s,%s", dn, relative_dn, new_superior or "")

    def delete_if_present(self, dn: str) -> None:
        """Delete `dn` unless it has children. A missing entry is not an error."""
        log.info("Удаление объекта %s", dn)
        try:
            subtree = self.client.search(ANY_OBJECT, dn, ["distinguishedName"], scope="subtree")
        except DirectoryError as e:
            raise with_context(e, "delete", dn) from e

        children = [o.dn for o in subtree if not dn_equal(o.dn, dn)]
        if children:
            raise HasChildrenError(
                f"deleting of {dn} not possible because it has child items: {children[0]}",
                operation="delete",
                target=dn,
            )
        if not subtree:
            log.info("Объект уже удалён: %s", dn)
            return

        self.client.delete(dn)
        log.info("Объект удалён: %s", dn)
