from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from ldap3 import (
    ALL_ATTRIBUTES,
    BASE,
    SUBTREE,
    Connection,
    MODIFY_ADD,
    MODIFY_DELETE,
    MODIFY_REPLACE,
)
from ldap3.core.exceptions import LDAPException

from .errors import AlreadyExistsError, DirectoryError, HasChildrenError, NotFoundError, TransportError
from .models import AttributeDelta, DirectoryObject

log = logging.getLogger(__name__)

RESULT_SUCCESS = 0
RESULT_NO_SUCH_OBJECT = 32
RESULT_NOT_ALLOWED_ON_NON_LEAF = 66
RESULT_ENTRY_ALREADY_EXISTS = 68

SCOPES = {"base": BASE, "subtree": SUBTREE}


def _result_code(conn: Connection) -> int | None:
    res = conn.result or {}
    code = res.get("result")
    return int(code) if code is not None else None


def _result_desc(conn: Connection) -> str:
    res = dict(conn.result or {})
    return str(res.get("description") or res.get("message") or "неизвестная ошибка")


def _exc_code(e: LDAPException) -> int | None:
    # LDAPOperationResult (raise_exceptions=True) carries the protocol result code.
    code = getattr(e, "result", None)
    return code if isinstance(code, int) else None


def _values(v: Any) -> list[str]:
    if v is None:
        return []
    if isinstance(v, (list, tuple, set)):
        return [_text(x) for x in v]
    return [_text(v)]


def _text(v: Any) -> str:
    if isinstance(v, bytes):
        return v.decode("utf-8", errors="replace")
    return str(v)


class DirectoryClient:
    """Four LDAP primitives (plus modify DN) over an already bound connection.

    The connection is owned by the caller; this class never opens, binds or
    unbinds it. Every call is one blocking round trip.
    """

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def search(
        self,
        search_filter: str,
        base_dn: str,
        attributes: Optional[Iterable[str]] = None,
        scope: str = "subtree",
    ) -> list[DirectoryObject]:
        attrs = [a for a in (attributes or []) if a]
        if not attrs:
            attrs = [ALL_ATTRIBUTES]

        log.debug("Поиск объектов в %s с фильтром %s", base_dn, search_filter)
        try:
            self.conn.search(
                search_base=base_dn,
                search_filter=search_filter,
                search_scope=SCOPES[scope],
                attributes=attrs,
            )
        except LDAPException as e:
            if _exc_code(e) == RESULT_NO_SUCH_OBJECT:
                log.debug("Объекты не найдены: %s в %s", search_filter, base_dn)
                return []
            raise TransportError(
                f"failed to search {base_dn} with filter {search_filter}: {e}",
                operation="search",
                target=base_dn,
                result_code=_exc_code(e),
                description=str(e),
            ) from e

        code = _result_code(self.conn)
        # ldap3 returns False for an empty but successful search, so the result code decides.
        if code == RESULT_NO_SUCH_OBJECT:
            log.debug("Объекты не найдены: %s в %s", search_filter, base_dn)
            return []
        if code not in (None, RESULT_SUCCESS):
            desc = _result_desc(self.conn)
            raise TransportError(
                f"failed to search {base_dn} with filter {search_filter}: {desc}",
                operation="search",
                target=base_dn,
                result_code=code,
                description=desc,
            )

        objects: list[DirectoryObject] = []
        for item in self.conn.response or []:
            if item.get("type") != "searchResEntry":
                continue
            raw = item.get("attributes") or {}
            objects.append(
                DirectoryObject(
                    dn=str(item.get("dn") or ""),
                    attributes={k: _values(v) for k, v in raw.items()},
                )
            )
        return objects

    def create(self, dn: str, object_classes: list[str], attributes: dict[str, list[str]]) -> None:
        attrs = {k: list(v) for k, v in attributes.items() if v}
        log.debug("Создание объекта %s (%s)", dn, ",".join(object_classes))
        ok = self._call("create", dn, lambda: self.conn.add(dn, object_class=list(object_classes), attributes=attrs))
        if not ok:
            raise self._error("create", dn, f"failed to create object {dn}")

    def modify(self, dn: str, delta: AttributeDelta, object_classes: list[str] | None = None) -> None:
        changes: dict[str, list[tuple[Any, list[str]]]] = {}
        if object_classes:
            changes.setdefault("objectClass", []).append((MODIFY_REPLACE, list(object_classes)))
        for key, vals in delta.added.items():
            changes.setdefault(key, []).append((MODIFY_ADD, list(vals)))
        for key, vals in delta.changed.items():
            changes.setdefault(key, []).append((MODIFY_REPLACE, list(vals)))
        for key, vals in delta.removed.items():
            changes.setdefault(key, []).append((MODIFY_DELETE, list(vals)))
        if not changes:
            return

        ok = self._call("modify", dn, lambda: self.conn.modify(dn, changes))
        if not ok:
            raise self._error("modify", dn, f"failed to update {dn}")

    def delete(self, dn: str) -> None:
        ok = self._call("delete", dn, lambda: self.conn.delete(dn))
        if not ok:
            raise self._error("delete", dn, f"failed to delete object {dn}")

    def modify_dn(self, dn: str, relative_dn: str, new_superior: str | None = None) -> None:
        ok = self._call(
            "modify_dn",
            dn,
            lambda: self.conn.modify_dn(dn, relative_dn, delete_old_dn=True, new_superior=new_superior or None),
        )
        if not ok:
            raise self._error("modify_dn", dn, f"failed to move {dn} to {relative_dn},{new_superior or ''}")

    def _call(self, operation: str, dn: str, fn) -> bool:
        try:
            return bool(fn())
        except LDAPException as e:
            raise self._error(operation, dn, f"{operation} {dn}", code=_exc_code(e), desc=str(e)) from e

    def _error(
        self,
        operation: str,
        dn: str,
        message: str,
        *,
        code: int | None = None,
        desc: str | None = None,
    ) -> DirectoryError:
        if code is None:
            code = _result_code(self.conn)
        if desc is None:
            desc = _result_desc(self.conn)
        full = f"{message}: {desc}"
        if code == RESULT_NO_SUCH_OBJECT:
            err = NotFoundError(full, operation=operation, target=dn)
        elif code == RESULT_ENTRY_ALREADY_EXISTS:
            err = AlreadyExistsError(full, operation=operation, target=dn)
        elif code == RESULT_NOT_ALLOWED_ON_NON_LEAF:
            err = HasChildrenError(full, operation=operation, target=dn)
        else:
            err = TransportError(full, operation=operation, target=dn, result_code=code, description=desc)
        return err
