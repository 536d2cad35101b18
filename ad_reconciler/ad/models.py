from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from ldap3.utils.ciDict import CaseInsensitiveDict

from ..ad_utils import bind_principal, build_dc_fqdn, domain_to_base_dn
from ..utils.dn import parent_dn


@dataclass
class ADConfig:
    host: str
    domain: str
    port: int = 389
    use_ssl: bool = False
    starttls: bool = True
    bind_username: str = ""
    bind_password: str = ""
    tls_validate: bool = True
    ca_pem: str = ""
    connect_timeout: float | None = None

    @property
    def server_host(self) -> str:
        return build_dc_fqdn(self.host, self.domain)

    @property
    def base_dn(self) -> str:
        return domain_to_base_dn(self.domain)

    @property
    def bind_principal(self) -> str:
        return bind_principal(self.bind_username, self.domain)


class DirectoryObject:
    """One entry of the directory: its DN and multi-valued attributes."""

    __slots__ = ("dn", "attributes")

    def __init__(self, dn: str, attributes: Mapping[str, Iterable[str]] | None = None) -> None:
        self.dn = dn
        self.attributes: CaseInsensitiveDict = CaseInsensitiveDict()
        for key, vals in (attributes or {}).items():
            self.attributes[key] = [str(v) for v in vals]

    def values(self, name: str) -> list[str]:
        return list(self.attributes.get(name) or [])

    def first(self, name: str, default: str = "") -> str:
        vals = self.attributes.get(name) or []
        return vals[0] if vals else default

    def __repr__(self) -> str:
        return f"DirectoryObject(dn={self.dn!r})"


@dataclass(frozen=True)
class Computer:
    name: str
    dn: str
    description: str = ""

    @property
    def base_dn(self) -> str:
        return parent_dn(self.dn)


@dataclass(frozen=True)
class OrganizationalUnit:
    name: str
    dn: str
    description: str = ""

    @property
    def base_dn(self) -> str:
        return parent_dn(self.dn)


@dataclass(frozen=True)
class Group:
    name: str
    dn: str
    description: str = ""
    # Filtered through groups.managed_members.
    members: tuple[str, ...] = ()

    @property
    def base_dn(self) -> str:
        return parent_dn(self.dn)


def _clean(values: Iterable[str]) -> list[str]:
    return [str(v) for v in values]


@dataclass
class AttributeDelta:
    """Three kinds of attribute changes sent in one modify request."""

    added: dict[str, list[str]] = field(default_factory=dict)
    changed: dict[str, list[str]] = field(default_factory=dict)
    removed: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def add(cls, attr: str, values: Iterable[str]) -> "AttributeDelta":
        return cls(added={attr: _clean(values)})

    @classmethod
    def replace(cls, attr: str, values: Iterable[str]) -> "AttributeDelta":
        """Replace all values; an empty list clears the attribute."""
        return cls(changed={attr: _clean(values)})

    @classmethod
    def remove(cls, attr: str, values: Iterable[str]) -> "AttributeDelta":
        return cls(removed={attr: _clean(values)})

    @classmethod
    def between(
        cls,
        old: Mapping[str, Iterable[str]],
        new: Mapping[str, Iterable[str]],
    ) -> "AttributeDelta":
        """Delta turning attribute map `old` into `new`.

        Attribute names compare case-insensitively and values as sets. An
        attribute missing from `new` is removed with all of its values.
        """
        before = CaseInsensitiveDict()
        for k, v in old.items():
            before[k] = _clean(v)
        after = CaseInsensitiveDict()
        for k, v in new.items():
            after[k] = _clean(v)

        delta = cls()
        for k, v in new.items():
            if k not in before:
                delta.added[k] = _clean(v)
            elif sorted(before[k]) != sorted(after[k]):
                delta.changed[k] = _clean(v)
        for k in old:
            if k not in after:
                delta.removed[k] = []
        return delta

    def merge(self, other: "AttributeDelta") -> "AttributeDelta":
        out = AttributeDelta(
            added={k: list(v) for k, v in self.added.items()},
            changed={k: list(v) for k, v in self.changed.items()},
            removed={k: list(v) for k, v in self.removed.items()},
        )
        for target, source in (
            (out.added, other.added),
            (out.changed, other.changed),
            (out.removed, other.removed),
        ):
            for k, v in source.items():
                target.setdefault(k, []).extend(v)
        return out

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.changed or self.removed)


@dataclass(frozen=True)
class MembershipDelta:
    to_add: frozenset[str] = frozenset()
    to_remove: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove
