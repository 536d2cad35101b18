from __future__ import annotations

import copy
import re

import pytest
from ldap3 import BASE, MODIFY_ADD, MODIFY_DELETE, MODIFY_REPLACE, SUBTREE
from ldap3.utils.ciDict import CaseInsensitiveDict

from ad_reconciler.ad import Directory
from ad_reconciler.utils.dn import dn_equal, normalize_dn, parent_dn

DOMAIN_DN = "dc=example,dc=com"
DN_VALUED = {"member", "memberof", "distinguishedname"}

_RESULT_DESC = {
    0: "success",
    16: "noSuchAttribute",
    20: "attributeOrValueExists",
    32: "noSuchObject",
    53: "unwillingToPerform",
    66: "notAllowedOnNonLeaf",
    68: "entryAlreadyExists",
}


def dn_is_under(dn: str, base: str) -> bool:
    """True when `dn` equals `base` or lives anywhere below it."""
    n, b = normalize_dn(dn), normalize_dn(base)
    return n == b or n.endswith("," + b)


def _unescape(value: str) -> str:
    return re.sub(r"\\([0-9a-fA-F]{2})", lambda m: chr(int(m.group(1), 16)), value)


def parse_filter(text: str):
    node, pos = _parse(text, 0)
    assert pos == len(text), f"trailing data in filter {text!r}"
    return node


def _parse(s: str, i: int):
    assert s[i] == "(", f"expected '(' at {i} in {s!r}"
    op = s[i + 1]
    if op in "&|":
        i += 2
        children = []
        while s[i] != ")":
            child, i = _parse(s, i)
            children.append(child)
        return (op, children), i + 1
    if op == "!":
        child, i = _parse(s, i + 2)
        assert s[i] == ")"
        return ("!", child), i + 1
    j = s.index(")", i)
    attr, value = s[i + 1:j].split("=", 1)
    return ("=", attr, value), j + 1


class FakeConnection:
    """In-memory stand-in for a bound ldap3 Connection.

    Speaks the same result-code contract as a real server: 32 for a missing
    base or target, 68 on duplicate add, 66 when deleting a non-leaf, 20/16
    for conflicting member changes. `writes` records every mutating call.
    """

    def __init__(self) -> None:
        self.entries: dict[str, dict] = {}
        self.result: dict = {}
        self.response: list = []
        self.writes: list[tuple] = []
        self.searches: list[tuple] = []
        self.fail: dict[str, int] = {}
        self.unbound = False

    # ── seeding helpers (bypass protocol checks) ──

    def seed(self, dn: str, object_class: list[str], **attrs) -> str:
        entry = CaseInsensitiveDict()
        entry["objectClass"] = list(object_class)
        for k, v in attrs.items():
            entry[k] = list(v) if isinstance(v, (list, tuple)) else [v]
        self.entries[normalize_dn(dn)] = {"dn": dn, "attrs": entry}
        return dn

    def seed_user(self, sam: str, parent: str = f"ou=Users,{DOMAIN_DN}") -> str:
        return self.seed(f"CN={sam.title()},{parent}", ["top", "person", "user"], sAMAccountName=sam, name=sam.title())

    def seed_group(self, name: str, parent: str, members: list[str] = (), description: str = "") -> str:
        attrs = {"sAMAccountName": name, "name": name, "cn": name, "member": list(members)}
        if description:
            attrs["description"] = description
        return self.seed(f"CN={name},{parent}", ["top", "group"], **attrs)

    def attrs(self, dn: str) -> CaseInsensitiveDict:
        return self.entries[normalize_dn(dn)]["attrs"]

    def exists(self, dn: str) -> bool:
        return normalize_dn(dn) in self.entries

    def write_ops(self) -> list[str]:
        return [w[0] for w in self.writes]

    # ── protocol ──

    def _done(self, code: int) -> bool:
        self.result = {"result": code, "description": _RESULT_DESC.get(code, "other"), "message": "", "type": "done"}
        return code == 0

    def _injected(self, op: str) -> int | None:
        return self.fail.pop(op, None)

    def _values(self, entry: dict, attr: str) -> list[str]:
        if attr.lower() == "memberof":
            dn = entry["dn"]
            return [
                e["dn"]
                for e in self.entries.values()
                if any(dn_equal(m, dn) for m in e["attrs"].get("member", []))
            ]
        if attr.lower() == "distinguishedname":
            return [entry["dn"]]
        return list(entry["attrs"].get(attr, []))

    def _match(self, node, entry: dict) -> bool:
        if node[0] == "&":
            return all(self._match(c, entry) for c in node[1])
        if node[0] == "|":
            return any(self._match(c, entry) for c in node[1])
        if node[0] == "!":
            return not self._match(node[1], entry)
        _, attr, raw = node
        values = self._values(entry, attr)
        if raw == "*":
            return bool(values)
        wanted = _unescape(raw)
        if attr.lower() in DN_VALUED:
            return any(dn_equal(v, wanted) for v in values)
        return any(v.lower() == wanted.lower() for v in values)

    def search(self, search_base, search_filter, search_scope=SUBTREE, attributes=None, **kwargs):
        self.searches.append((search_base, search_filter, search_scope))
        self.response = []
        code = self._injected("search")
        if code is not None:
            return self._done(code)
        if not self.exists(search_base):
            return self._done(32)

        node = parse_filter(search_filter)
        base = normalize_dn(search_base)
        for key, entry in self.entries.items():
            if search_scope == BASE and key != base:
                continue
            if search_scope == SUBTREE and not dn_is_under(entry["dn"], search_base):
                continue
            if not self._match(node, entry):
                continue
            wanted = attributes or ["*"]
            if "*" in wanted:
                names = list(entry["attrs"].keys()) + ["memberOf"]
            else:
                names = list(wanted)
            out = {}
            for name in names:
                vals = self._values(entry, name)
                if vals:
                    out[name] = vals
            self.response.append({"type": "searchResEntry", "dn": entry["dn"], "attributes": out})
        self._done(0)
        return bool(self.response)

    def add(self, dn, object_class=None, attributes=None):
        self.writes.append(("add", dn, {"objectClass": object_class, **(attributes or {})}))
        code = self._injected("add")
        if code is not None:
            return self._done(code)
        if self.exists(dn):
            return self._done(68)
        if not self.exists(parent_dn(dn)):
            return self._done(32)
        self.seed(dn, list(object_class or []), **{k: v for k, v in (attributes or {}).items()})
        return self._done(0)

    def modify(self, dn, changes):
        self.writes.append(("modify", dn, copy.deepcopy(changes)))
        code = self._injected("modify")
        if code is not None:
            return self._done(code)
        if not self.exists(dn):
            return self._done(32)

        attrs = CaseInsensitiveDict()
        for k, v in self.attrs(dn).items():
            attrs[k] = list(v)
        for attr, ops in changes.items():
            for op, vals in ops:
                current = list(attrs.get(attr, []))
                if op == MODIFY_ADD:
                    for v in vals:
                        if any(dn_equal(v, c) for c in current):
                            return self._done(20)
                        current.append(v)
                elif op == MODIFY_REPLACE:
                    current = list(vals)
                elif op == MODIFY_DELETE:
                    if not vals:
                        if not current:
                            return self._done(16)
                        current = []
                    for v in vals:
                        if not any(dn_equal(v, c) for c in current):
                            return self._done(16)
                        current = [c for c in current if not dn_equal(v, c)]
                if current:
                    attrs[attr] = current
                elif attr in attrs:
                    del attrs[attr]
        self.entries[normalize_dn(dn)]["attrs"] = attrs
        return self._done(0)

    def delete(self, dn):
        self.writes.append(("delete", dn, None))
        code = self._injected("delete")
        if code is not None:
            return self._done(code)
        if not self.exists(dn):
            return self._done(32)
        if any(k != normalize_dn(dn) and dn_is_under(e["dn"], dn) for k, e in self.entries.items()):
            return self._done(66)
        del self.entries[normalize_dn(dn)]
        return self._done(0)

    def modify_dn(self, dn, relative_dn, delete_old_dn=True, new_superior=None):
        self.writes.append(("modify_dn", dn, (relative_dn, new_superior)))
        code = self._injected("modify_dn")
        if code is not None:
            return self._done(code)
        if not self.exists(dn):
            return self._done(32)
        parent = new_superior or parent_dn(dn)
        new_dn = f"{relative_dn},{parent}"
        if self.exists(new_dn) and not dn_equal(new_dn, dn):
            return self._done(68)

        depth = len(dn.split(","))
        moved = {}
        for key, entry in list(self.entries.items()):
            if dn_is_under(entry["dn"], dn):
                prefix = entry["dn"].split(",")[: -depth]
                entry = dict(entry)
                entry["dn"] = ",".join(prefix + [new_dn])
                del self.entries[key]
                moved[normalize_dn(entry["dn"])] = entry
        self.entries.update(moved)

        rdn_attr, rdn_val = relative_dn.split("=", 1)
        self.attrs(new_dn)[rdn_attr] = [rdn_val]
        self.attrs(new_dn)["name"] = [rdn_val]
        # DN-valued references follow the rename, like AD's link table
        for entry in self.entries.values():
            members = entry["attrs"].get("member")
            if members:
                entry["attrs"]["member"] = [new_dn if dn_equal(m, dn) else m for m in members]
        return self._done(0)

    def unbind(self):
        self.unbound = True
        return True


@pytest.fixture
def conn() -> FakeConnection:
    c = FakeConnection()
    c.seed(DOMAIN_DN, ["top", "domain"])
    c.seed(f"ou=Users,{DOMAIN_DN}", ["top", "organizationalUnit"], ou="Users", name="Users")
    c.seed(f"ou=Groups,{DOMAIN_DN}", ["top", "organizationalUnit"], ou="Groups", name="Groups")
    c.seed(f"ou=Computers,{DOMAIN_DN}", ["top", "organizationalUnit"], ou="Computers", name="Computers")
    for sam in ("alice", "bob", "carol", "dave"):
        c.seed_user(sam)
    return c


@pytest.fixture
def directory(conn: FakeConnection) -> Directory:
    return Directory(conn, DOMAIN_DN)
