from __future__ import annotations

import re

from ldap3.utils.dn import escape_rdn


def normalize_dn(dn: str) -> str:
    """Canonical form of a DN for comparisons.

    AD compares DNs case-insensitively, so every equality check in the
    package goes through this helper. Stored DNs keep their original case.
    """
    parts = _split_dn(dn)
    return ",".join(_normalize_rdn(p) for p in parts)


def _normalize_rdn(rdn: str) -> str:
    if "=" not in rdn:
        return rdn.strip().lower()
    attr, val = rdn.split("=", 1)
    return f"{attr.strip().lower()}={val.strip().lower()}"


def dn_equal(a: str, b: str) -> bool:
    return normalize_dn(a) == normalize_dn(b)


def _split_dn(dn: str) -> list[str]:
    # Разбор с учётом экранированных запятых
    parts: list[str] = []
    cur: list[str] = []
    esc = False
    for ch in (dn or "").strip():
        if esc:
            cur.append(ch)
            esc = False
            continue
        if ch == "\\":
            cur.append(ch)
            esc = True
            continue
        if ch == ",":
            parts.append("".join(cur).strip())
            cur = []
            continue
        cur.append(ch)
    tail = "".join(cur).strip()
    if tail or parts:
        parts.append(tail)
    return [p for p in parts if p]


def build_rdn(attr: str, value: str) -> str:
    return f"{attr}={escape_rdn(value)}"


def build_dn(attr: str, value: str, parent: str) -> str:
    """Compose `<attr>=<value>,<parent>` (e.g. cn=srv01,ou=servers,dc=example,dc=com)."""
    rdn = build_rdn(attr, value)
    parent = (parent or "").strip()
    return f"{rdn},{parent}" if parent else rdn


def parent_dn(dn: str) -> str:
    """Everything after the first RDN (cn=x,ou=y,dc=z -> ou=y,dc=z)."""
    parts = _split_dn(dn)
    return ",".join(parts[1:])


def dn_first_component_value(dn: str) -> str:
    """Unescaped value of the leading RDN (CN=USB-Deny,OU=... -> USB-Deny)."""
    parts = _split_dn(dn)
    if not parts:
        return ""
    rdn = parts[0]
    val = rdn.split("=", 1)[1] if "=" in rdn else rdn
    return re.sub(r"\\(.)", r"\1", val).strip()
