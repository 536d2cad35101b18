from __future__ import annotations

from typing import Iterable


def escape_ldap_filter_value(value: str) -> str:
    """RFC 4515 escaping for LDAP filter values."""
    out: list[str] = []
    for ch in value:
        if ch == "\\":
            out.append("\\5c")
        elif ch == "*":
            out.append("\\2a")
        elif ch == "(":
            out.append("\\28")
        elif ch == ")":
            out.append("\\29")
        elif ch == "\x00":
            out.append("\\00")
        else:
            out.append(ch)
    return "".join(out)


def eq_filter(attr: str, value: str) -> str:
    return f"({attr}={escape_ldap_filter_value(value)})"


def and_filter(*parts: str) -> str:
    return "(&" + "".join(parts) + ")"


def or_filter(parts: Iterable[str]) -> str:
    return "(|" + "".join(parts) + ")"


def class_and_name_filter(object_class: str, name_attr: str, name: str) -> str:
    """(&(objectClass=<class>)(<attr>=<name>))"""
    return and_filter(eq_filter("objectClass", object_class), eq_filter(name_attr, name))


def any_name_filter(object_classes: Iterable[str], name_attr: str, names: Iterable[str]) -> str:
    """Entries of any of the classes whose naming attribute matches any of the names."""
    classes = or_filter(eq_filter("objectClass", c) for c in object_classes)
    return and_filter(classes, or_filter(eq_filter(name_attr, n) for n in names))


def fold_name(name: str) -> str:
    """Comparison key for account names (sAMAccountName is case-insensitive in AD)."""
    return (name or "").strip().lower()
