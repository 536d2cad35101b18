from __future__ import annotations

import ipaddress
import re

_DN_USER = re.compile(r".*,\s*(ou|cn|dc)=.*", re.IGNORECASE)


def domain_to_base_dn(domain: str) -> str:
    """example.com -> dc=example,dc=com (lower-case, as stored in resource state)."""
    domain = (domain or "").strip().strip(".")
    if not domain:
        return ""
    parts = [p for p in domain.lower().split(".") if p]
    return ",".join([f"dc={p}" for p in parts])


def build_dc_fqdn(dc_short: str, domain: str) -> str:
    dc_short = (dc_short or "").strip()
    domain = (domain or "").strip().strip(".")
    if not dc_short:
        return domain

    # IP-адрес используем как есть
    try:
        ipaddress.ip_address(dc_short)
        return dc_short
    except ValueError:
        if "." in dc_short:
            return dc_short
        return f"{dc_short}.{domain}" if domain else dc_short


def bind_principal(user: str, domain: str) -> str:
    """Bind name for the service account.

    UPNs (user@domain) and full DNs are passed through, bare account names
    get the domain suffix.
    """
    u = (user or "").strip()
    d = (domain or "").strip().strip(".")
    if not u:
        return ""
    if "@" in u or _DN_USER.match(u):
        return u
    return f"{u}@{d}" if d else u
