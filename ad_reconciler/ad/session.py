from __future__ import annotations

import hashlib
import logging
import os
import ssl
import tempfile
from typing import Any

from ldap3 import NONE, Connection, Server, Tls
from ldap3.core.exceptions import LDAPException

from .errors import TransportError
from .models import ADConfig

log = logging.getLogger(__name__)


def _normalize_pem(pem: str) -> str:
    """Normalize PEM text (strip outer whitespace and normalize line endings)."""
    data = (pem or "").strip()
    # Windows newlines -> \n, иначе хэш файла будет отличаться.
    return data.replace("\r\n", "\n").replace("\r", "\n")


def ensure_ca_file(pem: str) -> str:
    """Materialize CA PEM into a stable file path.

    ldap3.Tls takes ca_certs_file across versions. The PEM is stored in the
    temp dir under a content hash so concurrent processes reuse one file.
    """
    data = _normalize_pem(pem)
    if not data:
        return ""

    if "-----BEGIN CERTIFICATE-----" not in data or "-----END CERTIFICATE-----" not in data:
        raise ValueError("CA PEM does not look like a certificate (expected BEGIN/END CERTIFICATE block)")

    h = hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]
    path = os.path.join(tempfile.gettempdir(), f"ad_reconciler_ca_{h}.pem")

    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            if f.read().strip() == data:
                return path

    with open(path, "w", encoding="utf-8") as f:
        f.write(data + "\n")
    os.chmod(path, 0o600)
    return path


def build_server(cfg: ADConfig) -> Server:
    tls_kwargs: dict[str, Any] = {
        "validate": ssl.CERT_REQUIRED if cfg.tls_validate else ssl.CERT_NONE,
    }
    # Custom CA only makes sense when verification is enabled.
    if cfg.tls_validate and cfg.ca_pem:
        tls_kwargs["ca_certs_file"] = ensure_ca_file(cfg.ca_pem)

    server_kwargs: dict[str, Any] = {
        "host": cfg.server_host,
        "port": cfg.port,
        "use_ssl": cfg.use_ssl,
        "get_info": NONE,
        "tls": Tls(**tls_kwargs),
    }
    if cfg.connect_timeout:
        server_kwargs["connect_timeout"] = float(cfg.connect_timeout)
    return Server(**server_kwargs)


def open_connection(cfg: ADConfig) -> Connection:
    """Connect, optionally StartTLS, and bind with the service account."""
    if not cfg.host:
        raise TransportError("no ad host specified", operation="connect")
    if not cfg.domain:
        raise TransportError("no ad domain specified", operation="connect")
    if not cfg.bind_username:
        raise TransportError("no bind user specified", operation="connect")

    log.info("Подключение к %s:%d", cfg.server_host, cfg.port)
    conn = Connection(
        build_server(cfg),
        user=cfg.bind_principal,
        password=cfg.bind_password,
        auto_bind=False,
        raise_exceptions=False,
    )
    try:
        conn.open()
        if cfg.starttls and not cfg.use_ssl:
            log.info("Включение StartTLS")
            conn.start_tls()
        log.info("Аутентификация пользователя %s", cfg.bind_principal)
        ok = bool(conn.bind())
    except LDAPException as e:
        close_connection(conn)
        raise TransportError(f"failed to connect: {e}", operation="connect", target=cfg.server_host) from e

    if not ok:
        res = dict(conn.result or {})
        close_connection(conn)
        raise TransportError(
            f"authentication failed: {res.get('description', 'неизвестная ошибка')}",
            operation="connect",
            target=cfg.server_host,
            result_code=res.get("result"),
            description=str(res.get("description", "")),
        )

    log.info("Подключено к %s:%d", cfg.server_host, cfg.port)
    return conn


def close_connection(conn: Connection) -> None:
    try:
        conn.unbind()
    except LDAPException as e:
        log.warning("Ошибка при закрытии соединения: %s", e)
