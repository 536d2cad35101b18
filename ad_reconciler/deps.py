from __future__ import annotations

from typing import Iterator

from .ad import Directory
from .ad.session import close_connection, open_connection
from .env_settings import get_env


def get_directory() -> Iterator[Directory]:
    """One bound session per request, unbound when the request is done."""
    cfg = get_env().to_ad_config()
    conn = open_connection(cfg)
    try:
        yield Directory(conn, cfg.base_dn)
    finally:
        close_connection(conn)
