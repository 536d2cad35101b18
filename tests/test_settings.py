import logging
import os

import pytest

from ad_reconciler import log_config
from ad_reconciler.ad import ADConfig, TransportError
from ad_reconciler.ad.session import ensure_ca_file, open_connection
from ad_reconciler.ad_utils import bind_principal, build_dc_fqdn, domain_to_base_dn
from ad_reconciler.env_settings import EnvSettings, get_env


@pytest.fixture
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("AD_") or key.startswith("LOG_"):
            monkeypatch.delenv(key, raising=False)
    get_env.cache_clear()
    yield monkeypatch
    get_env.cache_clear()


def test_env_defaults(clean_env):
    env = EnvSettings()
    assert env.ad_port == 389
    assert env.ad_use_tls is True
    assert env.ad_use_ssl is False
    assert env.log_level == "INFO"


def test_env_maps_to_ad_config(clean_env):
    clean_env.setenv("AD_HOST", "dc1")
    clean_env.setenv("AD_DOMAIN", "Corp.Example.com")
    clean_env.setenv("AD_USER", "svc-recon")
    clean_env.setenv("AD_PASSWORD", "secret")
    clean_env.setenv("AD_USE_TLS", "false")
    clean_env.setenv("AD_NO_CERT_VERIFY", "1")

    cfg = get_env().to_ad_config()
    assert cfg.server_host == "dc1.Corp.Example.com"
    assert cfg.base_dn == "dc=corp,dc=example,dc=com"
    assert cfg.bind_principal == "svc-recon@Corp.Example.com"
    assert cfg.starttls is False
    assert cfg.tls_validate is False
    assert get_env() is get_env()


@pytest.mark.parametrize(
    "user, expected",
    [
        ("svc", "svc@example.com"),
        ("svc@other.org", "svc@other.org"),
        ("CN=svc,OU=Service,DC=example,DC=com", "CN=svc,OU=Service,DC=example,DC=com"),
        ("", ""),
    ],
)
def test_bind_principal(user, expected):
    assert bind_principal(user, "example.com") == expected


def test_domain_helpers():
    assert domain_to_base_dn("") == ""
    assert domain_to_base_dn("example.com.") == "dc=example,dc=com"
    assert build_dc_fqdn("10.0.0.5", "example.com") == "10.0.0.5"
    assert build_dc_fqdn("dc1.example.com", "example.com") == "dc1.example.com"
    assert build_dc_fqdn("", "example.com") == "example.com"


@pytest.mark.parametrize(
    "cfg, message",
    [
        (ADConfig(host="", domain="example.com", bind_username="svc"), "no ad host"),
        (ADConfig(host="dc1", domain="", bind_username="svc"), "no ad domain"),
        (ADConfig(host="dc1", domain="example.com"), "no bind user"),
    ],
)
def test_open_connection_validates_config(cfg, message):
    with pytest.raises(TransportError, match=message):
        open_connection(cfg)


def test_ensure_ca_file(tmp_path, monkeypatch):
    monkeypatch.setattr("tempfile.tempdir", str(tmp_path))
    pem = "-----BEGIN CERTIFICATE-----\r\nMIIB\r\n-----END CERTIFICATE-----\r\n"

    path = ensure_ca_file(pem)
    assert path.startswith(str(tmp_path))
    assert ensure_ca_file(pem) == path
    assert "\r" not in open(path, encoding="utf-8").read()

    assert ensure_ca_file("") == ""
    with pytest.raises(ValueError):
        ensure_ca_file("not a cert")


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def test_setup_logging(tmp_path, restore_root_logger):
    path = log_config.setup_logging(level="debug", retention_days=0, log_dir=str(tmp_path / "logs"))
    assert path == str(tmp_path / "logs" / "ad_reconciler.log")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("ldap3").level == logging.WARNING

    # reconfiguring replaces our handlers instead of stacking them
    before = len(logging.getLogger().handlers)
    log_config.setup_logging(level="bogus", log_dir=str(tmp_path / "logs"))
    assert len(logging.getLogger().handlers) == before
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_removes_expired_rotations(tmp_path, restore_root_logger):
    old = tmp_path / "ad_reconciler.log.2020-01-01"
    fresh = tmp_path / "ad_reconciler.log.2099-01-01"
    old.write_text("x")
    fresh.write_text("y")
    os.utime(old, (0, 0))

    log_config.setup_logging(retention_days=7, log_dir=str(tmp_path))
    assert not old.exists()
    assert fresh.exists()
