from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field

from .ad.models import ADConfig


class EnvSettings(BaseSettings):
    ad_host: str = Field("", alias="AD_HOST")
    ad_port: int = Field(389, alias="AD_PORT")
    ad_domain: str = Field("", alias="AD_DOMAIN")
    ad_use_tls: bool = Field(True, alias="AD_USE_TLS")
    ad_use_ssl: bool = Field(False, alias="AD_USE_SSL")
    ad_no_cert_verify: bool = Field(False, alias="AD_NO_CERT_VERIFY")
    ad_ca_pem: str = Field("", alias="AD_CA_PEM")
    ad_user: str = Field("", alias="AD_USER")
    ad_password: str = Field("", alias="AD_PASSWORD")
    ad_connect_timeout: float = Field(10.0, alias="AD_CONNECT_TIMEOUT")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_dir: str = Field("data/logs", alias="LOG_DIR")
    log_retention_days: int = Field(30, alias="LOG_RETENTION_DAYS")

    class Config:
        populate_by_name = True

    def to_ad_config(self) -> ADConfig:
        return ADConfig(
            host=self.ad_host,
            domain=self.ad_domain,
            port=self.ad_port,
            use_ssl=self.ad_use_ssl,
            starttls=self.ad_use_tls,
            bind_username=self.ad_user,
            bind_password=self.ad_password,
            tls_validate=not self.ad_no_cert_verify,
            ca_pem=self.ad_ca_pem,
            connect_timeout=self.ad_connect_timeout,
        )


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()
