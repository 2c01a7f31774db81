from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field


class EnvSettings(BaseSettings):
    # AD connection
    ad_dc: str = Field("", alias="AD_DC")
    ad_domain: str = Field("", alias="AD_DOMAIN")
    ad_port: int = Field(636, alias="AD_PORT")
    ad_use_ssl: bool = Field(True, alias="AD_USE_SSL")
    ad_starttls: bool = Field(False, alias="AD_STARTTLS")
    ad_bind_user: str = Field("", alias="AD_BIND_USER")
    ad_bind_password: str = Field("", alias="AD_BIND_PASSWORD")
    ad_tls_validate: bool = Field(False, alias="AD_TLS_VALIDATE")
    ad_ca_cert_file: str = Field("", alias="AD_CA_CERT_FILE")
    ad_search_base: str = Field("", alias="AD_SEARCH_BASE")
    ad_timeout: int = Field(30, alias="AD_TIMEOUT")
    ad_page_size: int = Field(1000, alias="AD_PAGE_SIZE")

    # Target group
    ad_group_dn: str = Field("", alias="AD_GROUP_DN")
    ad_group_name: str = Field("", alias="AD_GROUP_NAME")
    resolve_strategy: str = Field("auto", alias="AD_RESOLVE_STRATEGY")  # auto | chained | recursive

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_dir: str = Field("", alias="LOG_DIR")
    log_retention_days: int = Field(30, alias="LOG_RETENTION_DAYS")

    class Config:
        populate_by_name = True


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()
