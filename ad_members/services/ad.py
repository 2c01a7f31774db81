from __future__ import annotations

from ..ad import ADConfig
from ..env_settings import EnvSettings
from ..utils import clamp_int


def ad_cfg_from_env(env: EnvSettings, **override) -> ADConfig | None:
    """Build ADConfig from environment settings; None when not configured.

    Keyword overrides (e.g. from the command line) win over env values when
    they are not None.
    """
    def pick(name, default):
        v = override.get(name)
        return default if v is None else v

    dc = pick("ad_dc", env.ad_dc)
    domain = pick("ad_domain", env.ad_domain)
    search_base = pick("ad_search_base", env.ad_search_base)
    if not dc or not (domain or search_base):
        return None

    return ADConfig(
        dc_short=dc,
        domain=domain,
        port=int(pick("ad_port", env.ad_port)),
        use_ssl=bool(pick("ad_use_ssl", env.ad_use_ssl)),
        starttls=bool(pick("ad_starttls", env.ad_starttls)),
        bind_username=pick("ad_bind_user", env.ad_bind_user),
        bind_password=pick("ad_bind_password", env.ad_bind_password),
        tls_validate=bool(pick("ad_tls_validate", env.ad_tls_validate)),
        ca_cert_file=pick("ad_ca_cert_file", env.ad_ca_cert_file) or "",
        search_base=search_base or "",
        timeout=clamp_int(pick("ad_timeout", env.ad_timeout), default=30, min_v=1, max_v=600),
        page_size=clamp_int(pick("ad_page_size", env.ad_page_size), default=1000, min_v=1, max_v=5000),
    )
