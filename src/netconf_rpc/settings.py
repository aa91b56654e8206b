from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class NetconfSettings(BaseSettings):
    """Client defaults.

    All settings can be configured via environment variables with the prefix NETCONF_.
    For example, NETCONF_RPC_TIMEOUT=30 bounds every RPC to thirty seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="NETCONF_",
        env_file=".env",
        extra="ignore",
    )

    port: int = 22

    rpc_timeout: float | None = None
    """Seconds to wait for a reply; None waits forever."""

    hello_timeout: float | None = None
    """Seconds to wait for the device hello; None waits forever."""

    close_timeout: float = 5.0
    """Bound on the trailing close-session some devices never answer."""

    raw: bool = False
    preserve_attributes: bool = True

    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
