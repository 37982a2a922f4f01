"""Centralized settings for the replication tooling.

Uses pydantic-settings to load from environment variables (prefixed VAULT_)
so the standard Vault client variables (VAULT_ADDR, VAULT_TOKEN,
VAULT_NAMESPACE, VAULT_CACERT, VAULT_SKIP_VERIFY) apply unchanged.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Replication settings loaded from environment variables."""

    # --- Vault connection ---
    addr: str = "http://127.0.0.1:8200"
    token: str = ""
    namespace: str = ""
    cacert: str = ""
    skip_verify: bool = False
    request_timeout: float = 30.0

    # --- Convergence wait ---
    convergence_max_attempts: int = 10
    convergence_interval: float = 1.0  # seconds between health polls
    convergence_deadline: Optional[float] = None  # total wait cap, seconds

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "console"

    model_config = {
        "env_prefix": "VAULT_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
