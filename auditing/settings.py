"""
Auditing settings.

Values are read from the environment with the AUDIT_ prefix, e.g.
AUDIT_STRICT=true or AUDIT_THRESHOLD=200. Record classes may override
strict, timestamps, threshold, events and driver per type.
"""
from functools import lru_cache
from typing import Dict, List, Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_RESOLVERS = {
    "user": "auditing.services.resolvers.UserResolver",
    "group": "auditing.services.resolvers.GroupIdResolver",
    "url": "auditing.services.resolvers.UrlResolver",
    "ip_address": "auditing.services.resolvers.IpAddressResolver",
    "user_agent": "auditing.services.resolvers.UserAgentResolver",
}


class Settings(BaseSettings):
    """Global auditing configuration."""

    model_config = SettingsConfigDict(env_prefix="AUDIT_", extra="ignore")

    # Master switch
    enabled: bool = True
    # Audit while running as a batch/console process
    console: bool = False

    strict: bool = Field(
        default=False,
        description="Exclude attributes hidden from default presentation from the diff.",
    )
    timestamps: bool = Field(
        default=False,
        description="Audit created_at/updated_at/deleted_at columns.",
    )
    threshold: int = Field(
        default=0,
        description="Audits kept per subject when pruning. 0 or less keeps everything.",
    )
    events: Optional[List[Union[str, Dict[str, Optional[str]]]]] = Field(
        default=None,
        description="Global event configuration used when a record type declares none.",
    )
    driver: str = "database"

    user_type: str = "user"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    resolvers: Dict[str, Optional[str]] = Field(default_factory=lambda: dict(DEFAULT_RESOLVERS))

    log_level: str = "INFO"
    log_json: bool = True


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
