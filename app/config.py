from typing import Annotated, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Server settings
    app_host: str = Field(default="0.0.0.0")
    app_port: Annotated[int, Field(ge=1, le=65535)] = Field(default=8080)
    log_level: str = Field(default="INFO")

    # Source policy
    allow_domains: str = Field(default="", description="comma separated; empty allows any host")
    domain_match_mode: Literal["exact", "contains"] = Field(default="exact")
    base_url: str = Field(default="", description="prefix for sources that are not absolute URLs")

    # HTTP client settings
    http_timeout_s: Annotated[float, Field(gt=0)] = Field(default=5.0)
    user_agent: str = Field(default="image-resize-proxy/1.0")

    # Cache settings
    cache_backend: Literal["filesystem", "memory"] = Field(default="filesystem")
    cache_dir: str = Field(default="./cache")
    default_max_age_s: Annotated[int, Field(ge=0)] = Field(default=7 * 24 * 60 * 60)
    stale_while_revalidate_s: Annotated[int, Field(ge=0)] = Field(default=86400)
    stale_if_error_s: Annotated[int, Field(ge=0)] = Field(default=604800)

    # Output
    output_format: Literal["WEBP", "PNG", "JPEG"] = Field(default="WEBP")


# Create settings singleton instance
settings = Settings()
