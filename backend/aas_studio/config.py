"""
Application configuration using Pydantic Settings.

Supports environment variables and .env files for configuration.
"""

from functools import lru_cache
import json
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Schema validation
    aas_xsd_url: str = (
        "https://raw.githubusercontent.com/admin-shell-io/aas-specs-metamodel/"
        "refs/heads/master/schemas/xml/AAS.xsd"
    )
    validator_backend: Literal["remote", "basyx"] = "remote"
    validator_url: str = "https://libs.iot-catalogue.com/xmllint-wasm/validateXML"
    validator_timeout_seconds: float = 30.0
    schema_fetch_timeout_seconds: float = 30.0

    # Template catalogue
    github_token: str | None = None
    github_repo: str = "admin-shell-io/submodel-templates"
    github_api_version: str = "2022-11-28"
    template_root: str = "published"

    # Caching
    cache_dir: Path = Path("./cache/templates")
    cache_ttl_hours: int = 24

    # Encoding
    default_language: str = "en"

    # File upload limits
    max_upload_size_mb: int = 50

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            value = v.strip()
            if value.startswith("["):
                try:
                    parsed = json.loads(value)
                    if isinstance(parsed, list):
                        return [str(origin).strip() for origin in parsed if str(origin).strip()]
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("cache_dir", mode="before")
    @classmethod
    def parse_cache_dir(cls, v):
        if isinstance(v, str):
            return Path(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
