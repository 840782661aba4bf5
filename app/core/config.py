from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Load application settings from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    environment: Literal["local", "dev", "prod"] = "local"
    version: str = "0.1.0"
    log_level: str = "INFO"
    admin_id: str = "admin"
    admin_password: str = "admin"
    config_path: str = "clinic.yaml"
    store_path: str = "data/records.duckdb"
    telemetry_path: str = "data/telemetry.duckdb"
    store_quota_bytes: int = 0
    export_dir: str = "exports"
    scheduler_enabled: bool = True


class ClinicConfig(BaseModel):
    """Per-unit clinic settings"""

    clinic_id: str = "UBS"
    name: str = "Unidade Básica de Saúde"
    enabled: bool = True
    roster_refresh_seconds: int = 3
    low_stock_threshold: int = 20


class AppConfig(BaseModel):
    """Single clinic configuration wrapper"""

    clinic: ClinicConfig = ClinicConfig()


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance"""
    return Settings()


@lru_cache
def load_app_config() -> AppConfig:
    """Load the clinic configuration from the YAML file

    Returns:
        Clinic configuration; defaults when the file does not exist
    """
    settings = get_settings()
    path = Path(settings.config_path)
    if not path.exists():
        return AppConfig()
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return AppConfig(**data)


def reload_app_config() -> AppConfig:
    """Clear the configuration cache and load it again

    Returns:
        Clinic configuration
    """
    load_app_config.cache_clear()
    return load_app_config()
