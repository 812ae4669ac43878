from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database import DatabaseConfig
from .logger import LoggerConfig
from .skill import SkillConfig
from .storage import StorageConfig


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SKILLHUB_",
        env_nested_delimiter="_",
        case_sensitive=False,
        extra="ignore",
    )

    Title: str = Field(default="SkillHub Service", description="Service title")
    Host: str = Field(default="0.0.0.0", description="Bind host")
    Port: int = Field(default=48196, description="Bind port")
    Debug: bool = Field(default=False, description="Enable debug mode and auto-reload")

    Database: DatabaseConfig = Field(default_factory=DatabaseConfig, description="Database configuration")
    Storage: StorageConfig = Field(default_factory=StorageConfig, description="Blob storage configuration")
    Skill: SkillConfig = Field(default_factory=SkillConfig, description="Skill import configuration")
    Logger: LoggerConfig = Field(default_factory=LoggerConfig, description="Logging configuration")


configs = AppConfig()

__all__ = ["AppConfig", "configs"]
