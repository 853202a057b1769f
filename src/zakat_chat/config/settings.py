"""Configuration settings using Pydantic."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OracleSettings(BaseSettings):
    """Intent oracle (OpenAI) configuration."""
    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: str = ""
    model: str = "gpt-4o-mini"
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class ServerSettings(BaseSettings):
    """WebSocket server configuration."""
    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "localhost"
    port: int = 8765
    health_port: int = 8080
    # Oversized uploads up to ~24 MiB still reach the attachment size check.
    max_frame_bytes: int = 32 * 1024 * 1024


class StorageSettings(BaseSettings):
    """Seed data configuration."""
    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    seed_path: str = ""  # empty means built-in seed


class ChatSettings(BaseSettings):
    """Dialogue configuration."""
    model_config = SettingsConfigDict(env_prefix="CHAT_")

    max_attachment_bytes: int = 3 * 1024 * 1024
    affirmative_token: str = "ya"


class LoggingSettings(BaseSettings):
    """Logging configuration."""
    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    oracle: OracleSettings = Field(default_factory=OracleSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
