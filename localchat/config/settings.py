# localchat/config/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator
from pathlib import Path
import logging
from typing import Optional

from localchat.exceptions.config import ConfigError
from localchat.config.profiles import ModelProfiles
from localchat.config.system_prompts import resolve_system_prompt

logger = logging.getLogger("Settings")


def _default_database_path() -> Path:
    return Path.home() / ".localchat" / "chats.db"


class Settings(BaseSettings):
    # === Environment Variables (CLEAN NAMES) ===
    ollama_host: str = "http://localhost:11434"
    default_model: str = "llama3"
    database_path: Path = Field(default_factory=_default_database_path)
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    # None means no timeout beyond the transport's own behavior.
    request_timeout: Optional[float] = None

    follow_up_suggestions: bool = True
    follow_up_count: int = 3

    models_json_path: Optional[Path] = None
    system_prompt_id: Optional[str] = None

    # === Pydantic V2 Configuration ===
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # NO prefix - clean names match exactly
        extra="ignore",
        case_sensitive=False,
    )

    # === Model Validator ===

    @model_validator(mode="after")
    def validate_and_compute(self) -> "Settings":
        """Validate and normalize derived fields."""

        # 1. Validate log level
        if self.log_level.upper() not in logging._nameToLevel:
            raise ConfigError(
                f"Invalid log level: {self.log_level}",
                field_name="log_level",
                invalid_value=self.log_level,
            )
        self.log_level = self.log_level.upper()

        # 2. Validate host
        self.ollama_host = (self.ollama_host or "").strip().rstrip("/")
        if not self.ollama_host.startswith(("http://", "https://")):
            raise ConfigError(
                f"ollama_host must be an http(s) URL. Got: {self.ollama_host}",
                field_name="ollama_host",
                invalid_value=self.ollama_host,
            )

        # 3. Validate numeric knobs
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigError(
                "request_timeout must be positive when set.",
                field_name="request_timeout",
                invalid_value=self.request_timeout,
            )
        if self.follow_up_count < 0:
            raise ConfigError(
                "follow_up_count cannot be negative.",
                field_name="follow_up_count",
                invalid_value=self.follow_up_count,
            )

        # 4. Model profile overrides must exist if named
        if self.models_json_path is not None and not self.models_json_path.exists():
            raise ConfigError(
                f"Model profile file not found: {self.models_json_path}",
                field_name="models_json_path",
                invalid_value=str(self.models_json_path),
            )

        return self

    # === Convenience Properties ===

    @property
    def chat_url(self) -> str:
        return f"{self.ollama_host}/api/chat"

    @property
    def generate_url(self) -> str:
        return f"{self.ollama_host}/api/generate"

    @property
    def system_prompt(self) -> Optional[str]:
        """The configured default system prompt, preset ids resolved."""
        return resolve_system_prompt(self.system_prompt_id)

    def load_profiles(self) -> ModelProfiles:
        return ModelProfiles.load(self.models_json_path)
