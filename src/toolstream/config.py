"""Configuration snapshot supplied by the UI layer.

Field aliases follow the camelCase keys the UI stores, so a saved
settings blob can be validated directly.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_API_ENDPOINT = "https://api.aihubmix.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
DEFAULT_SEARCH_ENDPOINT = "https://ddg-webapp-aagd.vercel.app/search"


class AgentConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(default="", alias="apiKey")
    api_endpoint: str = Field(default=DEFAULT_API_ENDPOINT, alias="apiEndpoint")
    model: str = DEFAULT_MODEL
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, alias="systemPrompt")
    search_endpoint: str = Field(default=DEFAULT_SEARCH_ENDPOINT, alias="searchEndpoint")
    search_key: str = Field(default="", alias="searchKey")
    max_retries: int = Field(default=2, alias="maxRetries")
    timeout: float = 600.0
    search_timeout: float = Field(default=15.0, alias="searchTimeout")

    @field_validator(
        "api_key", "api_endpoint", "model", "system_prompt",
        "search_endpoint", "search_key",
    )
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Build a config from ``TOOLSTREAM_*`` environment variables.

        The API key falls back to ``OPENAI_API_KEY``.
        """
        values = {
            "apiKey": os.getenv("TOOLSTREAM_API_KEY") or os.getenv("OPENAI_API_KEY"),
            "apiEndpoint": os.getenv("TOOLSTREAM_API_ENDPOINT"),
            "model": os.getenv("TOOLSTREAM_MODEL"),
            "systemPrompt": os.getenv("TOOLSTREAM_SYSTEM_PROMPT"),
            "searchEndpoint": os.getenv("TOOLSTREAM_SEARCH_ENDPOINT"),
            "searchKey": os.getenv("TOOLSTREAM_SEARCH_KEY"),
        }
        return cls.model_validate({k: v for k, v in values.items() if v is not None})

    def to_storage(self) -> dict:
        """The UI-facing subset that gets persisted."""
        return self.model_dump(
            by_alias=True,
            include={
                "api_key", "api_endpoint", "model", "system_prompt",
                "search_endpoint", "search_key",
            },
        )


def load_config(path: str | Path) -> AgentConfig:
    """Restore saved settings, falling back to defaults on any problem."""
    path = Path(path)
    if not path.exists():
        return AgentConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return AgentConfig.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Could not read saved config from {path}: {e}")
        return AgentConfig()


def save_config(config: AgentConfig, path: str | Path) -> bool:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(config.to_storage(), indent=2), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not persist config to {path}: {e}")
        return False
    return True


def reset_config(path: str | Path) -> AgentConfig:
    """Write the defaults back to *path* and return them."""
    config = AgentConfig()
    save_config(config, path)
    return config
