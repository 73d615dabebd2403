"""Configuration settings and data models."""

import json
import logging
import os
from typing import Literal, Optional
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class BattleSettings(BaseModel):
    """Battle lifecycle configuration."""

    duration_hours: float = Field(
        default=24.0, gt=0, description="Battle duration in hours (fractions allowed for testing)"
    )
    max_participants: int = Field(default=1000, ge=1, description="Maximum participants per battle")
    enabled: bool = Field(default=True, description="Automatic battle generation enabled")
    rate_limit_cooldown_seconds: int = Field(
        default=60, ge=0, description="Backoff after a topic provider rate-limit error"
    )
    completion_retry_seconds: float = Field(
        default=30.0, gt=0, description="Delay before retrying a failed completion"
    )
    winner_points: int = Field(default=100, ge=0, description="Points awarded to a battle winner")
    participation_points: int = Field(
        default=10, ge=0, description="Points awarded for joining a battle"
    )
    min_cast_length: int = Field(default=10, ge=1, description="Minimum argument length")
    duration_tolerance_hours: float = Field(
        default=0.01, ge=0, description="Allowed drift between stored and configured duration (36s)"
    )


class TopicSettings(BaseModel):
    """Topic generation configuration."""

    provider: Literal["openrouter", "static"] = Field(
        default="openrouter", description="Topic provider implementation"
    )
    model: str = Field(
        default="anthropic/claude-3-haiku", description="Model name for topic generation"
    )
    max_attempts: int = Field(default=3, ge=1, description="Generation attempts before giving up")
    retry_base_delay: float = Field(
        default=2.0, ge=0, description="Base delay in seconds for exponential backoff"
    )
    similarity_threshold: float = Field(
        default=0.6, ge=0, le=1, description="Reject topics this similar to a recent battle"
    )
    recent_battle_window: int = Field(
        default=10, ge=0, description="Number of recent battles checked for duplicates"
    )


class JudgingSettings(BaseModel):
    """Judging service configuration."""

    provider: Literal["engagement", "ai", "remote"] = Field(
        default="engagement", description="Judge implementation"
    )
    model: str = Field(default="anthropic/claude-3-haiku", description="Model for AI judging")
    remote_url: Optional[str] = Field(
        default=None, description="Base URL of the remote judging worker"
    )
    remote_api_key: Optional[str] = Field(
        default=None, description="API key sent to the remote judging worker"
    )
    timeout: float = Field(default=60.0, gt=0, description="Judging request timeout in seconds")
    max_retries: int = Field(default=2, ge=0, description="Retries for remote judging")

    @field_validator("remote_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalize the remote worker URL."""
        if v is None:
            return v
        return v.rstrip("/")


class OpenRouterConfig(BaseModel):
    """OpenRouter-specific configuration."""

    api_key: Optional[str] = Field(
        default=None, description="OpenRouter API key (can also be set via OPENROUTER_API_KEY env var)"
    )
    base_url: str = Field(
        default="https://openrouter.ai/api/v1", description="OpenRouter API base URL"
    )
    site_url: Optional[str] = Field(
        default=None, description="Your site URL for OpenRouter referrer tracking"
    )
    app_name: Optional[str] = Field(
        default="Debate Battles", description="App name for OpenRouter tracking"
    )
    max_retries: int = Field(default=3, description="Maximum number of API call retries")
    timeout: int = Field(default=60, description="API request timeout in seconds")


class SystemConfig(BaseModel):
    """System-wide configuration."""

    database_path: str = Field(default="battles.db", description="SQLite database file")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    cron_secret: Optional[str] = Field(
        default=None, description="Bearer token required by the cron endpoint"
    )
    worker_api_key: Optional[str] = Field(
        default=None, description="API key for the battle completion worker"
    )
    worker_base_url: Optional[str] = Field(
        default=None, description="Base URL of the battle completion worker"
    )
    worker_check_interval_seconds: int = Field(
        default=300, gt=0, description="Worker poll interval"
    )
    openrouter: OpenRouterConfig = Field(
        default_factory=OpenRouterConfig, description="OpenRouter-specific settings"
    )


class AppConfig(BaseModel):
    """Complete application configuration."""

    battle: BattleSettings
    topics: TopicSettings
    judging: JudgingSettings
    system: SystemConfig

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from a JSON or YAML file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            if config_path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        required_sections = ["battle", "topics", "judging", "system"]
        missing_sections = [
            section for section in required_sections if section not in data
        ]
        if missing_sections:
            raise ValueError(f"Missing required config sections: {missing_sections}")

        return cls(**data)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration as YAML (loadable by load_from_file with a .yaml suffix)."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_unset=True),
                f,
                default_flow_style=False,
                indent=2,
            )

    def apply_env_overrides(self) -> "AppConfig":
        """Apply environment-style overrides on top of file values."""
        env = os.environ
        if "BATTLE_DURATION_HOURS" in env:
            self.battle.duration_hours = float(env["BATTLE_DURATION_HOURS"])
        if "BATTLE_MAX_PARTICIPANTS" in env:
            self.battle.max_participants = int(env["BATTLE_MAX_PARTICIPANTS"])
        if "BATTLE_GENERATION_ENABLED" in env:
            self.battle.enabled = env["BATTLE_GENERATION_ENABLED"].lower() == "true"
        if "DATABASE_PATH" in env:
            self.system.database_path = env["DATABASE_PATH"]
        if "CRON_SECRET" in env:
            self.system.cron_secret = env["CRON_SECRET"]
        if "WORKER_API_KEY" in env:
            self.system.worker_api_key = env["WORKER_API_KEY"]
        if "WORKER_BASE_URL" in env:
            self.system.worker_base_url = env["WORKER_BASE_URL"]

        # Revalidate so bad env values fail loudly
        return AppConfig.model_validate(self.model_dump())


def get_default_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from battle_config.json, creating it if needed."""
    config_path = config_path or Path(os.environ.get("BATTLE_CONFIG", "battle_config.json"))
    if not config_path.exists():
        template_config = get_template_config()
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(template_config.model_dump(), f, indent=2)
        logger.info(f"Created default configuration at {config_path}")
    return AppConfig.load_from_file(config_path).apply_env_overrides()


def get_template_config() -> AppConfig:
    """Get template configuration for config file generation."""
    return AppConfig(
        battle=BattleSettings(
            duration_hours=24.0,
            max_participants=1000,
            enabled=True,
            rate_limit_cooldown_seconds=60,
            completion_retry_seconds=30.0,
            winner_points=100,
            participation_points=10,
        ),
        topics=TopicSettings(
            provider="openrouter",
            model="anthropic/claude-3-haiku",
            max_attempts=3,
        ),
        judging=JudgingSettings(provider="engagement"),
        system=SystemConfig(
            database_path="battles.db",
            log_level="INFO",
            openrouter=OpenRouterConfig(
                api_key=None,  # Set here or use OPENROUTER_API_KEY env var
                base_url="https://openrouter.ai/api/v1",
                app_name="Debate Battles",
                max_retries=3,
                timeout=60,
            ),
        ),
    )
