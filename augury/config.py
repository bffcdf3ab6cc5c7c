"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class ProtocolConfig(BaseModel):
    """Initial protocol settings, copied into the settings row at init."""

    fee_percent: int = Field(default=3, ge=0, le=30)
    accuracy_threshold: int = Field(default=5, ge=0, le=20)
    auto_distribution: bool = True
    min_stake: int = Field(default=1_000_000, gt=0)  # 0.01 token at 8 decimals
    max_stake: int = Field(default=10_000_000_000, gt=0)  # 100 tokens
    round_duration_seconds: int = Field(default=24 * 60 * 60, gt=0)
    min_confidence: int = Field(default=60, ge=0, le=100)
    max_forecast_age_seconds: int = Field(default=60 * 60, gt=0)

    @model_validator(mode="after")
    def check_stake_limits(self) -> "ProtocolConfig":
        """Minimum stake must not exceed maximum stake."""
        if self.min_stake > self.max_stake:
            raise ValueError(
                f"min_stake ({self.min_stake}) exceeds max_stake ({self.max_stake})"
            )
        return self


class RegistryConfig(BaseModel):
    """Prediction registry validation bounds."""

    min_confidence: int = Field(default=50, ge=0, le=100)
    max_confidence: int = Field(default=100, ge=0, le=100)
    prediction_validity_seconds: int = Field(default=24 * 60 * 60, gt=0)
    price_staleness_seconds: int = Field(default=60 * 60, gt=0)


class SchedulerConfig(BaseModel):
    """Job scheduling intervals in minutes."""

    distribution_sweep_minutes: int = 5
    resolve_check_minutes: int = 1
    auto_resolve: bool = True


class ApiConfig(BaseModel):
    """Query API server parameters."""

    host: str = "127.0.0.1"
    port: int = 8000
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"]
    )


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")
    database_url: str = ""

    # Identities
    operator_address: str = "operator"
    registry_admin_address: str = ""

    # Observability
    logfire_token: str = ""

    # Payouts are recorded, not sent
    paper_mode: bool = True

    # Where reference prices come from: the price_points table, or an
    # in-process feed (paper mode only)
    price_feed: Literal["stored", "manual"] = "stored"

    # Nested configuration sections
    protocol: ProtocolConfig = Field(default_factory=ProtocolConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    def get_database_url(self) -> str:
        """Database URL, defaulting to a SQLite file in the data directory."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'augury.db'}"

    def get_registry_admin(self) -> str:
        """Registry governance identity, falling back to the operator."""
        return self.registry_admin_address or self.operator_address

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m augury init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["protocol", "registry", "scheduler", "api"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name]

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
